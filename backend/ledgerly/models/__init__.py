from .customers import Customer
from .inventory import Product, StockMovement
from .sales import Invoice, InvoiceItem, Receipt, ReceiptItem
from .notifications import Notification
from .documents import DocumentSequence

__all__ = [
    'Customer',
    'Product', 'StockMovement',
    'Invoice', 'InvoiceItem', 'Receipt', 'ReceiptItem',
    'Notification',
    'DocumentSequence',
]
