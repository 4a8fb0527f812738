# Overview: Status vocabularies and fixed windows shared by models, services and validation.

# =============================================================================
# CUSTOMERS
# =============================================================================

CUSTOMER_ACTIVE = "active"
CUSTOMER_INACTIVE = "inactive"
CUSTOMER_STATUSES = {CUSTOMER_ACTIVE, CUSTOMER_INACTIVE}

WALK_IN_CUSTOMER = "Walk-in Customer"

# =============================================================================
# PRODUCTS
# =============================================================================

STOCK_IN = "in-stock"
STOCK_LOW = "low-stock"
STOCK_OUT = "out-of-stock"
LOW_STOCK_STATUSES = {STOCK_LOW, STOCK_OUT}

ADJUST_ADD = "add"
ADJUST_REMOVE = "remove"
ADJUST_SET = "set"
ADJUST_TYPES = {ADJUST_ADD, ADJUST_REMOVE, ADJUST_SET}

# =============================================================================
# INVOICES
# =============================================================================

INVOICE_DRAFT = "draft"
INVOICE_SENT = "sent"
INVOICE_PENDING = "pending"
INVOICE_PAID = "paid"
INVOICE_OVERDUE = "overdue"
INVOICE_CANCELLED = "cancelled"

INVOICE_STATUSES = {
    INVOICE_DRAFT,
    INVOICE_SENT,
    INVOICE_PENDING,
    INVOICE_PAID,
    INVOICE_OVERDUE,
    INVOICE_CANCELLED,
}

# Statuses whose unpaid remainder counts as outstanding on the dashboard
INVOICE_OUTSTANDING_STATUSES = {INVOICE_PENDING, INVOICE_OVERDUE}

# Terminal statuses never promoted by the overdue sweep
INVOICE_TERMINAL_STATUSES = {INVOICE_PAID, INVOICE_CANCELLED}

# =============================================================================
# RECEIPTS
# =============================================================================

RECEIPT_COMPLETED = "completed"
RECEIPT_REFUNDED = "refunded"
RECEIPT_PENDING = "pending"
RECEIPT_STATUSES = {RECEIPT_COMPLETED, RECEIPT_REFUNDED, RECEIPT_PENDING}

PAYMENT_METHODS = {"cash", "card", "transfer", "mobile"}

# =============================================================================
# NOTIFICATIONS
# =============================================================================

NOTIFY_SUCCESS = "success"
NOTIFY_WARNING = "warning"
NOTIFY_ERROR = "error"
NOTIFY_INFO = "info"
NOTIFY_PAYMENT = "payment"
NOTIFY_INVOICE = "invoice"
NOTIFICATION_TYPES = {
    NOTIFY_SUCCESS,
    NOTIFY_WARNING,
    NOTIFY_ERROR,
    NOTIFY_INFO,
    NOTIFY_PAYMENT,
    NOTIFY_INVOICE,
}

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"
PRIORITY_RANK = {PRIORITY_HIGH: 0, PRIORITY_MEDIUM: 1, PRIORITY_LOW: 2}

SOURCE_SYSTEM = "system"
SOURCE_MANUAL = "manual"
