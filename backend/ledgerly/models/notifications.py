from __future__ import annotations

from ..extensions import db
from ..constants import PRIORITY_MEDIUM, SOURCE_SYSTEM
from ledgerly.time_utils import to_utc_z, format_relative_time


class Notification(db.Model):
    """
    Materialized notification feed.

    SYSTEM rows are derived from entity state and rewritten on every
    regeneration; their id embeds the source entity id and its last-modified
    stamp so an unchanged entity keeps the same id (and its read flag).
    MANUAL rows are added explicitly and only removed by pruning or clear.

    Only `read` may be changed by consumers.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_source", "source"),
        db.Index("ix_notifications_created_at", "created_at"),
    )

    id = db.Column(db.String(128), primary_key=True)

    # success, warning, error, info, payment, invoice
    type = db.Column(db.String(16), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    # high, medium, low
    priority = db.Column(db.String(8), nullable=False, default=PRIORITY_MEDIUM)

    action_label = db.Column(db.String(64), nullable=True)
    action_target = db.Column(db.String(255), nullable=True)
    data_id = db.Column(db.String(32), nullable=True)

    # system, manual
    source = db.Column(db.String(8), nullable=False, default=SOURCE_SYSTEM)
    auto_read_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification id={self.id!r} read={self.read}>"

    def to_dict(self, now=None) -> dict:
        action = None
        if self.action_label:
            action = {"label": self.action_label, "target": self.action_target}
        data = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "priority": self.priority,
            "action": action,
            "data_id": self.data_id,
            "source": self.source,
            "created_at": to_utc_z(self.created_at),
        }
        if now is not None:
            data["time"] = format_relative_time(self.created_at, now)
        return data
