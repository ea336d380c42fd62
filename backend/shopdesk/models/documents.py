from __future__ import annotations

from ..extensions import db
from shopdesk.time_utils import to_utc_z, utcnow


class InvoiceSequence(db.Model):
    """
    Atomic per-shop invoice counter.

    next_number is the number the next sale will receive. It is only
    advanced with a single UPDATE ... SET next_number = next_number + 1
    inside the sale transaction, so a rolled back sale never burns a number.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, unique=True, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    shop = db.relationship("Shop", backref=db.backref("invoice_sequence", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
