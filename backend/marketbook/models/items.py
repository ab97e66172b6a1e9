from __future__ import annotations

from ..extensions import db
from marketbook.money import amount_str, format_currency, status_label
from marketbook.time_utils import to_utc_z, utcnow


ITEM_STATUSES = ("pending", "paid", "unpaid")


class Item(db.Model):
    """
    Invoiceable record owned by exactly one user.

    OWNERSHIP: every read and write is scoped by (id, user_id). user_id is
    set at creation and never changes.

    MONEY: amount_cents holds integer minor units (2 decimal places).
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_user_created", "user_id", "created_at"),
        db.CheckConstraint("amount_cents >= 0", name="ck_items_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    image = db.Column(db.String(512), nullable=True)

    customer_email = db.Column(db.String(255), nullable=True)
    customer_name = db.Column(db.String(200), nullable=True)
    customer_address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    owner = db.relationship("User", backref=db.backref("items", lazy=True))

    def __repr__(self) -> str:
        return f"<Item id={self.id} user_id={self.user_id} title={self.title!r}>"

    def to_dict(self, currency_symbol: str = "₦", include_owner: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "amount": amount_str(self.amount_cents),
            "amount_cents": self.amount_cents,
            "amount_display": format_currency(self.amount_cents, currency_symbol),
            "status": self.status,
            "status_label": status_label(self.status),
            "image": self.image,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "customer_address": self.customer_address,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_owner and self.owner is not None:
            data["owner"] = self.owner.owner_dict()
        return data
