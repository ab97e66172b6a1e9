from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Item
from sqlalchemy.orm import joinedload


def owned_item_query(user_id: int, session=None):
    """Base query for a user's items. Every item read goes through here."""
    session = session if session is not None else db.session
    return session.query(Item).options(joinedload(Item.owner)).filter(Item.user_id == user_id)


def list_items(user_id: int) -> list[Item]:
    return owned_item_query(user_id).order_by(Item.created_at.desc(), Item.id.desc()).all()


def get_item(user_id: int, item_id: int, session=None) -> Item:
    """
    Resolve an item by (item_id, user_id).

    Absent and foreign items raise the same NotFoundError.
    """
    item = owned_item_query(user_id, session).filter(Item.id == item_id).first()
    if not item:
        raise NotFoundError("Item")
    return item
