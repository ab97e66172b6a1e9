from .users import User, SessionToken
from .items import Item, ITEM_STATUSES
from .provenance import AuditLog, Notification, NOTIFICATION_TYPES

__all__ = [
    'User', 'SessionToken',
    'Item', 'ITEM_STATUSES',
    'AuditLog', 'Notification', 'NOTIFICATION_TYPES',
]
