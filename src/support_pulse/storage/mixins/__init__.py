from .sync_status import SyncStatusMixin
from .tickets import TicketMixin
from .users import UserMixin

__all__ = [
    "SyncStatusMixin",
    "TicketMixin",
    "UserMixin",
]
