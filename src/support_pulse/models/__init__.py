from .support import Base, SyncStatus, Ticket, TicketStatus, User

__all__ = ["Base", "SyncStatus", "Ticket", "TicketStatus", "User"]
