"""
Lensmatch Discover: ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from lensmatch.models.user import User
from lensmatch.models.photographer import Event, Photographer, PortfolioImage, Review
from lensmatch.models.messaging import MessageThread, Notification, message_thread_participants
from lensmatch.models.match import Match, Swipe

__all__ = [
    "User",
    "Photographer",
    "PortfolioImage",
    "Review",
    "Event",
    "MessageThread",
    "Notification",
    "message_thread_participants",
    "Match",
    "Swipe",
]
