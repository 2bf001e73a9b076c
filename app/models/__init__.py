"""
LoveConnect — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.profile import Profile, ProfileEdge
from app.models.match import Match, Message

__all__ = [
    "Profile",
    "ProfileEdge",
    "Match",
    "Message",
]
