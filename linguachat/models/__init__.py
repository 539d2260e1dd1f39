"""SQLAlchemy ORM models.

Individual models should be imported explicitly:
    from linguachat.models.message import Message

All models are imported here so Alembic can detect them during migration
autogenerate.
"""

from linguachat.models.contact import Contact
from linguachat.models.conversation import Conversation, ConversationParticipant
from linguachat.models.message import Message
from linguachat.models.profile import Profile

__all__ = [
    "Profile",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "Contact",
]
