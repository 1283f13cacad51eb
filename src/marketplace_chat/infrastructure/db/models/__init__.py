"""Import all models so Base.metadata sees every table."""
from marketplace_chat.infrastructure.db.models.conversation import ConversationModel
from marketplace_chat.infrastructure.db.models.message import MessageModel
from marketplace_chat.infrastructure.db.models.outbox import OutboxMessageModel
from marketplace_chat.infrastructure.db.models.user import ProfileModel, UserModel

__all__ = [
    "ConversationModel",
    "MessageModel",
    "OutboxMessageModel",
    "ProfileModel",
    "UserModel",
]
