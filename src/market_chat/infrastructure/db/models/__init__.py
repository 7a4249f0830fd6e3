"""Import all models so Base.metadata sees every table (create_all, migrations)."""
from market_chat.infrastructure.db.models.message import MessageModel

__all__ = [
    "MessageModel",
]
