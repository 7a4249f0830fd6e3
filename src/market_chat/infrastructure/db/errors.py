from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from market_chat.application.exceptions import PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def translate_db_errors(operation: str) -> Iterator[None]:
    """Re-raise driver/ORM failures as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.warning("Message store %s failed: %s", operation, exc)
        raise PersistenceError(f"Message store unavailable during {operation}") from exc
