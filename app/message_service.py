"""
Message normalization, validation and persistence.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.config import settings
from app.errors import MessageValidationError
from app.storage import insert_message, select_recent_messages

logger = logging.getLogger(__name__)


def normalize(raw: Any) -> str:
    """
    Normalize submitted text.

    Missing or non-string input becomes "". Leading/trailing whitespace is
    removed and every internal whitespace run becomes a single space.
    """
    if not isinstance(raw, str):
        return ""
    return " ".join(raw.split())


def validate(text: str) -> None:
    """
    Check normalized text length.

    Raises:
        MessageValidationError: unless 1 <= len(text) <= MESSAGE_MAX_CHARS
    """
    if not 1 <= len(text) <= settings.MESSAGE_MAX_CHARS:
        raise MessageValidationError()


def create(db: Session, text: str, now: int) -> int:
    """Store a normalized message created at `now` (epoch ms) and return its id."""
    return insert_message(db, text, now)


def list_recent(db: Session, limit: int = 10) -> list:
    """Return up to `limit` messages, newest first."""
    messages = select_recent_messages(db, limit)
    logger.debug(f"Listed {len(messages)} recent messages (limit={limit})")
    return messages
