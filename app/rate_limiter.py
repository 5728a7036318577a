"""
Per-client write throttling backed by the rate_limits table.

A client key may have one accepted write per window. Throttled attempts
do not move the window.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.storage import claim_rate_limit_slot, get_last_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check."""
    allowed: bool
    retry_after_ms: Optional[int] = None


def check_and_record(db: Session, client_key: str, now: int, window_ms: int) -> RateLimitDecision:
    """
    Allow the write and record `now` if the key's window has elapsed.

    Args:
        db: Database session
        client_key: Hashed client key
        now: Current time in epoch milliseconds
        window_ms: Minimum interval between accepted writes

    Returns:
        RateLimitDecision; when throttled, retry_after_ms is in [1, window_ms]

    Raises:
        StorageError: on any database failure (never bypassed)
    """
    if claim_rate_limit_slot(db, client_key, now, window_ms):
        logger.debug(f"Rate limit slot claimed: key={client_key[:12]}")
        return RateLimitDecision(allowed=True)

    last_ts = get_last_timestamp(db, client_key)
    elapsed = now - last_ts if last_ts is not None else 0
    retry_after_ms = min(window_ms, max(1, window_ms - elapsed))
    logger.info(f"Rate limited: key={client_key[:12]}, retry_after_ms={retry_after_ms}")
    return RateLimitDecision(allowed=False, retry_after_ms=retry_after_ms)
