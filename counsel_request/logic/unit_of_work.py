"""
Serialized write helper shared by the lifecycle and admin services.

Each attempt runs in its own transaction. A lost optimistic-version race rolls
the attempt back and re-runs `work` against freshly loaded state.
"""

import logging
from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from db import session_scope
from .constants import CONCURRENT_MODIFICATION_RETRIES
from .errors import ConcurrentModification
from .repository import StaleVersionError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_serialized(
    session_factory,
    counsel_request_id: str,
    work: Callable[[Session], T],
    retries: int = CONCURRENT_MODIFICATION_RETRIES,
) -> T:
    """
    Run `work(db)` in a transaction, retrying after a version conflict.

    Raises:
        ConcurrentModification: Still conflicting after `retries` retries
    """
    for attempt in range(retries + 1):
        try:
            with session_scope(session_factory) as db:
                return work(db)
        except StaleVersionError as e:
            logger.warning(
                f"Version conflict on counsel request {counsel_request_id} "
                f"(attempt {attempt + 1}/{retries + 1}): {e}"
            )
    raise ConcurrentModification(counsel_request_id)


def run_read(session_factory, work: Callable[[Session], T]) -> T:
    with session_scope(session_factory) as db:
        return work(db)
