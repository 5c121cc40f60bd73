import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

READ_ATTEMPTS = 3
BACKOFF_SECONDS = 0.1


def retry_read(fn: Callable[[], T], db=None, attempts: int = READ_ATTEMPTS, backoff: float = BACKOFF_SECONDS) -> T:
    """Run an idempotent read, retrying transient connection failures.

    Never wrap writes with this.
    """
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except OperationalError as exc:
            if db is not None:
                db.rollback()
            if attempt == attempts:
                raise
            logger.warning("Transient read failure (attempt %d/%d): %s", attempt, attempts, exc.__class__.__name__)
            time.sleep(backoff * attempt)
    raise RuntimeError("unreachable")
