"""Unit-of-work helper shared by the mutating services"""

import logging
from typing import Callable, TypeVar

from fastapi import HTTPException
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..domain.scheduling.errors import InternalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_in_transaction(db: Session, operation: Callable[[], T], description: str) -> T:
    """
    Run ``operation`` and commit it as a single unit.

    Any failure rolls the session back so nothing is partially applied.
    Transient database errors (OperationalError: dropped connection, lock
    timeout, "database is locked") are retried once before surfacing as an
    opaque InternalError. Domain errors propagate unchanged.
    """
    for attempt in (1, 2):
        try:
            result = operation()
            db.commit()
            return result
        except HTTPException:
            db.rollback()
            raise
        except OperationalError as e:
            db.rollback()
            if attempt == 1:
                logger.error(f"❌ Transient database error during {description}, retrying: {e}")
                continue
            logger.error(f"❌ Giving up on {description} after retry: {e}")
            raise InternalError() from e
        except Exception:
            db.rollback()
            raise
    raise InternalError()
