"""
Salon scoping for dashboard requests.

Authentication itself happens upstream (the dashboard gateway); requests reach
this service carrying the salon the operator is signed in to as the
``X-Salon-ID`` header. Every dashboard query and mutation is scoped to it.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models import Salon

logger = logging.getLogger(__name__)


async def get_current_salon_id(
    x_salon_id: Optional[str] = Header(None, alias="X-Salon-ID"),
    db: Session = Depends(get_db),
) -> int:
    """Resolve the caller's salon from the X-Salon-ID header"""
    if not x_salon_id:
        logger.warning("🔒 Dashboard request without X-Salon-ID header")
        raise HTTPException(
            status_code=401,
            detail={"error": "Unauthenticated", "message": "Missing X-Salon-ID header"},
        )
    try:
        salon_id = int(x_salon_id)
    except ValueError:
        raise HTTPException(
            status_code=401,
            detail={"error": "Unauthenticated", "message": "Invalid X-Salon-ID header"},
        ) from None

    if not db.query(Salon.id).filter(Salon.id == salon_id).first():
        logger.warning(f"🔒 Request for unknown salon {salon_id}")
        raise HTTPException(
            status_code=401,
            detail={"error": "Unauthenticated", "message": "Unknown salon"},
        )
    return salon_id
