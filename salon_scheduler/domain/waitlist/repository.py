"""Waitlist repository - Database operations for walk-in queue entries"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import WaitlistEntry
from .state_machine import WaitlistStatus


class WaitlistRepository:
    """Queue rows are never deleted; leaving the queue is a status change"""

    @staticmethod
    def get(db: Session, entry_id: int) -> Optional[WaitlistEntry]:
        return (
            db.query(WaitlistEntry)
            .options(joinedload(WaitlistEntry.service))
            .filter(WaitlistEntry.id == entry_id)
            .first()
        )

    @staticmethod
    def lock(db: Session, entry_id: int) -> Optional[WaitlistEntry]:
        """Row-lock one entry; transitions never touch any other row"""
        return (
            db.query(WaitlistEntry)
            .filter(WaitlistEntry.id == entry_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def add(db: Session, entry: WaitlistEntry) -> WaitlistEntry:
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def waiting_queue(db: Session, salon_id: int) -> list[WaitlistEntry]:
        """WAITING entries of a salon in queue order (created_at, then id)"""
        return (
            db.query(WaitlistEntry)
            .options(joinedload(WaitlistEntry.service))
            .filter(
                WaitlistEntry.salon_id == salon_id,
                WaitlistEntry.status == WaitlistStatus.WAITING,
            )
            .order_by(WaitlistEntry.created_at, WaitlistEntry.id)
            .all()
        )

    @staticmethod
    def list_for_salon(
        db: Session,
        salon_id: int,
        status: Optional[WaitlistStatus] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> list[WaitlistEntry]:
        query = (
            db.query(WaitlistEntry)
            .options(joinedload(WaitlistEntry.service))
            .filter(WaitlistEntry.salon_id == salon_id)
        )
        if status is not None:
            query = query.filter(WaitlistEntry.status == status)
        if created_from is not None:
            query = query.filter(WaitlistEntry.created_at >= created_from)
        if created_to is not None:
            query = query.filter(WaitlistEntry.created_at < created_to)
        return query.order_by(WaitlistEntry.created_at, WaitlistEntry.id).all()
