"""
Waitlist service - walk-in queue with derived position and estimated wait

Position and estimated wait are never stored. They are recomputed from the
salon's WAITING entries on every read, so seating or removing one party
immediately moves everyone behind it up.
"""

import logging
from datetime import datetime
from typing import Callable, NamedTuple, Optional

from sqlalchemy.orm import Session

from ...models import Salon, WaitlistEntry
from ...shared.timeutils import local_day_bounds, local_today, salon_zone, utcnow
from ...shared.transactions import run_in_transaction
from ..scheduling import events
from ..scheduling.availability_service import AvailabilityService
from ..scheduling.errors import NotFoundError, SalonAccessError, SchedulingValidationError
from ..scheduling.repository import DirectoryRepository
from .repository import WaitlistRepository
from .state_machine import WaitlistStatus, apply_transition

logger = logging.getLogger(__name__)


class WaitlistEntryView(NamedTuple):
    entry: WaitlistEntry
    position: Optional[int]
    estimated_wait_minutes: Optional[int]


def format_wait_time(minutes: int) -> str:
    """Coarse wait text shown on the kiosk and lobby screens"""
    if minutes < 5:
        return "Ready now"
    if minutes < 15:
        return "5-15 min"
    if minutes < 30:
        return "15-30 min"
    if minutes < 45:
        return "30-45 min"
    if minutes < 60:
        return "45-60 min"
    hours = minutes // 60
    return f"{hours}+ hour{'s' if hours > 1 else ''}"


class WaitlistService:
    """Service layer for waitlist operations"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.repo = WaitlistRepository()
        self.directory = DirectoryRepository()
        self.lookup = AvailabilityService(db, clock)

    # ------------------------------------------------------------------
    # Queue math
    # ------------------------------------------------------------------

    def _party_minutes(self, salon: Salon, entry: WaitlistEntry) -> int:
        # Party members are served side by side; size does not lengthen the wait
        if entry.service is not None and entry.service.duration_minutes:
            return entry.service.duration_minutes
        return salon.default_wait_minutes_per_party

    def _queue_metrics(self, salon: Salon) -> dict[int, tuple[int, int]]:
        """entry id -> (position, minutes of service ahead) for WAITING entries"""
        metrics: dict[int, tuple[int, int]] = {}
        ahead = 0
        for index, entry in enumerate(self.repo.waiting_queue(self.db, salon.id), start=1):
            metrics[entry.id] = (index, ahead)
            ahead += self._party_minutes(salon, entry)
        return metrics

    def _view(self, entry: WaitlistEntry, metrics: dict[int, tuple[int, int]]) -> WaitlistEntryView:
        if entry.status != WaitlistStatus.WAITING or entry.id not in metrics:
            return WaitlistEntryView(entry, None, None)
        position, minutes = metrics[entry.id]
        return WaitlistEntryView(entry, position, minutes)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _get_entry(self, salon_id: int, entry_id: int) -> WaitlistEntry:
        entry = self.repo.get(self.db, entry_id)
        if not entry:
            raise NotFoundError("Waitlist entry not found", entryId=entry_id)
        if entry.salon_id != salon_id:
            raise SalonAccessError("Waitlist entry belongs to another salon", entryId=entry_id)
        return entry

    def get(self, salon_id: int, entry_id: int) -> WaitlistEntryView:
        salon = self.lookup.get_salon(salon_id)
        entry = self._get_entry(salon_id, entry_id)
        return self._view(entry, self._queue_metrics(salon))

    def list_entries(
        self,
        salon_id: int,
        status: Optional[WaitlistStatus] = None,
        today_only: bool = False,
    ) -> list[WaitlistEntryView]:
        """Entries in queue order, each with its derived position and wait"""
        salon = self.lookup.get_salon(salon_id)
        created_from = created_to = None
        if today_only:
            tz = salon_zone(salon.timezone)
            created_from, created_to = local_day_bounds(local_today(self.clock(), tz), tz)
        entries = self.repo.list_for_salon(self.db, salon_id, status, created_from, created_to)
        metrics = self._queue_metrics(salon)
        return [self._view(entry, metrics) for entry in entries]

    def stats(self, views: list[WaitlistEntryView]) -> dict[str, int]:
        waiting = [v for v in views if v.entry.status == WaitlistStatus.WAITING]
        notified = [v for v in views if v.entry.status == WaitlistStatus.NOTIFIED]
        waits = [v.estimated_wait_minutes or 0 for v in waiting]
        return {
            "totalWaiting": len(waiting),
            "totalNotified": len(notified),
            "averageWaitMinutes": round(sum(waits) / len(waits)) if waits else 0,
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(
        self,
        salon_id: int,
        client_name: Optional[str] = None,
        client_phone: Optional[str] = None,
        party_size: int = 1,
        client_id: Optional[int] = None,
        service_id: Optional[int] = None,
        preferred_technician_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> WaitlistEntryView:
        """Append a party to the end of the queue"""
        self.lookup.get_salon(salon_id)

        if client_id is not None:
            client = self.directory.get_client(self.db, client_id)
            if not client:
                raise NotFoundError("Client not found", clientId=client_id)
            if client.salon_id != salon_id:
                raise SalonAccessError("Client belongs to another salon", clientId=client_id)
            client_name = client_name or client.name
            client_phone = client_phone or client.phone
        elif not (client_name and client_phone):
            raise SchedulingValidationError(
                "clientName and clientPhone are required without a clientId"
            )
        if service_id is not None:
            self.lookup.get_service(salon_id, service_id)
        if preferred_technician_id is not None:
            self.lookup.get_technician(salon_id, preferred_technician_id)

        entry = WaitlistEntry(
            salon_id=salon_id,
            client_id=client_id,
            client_name=client_name,
            client_phone=client_phone,
            party_size=party_size,
            service_id=service_id,
            preferred_technician_id=preferred_technician_id,
            notes=notes,
            status=WaitlistStatus.WAITING,
            created_at=self.clock(),
        )
        run_in_transaction(
            self.db, lambda: self.repo.add(self.db, entry), f"add waitlist entry for salon {salon_id}"
        )
        logger.info(f"🧾 Waitlist entry {entry.id} added for salon {salon_id} (party of {party_size})")

        self.db.expire_all()
        return self.get(salon_id, entry.id)

    def transition(self, salon_id: int, entry_id: int, target: WaitlistStatus) -> WaitlistEntryView:
        """Apply a status move; terminal entries reject everything"""
        self._get_entry(salon_id, entry_id)
        target = WaitlistStatus(target)

        def apply() -> WaitlistEntry:
            entry = self.repo.lock(self.db, entry_id)
            old_status = apply_transition(entry, target)
            now = self.clock()
            if target == WaitlistStatus.NOTIFIED:
                entry.notified_at = now
                events.waitlist_entry_notified(self.db, entry, now)
            elif target == WaitlistStatus.SEATED:
                entry.seated_at = now
                events.waitlist_entry_seated(self.db, entry, now)
            logger.info(f"✅ Waitlist entry {entry_id}: {old_status.value} → {target.value}")
            return entry

        run_in_transaction(self.db, apply, f"transition waitlist entry {entry_id}")
        self.db.expire_all()
        return self.get(salon_id, entry_id)

    def notify(self, salon_id: int, entry_id: int) -> WaitlistEntryView:
        return self.transition(salon_id, entry_id, WaitlistStatus.NOTIFIED)

    def seat(self, salon_id: int, entry_id: int) -> WaitlistEntryView:
        return self.transition(salon_id, entry_id, WaitlistStatus.SEATED)

    def leave(self, salon_id: int, entry_id: int) -> WaitlistEntryView:
        return self.transition(salon_id, entry_id, WaitlistStatus.LEFT)

    def cancel(self, salon_id: int, entry_id: int) -> WaitlistEntryView:
        return self.transition(salon_id, entry_id, WaitlistStatus.CANCELLED)

    def update_notes(self, salon_id: int, entry_id: int, notes: str) -> WaitlistEntryView:
        def apply() -> WaitlistEntry:
            entry = self.repo.lock(self.db, entry_id)
            entry.notes = notes
            return entry

        self._get_entry(salon_id, entry_id)
        run_in_transaction(self.db, apply, f"update notes of waitlist entry {entry_id}")
        self.db.expire_all()
        return self.get(salon_id, entry_id)
