"""
Kiosk service - in-salon self check-in by phone number

The kiosk looks a client up by phone, shows their appointments for the
salon-local day and confirms arrival. Clients with nothing booked are offered
the walk-in waitlist.
"""

import logging
from datetime import datetime
from typing import Callable, NamedTuple, Optional

from sqlalchemy.orm import Session

from ...models import Appointment, Client
from ...shared.timeutils import local_day_bounds, local_today, salon_zone, utcnow
from ...shared.validators import validate_us_phone
from ..scheduling.booking_service import BookingService
from ..scheduling.errors import SchedulingValidationError
from ..scheduling.repository import AppointmentRepository, DirectoryRepository
from ..scheduling.state_machine import ACTIVE_STATUSES, AppointmentStatus
from ..waitlist.service import WaitlistEntryView, WaitlistService

logger = logging.getLogger(__name__)


class KioskLookup(NamedTuple):
    client: Optional[Client]
    appointments: list[Appointment]

    @property
    def can_walk_in(self) -> bool:
        return not self.appointments


class KioskService:
    """Service layer for kiosk check-in and walk-in registration"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.directory = DirectoryRepository()
        self.appointments = AppointmentRepository()
        self.booking = BookingService(db, clock)
        self.waitlist = WaitlistService(db, clock)

    def _normalize_phone(self, phone: str) -> str:
        try:
            return validate_us_phone(phone)
        except ValueError as e:
            raise SchedulingValidationError(str(e), phone=phone) from e

    def lookup(self, salon_id: int, phone: str) -> KioskLookup:
        """Client by phone plus their BOOKED/CONFIRMED appointments starting today"""
        salon = self.booking.availability.get_salon(salon_id)
        normalized = self._normalize_phone(phone)

        client = self.directory.get_client_by_phone(self.db, salon_id, normalized)
        if client is None:
            logger.info(f"🔎 Kiosk lookup in salon {salon_id}: no client for phone")
            return KioskLookup(None, [])

        tz = salon_zone(salon.timezone)
        day_start, day_end = local_day_bounds(local_today(self.clock(), tz), tz)
        appointments = self.appointments.find_for_client(
            self.db, client.id, day_start, day_end, ACTIVE_STATUSES
        )
        logger.info(
            f"🔎 Kiosk lookup in salon {salon_id}: client {client.id}, "
            f"{len(appointments)} appointment(s) today"
        )
        return KioskLookup(client, appointments)

    def check_in(self, salon_id: int, appointment_id: int) -> Appointment:
        """Confirm arrival; checking in twice is a no-op"""
        appointment = self.booking.transition(
            salon_id, appointment_id, AppointmentStatus.CONFIRMED, idempotent=True
        )
        logger.info(f"🛎️ Kiosk check-in for appointment {appointment_id} (salon {salon_id})")
        return appointment

    def walk_in(
        self,
        salon_id: int,
        client_name: str,
        client_phone: str,
        party_size: int = 1,
        service_id: Optional[int] = None,
        preferred_technician_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> WaitlistEntryView:
        """Join the waitlist, linked to the client record when the phone is known"""
        normalized = self._normalize_phone(client_phone)
        client = self.directory.get_client_by_phone(self.db, salon_id, normalized)
        return self.waitlist.add(
            salon_id,
            client_name=client_name,
            client_phone=normalized,
            party_size=party_size,
            client_id=client.id if client else None,
            service_id=service_id,
            preferred_technician_id=preferred_technician_id,
            notes=notes,
        )
