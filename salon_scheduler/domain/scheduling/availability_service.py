"""
Availability service - bookable slots per technician, service and day

Free time is the technician's working window for the weekday minus busy
intervals (BOOKED/CONFIRMED appointments and approved time off). Results are
read from a possibly stale snapshot; every booking is re-validated at commit
time by the booking service.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, NamedTuple, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...config import DEFAULT_SLOT_GRANULARITY_MINUTES
from ...models import Salon, Service, Technician
from ...shared.timeutils import day_of_week, local_day_bounds, local_wall_to_utc, salon_zone, utcnow
from .errors import NotFoundError, SalonAccessError, SchedulingValidationError
from .intervals import Interval, enumerate_starts, subtract
from .repository import AppointmentRepository, DirectoryRepository, ScheduleRepository

logger = logging.getLogger(__name__)


class Slot(NamedTuple):
    start_time: datetime  # naive UTC
    technician_id: int
    technician_name: str


class AvailabilityService:
    """Service layer for slot computation"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.directory = DirectoryRepository()
        self.schedules = ScheduleRepository()
        self.appointments = AppointmentRepository()

    # ------------------------------------------------------------------
    # Directory resolution (shared with the booking service)
    # ------------------------------------------------------------------

    def get_salon(self, salon_id: int) -> Salon:
        salon = self.directory.get_salon(self.db, salon_id)
        if not salon:
            raise NotFoundError("Salon not found", salonId=salon_id)
        return salon

    def get_service(self, salon_id: int, service_id: int) -> Service:
        service = self.directory.get_service(self.db, service_id)
        if not service:
            raise NotFoundError("Service not found", serviceId=service_id)
        if service.salon_id != salon_id:
            raise SalonAccessError("Service belongs to another salon", serviceId=service_id)
        if not service.duration_minutes or service.duration_minutes <= 0:
            raise SchedulingValidationError(
                "Service duration must be positive",
                serviceId=service_id,
                durationMinutes=service.duration_minutes,
            )
        return service

    def get_technician(self, salon_id: int, technician_id: int) -> Technician:
        technician = self.directory.get_technician(self.db, technician_id)
        if not technician:
            raise NotFoundError("Technician not found", technicianId=technician_id)
        if technician.salon_id != salon_id:
            raise SalonAccessError(
                "Technician belongs to another salon", technicianId=technician_id
            )
        return technician

    def weekly_template(self, salon_id: int, technician_id: int):
        """Weekly schedule of a technician (up to 7 entries, Sunday first)"""
        technician = self.get_technician(salon_id, technician_id)
        return technician, self.schedules.weekly_template(self.db, technician.id)

    # ------------------------------------------------------------------
    # Slot computation
    # ------------------------------------------------------------------

    def compute_slots(
        self,
        salon_id: int,
        service_id: int,
        day: date,
        technician_id: Optional[int] = None,
    ) -> list[Slot]:
        """Ordered bookable starts for ``service_id`` on the salon-local ``day``"""
        salon = self.get_salon(salon_id)
        service = self.get_service(salon_id, service_id)
        tz = salon_zone(salon.timezone)

        if technician_id is not None:
            technician = self.get_technician(salon_id, technician_id)
            candidates = [technician] if technician.active else []
        else:
            candidates = self.directory.get_active_technicians(self.db, salon_id)

        if not candidates:
            return []

        duration = timedelta(minutes=service.duration_minutes)
        granularity = timedelta(
            minutes=salon.slot_granularity_minutes or DEFAULT_SLOT_GRANULARITY_MINUTES
        )
        earliest = self.clock() + timedelta(minutes=salon.minimum_lead_minutes or 0)

        windows = self._working_windows(candidates, day, tz)
        if not windows:
            logger.debug(f"📅 No technician of salon {salon_id} works on {day}")
            return []

        busy = self._busy_intervals(list(windows), day, tz)

        slots: list[Slot] = []
        for technician in candidates:
            window = windows.get(technician.id)
            if window is None:
                continue
            for free in subtract(window, busy[technician.id]):
                for start in enumerate_starts(free, duration, granularity):
                    if start < earliest:
                        continue
                    slots.append(Slot(start, technician.id, technician.name))

        slots.sort(key=lambda s: (s.start_time, s.technician_name, s.technician_id))
        logger.info(
            f"🗓️ {len(slots)} slots for salon {salon_id}, service {service_id} on {day}"
            f" ({len(windows)} working technician(s))"
        )
        return slots

    def _working_windows(
        self, technicians: list[Technician], day: date, tz: ZoneInfo
    ) -> dict[int, Interval]:
        """Working window per technician for the weekday of ``day``, as UTC"""
        entries = self.schedules.entries_for_day(
            self.db, [t.id for t in technicians], day_of_week(day)
        )
        windows: dict[int, Interval] = {}
        for technician in technicians:
            entry = entries.get(technician.id)
            if entry is None or not entry.is_working:
                continue
            if entry.start_time is None or entry.end_time is None:
                logger.warning(
                    f"⚠️ Schedule entry {entry.id} is marked working but has no hours, skipping"
                )
                continue
            start = local_wall_to_utc(day, entry.start_time, tz)
            end = local_wall_to_utc(day, entry.end_time, tz)
            if start >= end:
                logger.warning(f"⚠️ Schedule entry {entry.id} has an empty window, skipping")
                continue
            windows[technician.id] = Interval(start, end)
        return windows

    def _busy_intervals(
        self, technician_ids: list[int], day: date, tz: ZoneInfo
    ) -> dict[int, list[Interval]]:
        day_start, day_end = local_day_bounds(day, tz)
        busy: dict[int, list[Interval]] = defaultdict(list)
        for appointment in self.appointments.busy_for_technicians(
            self.db, technician_ids, day_start, day_end
        ):
            busy[appointment.technician_id].append(
                Interval(appointment.start_time, appointment.end_time)
            )
        for time_off in self.schedules.approved_time_off(
            self.db, technician_ids, day_start, day_end
        ):
            busy[time_off.technician_id].append(Interval(time_off.start_time, time_off.end_time))
        return busy
