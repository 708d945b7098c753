"""
Recurring appointments - standing bookings turned into real appointments

A series (weekly, every other week, or monthly at a salon-local wall time)
keeps a ``next_occurrence`` cursor. ``generate`` books every occurrence that
starts before the horizon through the regular booking path, so each one gets
the same overlap re-check and locking as any other booking. An occurrence
that cannot be booked is reported as skipped; the cursor moves past it either
way, so generation never revisits a day.
"""

import calendar
import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Callable, NamedTuple, Optional

from sqlalchemy.orm import Session

from ... import config
from ...models import Appointment, RecurringAppointment, Salon
from ...shared.timeutils import (
    day_of_week,
    local_day_bounds,
    local_today,
    local_wall_to_utc,
    salon_zone,
    utcnow,
)
from ...shared.transactions import run_in_transaction
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .errors import NotFoundError, SalonAccessError, SchedulingValidationError, SlotConflictError
from .repository import AppointmentRepository, DirectoryRepository, RecurringAppointmentRepository
from .state_machine import AppointmentSource, RecurrenceFrequency

logger = logging.getLogger(__name__)

GENERATED_NOTE = "Auto-generated from recurring schedule"


class SkipReason(str, Enum):
    PAST = "PAST"
    ALREADY_BOOKED = "ALREADY_BOOKED"
    CONFLICT = "CONFLICT"
    UNAVAILABLE = "UNAVAILABLE"


class SkippedOccurrence(NamedTuple):
    recurring_id: int
    day: date
    reason: SkipReason
    message: str


class GenerationResult(NamedTuple):
    created: list[Appointment]
    skipped: list[SkippedOccurrence]


# ----------------------------------------------------------------------
# Occurrence arithmetic (salon-local calendar days)
# ----------------------------------------------------------------------


def _in_month(year: int, month: int, day_of_month: int) -> date:
    """``day_of_month`` in the given month, capped at its last day (31 -> 30 Apr, 28/29 Feb)"""
    return date(year, month, min(day_of_month, calendar.monthrange(year, month)[1]))


def _month_after(day: date) -> tuple[int, int]:
    return (day.year + 1, 1) if day.month == 12 else (day.year, day.month + 1)


def first_occurrence(
    frequency: RecurrenceFrequency,
    from_day: date,
    weekday: Optional[int] = None,
    day_of_month: Optional[int] = None,
) -> date:
    """First day on or after ``from_day`` that matches the series"""
    if frequency == RecurrenceFrequency.MONTHLY:
        candidate = _in_month(from_day.year, from_day.month, day_of_month)
        if candidate < from_day:
            candidate = _in_month(*_month_after(from_day), day_of_month)
        return candidate
    return from_day + timedelta(days=(weekday - day_of_week(from_day)) % 7)


def following_occurrence(
    frequency: RecurrenceFrequency, day: date, day_of_month: Optional[int] = None
) -> date:
    if frequency == RecurrenceFrequency.WEEKLY:
        return day + timedelta(weeks=1)
    if frequency == RecurrenceFrequency.BIWEEKLY:
        return day + timedelta(weeks=2)
    return _in_month(*_month_after(day), day_of_month)


class RecurringService:
    """Service layer for recurring appointment series"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.repo = RecurringAppointmentRepository()
        self.appointments = AppointmentRepository()
        self.directory = DirectoryRepository()
        self.lookup = AvailabilityService(db, clock)
        self.booking = BookingService(db, clock)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_series(self, salon_id: int, recurring_id: int) -> RecurringAppointment:
        recurring = self.repo.get(self.db, recurring_id)
        if not recurring:
            raise NotFoundError("Recurring appointment not found", recurringId=recurring_id)
        if recurring.salon_id != salon_id:
            raise SalonAccessError(
                "Recurring appointment belongs to another salon", recurringId=recurring_id
            )
        return recurring

    def list_series(
        self, salon_id: int, client_id: Optional[int] = None, include_inactive: bool = False
    ) -> list[RecurringAppointment]:
        self.lookup.get_salon(salon_id)
        return self.repo.list_for_salon(self.db, salon_id, client_id, include_inactive)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _skip_started(
        self,
        frequency: RecurrenceFrequency,
        day: date,
        preferred_time: time,
        day_of_month: Optional[int],
        tz,
    ) -> date:
        """Move past occurrences whose start time has already gone by"""
        now = self.clock()
        while local_wall_to_utc(day, preferred_time, tz) < now:
            day = following_occurrence(frequency, day, day_of_month)
        return day

    def create_series(
        self,
        salon_id: int,
        client_id: int,
        technician_id: int,
        service_id: int,
        frequency: RecurrenceFrequency,
        preferred_time: time,
        weekday: Optional[int] = None,
        day_of_month: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> RecurringAppointment:
        """Set up a series; nothing is booked until ``generate`` runs"""
        salon = self.lookup.get_salon(salon_id)
        tz = salon_zone(salon.timezone)
        frequency = RecurrenceFrequency(frequency)

        client = self.directory.get_client(self.db, client_id)
        if not client:
            raise NotFoundError("Client not found", clientId=client_id)
        if client.salon_id != salon_id:
            raise SalonAccessError("Client belongs to another salon", clientId=client_id)
        technician = self.lookup.get_technician(salon_id, technician_id)
        if not technician.active:
            raise SchedulingValidationError(
                "Technician is not taking bookings", technicianId=technician_id
            )
        self.lookup.get_service(salon_id, service_id)

        if frequency == RecurrenceFrequency.MONTHLY:
            if day_of_month is None or not 1 <= day_of_month <= 31:
                raise SchedulingValidationError(
                    "dayOfMonth (1-31) is required for monthly series", dayOfMonth=day_of_month
                )
            weekday = None
        else:
            if weekday is None or not 0 <= weekday <= 6:
                raise SchedulingValidationError(
                    "dayOfWeek (0-6) is required for weekly series", dayOfWeek=weekday
                )
            day_of_month = None

        start_date = start_date or local_today(self.clock(), tz)
        if end_date is not None and end_date < start_date:
            raise SchedulingValidationError(
                "endDate must not be before startDate",
                startDate=start_date.isoformat(),
                endDate=end_date.isoformat(),
            )

        next_day = first_occurrence(frequency, start_date, weekday, day_of_month)
        next_day = self._skip_started(frequency, next_day, preferred_time, day_of_month, tz)
        if end_date is not None and next_day > end_date:
            next_day = None

        recurring = RecurringAppointment(
            salon_id=salon_id,
            client_id=client_id,
            technician_id=technician_id,
            service_id=service_id,
            frequency=frequency,
            day_of_week=weekday,
            day_of_month=day_of_month,
            preferred_time=preferred_time,
            start_date=start_date,
            end_date=end_date,
            next_occurrence=next_day,
            active=True,
            notes=notes,
        )
        run_in_transaction(
            self.db,
            lambda: self.repo.add(self.db, recurring),
            f"create recurring appointment for client {client_id}",
        )
        logger.info(
            f"🔁 Recurring appointment {recurring.id} created: {frequency.value} "
            f"for client {client_id} with technician {technician_id}, first on {next_day}"
        )
        self.db.expire_all()
        return self.get_series(salon_id, recurring.id)

    def update_series(
        self,
        salon_id: int,
        recurring_id: int,
        active: Optional[bool] = None,
        preferred_time: Optional[time] = None,
        end_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> RecurringAppointment:
        """Pause/resume, move the wall time, set an end date or edit notes.

        Resuming a paused series fast-forwards its cursor past occurrences that
        were missed while it was paused.
        """
        self.get_series(salon_id, recurring_id)
        tz = salon_zone(self.lookup.get_salon(salon_id).timezone)

        def apply() -> RecurringAppointment:
            recurring = self.repo.lock(self.db, recurring_id)
            resuming = active is True and not recurring.active
            if active is not None:
                recurring.active = active
            if preferred_time is not None:
                recurring.preferred_time = preferred_time
            if notes is not None:
                recurring.notes = notes
            if end_date is not None:
                if end_date < recurring.start_date:
                    raise SchedulingValidationError(
                        "endDate must not be before startDate",
                        startDate=recurring.start_date.isoformat(),
                        endDate=end_date.isoformat(),
                    )
                recurring.end_date = end_date
            if recurring.next_occurrence is not None and (resuming or preferred_time is not None):
                recurring.next_occurrence = self._skip_started(
                    recurring.frequency,
                    recurring.next_occurrence,
                    recurring.preferred_time,
                    recurring.day_of_month,
                    tz,
                )
            if (
                recurring.end_date is not None
                and recurring.next_occurrence is not None
                and recurring.next_occurrence > recurring.end_date
            ):
                recurring.next_occurrence = None
            return recurring

        run_in_transaction(self.db, apply, f"update recurring appointment {recurring_id}")
        logger.info(f"✅ Recurring appointment {recurring_id} updated")
        self.db.expire_all()
        return self.get_series(salon_id, recurring_id)

    def delete_series(self, salon_id: int, recurring_id: int) -> None:
        """Remove the series; appointments it already generated stay booked"""
        recurring = self.get_series(salon_id, recurring_id)
        run_in_transaction(
            self.db,
            lambda: self.repo.delete(self.db, recurring),
            f"delete recurring appointment {recurring_id}",
        )
        logger.info(f"🗑️ Recurring appointment {recurring_id} deleted")

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self, salon_id: int, days_ahead: int = config.RECURRING_DAYS_AHEAD
    ) -> GenerationResult:
        """Book every due occurrence of the salon's active series up to ``days_ahead``"""
        if days_ahead < 1:
            raise SchedulingValidationError("daysAhead must be at least 1", daysAhead=days_ahead)
        salon = self.lookup.get_salon(salon_id)
        created: list[Appointment] = []
        skipped: list[SkippedOccurrence] = []

        for recurring_id in self.repo.due_for_salon(self.db, salon_id):
            series_created, series_skipped = self._generate_series(salon, recurring_id, days_ahead)
            created.extend(series_created)
            skipped.extend(series_skipped)

        logger.info(
            f"📅 Recurring generation for salon {salon_id}: "
            f"{len(created)} booked, {len(skipped)} skipped"
        )
        return GenerationResult(created, skipped)

    def _generate_series(
        self, salon: Salon, recurring_id: int, days_ahead: int
    ) -> GenerationResult:
        tz = salon_zone(salon.timezone)
        now = self.clock()
        horizon = now + timedelta(days=days_ahead)
        created: list[Appointment] = []
        skipped: list[SkippedOccurrence] = []

        recurring = self.repo.get(self.db, recurring_id)
        client_id = recurring.client_id
        technician_id = recurring.technician_id
        service_id = recurring.service_id
        frequency = recurring.frequency
        preferred_time = recurring.preferred_time
        day_of_month = recurring.day_of_month
        end_date = recurring.end_date
        notes = recurring.notes or GENERATED_NOTE
        day = recurring.next_occurrence

        def skip(on: date, reason: SkipReason, message: str) -> None:
            skipped.append(SkippedOccurrence(recurring_id, on, reason, message))
            logger.warning(
                f"⚠️ Recurring appointment {recurring_id} skipped {on.isoformat()}: {message}"
            )

        while day is not None:
            if end_date is not None and day > end_date:
                day = None
                break
            start = local_wall_to_utc(day, preferred_time, tz)
            if start >= horizon:
                break

            if start < now:
                skip(day, SkipReason.PAST, "Occurrence start has already passed")
            else:
                day_start, day_end = local_day_bounds(day, tz)
                existing = self.appointments.find_series_occurrence(
                    self.db, client_id, technician_id, service_id, day_start, day_end
                )
                if existing is not None:
                    skip(
                        day,
                        SkipReason.ALREADY_BOOKED,
                        f"Appointment {existing.id} already covers this day",
                    )
                else:
                    try:
                        created.append(
                            self.booking._book(
                                salon,
                                technician_id,
                                service_id,
                                client_id,
                                start,
                                AppointmentSource.PHONE,
                                notes,
                            )
                        )
                    except SlotConflictError as e:
                        skip(day, SkipReason.CONFLICT, e.message)
                    except SchedulingValidationError as e:
                        skip(day, SkipReason.UNAVAILABLE, e.message)
            day = following_occurrence(frequency, day, day_of_month)

        def advance() -> None:
            locked = self.repo.lock(self.db, recurring_id)
            locked.next_occurrence = day

        run_in_transaction(self.db, advance, f"advance recurring appointment {recurring_id}")
        return GenerationResult(created, skipped)

    def generate_all(self, days_ahead: int = config.RECURRING_DAYS_AHEAD) -> GenerationResult:
        """Generation across every salon with active series (worker cron)"""
        created: list[Appointment] = []
        skipped: list[SkippedOccurrence] = []
        for salon_id in self.repo.salons_with_active_series(self.db):
            result = self.generate(salon_id, days_ahead)
            created.extend(result.created)
            skipped.extend(result.skipped)
        return GenerationResult(created, skipped)
