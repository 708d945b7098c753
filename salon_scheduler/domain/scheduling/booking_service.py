"""
Booking service - atomic create / reschedule / lifecycle transitions

The no-overlap invariant is always re-checked inside the unit of work that
writes the row, while holding the technician's lock:

* a process-local lock per technician serialises threads of this worker;
* ``SELECT ... FOR UPDATE`` on the technician row serialises workers on
  PostgreSQL (SQLite ignores it and serialises writers itself).

Locks are held only across check + write + commit. A failed operation rolls
the session back, leaving every row as it was.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from threading import Lock
from typing import Callable, Iterator, Optional

from sqlalchemy.orm import Session

from ...models import Appointment, Client, Salon, Technician
from ...shared.transactions import run_in_transaction
from ...shared.timeutils import (
    day_of_week,
    local_day_bounds,
    local_wall_to_utc,
    salon_zone,
    to_utc_naive,
    utcnow,
)
from . import events
from .availability_service import AvailabilityService
from .errors import (
    InvalidTransitionError,
    NotFoundError,
    SalonAccessError,
    SchedulingValidationError,
    SlotConflictError,
)
from .repository import AppointmentRepository, DirectoryRepository, ScheduleRepository
from .state_machine import AppointmentSource, AppointmentStatus, apply_transition, is_terminal

logger = logging.getLogger(__name__)

# Per-technician locks shared by every BookingService in this process
_technician_locks: dict[int, Lock] = {}
_registry_lock = Lock()


def _lock_for(technician_id: int) -> Lock:
    with _registry_lock:
        lock = _technician_locks.get(technician_id)
        if lock is None:
            lock = _technician_locks[technician_id] = Lock()
        return lock


@contextmanager
def technician_locks(*technician_ids: int) -> Iterator[None]:
    """Hold the locks of several technicians, always acquired in id order"""
    locks = [_lock_for(tid) for tid in sorted(set(technician_ids))]
    for lock in locks:
        lock.acquire()
    try:
        yield
    finally:
        for lock in reversed(locks):
            lock.release()


class BookingService:
    """Service layer for appointment writes"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.repo = AppointmentRepository()
        self.directory = DirectoryRepository()
        self.schedules = ScheduleRepository()
        self.availability = AvailabilityService(db, clock)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_appointment(self, salon_id: int, appointment_id: int) -> Appointment:
        appointment = self.repo.get(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found", appointmentId=appointment_id)
        if appointment.salon_id != salon_id:
            raise SalonAccessError(
                "Appointment belongs to another salon", appointmentId=appointment_id
            )
        return appointment

    def list_appointments(
        self,
        salon_id: int,
        start_day: date,
        end_day: date,
        status: Optional[AppointmentStatus] = None,
        technician_id: Optional[int] = None,
    ) -> tuple[datetime, datetime, list[Appointment]]:
        """Appointments starting on salon-local days start_day..end_day (inclusive)"""
        if end_day < start_day:
            raise SchedulingValidationError(
                "end must not be before start", start=start_day.isoformat(), end=end_day.isoformat()
            )
        tz = salon_zone(self.availability.get_salon(salon_id).timezone)
        range_start, _ = local_day_bounds(start_day, tz)
        _, range_end = local_day_bounds(end_day, tz)
        appointments = self.repo.list_for_salon(
            self.db, salon_id, range_start, range_end, status, technician_id
        )
        return range_start, range_end, appointments

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        salon_id: int,
        technician_id: int,
        service_id: int,
        client_id: int,
        start_time: datetime,
        source: AppointmentSource = AppointmentSource.PHONE,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Book an appointment, failing with SlotConflictError if the interval is taken"""
        salon = self.availability.get_salon(salon_id)
        client = self._get_client(salon_id, client_id)
        start = to_utc_naive(start_time, salon_zone(salon.timezone))
        return self._book(salon, technician_id, service_id, client.id, start, source, notes)

    def create_public_booking(
        self,
        salon_id: int,
        technician_id: int,
        service_id: int,
        day: date,
        wall_time: time,
        client_name: str,
        client_phone: str,
        client_email: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Online booking: find or register the client by phone, then book.

        Online bookings must start inside the technician's working hours and
        respect the salon's minimum lead time.
        """
        salon = self.availability.get_salon(salon_id)
        tz = salon_zone(salon.timezone)
        start = local_wall_to_utc(day, wall_time, tz)

        earliest = self.clock() + timedelta(minutes=salon.minimum_lead_minutes or 0)
        if start < earliest:
            raise SchedulingValidationError(
                "Requested time is no longer bookable online",
                startTime=start.isoformat(),
                earliest=earliest.isoformat(),
            )

        technician = self.availability.get_technician(salon_id, technician_id)
        service = self.availability.get_service(salon_id, service_id)
        self._require_within_working_hours(
            technician, day, start, start + timedelta(minutes=service.duration_minutes), tz
        )

        def resolve_client() -> int:
            client = self.directory.get_client_by_phone(self.db, salon_id, client_phone)
            if client is None:
                client = self.directory.create_client(
                    self.db, salon_id, name=client_name, phone=client_phone, email=client_email
                )
                logger.info(f"👤 Registered client {client.id} from online booking (salon {salon_id})")
            return client.id

        # Client registration commits together with the appointment, or not at all
        return self._book(
            salon, technician_id, service_id, resolve_client, start, AppointmentSource.ONLINE, notes
        )

    def _book(
        self,
        salon: Salon,
        technician_id: int,
        service_id: int,
        client_ref: "int | Callable[[], int]",
        start: datetime,
        source: AppointmentSource,
        notes: Optional[str],
    ) -> Appointment:
        """Insert a BOOKED appointment; ``start`` is naive UTC"""
        technician = self.availability.get_technician(salon.id, technician_id)
        if not technician.active:
            raise SchedulingValidationError(
                "Technician is not taking bookings", technicianId=technician_id
            )
        service = self.availability.get_service(salon.id, service_id)
        duration = service.duration_minutes
        price = service.base_price
        end = start + timedelta(minutes=duration)

        def insert() -> Appointment:
            self.directory.lock_technician(self.db, technician_id)
            self._ensure_free(technician_id, start, end)
            client_id = client_ref() if callable(client_ref) else client_ref
            appointment = Appointment(
                salon_id=salon.id,
                client_id=client_id,
                technician_id=technician_id,
                service_id=service_id,
                start_time=start,
                end_time=end,
                duration_minutes=duration,
                price=price,
                status=AppointmentStatus.BOOKED,
                source=source,
                notes=notes,
            )
            self.repo.add(self.db, appointment)
            events.appointment_created(self.db, appointment, self.clock())
            return appointment

        with technician_locks(technician_id):
            appointment = run_in_transaction(
                self.db, insert, f"create appointment for technician {technician_id}"
            )

        logger.info(
            f"✅ Appointment {appointment.id} booked: technician {technician_id}, "
            f"{start.isoformat()}–{end.isoformat()} UTC ({source.value})"
        )
        return self.repo.get(self.db, appointment.id)

    # ------------------------------------------------------------------
    # Reschedule
    # ------------------------------------------------------------------

    def reschedule(
        self,
        salon_id: int,
        appointment_id: int,
        new_start: datetime,
        new_technician_id: Optional[int] = None,
    ) -> Appointment:
        """Move an active appointment; on conflict the booking stays where it was"""
        appointment = self.get_appointment(salon_id, appointment_id)
        if is_terminal(appointment.status):
            raise InvalidTransitionError(
                appointment.status,
                appointment.status,
                message=f"Cannot reschedule a {appointment.status.value} appointment",
                appointmentId=appointment_id,
            )

        salon = self.availability.get_salon(salon_id)
        tz = salon_zone(salon.timezone)
        if new_technician_id is not None and new_technician_id != appointment.technician_id:
            technician = self.availability.get_technician(salon_id, new_technician_id)
            if not technician.active:
                raise SchedulingValidationError(
                    "Technician is not taking bookings", technicianId=new_technician_id
                )

        start = to_utc_naive(new_start, tz)
        end = start + timedelta(minutes=appointment.duration_minutes)
        previous_technician_id = appointment.technician_id
        target_technician_id = new_technician_id or previous_technician_id

        def move() -> Appointment:
            for tid in sorted({previous_technician_id, target_technician_id}):
                self.directory.lock_technician(self.db, tid)
            current = self.repo.lock(self.db, appointment_id)
            if is_terminal(current.status):
                raise InvalidTransitionError(
                    current.status,
                    current.status,
                    message=f"Cannot reschedule a {current.status.value} appointment",
                    appointmentId=appointment_id,
                )
            if current.technician_id != previous_technician_id:
                # Moved by someone else after we read it; its technician is not locked
                raise SlotConflictError(
                    "Appointment was changed by another request, reload and try again",
                    appointmentId=appointment_id,
                    technicianId=current.technician_id,
                )
            self._ensure_free(target_technician_id, start, end, exclude_id=appointment_id)
            previous_start = current.start_time
            current.start_time = start
            current.end_time = end
            current.technician_id = target_technician_id
            events.appointment_rescheduled(
                self.db, current, previous_start, previous_technician_id, self.clock()
            )
            return current

        with technician_locks(previous_technician_id, target_technician_id):
            run_in_transaction(self.db, move, f"reschedule appointment {appointment_id}")

        logger.info(
            f"🔁 Appointment {appointment_id} rescheduled to technician {target_technician_id} "
            f"at {start.isoformat()} UTC"
        )
        self.db.expire_all()
        return self.repo.get(self.db, appointment_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def transition(
        self,
        salon_id: int,
        appointment_id: int,
        new_status: AppointmentStatus,
        idempotent: bool = False,
    ) -> Appointment:
        """Apply a lifecycle transition.

        With ``idempotent=True`` a move to the status the appointment already
        has succeeds without writing anything.
        """
        self.get_appointment(salon_id, appointment_id)
        new_status = AppointmentStatus(new_status)
        changed = {}

        def apply() -> Appointment:
            current = self.repo.lock(self.db, appointment_id)
            if idempotent and current.status == new_status:
                return current
            old_status = apply_transition(current, new_status)
            events.appointment_status_changed(
                self.db, current, old_status, new_status, self.clock()
            )
            changed["old"] = old_status
            return current

        try:
            run_in_transaction(self.db, apply, f"transition appointment {appointment_id}")
        except InvalidTransitionError:
            logger.warning(f"⚠️ Rejected transition of appointment {appointment_id} to {new_status.value}")
            raise

        if changed:
            logger.info(
                f"✅ Appointment {appointment_id}: {changed['old'].value} → {new_status.value}"
            )
        else:
            logger.info(f"ℹ️ Appointment {appointment_id} already {new_status.value}, nothing to do")
        self.db.expire_all()
        return self.repo.get(self.db, appointment_id)

    def cancel(self, salon_id: int, appointment_id: int) -> Appointment:
        """Cancel; the freed interval is visible to availability as soon as this returns"""
        return self.transition(salon_id, appointment_id, AppointmentStatus.CANCELLED)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_client(self, salon_id: int, client_id: int) -> Client:
        client = self.directory.get_client(self.db, client_id)
        if not client:
            raise NotFoundError("Client not found", clientId=client_id)
        if client.salon_id != salon_id:
            raise SalonAccessError("Client belongs to another salon", clientId=client_id)
        return client

    def _ensure_free(
        self,
        technician_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Raise SlotConflictError if [start, end) intersects anything busy"""
        if start >= end:
            raise SchedulingValidationError(
                "Start must be before end", startTime=start.isoformat(), endTime=end.isoformat()
            )

        clashes = self.repo.busy_for_technician(
            self.db, technician_id, start, end, exclude_id=exclude_id
        )
        if clashes:
            clash = clashes[0]
            logger.warning(
                f"⚠️ Booking conflict for technician {technician_id} at {start.isoformat()}: "
                f"overlaps appointment {clash.id}"
            )
            raise SlotConflictError(
                "Time slot no longer available",
                technicianId=technician_id,
                startTime=start.isoformat(),
                endTime=end.isoformat(),
                conflictingAppointmentId=clash.id,
            )

        time_off = self.schedules.approved_time_off(self.db, [technician_id], start, end)
        if time_off:
            logger.warning(
                f"⚠️ Booking conflict for technician {technician_id} at {start.isoformat()}: "
                f"approved time off {time_off[0].id}"
            )
            raise SlotConflictError(
                "Technician is away at the requested time",
                technicianId=technician_id,
                startTime=start.isoformat(),
                endTime=end.isoformat(),
                timeOffId=time_off[0].id,
            )

    def _require_within_working_hours(
        self, technician: Technician, day: date, start: datetime, end: datetime, tz
    ) -> None:
        entry = self.schedules.entry_for_day(self.db, technician.id, day_of_week(day))
        if entry is None or not entry.is_working or entry.start_time is None or entry.end_time is None:
            raise SchedulingValidationError(
                "Technician does not work on the requested day",
                technicianId=technician.id,
                date=day.isoformat(),
            )
        window_start = local_wall_to_utc(day, entry.start_time, tz)
        window_end = local_wall_to_utc(day, entry.end_time, tz)
        if start < window_start or end > window_end:
            raise SchedulingValidationError(
                "Requested time is outside working hours",
                technicianId=technician.id,
                startTime=start.isoformat(),
                endTime=end.isoformat(),
            )

