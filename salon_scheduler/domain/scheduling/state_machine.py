"""
Appointment lifecycle

    BOOKED ──► CONFIRMED ──► COMPLETED
      │  \         │  \
      │   \        │   └──► NO_SHOW
      │    └──► NO_SHOW
      └──► CANCELLED ◄── CONFIRMED

COMPLETED, NO_SHOW and CANCELLED are terminal. Only BOOKED and CONFIRMED
appointments occupy a technician's time.
"""

from enum import Enum

from .errors import InvalidTransitionError


class AppointmentStatus(str, Enum):
    BOOKED = "BOOKED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"
    CANCELLED = "CANCELLED"


class AppointmentSource(str, Enum):
    ONLINE = "ONLINE"
    PHONE = "PHONE"
    WALKIN = "WALKIN"
    KIOSK = "KIOSK"


class TimeOffStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"


class RecurrenceFrequency(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"


APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.BOOKED: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

ACTIVE_STATUSES = frozenset({AppointmentStatus.BOOKED, AppointmentStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    status for status, targets in APPOINTMENT_TRANSITIONS.items() if not targets
)


def is_terminal(status: AppointmentStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in APPOINTMENT_TRANSITIONS[AppointmentStatus(current)]


def apply_transition(appointment, target: AppointmentStatus) -> AppointmentStatus:
    """Move an appointment to ``target`` and return its previous status.

    Does not commit; callers persist the change together with its event.
    """
    current = AppointmentStatus(appointment.status)
    target = AppointmentStatus(target)
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target, appointmentId=appointment.id)
    appointment.status = target
    return current
