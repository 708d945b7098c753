from itertools import product
from types import SimpleNamespace

import pytest

from salon_scheduler.domain.scheduling.errors import InvalidTransitionError
from salon_scheduler.domain.scheduling.state_machine import (
    ACTIVE_STATUSES,
    APPOINTMENT_TRANSITIONS,
    TERMINAL_STATUSES,
    AppointmentStatus,
    apply_transition,
    can_transition,
)
from salon_scheduler.domain.waitlist import state_machine as waitlist_sm
from salon_scheduler.domain.waitlist.state_machine import WaitlistStatus

ALLOWED = {
    (AppointmentStatus.BOOKED, AppointmentStatus.CONFIRMED),
    (AppointmentStatus.BOOKED, AppointmentStatus.CANCELLED),
    (AppointmentStatus.BOOKED, AppointmentStatus.NO_SHOW),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.NO_SHOW),
    (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED),
}


def test_every_status_has_a_row():
    assert set(APPOINTMENT_TRANSITIONS) == set(AppointmentStatus)
    assert TERMINAL_STATUSES == {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.CANCELLED,
    }
    assert ACTIVE_STATUSES == {AppointmentStatus.BOOKED, AppointmentStatus.CONFIRMED}


@pytest.mark.parametrize("current,target", list(product(AppointmentStatus, AppointmentStatus)))
def test_transition_table_is_exhaustive(current, target):
    appointment = SimpleNamespace(id=1, status=current)
    if (current, target) in ALLOWED:
        assert apply_transition(appointment, target) == current
        assert appointment.status == target
    else:
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransitionError) as exc_info:
            apply_transition(appointment, target)
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail["current"] == current.value
        assert appointment.status == current


@pytest.mark.parametrize("current,target", list(product(WaitlistStatus, WaitlistStatus)))
def test_waitlist_terminal_states_reject_everything(current, target):
    entry = SimpleNamespace(id=7, status=current)
    if current in waitlist_sm.TERMINAL_WAITLIST_STATUSES or current == target:
        with pytest.raises(InvalidTransitionError):
            waitlist_sm.apply_transition(entry, target)
        assert entry.status == current
    elif current == WaitlistStatus.NOTIFIED and target == WaitlistStatus.WAITING:
        with pytest.raises(InvalidTransitionError):
            waitlist_sm.apply_transition(entry, target)
    else:
        waitlist_sm.apply_transition(entry, target)
        assert entry.status == target


def test_waitlist_terminal_set():
    assert waitlist_sm.TERMINAL_WAITLIST_STATUSES == {
        WaitlistStatus.SEATED,
        WaitlistStatus.LEFT,
        WaitlistStatus.CANCELLED,
    }
