"""Walk-in waitlist entry lifecycle: WAITING → NOTIFIED → SEATED, or LEFT/CANCELLED"""

from enum import Enum

from ..scheduling.errors import InvalidTransitionError


class WaitlistStatus(str, Enum):
    WAITING = "WAITING"
    NOTIFIED = "NOTIFIED"
    SEATED = "SEATED"
    LEFT = "LEFT"
    CANCELLED = "CANCELLED"


WAITLIST_TRANSITIONS: dict[WaitlistStatus, frozenset[WaitlistStatus]] = {
    WaitlistStatus.WAITING: frozenset(
        {
            WaitlistStatus.NOTIFIED,
            WaitlistStatus.SEATED,
            WaitlistStatus.LEFT,
            WaitlistStatus.CANCELLED,
        }
    ),
    WaitlistStatus.NOTIFIED: frozenset(
        {WaitlistStatus.SEATED, WaitlistStatus.LEFT, WaitlistStatus.CANCELLED}
    ),
    WaitlistStatus.SEATED: frozenset(),
    WaitlistStatus.LEFT: frozenset(),
    WaitlistStatus.CANCELLED: frozenset(),
}

TERMINAL_WAITLIST_STATUSES = frozenset(
    status for status, targets in WAITLIST_TRANSITIONS.items() if not targets
)


def can_transition(current: WaitlistStatus, target: WaitlistStatus) -> bool:
    return target in WAITLIST_TRANSITIONS[WaitlistStatus(current)]


def apply_transition(entry, target: WaitlistStatus) -> WaitlistStatus:
    """Move a waitlist entry to ``target``; terminal entries reject every move"""
    current = WaitlistStatus(entry.status)
    target = WaitlistStatus(target)
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target, entryId=entry.id)
    entry.status = target
    return current
