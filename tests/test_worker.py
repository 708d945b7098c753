from datetime import datetime

from conftest import local
from salon_scheduler.domain.scheduling.events import pending_events
from salon_scheduler.worker import dispatch_pending_events


def test_dispatch_marks_events_once(booking, db, seed):
    booking.create(seed.salon.id, seed.anna.id, seed.manicure.id, seed.dana.id, local(10, 0))
    booking.create(seed.salon.id, seed.bella.id, seed.manicure.id, seed.eli.id, local(10, 0))
    assert len(pending_events(db)) == 2

    dispatched_at = datetime(2026, 6, 1, 16, 0)
    assert dispatch_pending_events(db, now=dispatched_at) == 2

    assert pending_events(db) == []
    assert dispatch_pending_events(db, now=dispatched_at) == 0


def test_dispatch_respects_batch_size(booking, db, seed):
    for hour in (10, 11, 12):
        booking.create(seed.salon.id, seed.anna.id, seed.manicure.id, seed.dana.id, local(hour))

    assert dispatch_pending_events(db, limit=2) == 2
    assert len(pending_events(db)) == 1
