from datetime import date, datetime, time

import pytest

from conftest import MONDAY, hhmm, local
from salon_scheduler.domain.scheduling.errors import (
    SalonAccessError,
    SchedulingValidationError,
)
from salon_scheduler.domain.scheduling.recurring_service import (
    RecurringService,
    SkipReason,
    first_occurrence,
    following_occurrence,
)
from salon_scheduler.domain.scheduling.state_machine import (
    AppointmentSource,
    AppointmentStatus,
    RecurrenceFrequency,
)
from salon_scheduler.models import Appointment, DomainEvent

WEEKLY = RecurrenceFrequency.WEEKLY
BIWEEKLY = RecurrenceFrequency.BIWEEKLY
MONTHLY = RecurrenceFrequency.MONTHLY


def weekly_series(recurring, seed, **overrides):
    params = dict(
        salon_id=seed.salon.id,
        client_id=seed.dana.id,
        technician_id=seed.anna.id,
        service_id=seed.manicure.id,
        frequency=WEEKLY,
        preferred_time=time(10, 0),
        weekday=1,  # Monday
    )
    params.update(overrides)
    return recurring.create_series(**params)


# ----------------------------------------------------------------------
# Occurrence arithmetic
# ----------------------------------------------------------------------


def test_first_weekly_occurrence_is_next_matching_weekday():
    assert first_occurrence(WEEKLY, MONDAY, weekday=3) == date(2026, 6, 3)
    assert first_occurrence(WEEKLY, MONDAY, weekday=1) == MONDAY
    assert first_occurrence(BIWEEKLY, MONDAY, weekday=0) == date(2026, 6, 7)


def test_monthly_occurrence_is_capped_at_month_end():
    assert first_occurrence(MONTHLY, MONDAY, day_of_month=31) == date(2026, 6, 30)
    assert following_occurrence(MONTHLY, date(2026, 6, 30), day_of_month=31) == date(2026, 7, 31)
    assert following_occurrence(MONTHLY, date(2026, 1, 31), day_of_month=31) == date(2026, 2, 28)
    assert following_occurrence(MONTHLY, date(2026, 12, 15), day_of_month=15) == date(2027, 1, 15)


def test_first_monthly_occurrence_rolls_to_next_month_when_day_has_passed():
    assert first_occurrence(MONTHLY, date(2026, 6, 20), day_of_month=5) == date(2026, 7, 5)


def test_following_occurrence_steps_by_frequency():
    assert following_occurrence(WEEKLY, MONDAY) == date(2026, 6, 8)
    assert following_occurrence(BIWEEKLY, MONDAY) == date(2026, 6, 15)


# ----------------------------------------------------------------------
# Series setup
# ----------------------------------------------------------------------


def test_create_series_starts_today_when_time_is_still_ahead(recurring, seed):
    series = weekly_series(recurring, seed)

    assert series.next_occurrence == MONDAY
    assert series.start_date == MONDAY
    assert series.active is True
    assert series.day_of_month is None


def test_create_series_skips_todays_occurrence_once_started(recurring, seed):
    series = weekly_series(recurring, seed, preferred_time=time(7, 0))
    assert series.next_occurrence == date(2026, 6, 8)


def test_create_series_validates_frequency_fields(recurring, seed):
    with pytest.raises(SchedulingValidationError):
        weekly_series(recurring, seed, frequency=MONTHLY, weekday=None)
    with pytest.raises(SchedulingValidationError):
        weekly_series(recurring, seed, weekday=None)
    with pytest.raises(SchedulingValidationError):
        weekly_series(recurring, seed, end_date=date(2026, 5, 1))


def test_create_series_checks_salon_and_technician(recurring, seed):
    with pytest.raises(SalonAccessError):
        weekly_series(recurring, seed, client_id=seed.foreign_client.id)
    with pytest.raises(SalonAccessError):
        weekly_series(recurring, seed, service_id=seed.foreign_service.id)
    with pytest.raises(SchedulingValidationError):
        weekly_series(recurring, seed, technician_id=seed.cara.id)


def test_series_of_another_salon_is_forbidden(recurring, seed):
    series = weekly_series(recurring, seed)
    with pytest.raises(SalonAccessError):
        recurring.get_series(seed.other_salon.id, series.id)


# ----------------------------------------------------------------------
# Generation
# ----------------------------------------------------------------------


def test_generate_books_occurrences_up_to_horizon(recurring, db, seed):
    series = weekly_series(recurring, seed)

    result = recurring.generate(seed.salon.id, days_ahead=21)

    # 1, 8 and 15 June; 22 June 10:00 is past the 21-day horizon
    assert [a.start_time for a in result.created] == [
        datetime(2026, 6, 1, 17, 0),
        datetime(2026, 6, 8, 17, 0),
        datetime(2026, 6, 15, 17, 0),
    ]
    assert result.skipped == []
    for appointment in result.created:
        assert hhmm(appointment.start_time) == "10:00"
        assert appointment.status == AppointmentStatus.BOOKED
        assert appointment.source == AppointmentSource.PHONE
        assert appointment.client_id == seed.dana.id

    db.expire_all()
    assert recurring.get_series(seed.salon.id, series.id).next_occurrence == date(2026, 6, 22)
    created_events = db.query(DomainEvent).filter(DomainEvent.event_type == "AppointmentCreated")
    assert created_events.count() == 3


def test_generate_twice_books_nothing_new(recurring, db, seed):
    weekly_series(recurring, seed)
    recurring.generate(seed.salon.id, days_ahead=21)

    again = recurring.generate(seed.salon.id, days_ahead=21)

    assert again.created == []
    assert again.skipped == []
    assert db.query(Appointment).count() == 3


def test_conflicting_occurrence_is_skipped_and_others_still_booked(recurring, booking, db, seed):
    clash = booking.create(
        seed.salon.id, seed.anna.id, seed.pedicure.id, seed.eli.id, local(9, 45, day=date(2026, 6, 8))
    )
    series = weekly_series(recurring, seed)

    result = recurring.generate(seed.salon.id, days_ahead=21)

    assert [a.start_time.date() for a in result.created] == [date(2026, 6, 1), date(2026, 6, 15)]
    assert len(result.skipped) == 1
    skipped = result.skipped[0]
    assert skipped.recurring_id == series.id
    assert skipped.day == date(2026, 6, 8)
    assert skipped.reason == SkipReason.CONFLICT

    # The existing booking is untouched and the cursor still moved on
    db.expire_all()
    assert booking.get_appointment(seed.salon.id, clash.id).client_id == seed.eli.id
    assert recurring.get_series(seed.salon.id, series.id).next_occurrence == date(2026, 6, 22)


def test_day_already_booked_for_client_is_skipped(recurring, booking, seed):
    booking.create(seed.salon.id, seed.anna.id, seed.manicure.id, seed.dana.id, local(13, 0))
    weekly_series(recurring, seed)

    result = recurring.generate(seed.salon.id, days_ahead=7)

    assert result.created == []
    assert [(s.day, s.reason) for s in result.skipped] == [(MONDAY, SkipReason.ALREADY_BOOKED)]


def test_generation_stops_at_end_date(recurring, db, seed):
    series = weekly_series(recurring, seed, end_date=date(2026, 6, 8))

    result = recurring.generate(seed.salon.id, days_ahead=30)

    assert [a.start_time.date() for a in result.created] == [date(2026, 6, 1), date(2026, 6, 8)]
    db.expire_all()
    assert recurring.get_series(seed.salon.id, series.id).next_occurrence is None
    assert recurring.generate(seed.salon.id, days_ahead=30).created == []


def test_monthly_series_on_the_31st(recurring, seed):
    weekly_series(recurring, seed, frequency=MONTHLY, weekday=None, day_of_month=31)

    result = recurring.generate(seed.salon.id, days_ahead=60)

    # 30 June (capped); 31 July 10:00 local is just past the horizon
    assert [a.start_time for a in result.created] == [datetime(2026, 6, 30, 17, 0)]


def test_inactive_technician_occurrences_are_skipped(recurring, db, seed):
    weekly_series(recurring, seed, technician_id=seed.bella.id)
    seed.bella.active = False
    db.commit()

    result = recurring.generate(seed.salon.id, days_ahead=7)

    assert result.created == []
    assert [s.reason for s in result.skipped] == [SkipReason.UNAVAILABLE]


def test_missed_occurrences_are_reported_as_past(recurring, db, seed):
    weekly_series(recurring, seed)
    # Generation first runs on 8 June at 11:00 local
    later = RecurringService(db, lambda: datetime(2026, 6, 8, 18, 0))

    result = later.generate(seed.salon.id, days_ahead=7)

    assert [(s.day, s.reason) for s in result.skipped] == [
        (date(2026, 6, 1), SkipReason.PAST),
        (date(2026, 6, 8), SkipReason.PAST),
    ]
    assert [a.start_time.date() for a in result.created] == [date(2026, 6, 15)]


def test_paused_series_is_not_generated_and_resumes_from_today(recurring, db, seed):
    series = weekly_series(recurring, seed)
    recurring.update_series(seed.salon.id, series.id, active=False)

    assert recurring.generate(seed.salon.id, days_ahead=21).created == []
    assert recurring.list_series(seed.salon.id) == []
    assert len(recurring.list_series(seed.salon.id, include_inactive=True)) == 1

    # Resumed two weeks later, 08:00 local on 15 June
    later = RecurringService(db, lambda: datetime(2026, 6, 15, 15, 0))
    resumed = later.update_series(seed.salon.id, series.id, active=True)

    assert resumed.active is True
    assert resumed.next_occurrence == date(2026, 6, 15)


def test_delete_series_keeps_generated_appointments(recurring, db, seed):
    series = weekly_series(recurring, seed)
    recurring.generate(seed.salon.id, days_ahead=7)

    recurring.delete_series(seed.salon.id, series.id)

    assert recurring.list_series(seed.salon.id, include_inactive=True) == []
    assert db.query(Appointment).count() == 1


def test_generate_all_covers_every_salon_with_series(recurring, seed):
    weekly_series(recurring, seed)
    weekly_series(recurring, seed, technician_id=seed.bella.id, client_id=seed.eli.id)

    result = recurring.generate_all(days_ahead=7)

    assert len(result.created) == 2
    assert {a.technician_id for a in result.created} == {seed.anna.id, seed.bella.id}
