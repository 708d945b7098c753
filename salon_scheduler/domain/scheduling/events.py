"""
Domain events emitted by the scheduling engine.

Events are written to the ``domain_events`` outbox inside the transaction that
performs the state change, so a rolled-back booking or transition never
produces an event. Notification dispatch, payments and loyalty consume them
from the outbox (see ``worker.dispatch_domain_events_task``); the engine itself
never sends messages.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import Appointment, DomainEvent, WaitlistEntry

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    APPOINTMENT_CREATED = "AppointmentCreated"
    APPOINTMENT_STATUS_CHANGED = "AppointmentStatusChanged"
    APPOINTMENT_RESCHEDULED = "AppointmentRescheduled"
    WAITLIST_ENTRY_NOTIFIED = "WaitlistEntryNotified"
    WAITLIST_ENTRY_SEATED = "WaitlistEntrySeated"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def record_event(
    db: Session,
    salon_id: int,
    event_type: EventType,
    aggregate_id: int,
    payload: dict[str, Any],
    occurred_at: datetime,
) -> DomainEvent:
    """Add an outbox row to the current transaction (caller commits)"""
    event = DomainEvent(
        salon_id=salon_id,
        event_type=event_type.value,
        aggregate_id=aggregate_id,
        payload=payload,
        created_at=occurred_at,
    )
    db.add(event)
    logger.debug(f"📣 Queued {event_type.value} for aggregate {aggregate_id}")
    return event


def appointment_payload(appointment: Appointment) -> dict[str, Any]:
    return {
        "appointmentId": appointment.id,
        "clientId": appointment.client_id,
        "technicianId": appointment.technician_id,
        "serviceId": appointment.service_id,
        "startTime": _iso(appointment.start_time),
        "endTime": _iso(appointment.end_time),
        "status": getattr(appointment.status, "value", appointment.status),
        "source": getattr(appointment.source, "value", appointment.source),
    }


def appointment_created(db: Session, appointment: Appointment, at: datetime) -> DomainEvent:
    return record_event(
        db,
        appointment.salon_id,
        EventType.APPOINTMENT_CREATED,
        appointment.id,
        appointment_payload(appointment),
        at,
    )


def appointment_status_changed(
    db: Session, appointment: Appointment, old_status, new_status, at: datetime
) -> DomainEvent:
    payload = appointment_payload(appointment)
    payload["oldStatus"] = getattr(old_status, "value", old_status)
    payload["newStatus"] = getattr(new_status, "value", new_status)
    return record_event(
        db,
        appointment.salon_id,
        EventType.APPOINTMENT_STATUS_CHANGED,
        appointment.id,
        payload,
        at,
    )


def appointment_rescheduled(
    db: Session,
    appointment: Appointment,
    previous_start: datetime,
    previous_technician_id: int,
    at: datetime,
) -> DomainEvent:
    payload = appointment_payload(appointment)
    payload["previousStartTime"] = _iso(previous_start)
    payload["previousTechnicianId"] = previous_technician_id
    return record_event(
        db,
        appointment.salon_id,
        EventType.APPOINTMENT_RESCHEDULED,
        appointment.id,
        payload,
        at,
    )


def _waitlist_payload(entry: WaitlistEntry) -> dict[str, Any]:
    return {
        "entryId": entry.id,
        "clientId": entry.client_id,
        "clientName": entry.client_name,
        "clientPhone": entry.client_phone,
        "partySize": entry.party_size,
        "notifiedAt": _iso(entry.notified_at),
        "seatedAt": _iso(entry.seated_at),
    }


def waitlist_entry_notified(db: Session, entry: WaitlistEntry, at: datetime) -> DomainEvent:
    return record_event(
        db, entry.salon_id, EventType.WAITLIST_ENTRY_NOTIFIED, entry.id, _waitlist_payload(entry), at
    )


def waitlist_entry_seated(db: Session, entry: WaitlistEntry, at: datetime) -> DomainEvent:
    return record_event(
        db, entry.salon_id, EventType.WAITLIST_ENTRY_SEATED, entry.id, _waitlist_payload(entry), at
    )


def pending_events(db: Session, limit: int = 100) -> list[DomainEvent]:
    return (
        db.query(DomainEvent)
        .filter(DomainEvent.dispatched_at.is_(None))
        .order_by(DomainEvent.id)
        .limit(limit)
        .all()
    )
