"""Scheduling repositories - Database operations for schedules, appointments and directories"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    Appointment,
    Client,
    RecurringAppointment,
    Salon,
    ScheduleTemplateEntry,
    Service,
    Technician,
    TimeOffRequest,
)
from .state_machine import ACTIVE_STATUSES, AppointmentStatus, TimeOffStatus


class DirectoryRepository:
    """Read-only lookups into the salon, technician, service and client directories"""

    @staticmethod
    def get_salon(db: Session, salon_id: int) -> Optional[Salon]:
        return db.query(Salon).filter(Salon.id == salon_id).first()

    @staticmethod
    def get_technician(db: Session, technician_id: int) -> Optional[Technician]:
        return db.query(Technician).filter(Technician.id == technician_id).first()

    @staticmethod
    def lock_technician(db: Session, technician_id: int) -> Optional[Technician]:
        """Row-lock a technician for the rest of the transaction (no-op on SQLite)"""
        return (
            db.query(Technician)
            .filter(Technician.id == technician_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def get_active_technicians(db: Session, salon_id: int) -> list[Technician]:
        return (
            db.query(Technician)
            .filter(Technician.salon_id == salon_id, Technician.active.is_(True))
            .order_by(Technician.name, Technician.id)
            .all()
        )

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_active_services(db: Session, salon_id: int) -> list[Service]:
        return (
            db.query(Service)
            .filter(Service.salon_id == salon_id, Service.active.is_(True))
            .order_by(Service.name)
            .all()
        )

    @staticmethod
    def get_client(db: Session, client_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def get_client_by_phone(db: Session, salon_id: int, phone: str) -> Optional[Client]:
        """Find a client by normalized E.164 phone within a salon"""
        return (
            db.query(Client)
            .filter(Client.salon_id == salon_id, Client.phone == phone)
            .order_by(Client.id)
            .first()
        )

    @staticmethod
    def create_client(db: Session, salon_id: int, **client_data) -> Client:
        """Register a client; flushed but not committed"""
        client = Client(salon_id=salon_id, **client_data)
        db.add(client)
        db.flush()
        return client


class ScheduleRepository:
    """Weekly working-hours templates, keyed by (technician_id, day_of_week)"""

    @staticmethod
    def weekly_template(db: Session, technician_id: int) -> list[ScheduleTemplateEntry]:
        return (
            db.query(ScheduleTemplateEntry)
            .filter(ScheduleTemplateEntry.technician_id == technician_id)
            .order_by(ScheduleTemplateEntry.day_of_week)
            .all()
        )

    @staticmethod
    def entry_for_day(
        db: Session, technician_id: int, day_of_week: int
    ) -> Optional[ScheduleTemplateEntry]:
        return (
            db.query(ScheduleTemplateEntry)
            .filter(
                ScheduleTemplateEntry.technician_id == technician_id,
                ScheduleTemplateEntry.day_of_week == day_of_week,
            )
            .first()
        )

    @staticmethod
    def entries_for_day(
        db: Session, technician_ids: Iterable[int], day_of_week: int
    ) -> dict[int, ScheduleTemplateEntry]:
        ids = list(technician_ids)
        if not ids:
            return {}
        rows = (
            db.query(ScheduleTemplateEntry)
            .filter(
                ScheduleTemplateEntry.technician_id.in_(ids),
                ScheduleTemplateEntry.day_of_week == day_of_week,
            )
            .all()
        )
        return {row.technician_id: row for row in rows}

    @staticmethod
    def approved_time_off(
        db: Session, technician_ids: Iterable[int], start: datetime, end: datetime
    ) -> list[TimeOffRequest]:
        ids = list(technician_ids)
        if not ids:
            return []
        return (
            db.query(TimeOffRequest)
            .filter(
                TimeOffRequest.technician_id.in_(ids),
                TimeOffRequest.status == TimeOffStatus.APPROVED,
                TimeOffRequest.start_time < end,
                TimeOffRequest.end_time > start,
            )
            .order_by(TimeOffRequest.start_time)
            .all()
        )


class AppointmentRepository:
    """Appointment rows; never deleted, cancellation is a status"""

    @staticmethod
    def get(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.technician), joinedload(Appointment.service))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def lock(db: Session, appointment_id: int) -> Optional[Appointment]:
        """Row-lock an appointment and reload it, discarding any stale copy in the session"""
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def add(db: Session, appointment: Appointment) -> Appointment:
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def busy_for_technician(
        db: Session,
        technician_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> list[Appointment]:
        """BOOKED/CONFIRMED appointments of a technician overlapping [start, end)"""
        query = db.query(Appointment).filter(
            Appointment.technician_id == technician_id,
            Appointment.status.in_(list(ACTIVE_STATUSES)),
            Appointment.start_time < end,
            Appointment.end_time > start,
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.order_by(Appointment.start_time).all()

    @staticmethod
    def busy_for_technicians(
        db: Session, technician_ids: Iterable[int], start: datetime, end: datetime
    ) -> list[Appointment]:
        ids = list(technician_ids)
        if not ids:
            return []
        return (
            db.query(Appointment)
            .filter(
                Appointment.technician_id.in_(ids),
                Appointment.status.in_(list(ACTIVE_STATUSES)),
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
            .order_by(Appointment.start_time)
            .all()
        )

    @staticmethod
    def list_for_salon(
        db: Session,
        salon_id: int,
        start: datetime,
        end: datetime,
        status: Optional[AppointmentStatus] = None,
        technician_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Appointments of a salon starting within [start, end)"""
        query = (
            db.query(Appointment)
            .options(
                joinedload(Appointment.client),
                joinedload(Appointment.technician),
                joinedload(Appointment.service),
            )
            .filter(
                Appointment.salon_id == salon_id,
                Appointment.start_time >= start,
                Appointment.start_time < end,
            )
        )
        if status is not None:
            query = query.filter(Appointment.status == status)
        if technician_id is not None:
            query = query.filter(Appointment.technician_id == technician_id)
        return query.order_by(Appointment.start_time, Appointment.id).all()

    @staticmethod
    def find_for_client(
        db: Session,
        client_id: int,
        start: datetime,
        end: datetime,
        statuses: Iterable[AppointmentStatus] = ACTIVE_STATUSES,
    ) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.technician), joinedload(Appointment.service))
            .filter(
                Appointment.client_id == client_id,
                Appointment.start_time >= start,
                Appointment.start_time < end,
                Appointment.status.in_(list(statuses)),
            )
            .order_by(Appointment.start_time)
            .all()
        )

    @staticmethod
    def find_series_occurrence(
        db: Session,
        client_id: int,
        technician_id: int,
        service_id: int,
        start: datetime,
        end: datetime,
    ) -> Optional[Appointment]:
        """An active appointment already covering a recurring slot on [start, end)"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.client_id == client_id,
                Appointment.technician_id == technician_id,
                Appointment.service_id == service_id,
                Appointment.status.in_(list(ACTIVE_STATUSES)),
                Appointment.start_time >= start,
                Appointment.start_time < end,
            )
            .first()
        )


class RecurringAppointmentRepository:
    """Standing bookings; generated appointments do not reference them"""

    @staticmethod
    def get(db: Session, recurring_id: int) -> Optional[RecurringAppointment]:
        return (
            db.query(RecurringAppointment)
            .options(
                joinedload(RecurringAppointment.client),
                joinedload(RecurringAppointment.technician),
                joinedload(RecurringAppointment.service),
            )
            .filter(RecurringAppointment.id == recurring_id)
            .first()
        )

    @staticmethod
    def lock(db: Session, recurring_id: int) -> Optional[RecurringAppointment]:
        return (
            db.query(RecurringAppointment)
            .filter(RecurringAppointment.id == recurring_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def list_for_salon(
        db: Session,
        salon_id: int,
        client_id: Optional[int] = None,
        include_inactive: bool = False,
    ) -> list[RecurringAppointment]:
        query = (
            db.query(RecurringAppointment)
            .options(
                joinedload(RecurringAppointment.client),
                joinedload(RecurringAppointment.technician),
                joinedload(RecurringAppointment.service),
            )
            .filter(RecurringAppointment.salon_id == salon_id)
        )
        if client_id is not None:
            query = query.filter(RecurringAppointment.client_id == client_id)
        if not include_inactive:
            query = query.filter(RecurringAppointment.active.is_(True))
        return query.order_by(RecurringAppointment.created_at.desc(), RecurringAppointment.id.desc()).all()

    @staticmethod
    def due_for_salon(db: Session, salon_id: int) -> list[int]:
        """Ids of active series that still have occurrences to generate"""
        rows = (
            db.query(RecurringAppointment.id)
            .filter(
                RecurringAppointment.salon_id == salon_id,
                RecurringAppointment.active.is_(True),
                RecurringAppointment.next_occurrence.isnot(None),
            )
            .order_by(RecurringAppointment.id)
            .all()
        )
        return [row.id for row in rows]

    @staticmethod
    def salons_with_active_series(db: Session) -> list[int]:
        rows = (
            db.query(RecurringAppointment.salon_id)
            .filter(
                RecurringAppointment.active.is_(True),
                RecurringAppointment.next_occurrence.isnot(None),
            )
            .distinct()
            .order_by(RecurringAppointment.salon_id)
            .all()
        )
        return [row.salon_id for row in rows]

    @staticmethod
    def add(db: Session, recurring: RecurringAppointment) -> RecurringAppointment:
        db.add(recurring)
        db.flush()
        return recurring

    @staticmethod
    def delete(db: Session, recurring: RecurringAppointment) -> None:
        db.delete(recurring)
        db.flush()
