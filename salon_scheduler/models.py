from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import (
    DEFAULT_MINIMUM_LEAD_MINUTES,
    DEFAULT_SLOT_GRANULARITY_MINUTES,
    DEFAULT_TIMEZONE,
    DEFAULT_WAIT_MINUTES_PER_PARTY,
)
from .database import Base
from .domain.scheduling.state_machine import (
    AppointmentSource,
    AppointmentStatus,
    RecurrenceFrequency,
    TimeOffStatus,
)
from .domain.waitlist.state_machine import WaitlistStatus


class Salon(Base):
    __tablename__ = "salons"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # IANA zone name; every day boundary and slot is computed in this zone
    timezone = Column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    slot_granularity_minutes = Column(
        Integer, nullable=False, default=DEFAULT_SLOT_GRANULARITY_MINUTES
    )
    minimum_lead_minutes = Column(Integer, nullable=False, default=DEFAULT_MINIMUM_LEAD_MINUTES)
    default_wait_minutes_per_party = Column(
        Integer, nullable=False, default=DEFAULT_WAIT_MINUTES_PER_PARTY
    )
    created_at = Column(DateTime, server_default=func.now())

    technicians = relationship("Technician", back_populates="salon")


class Technician(Base):
    __tablename__ = "technicians"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    salon = relationship("Salon", back_populates="technicians")
    schedule_entries = relationship(
        "ScheduleTemplateEntry",
        back_populates="technician",
        order_by="ScheduleTemplateEntry.day_of_week",
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    base_price = Column(Float, nullable=False, default=0.0)
    active = Column(Boolean, default=True, nullable=False)


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (Index("ix_clients_salon_phone", "salon_id", "phone"),)

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)  # E.164, e.g. +14085551234
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class ScheduleTemplateEntry(Base):
    """Recurring weekly working hours, one row per technician and weekday"""

    __tablename__ = "schedule_template_entries"
    __table_args__ = (
        UniqueConstraint("technician_id", "day_of_week", name="uq_schedule_technician_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday ... 6=Saturday
    start_time = Column(Time, nullable=True)  # salon-local wall time
    end_time = Column(Time, nullable=True)
    is_working = Column(Boolean, default=True, nullable=False)

    technician = relationship("Technician", back_populates="schedule_entries")


class TimeOffRequest(Base):
    """Technician absence; only approved requests block availability"""

    __tablename__ = "time_off_requests"
    __table_args__ = (Index("ix_time_off_technician_start", "technician_id", "start_time"),)

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)  # UTC
    end_time = Column(DateTime, nullable=False)  # UTC
    reason = Column(Text, nullable=True)
    status = Column(
        Enum(TimeOffStatus, native_enum=False, length=20),
        default=TimeOffStatus.PENDING,
        nullable=False,
    )
    created_at = Column(DateTime, server_default=func.now())


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # Overlap checks and per-technician day scans
        Index("ix_appointments_technician_start", "technician_id", "start_time"),
        # Salon calendar / day-range scans
        Index("ix_appointments_salon_start", "salon_id", "start_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    # Stored as naive UTC; end_time = start_time + duration_minutes
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    # Snapshot of the service at booking time so later catalog edits don't rewrite history
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=True)

    status = Column(
        Enum(AppointmentStatus, native_enum=False, length=20),
        default=AppointmentStatus.BOOKED,
        nullable=False,
        index=True,
    )
    source = Column(
        Enum(AppointmentSource, native_enum=False, length=20),
        default=AppointmentSource.WALKIN,
        nullable=False,
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client")
    technician = relationship("Technician")
    service = relationship("Service")


class RecurringAppointment(Base):
    """Standing booking that generates appointments ahead of time"""

    __tablename__ = "recurring_appointments"
    __table_args__ = (Index("ix_recurring_salon_active", "salon_id", "active"),)

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    frequency = Column(Enum(RecurrenceFrequency, native_enum=False, length=20), nullable=False)
    day_of_week = Column(Integer, nullable=True)  # WEEKLY / BIWEEKLY, 0=Sunday
    day_of_month = Column(Integer, nullable=True)  # MONTHLY, capped at the month's last day
    preferred_time = Column(Time, nullable=False)  # salon-local wall time
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # last salon-local day of the series, inclusive
    # Salon-local day of the next occurrence not yet generated; None once the series is over
    next_occurrence = Column(Date, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client")
    technician = relationship("Technician")
    service = relationship("Service")


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"
    __table_args__ = (
        # Position derivation: WAITING entries of a salon in creation order
        Index("ix_waitlist_salon_status_created", "salon_id", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    client_name = Column(String(255), nullable=False)
    client_phone = Column(String(20), nullable=True)
    party_size = Column(Integer, default=1, nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    preferred_technician_id = Column(Integer, ForeignKey("technicians.id"), nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(
        Enum(WaitlistStatus, native_enum=False, length=20),
        default=WaitlistStatus.WAITING,
        nullable=False,
    )
    created_at = Column(DateTime, nullable=False)  # UTC, set by the queue
    notified_at = Column(DateTime, nullable=True)
    seated_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service")


class DomainEvent(Base):
    """Outbox row written in the same transaction as the state change it describes"""

    __tablename__ = "domain_events"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    event_type = Column(String(64), nullable=False)
    aggregate_id = Column(Integer, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False)
    dispatched_at = Column(DateTime, nullable=True, index=True)
