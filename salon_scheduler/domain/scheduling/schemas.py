"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...shared.timeutils import to_local
from ...shared.validators import validate_email, validate_us_phone
from .state_machine import AppointmentSource, AppointmentStatus, RecurrenceFrequency


class SlotResponse(BaseModel):
    """A bookable start time for one technician"""

    startTime: datetime
    technicianId: int
    technicianName: str


class AvailabilityResponse(BaseModel):
    salonId: int
    serviceId: int
    date: date
    timezone: str
    durationMinutes: int
    slots: list[SlotResponse]


class ScheduleEntryResponse(BaseModel):
    dayOfWeek: int
    startTime: Optional[time] = None
    endTime: Optional[time] = None
    isWorking: bool


class WeeklyScheduleResponse(BaseModel):
    technicianId: int
    technicianName: str
    entries: list[ScheduleEntryResponse]


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment from the dashboard or phone"""

    clientId: int
    serviceId: int
    technicianId: int
    # Naive values are read as salon-local wall time
    startTime: datetime
    source: AppointmentSource = AppointmentSource.PHONE
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    """Either a status transition or a reschedule, never both"""

    status: Optional[AppointmentStatus] = None
    startTime: Optional[datetime] = None
    technicianId: Optional[int] = None

    @model_validator(mode="after")
    def check_single_action(self):
        if self.status is None and self.startTime is None:
            raise ValueError("Provide either status or startTime")
        if self.status is not None and (self.startTime is not None or self.technicianId is not None):
            raise ValueError("A status change cannot be combined with a reschedule")
        if self.technicianId is not None and self.startTime is None:
            raise ValueError("startTime is required when changing technician")
        return self


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    salonId: int
    clientId: int
    clientName: Optional[str] = None
    technicianId: int
    technicianName: Optional[str] = None
    serviceId: int
    serviceName: Optional[str] = None
    startTime: datetime
    endTime: datetime
    durationMinutes: int
    price: Optional[float] = None
    status: AppointmentStatus
    source: AppointmentSource
    notes: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment, tz: ZoneInfo) -> "AppointmentResponse":
        """Render with times in the salon's timezone"""
        return cls(
            id=appointment.id,
            salonId=appointment.salon_id,
            clientId=appointment.client_id,
            clientName=appointment.client.name if appointment.client else None,
            technicianId=appointment.technician_id,
            technicianName=appointment.technician.name if appointment.technician else None,
            serviceId=appointment.service_id,
            serviceName=appointment.service.name if appointment.service else None,
            startTime=to_local(appointment.start_time, tz),
            endTime=to_local(appointment.end_time, tz),
            durationMinutes=appointment.duration_minutes,
            price=appointment.price,
            status=appointment.status,
            source=appointment.source,
            notes=appointment.notes,
        )


class AppointmentListResponse(BaseModel):
    start: datetime
    end: datetime
    appointments: list[AppointmentResponse]


class PublicBookingRequest(BaseModel):
    """Online booking from the public booking page"""

    salonId: int
    serviceId: int
    technicianId: int
    date: date
    time: time  # salon-local wall time, as shown in the slot list
    clientName: str = Field(min_length=1, max_length=255)
    clientPhone: str
    clientEmail: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("clientPhone")
    @classmethod
    def validate_phone(cls, v):
        return validate_us_phone(v)

    @field_validator("clientEmail")
    @classmethod
    def validate_client_email(cls, v):
        if v:
            return validate_email(v)
        return v


class PublicBookingResponse(BaseModel):
    success: bool = True
    appointment: AppointmentResponse


class ServiceSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    durationMinutes: int
    basePrice: float


class TechnicianSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


# ============================================================================
# RECURRING APPOINTMENTS
# ============================================================================


class RecurringAppointmentCreate(BaseModel):
    """Schema for setting up a standing booking"""

    clientId: int
    technicianId: int
    serviceId: int
    frequency: RecurrenceFrequency
    dayOfWeek: Optional[int] = Field(None, ge=0, le=6)  # WEEKLY / BIWEEKLY, 0=Sunday
    dayOfMonth: Optional[int] = Field(None, ge=1, le=31)  # MONTHLY
    preferredTime: time  # salon-local wall time
    startDate: Optional[date] = None  # defaults to salon-local today
    endDate: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_frequency_fields(self):
        if self.frequency == RecurrenceFrequency.MONTHLY and self.dayOfMonth is None:
            raise ValueError("dayOfMonth is required for monthly series")
        if self.frequency != RecurrenceFrequency.MONTHLY and self.dayOfWeek is None:
            raise ValueError("dayOfWeek is required for weekly series")
        if self.startDate and self.endDate and self.endDate < self.startDate:
            raise ValueError("endDate must not be before startDate")
        return self


class RecurringAppointmentUpdate(BaseModel):
    active: Optional[bool] = None
    preferredTime: Optional[time] = None
    endDate: Optional[date] = None
    notes: Optional[str] = None


class RecurringAppointmentResponse(BaseModel):
    id: int
    salonId: int
    clientId: int
    clientName: Optional[str] = None
    technicianId: int
    technicianName: Optional[str] = None
    serviceId: int
    serviceName: Optional[str] = None
    frequency: RecurrenceFrequency
    dayOfWeek: Optional[int] = None
    dayOfMonth: Optional[int] = None
    preferredTime: time
    startDate: date
    endDate: Optional[date] = None
    nextOccurrence: Optional[date] = None
    active: bool
    notes: Optional[str] = None

    @classmethod
    def from_recurring(cls, recurring) -> "RecurringAppointmentResponse":
        return cls(
            id=recurring.id,
            salonId=recurring.salon_id,
            clientId=recurring.client_id,
            clientName=recurring.client.name if recurring.client else None,
            technicianId=recurring.technician_id,
            technicianName=recurring.technician.name if recurring.technician else None,
            serviceId=recurring.service_id,
            serviceName=recurring.service.name if recurring.service else None,
            frequency=recurring.frequency,
            dayOfWeek=recurring.day_of_week,
            dayOfMonth=recurring.day_of_month,
            preferredTime=recurring.preferred_time,
            startDate=recurring.start_date,
            endDate=recurring.end_date,
            nextOccurrence=recurring.next_occurrence,
            active=recurring.active,
            notes=recurring.notes,
        )


class RecurringAppointmentListResponse(BaseModel):
    recurringAppointments: list[RecurringAppointmentResponse]


class RecurringGenerateRequest(BaseModel):
    daysAhead: Optional[int] = Field(None, ge=1, le=365)  # salon horizon when omitted


class SkippedOccurrenceResponse(BaseModel):
    recurringId: int
    date: date
    reason: str
    message: str


class RecurringGenerateResponse(BaseModel):
    created: list[AppointmentResponse]
    skipped: list[SkippedOccurrenceResponse]
