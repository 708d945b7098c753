"""Scheduling router - FastAPI endpoints for availability, booking and appointments"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ... import config
from ...auth import get_current_salon_id
from ...database import get_db
from ...rate_limiter import public_rate_limit
from ...shared.timeutils import salon_zone, to_local
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .recurring_service import RecurringService
from .schemas import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentUpdate,
    AvailabilityResponse,
    PublicBookingRequest,
    PublicBookingResponse,
    RecurringAppointmentCreate,
    RecurringAppointmentListResponse,
    RecurringAppointmentResponse,
    RecurringAppointmentUpdate,
    RecurringGenerateRequest,
    RecurringGenerateResponse,
    ScheduleEntryResponse,
    ServiceSummary,
    SkippedOccurrenceResponse,
    SlotResponse,
    TechnicianSummary,
    WeeklyScheduleResponse,
)
from .state_machine import AppointmentStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])
public_router = APIRouter(prefix="/public/booking", tags=["Public Booking"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def get_recurring_service(db: Session = Depends(get_db)) -> RecurringService:
    """Dependency injection for RecurringService"""
    return RecurringService(db)


def _availability_response(
    service: AvailabilityService,
    salon_id: int,
    service_id: int,
    day: date,
    technician_id: Optional[int],
) -> AvailabilityResponse:
    slots = service.compute_slots(salon_id, service_id, day, technician_id)
    salon = service.get_salon(salon_id)
    tz = salon_zone(salon.timezone)
    catalog_entry = service.get_service(salon_id, service_id)
    return AvailabilityResponse(
        salonId=salon_id,
        serviceId=service_id,
        date=day,
        timezone=tz.key,
        durationMinutes=catalog_entry.duration_minutes,
        slots=[
            SlotResponse(
                startTime=to_local(slot.start_time, tz),
                technicianId=slot.technician_id,
                technicianName=slot.technician_name,
            )
            for slot in slots
        ],
    )


def _appointment_response(service: BookingService, appointment) -> AppointmentResponse:
    salon = service.availability.get_salon(appointment.salon_id)
    return AppointmentResponse.from_appointment(appointment, salon_zone(salon.timezone))


# ============================================================================
# PUBLIC BOOKING PAGE (no dashboard session, salonId in the request)
# ============================================================================


@public_router.get(
    "/availability",
    response_model=AvailabilityResponse,
    dependencies=[Depends(public_rate_limit)],
)
async def get_public_availability(
    salonId: int = Query(...),
    serviceId: int = Query(...),
    date: date = Query(..., description="Salon-local day, YYYY-MM-DD"),
    technicianId: Optional[int] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Bookable start times for a service on a day"""
    return _availability_response(service, salonId, serviceId, date, technicianId)


@public_router.post(
    "/appointments",
    response_model=PublicBookingResponse,
    status_code=201,
    dependencies=[Depends(public_rate_limit)],
)
async def create_public_booking(
    data: PublicBookingRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Book online; the client is matched by phone or registered"""
    appointment = service.create_public_booking(
        salon_id=data.salonId,
        technician_id=data.technicianId,
        service_id=data.serviceId,
        day=data.date,
        wall_time=data.time,
        client_name=data.clientName,
        client_phone=data.clientPhone,
        client_email=data.clientEmail,
        notes=data.notes,
    )
    return PublicBookingResponse(appointment=_appointment_response(service, appointment))


@public_router.get(
    "/services",
    response_model=list[ServiceSummary],
    dependencies=[Depends(public_rate_limit)],
)
async def get_public_services(
    salonId: int = Query(...),
    service: AvailabilityService = Depends(get_availability_service),
):
    service.get_salon(salonId)
    return [
        ServiceSummary(
            id=s.id, name=s.name, durationMinutes=s.duration_minutes, basePrice=s.base_price
        )
        for s in service.directory.get_active_services(service.db, salonId)
    ]


@public_router.get(
    "/technicians",
    response_model=list[TechnicianSummary],
    dependencies=[Depends(public_rate_limit)],
)
async def get_public_technicians(
    salonId: int = Query(...),
    service: AvailabilityService = Depends(get_availability_service),
):
    service.get_salon(salonId)
    return [
        TechnicianSummary(id=t.id, name=t.name)
        for t in service.directory.get_active_technicians(service.db, salonId)
    ]


# ============================================================================
# DASHBOARD - AVAILABILITY & SCHEDULES
# ============================================================================


@router.get("/appointments/availability", response_model=AvailabilityResponse)
async def get_availability(
    serviceId: int = Query(...),
    date: date = Query(...),
    technicianId: Optional[int] = Query(None),
    salon_id: int = Depends(get_current_salon_id),
    service: AvailabilityService = Depends(get_availability_service),
):
    return _availability_response(service, salon_id, serviceId, date, technicianId)


@router.get("/technicians/{technician_id}/schedule", response_model=WeeklyScheduleResponse)
async def get_technician_schedule(
    technician_id: int,
    salon_id: int = Depends(get_current_salon_id),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Weekly working-hours template of a technician"""
    technician, entries = service.weekly_template(salon_id, technician_id)
    return WeeklyScheduleResponse(
        technicianId=technician.id,
        technicianName=technician.name,
        entries=[
            ScheduleEntryResponse(
                dayOfWeek=e.day_of_week,
                startTime=e.start_time,
                endTime=e.end_time,
                isWorking=e.is_working,
            )
            for e in entries
        ],
    )


# ============================================================================
# DASHBOARD - APPOINTMENTS
# ============================================================================


@router.get("/appointments", response_model=AppointmentListResponse)
async def list_appointments(
    start: date = Query(..., description="First salon-local day"),
    end: Optional[date] = Query(None, description="Last salon-local day (inclusive)"),
    status: Optional[AppointmentStatus] = Query(None),
    technicianId: Optional[int] = Query(None),
    salon_id: int = Depends(get_current_salon_id),
    service: BookingService = Depends(get_booking_service),
):
    """Calendar view: appointments starting between two salon-local days"""
    range_start, range_end, appointments = service.list_appointments(
        salon_id, start, end or start, status, technicianId
    )
    tz = salon_zone(service.availability.get_salon(salon_id).timezone)
    return AppointmentListResponse(
        start=to_local(range_start, tz),
        end=to_local(range_end, tz),
        appointments=[AppointmentResponse.from_appointment(a, tz) for a in appointments],
    )


@router.post("/appointments", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    salon_id: int = Depends(get_current_salon_id),
    service: BookingService = Depends(get_booking_service),
):
    """Book an appointment; 409 when the interval was taken in the meantime"""
    appointment = service.create(
        salon_id=salon_id,
        technician_id=data.technicianId,
        service_id=data.serviceId,
        client_id=data.clientId,
        start_time=data.startTime,
        source=data.source,
        notes=data.notes,
    )
    return _appointment_response(service, appointment)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    salon_id: int = Depends(get_current_salon_id),
    service: BookingService = Depends(get_booking_service),
):
    return _appointment_response(service, service.get_appointment(salon_id, appointment_id))


@router.patch("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    salon_id: int = Depends(get_current_salon_id),
    service: BookingService = Depends(get_booking_service),
):
    """Apply a status transition, or reschedule (optionally to another technician)"""
    if data.status is not None:
        appointment = service.transition(salon_id, appointment_id, data.status)
    else:
        appointment = service.reschedule(
            salon_id, appointment_id, data.startTime, data.technicianId
        )
    return _appointment_response(service, appointment)


# ============================================================================
# DASHBOARD - RECURRING APPOINTMENTS
# ============================================================================


@router.get("/recurring-appointments", response_model=RecurringAppointmentListResponse)
async def list_recurring_appointments(
    clientId: Optional[int] = Query(None),
    includeInactive: bool = Query(False),
    salon_id: int = Depends(get_current_salon_id),
    service: RecurringService = Depends(get_recurring_service),
):
    series = service.list_series(salon_id, clientId, includeInactive)
    return RecurringAppointmentListResponse(
        recurringAppointments=[RecurringAppointmentResponse.from_recurring(r) for r in series]
    )


@router.post(
    "/recurring-appointments", response_model=RecurringAppointmentResponse, status_code=201
)
async def create_recurring_appointment(
    data: RecurringAppointmentCreate,
    salon_id: int = Depends(get_current_salon_id),
    service: RecurringService = Depends(get_recurring_service),
):
    """Set up a standing booking; appointments appear when generation runs"""
    recurring = service.create_series(
        salon_id=salon_id,
        client_id=data.clientId,
        technician_id=data.technicianId,
        service_id=data.serviceId,
        frequency=data.frequency,
        preferred_time=data.preferredTime,
        weekday=data.dayOfWeek,
        day_of_month=data.dayOfMonth,
        start_date=data.startDate,
        end_date=data.endDate,
        notes=data.notes,
    )
    return RecurringAppointmentResponse.from_recurring(recurring)


@router.post("/recurring-appointments/generate", response_model=RecurringGenerateResponse)
async def generate_recurring_appointments(
    data: RecurringGenerateRequest,
    salon_id: int = Depends(get_current_salon_id),
    service: RecurringService = Depends(get_recurring_service),
):
    """Book due occurrences now; conflicts are reported, not fatal"""
    result = service.generate(salon_id, data.daysAhead or config.RECURRING_DAYS_AHEAD)
    tz = salon_zone(service.lookup.get_salon(salon_id).timezone)
    return RecurringGenerateResponse(
        created=[AppointmentResponse.from_appointment(a, tz) for a in result.created],
        skipped=[
            SkippedOccurrenceResponse(
                recurringId=s.recurring_id, date=s.day, reason=s.reason.value, message=s.message
            )
            for s in result.skipped
        ],
    )


@router.get("/recurring-appointments/{recurring_id}", response_model=RecurringAppointmentResponse)
async def get_recurring_appointment(
    recurring_id: int,
    salon_id: int = Depends(get_current_salon_id),
    service: RecurringService = Depends(get_recurring_service),
):
    return RecurringAppointmentResponse.from_recurring(service.get_series(salon_id, recurring_id))


@router.patch(
    "/recurring-appointments/{recurring_id}", response_model=RecurringAppointmentResponse
)
async def update_recurring_appointment(
    recurring_id: int,
    data: RecurringAppointmentUpdate,
    salon_id: int = Depends(get_current_salon_id),
    service: RecurringService = Depends(get_recurring_service),
):
    """Pause/resume a series, change its time or end date, or edit notes"""
    recurring = service.update_series(
        salon_id,
        recurring_id,
        active=data.active,
        preferred_time=data.preferredTime,
        end_date=data.endDate,
        notes=data.notes,
    )
    return RecurringAppointmentResponse.from_recurring(recurring)


@router.delete("/recurring-appointments/{recurring_id}", status_code=204)
async def delete_recurring_appointment(
    recurring_id: int,
    salon_id: int = Depends(get_current_salon_id),
    service: RecurringService = Depends(get_recurring_service),
):
    """Remove a series; appointments already generated are kept"""
    service.delete_series(salon_id, recurring_id)
    return Response(status_code=204)
