"""Kiosk router - FastAPI endpoints for the in-salon check-in tablet"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import public_rate_limit
from ...shared.timeutils import salon_zone
from ..scheduling.schemas import AppointmentResponse
from ..waitlist.schemas import WaitlistEntryResponse, entry_response
from .schemas import KioskCheckInRequest, KioskClient, KioskLookupResponse, KioskWalkInRequest
from .service import KioskService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/kiosk/{salon_id}",
    tags=["Kiosk"],
    dependencies=[Depends(public_rate_limit)],
)


def get_kiosk_service(db: Session = Depends(get_db)) -> KioskService:
    """Dependency injection for KioskService"""
    return KioskService(db)


def _salon_tz(service: KioskService, salon_id: int):
    return salon_zone(service.booking.availability.get_salon(salon_id).timezone)


@router.get("/lookup", response_model=KioskLookupResponse)
async def kiosk_lookup(
    salon_id: int,
    phone: str = Query(..., min_length=4),
    service: KioskService = Depends(get_kiosk_service),
):
    result = service.lookup(salon_id, phone)
    tz = _salon_tz(service, salon_id)
    return KioskLookupResponse(
        client=(
            KioskClient(id=result.client.id, name=result.client.name, phone=result.client.phone)
            if result.client
            else None
        ),
        appointments=[AppointmentResponse.from_appointment(a, tz) for a in result.appointments],
        canWalkIn=result.can_walk_in,
    )


@router.post("/check-in", response_model=AppointmentResponse)
async def kiosk_check_in(
    salon_id: int,
    data: KioskCheckInRequest,
    service: KioskService = Depends(get_kiosk_service),
):
    """Mark the client as arrived (BOOKED → CONFIRMED)"""
    appointment = service.check_in(salon_id, data.appointmentId)
    return AppointmentResponse.from_appointment(appointment, _salon_tz(service, salon_id))


@router.post("/walk-in", response_model=WaitlistEntryResponse, status_code=201)
async def kiosk_walk_in(
    salon_id: int,
    data: KioskWalkInRequest,
    service: KioskService = Depends(get_kiosk_service),
):
    view = service.walk_in(
        salon_id,
        client_name=data.clientName,
        client_phone=data.clientPhone,
        party_size=data.partySize,
        service_id=data.serviceId,
        preferred_technician_id=data.preferredTechnicianId,
        notes=data.notes,
    )
    return entry_response(view, _salon_tz(service, salon_id))
