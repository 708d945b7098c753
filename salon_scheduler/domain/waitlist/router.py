"""Waitlist router - FastAPI endpoints for the walk-in queue"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_salon_id
from ...database import get_db
from ...shared.timeutils import salon_zone
from .schemas import (
    WaitlistEntryCreate,
    WaitlistEntryResponse,
    WaitlistEntryUpdate,
    WaitlistListResponse,
    WaitlistStats,
    entry_response,
)
from .service import WaitlistService
from .state_machine import WaitlistStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


def get_waitlist_service(db: Session = Depends(get_db)) -> WaitlistService:
    """Dependency injection for WaitlistService"""
    return WaitlistService(db)


def _salon_tz(service: WaitlistService, salon_id: int):
    return salon_zone(service.lookup.get_salon(salon_id).timezone)


@router.get("", response_model=WaitlistListResponse)
async def list_waitlist(
    status: Optional[WaitlistStatus] = Query(None),
    today: bool = Query(False, description="Only entries created on the salon-local today"),
    salon_id: int = Depends(get_current_salon_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Queue in arrival order with live positions and wait estimates"""
    views = service.list_entries(salon_id, status=status, today_only=today)
    tz = _salon_tz(service, salon_id)
    return WaitlistListResponse(
        entries=[entry_response(v, tz) for v in views],
        stats=WaitlistStats(**service.stats(views)),
    )


@router.post("", response_model=WaitlistEntryResponse, status_code=201)
async def add_to_waitlist(
    data: WaitlistEntryCreate,
    salon_id: int = Depends(get_current_salon_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    view = service.add(
        salon_id,
        client_name=data.clientName,
        client_phone=data.clientPhone,
        party_size=data.partySize,
        client_id=data.clientId,
        service_id=data.serviceId,
        preferred_technician_id=data.preferredTechnicianId,
        notes=data.notes,
    )
    return entry_response(view, _salon_tz(service, salon_id))


@router.get("/{entry_id}", response_model=WaitlistEntryResponse)
async def get_waitlist_entry(
    entry_id: int,
    salon_id: int = Depends(get_current_salon_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    return entry_response(service.get(salon_id, entry_id), _salon_tz(service, salon_id))


@router.patch("/{entry_id}", response_model=WaitlistEntryResponse)
async def update_waitlist_entry(
    entry_id: int,
    data: WaitlistEntryUpdate,
    salon_id: int = Depends(get_current_salon_id),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Move the entry through its lifecycle, or edit its notes"""
    if data.status is not None:
        view = service.transition(salon_id, entry_id, data.status)
    else:
        view = service.update_notes(salon_id, entry_id, data.notes)
    return entry_response(view, _salon_tz(service, salon_id))
