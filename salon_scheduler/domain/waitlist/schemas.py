"""Waitlist domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.timeutils import to_local
from ...shared.validators import validate_us_phone
from .service import format_wait_time
from .state_machine import WaitlistStatus


class WaitlistEntryCreate(BaseModel):
    """Schema for adding a walk-in to the queue"""

    clientId: Optional[int] = None
    clientName: Optional[str] = Field(None, max_length=255)
    clientPhone: Optional[str] = None
    partySize: int = Field(1, ge=1)
    serviceId: Optional[int] = None
    preferredTechnicianId: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("clientPhone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @model_validator(mode="after")
    def check_identity(self):
        if self.clientId is None and not (self.clientName and self.clientPhone):
            raise ValueError("clientName and clientPhone are required without a clientId")
        return self


class WaitlistEntryUpdate(BaseModel):
    """Either a status transition or a notes edit"""

    status: Optional[WaitlistStatus] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_single_action(self):
        if (self.status is None) == (self.notes is None):
            raise ValueError("Provide exactly one of status or notes")
        return self


class WaitlistEntryResponse(BaseModel):
    id: int
    salonId: int
    clientId: Optional[int] = None
    clientName: str
    clientPhone: Optional[str] = None
    partySize: int
    serviceId: Optional[int] = None
    serviceName: Optional[str] = None
    preferredTechnicianId: Optional[int] = None
    notes: Optional[str] = None
    status: WaitlistStatus
    createdAt: datetime
    notifiedAt: Optional[datetime] = None
    seatedAt: Optional[datetime] = None
    # Derived on every read, only for WAITING entries
    position: Optional[int] = None
    estimatedWaitMinutes: Optional[int] = None
    estimatedWaitDisplay: Optional[str] = None


class WaitlistStats(BaseModel):
    totalWaiting: int
    totalNotified: int
    averageWaitMinutes: int


class WaitlistListResponse(BaseModel):
    entries: list[WaitlistEntryResponse]
    stats: WaitlistStats


def entry_response(view, tz: ZoneInfo) -> WaitlistEntryResponse:
    """Render a WaitlistEntryView with timestamps in the salon's timezone"""
    entry = view.entry
    return WaitlistEntryResponse(
        id=entry.id,
        salonId=entry.salon_id,
        clientId=entry.client_id,
        clientName=entry.client_name,
        clientPhone=entry.client_phone,
        partySize=entry.party_size,
        serviceId=entry.service_id,
        serviceName=entry.service.name if entry.service else None,
        preferredTechnicianId=entry.preferred_technician_id,
        notes=entry.notes,
        status=entry.status,
        createdAt=to_local(entry.created_at, tz),
        notifiedAt=to_local(entry.notified_at, tz) if entry.notified_at else None,
        seatedAt=to_local(entry.seated_at, tz) if entry.seated_at else None,
        position=view.position,
        estimatedWaitMinutes=view.estimated_wait_minutes,
        estimatedWaitDisplay=(
            format_wait_time(view.estimated_wait_minutes)
            if view.estimated_wait_minutes is not None
            else None
        ),
    )
