"""Kiosk domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_us_phone
from ..scheduling.schemas import AppointmentResponse


class KioskClient(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None


class KioskLookupResponse(BaseModel):
    client: Optional[KioskClient] = None
    appointments: list[AppointmentResponse]
    # No appointment to check in to: the kiosk offers the walk-in list instead
    canWalkIn: bool


class KioskCheckInRequest(BaseModel):
    appointmentId: int


class KioskWalkInRequest(BaseModel):
    clientName: str = Field(min_length=1, max_length=255)
    clientPhone: str
    partySize: int = Field(1, ge=1)
    serviceId: Optional[int] = None
    preferredTechnicianId: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("clientPhone")
    @classmethod
    def validate_phone(cls, v):
        return validate_us_phone(v)
