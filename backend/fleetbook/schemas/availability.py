# backend/fleetbook/schemas/availability.py
"""
Availability schemas: weekly windows, unavailabilities and computed slots.
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ._strict_base import StrictRequestModel
from .base import StandardizedModel


class AvailabilityWindowCreate(StrictRequestModel):
    """Weekly open hours for one day; 0 is Sunday, 6 is Saturday."""

    day_of_week: int = Field(..., ge=0, le=6)
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(60, ge=5, le=120)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_order(self) -> "AvailabilityWindowCreate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityWindowUpdate(StrictRequestModel):
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    slot_duration_minutes: Optional[int] = Field(None, ge=5, le=120)
    is_active: Optional[bool] = None


class AvailabilityWindowBulkSet(StrictRequestModel):
    windows: List[AvailabilityWindowCreate] = Field(..., min_length=1, max_length=7)


class AvailabilityWindowResponse(StandardizedModel):
    id: str
    partner_id: str
    day_of_week: int
    start_time: time
    end_time: time
    slot_duration_minutes: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UnavailabilityCreate(StrictRequestModel):
    date: date
    reason: str = Field(..., min_length=1, max_length=255)
    is_full_day: bool = True
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class UnavailabilityUpdate(StrictRequestModel):
    reason: Optional[str] = Field(None, min_length=1, max_length=255)
    is_full_day: Optional[bool] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class UnavailabilityResponse(StandardizedModel):
    id: str
    partner_id: str
    date: date
    reason: str
    is_full_day: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    created_at: Optional[datetime] = None


class SlotResponse(BaseModel):
    time: str = Field(description="Slot start, HH:MM")
    end_time: str = Field(description="Slot end, HH:MM")
    available: bool
    reason: Optional[str] = None


class SlotsResponse(BaseModel):
    partner_id: str
    service_id: Optional[str] = None
    date: date
    duration: int
    slots: List[SlotResponse]
    available_count: int
    unavailable_count: int
