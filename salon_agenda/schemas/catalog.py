import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class OperatingWindow(BaseModel):
    salon_id: str
    weekday: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    opens_at: dt.time
    closes_at: dt.time
    slot_granularity_minutes: int = Field(30, gt=0)

    @model_validator(mode="after")
    def _check_order(self) -> "OperatingWindow":
        if self.opens_at >= self.closes_at:
            raise ValueError("opens_at must be earlier than closes_at")
        return self


class SalonService(BaseModel):
    id: str
    salon_id: str
    name: str
    duration_minutes: int = Field(..., gt=0)
    price_minor_units: Optional[int] = Field(None, ge=0)
    active: bool = True


class Salon(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    whatsapp: Optional[str] = None
    cancellation_policy_hours: int = Field(0, ge=0)


class SalonDetail(Salon):
    services: List[SalonService] = Field(default_factory=list)
    operating_hours: List[OperatingWindow] = Field(default_factory=list)


class SalonSearchResponse(BaseModel):
    total: int
    items: List[Salon]
