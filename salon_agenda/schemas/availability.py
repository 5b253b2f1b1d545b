import datetime as dt
from typing import List

from pydantic import BaseModel


class Slot(BaseModel):
    date: dt.date
    start_time: dt.time
    available: bool


class AvailabilityResponse(BaseModel):
    salon_id: str
    service_id: str
    date: dt.date
    closed: bool = False
    slots: List[Slot]
