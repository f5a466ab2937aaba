from datetime import date, datetime
from typing import List

from .base import StandardizedModel


class SlotStateResponse(StandardizedModel):
    start: datetime
    count: int
    capacity: int
    past: bool
    available: bool


class DayAvailabilityResponse(StandardizedModel):
    day: date
    capacity: int
    slots: List[SlotStateResponse]
