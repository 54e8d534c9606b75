# backend/lounge/schemas/station.py
"""Station DTOs shared by the availability, allocator and booking services."""

from decimal import Decimal
from typing import Optional

from pydantic import Field

from ..core.enums import StationType
from ._strict_base import StrictModel


class StationSnapshot(StrictModel):
    """Bookable station as seen by the booking flow."""

    id: str
    name: str
    station_type: StationType
    hourly_rate: Decimal = Field(ge=0)
    is_occupied: bool = False
    is_controller_unit: bool = False
    parent_station_id: Optional[str] = None

    @property
    def is_ps5(self) -> bool:
        return self.station_type == StationType.PS5
