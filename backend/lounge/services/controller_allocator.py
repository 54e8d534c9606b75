# backend/lounge/services/controller_allocator.py
"""
PS5 controller pool allocation.

The lounge owns a fixed pool of controllers shared by all PS5 stations. A
confirmed PS5 booking holds a controller for a slot when it starts at the
slot start and lasts at least until the slot end.
"""

from datetime import date
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import StationType
from ..core.exceptions import ControllerLimitReached, RepositoryException
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import TimeSlot
from ..schemas.station import StationSnapshot
from .base import BaseService

logger = logging.getLogger(__name__)


def can_select(
    station_type: StationType,
    current_selection: Sequence[StationSnapshot],
    available_controllers: int,
) -> bool:
    """Whether one more station of station_type fits in the controller pool."""
    if StationType(station_type) != StationType.PS5:
        return True
    selected_ps5 = sum(1 for s in current_selection if s.is_ps5)
    return selected_ps5 < available_controllers


def toggle_station(
    current_selection: Sequence[StationSnapshot],
    station: StationSnapshot,
    available_controllers: int,
) -> List[StationSnapshot]:
    """
    Deselect station if selected, otherwise add it.

    Raises:
        ControllerLimitReached: adding a PS5 station would exceed the pool
    """
    if any(s.id == station.id for s in current_selection):
        return [s for s in current_selection if s.id != station.id]
    if not can_select(station.station_type, current_selection, available_controllers):
        raise ControllerLimitReached(available_controllers)
    return [*current_selection, station]


class ControllerAllocator(BaseService):
    """Read-only view of the controller pool for a slot."""

    def __init__(self, db: Session, total_controllers: Optional[int] = None):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.total_controllers = (
            settings.total_controllers if total_controllers is None else total_controllers
        )

    @BaseService.measure_operation("available_controllers")
    async def available_controllers(
        self,
        target_date: Optional[date],
        slot: Optional[TimeSlot],
        total_controllers: Optional[int] = None,
    ) -> int:
        """Controllers left for slot; the full pool when unknown or on store errors."""
        total = self.total_controllers if total_controllers is None else total_controllers
        if target_date is None or slot is None:
            return total

        try:
            booked = await self.run_sync(
                self.booking_repository.count_ps5_controller_bookings,
                target_date,
                slot.start_time,
                slot.end_time,
            )
        except RepositoryException as e:
            self.logger.warning(f"Could not count controller bookings, assuming full pool: {e}")
            prometheus_metrics.record_degraded_read("available_controllers")
            return total

        return max(0, total - booked)

    can_select = staticmethod(can_select)
    toggle_station = staticmethod(toggle_station)
