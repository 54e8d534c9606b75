# backend/lounge/services/availability_service.py
"""
Availability Service for the lounge.

Turns generated time slots into bookable/unbookable slots using persisted
confirmed bookings and the number of bookable stations, and answers which
stations are free for a chosen slot.

Reads fail open: if bookings cannot be fetched the slots keep their
time-based availability and the booking transaction remains the conflict
authority.
"""

from collections import defaultdict
from datetime import date, datetime, time
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import StationType
from ..core.exceptions import AvailabilityFetchDegraded, RepositoryException, ServiceException
from ..core.timezone_utils import get_lounge_now
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import TimeSlot
from ..schemas.station import StationSnapshot
from .base import BaseService
from .cache_service import CacheNamespace, CacheService
from .time_slots import generate_time_slots, time_ranges_overlap

logger = logging.getLogger(__name__)

BookingWindow = Tuple[time, time, StationType]


def station_snapshot(station) -> StationSnapshot:
    """Snapshot of a Station row as the booking flow sees it."""
    return StationSnapshot(
        id=station.id,
        name=station.name,
        station_type=StationType(station.station_type),
        hourly_rate=station.hourly_rate,
        is_occupied=station.is_effectively_occupied,
        is_controller_unit=station.is_controller_unit,
        parent_station_id=station.parent_station_id,
    )


def count_overlapping(windows: Sequence[BookingWindow], slot: TimeSlot) -> int:
    return sum(
        1
        for start, end, _type in windows
        if time_ranges_overlap(start, end, slot.start_time, slot.end_time)
    )


def apply_booking_capacity(
    slots: List[TimeSlot],
    windows: Sequence[BookingWindow],
    capacity: Dict[Optional[StationType], int],
) -> List[TimeSlot]:
    """
    Mark slots unavailable where overlapping bookings reach station capacity.

    capacity maps a station type to its station count; the None key holds a
    single pool covering every type. With per-type capacity a slot is only
    full once every type that has stations is full.
    """
    resolved: List[TimeSlot] = []
    for slot in slots:
        if not slot.is_available:
            resolved.append(slot)
            continue

        if None in capacity:
            full = count_overlapping(windows, slot) >= capacity[None]
        else:
            per_type: Dict[StationType, int] = defaultdict(int)
            for start, end, station_type in windows:
                if time_ranges_overlap(start, end, slot.start_time, slot.end_time):
                    per_type[station_type] += 1
            full = all(per_type[t] >= total for t, total in capacity.items() if t is not None)

        resolved.append(slot.model_copy(update={"is_available": not full}))
    return resolved


class AvailabilityService(BaseService):
    """Slot and station availability for a date."""

    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        now_provider: Callable[[], datetime] = get_lounge_now,
        capacity_scope: Optional[str] = None,
    ):
        super().__init__(db, cache)
        self.station_repository = RepositoryFactory.create_station_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self._now = now_provider
        self.capacity_scope = capacity_scope or settings.capacity_scope

    def base_slots(self, target_date: date, duration_minutes: int) -> List[TimeSlot]:
        """Generated slots, with past slots closed when target_date is today."""
        now = self._now()
        return generate_time_slots(
            settings.business_open_time,
            settings.business_close_time,
            duration_minutes,
            now=now if target_date == now.date() else None,
            buffer_minutes=settings.slot_buffer_minutes,
        )

    @BaseService.measure_operation("resolve_slots")
    async def resolve(
        self,
        target_date: date,
        duration_minutes: int,
        station_type: Optional[StationType] = None,
    ) -> List[TimeSlot]:
        """
        Time slots for a date, each marked available or not.

        Never raises for store errors; see the module docstring.
        """
        base = self.base_slots(target_date, duration_minutes)
        cache_key = None
        if self.cache:
            cache_key = self.cache.key(
                CacheNamespace.TIME_SLOTS, target_date, duration_minutes, station_type
            )
            entry = self.cache.get(cache_key)
            if entry is not None:
                cached = [TimeSlot.model_validate(item) for item in entry.value]
                # Slots may have slipped into the past since they were cached
                return [
                    slot if base_slot.is_available else base_slot
                    for slot, base_slot in zip(cached, base)
                ]

        try:
            windows, capacity = await self.run_sync(
                self._load_capacity_inputs, target_date, station_type
            )
        except RepositoryException as e:
            degraded = AvailabilityFetchDegraded(str(e))
            self.logger.warning(f"{degraded.message}; showing all slots for {target_date}")
            prometheus_metrics.record_degraded_read("resolve_slots")
            return base

        slots = apply_booking_capacity(base, windows, capacity)
        slots.sort(key=lambda s: s.start_time)

        if self.cache and cache_key:
            self.cache.set(
                cache_key,
                [slot.model_dump(mode="json") for slot in slots],
                ttl=self.cache.ttl_for(CacheNamespace.TIME_SLOTS),
            )
        return slots

    def _load_capacity_inputs(
        self, target_date: date, station_type: Optional[StationType]
    ) -> Tuple[List[BookingWindow], Dict[Optional[StationType], int]]:
        bookings = self.booking_repository.get_confirmed_for_date(target_date, station_type)
        windows = [
            (b.start_time, b.end_time, StationType(b.station.station_type)) for b in bookings
        ]

        capacity: Dict[Optional[StationType], int]
        if station_type is not None:
            capacity = {None: self.station_repository.count_bookable(station_type)}
        elif self.capacity_scope == "station_type":
            capacity = {t: self.station_repository.count_bookable(t) for t in StationType}
            capacity = {t: n for t, n in capacity.items() if n > 0}
        else:
            capacity = {None: self.station_repository.count_bookable()}
        return windows, capacity

    # Stations

    @BaseService.measure_operation("list_stations")
    async def list_stations(
        self, station_type: Optional[StationType] = None
    ) -> List[StationSnapshot]:
        """Bookable stations, cached in the stations namespace."""
        cache_key = None
        if self.cache:
            cache_key = self.cache.key(CacheNamespace.STATIONS, station_type or "all")
            entry = self.cache.get(cache_key)
            if entry is not None:
                return [StationSnapshot.model_validate(item) for item in entry.value]

        try:
            stations = await self.run_sync(self._load_stations, station_type)
        except RepositoryException as e:
            self.logger.error(f"Failed to load stations: {e}")
            raise ServiceException("Failed to load stations", code="STATIONS_UNAVAILABLE") from e

        if self.cache and cache_key:
            self.cache.set(
                cache_key,
                [s.model_dump(mode="json") for s in stations],
                ttl=self.cache.ttl_for(CacheNamespace.STATIONS),
            )
        return stations

    def _load_stations(self, station_type: Optional[StationType]) -> List[StationSnapshot]:
        return [station_snapshot(s) for s in self.station_repository.list_bookable(station_type)]

    @BaseService.measure_operation("unavailable_station_ids")
    async def unavailable_station_ids(
        self,
        target_date: date,
        slot: TimeSlot,
        station_ids: Optional[Sequence[str]] = None,
    ) -> Set[str]:
        """Stations with a confirmed booking overlapping slot; empty on store errors."""
        try:
            return await self.run_sync(
                self.booking_repository.get_overlapping_station_ids,
                target_date,
                slot.start_time,
                slot.end_time,
                station_ids,
            )
        except RepositoryException as e:
            degraded = AvailabilityFetchDegraded(str(e))
            self.logger.warning(f"{degraded.message}; treating all stations as free")
            prometheus_metrics.record_degraded_read("unavailable_station_ids")
            return set()

    async def available_stations(
        self,
        target_date: date,
        slot: TimeSlot,
        station_type: Optional[StationType] = None,
    ) -> List[StationSnapshot]:
        """Bookable stations with no overlapping confirmed booking for slot."""
        stations = await self.list_stations(station_type)
        taken = await self.unavailable_station_ids(target_date, slot, [s.id for s in stations])
        return [s for s in stations if s.id not in taken]

    def invalidate_date(self, target_date: date) -> int:
        return invalidate_slots(self.cache, target_date)


def invalidate_slots(cache: Optional[CacheService], target_date: date) -> int:
    """Drop cached slots for every duration on target_date."""
    if not cache:
        return 0
    prefix = cache.key(CacheNamespace.TIME_SLOTS, target_date) + ":"
    return cache.delete_prefix(prefix)
