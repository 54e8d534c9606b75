from datetime import datetime, time
from decimal import Decimal
from unittest.mock import patch

import pytest

from lounge.core.enums import BookingStatus, StationType
from lounge.core.exceptions import RepositoryException
from lounge.schemas.booking import TimeSlot
from lounge.services.availability_service import AvailabilityService


def _slot_at(slots, hour: int):
    return next(s for s in slots if s.start_time == time(hour))


@pytest.fixture
def service(db, cache, morning_before):
    return AvailabilityService(db, cache, now_provider=lambda: morning_before)


class TestResolve:
    @pytest.mark.asyncio
    async def test_slot_full_only_when_every_station_overlapped(
        self, service, booking_date, make_station, make_customer, make_booking
    ) -> None:
        stations = [make_station() for _ in range(5)]
        customer = make_customer()
        for station in stations[:4]:
            make_booking(station, customer, time(15), time(16))

        slots = await service.resolve(booking_date, 60)
        assert len(slots) == 12
        assert _slot_at(slots, 15).is_available

        service.invalidate_date(booking_date)
        make_booking(stations[4], customer, time(15), time(16))

        slots = await service.resolve(booking_date, 60)
        assert not _slot_at(slots, 15).is_available
        assert _slot_at(slots, 14).is_available
        assert _slot_at(slots, 16).is_available

    @pytest.mark.asyncio
    async def test_cancelled_bookings_do_not_count(
        self, service, booking_date, make_station, make_customer, make_booking
    ) -> None:
        station = make_station()
        make_booking(station, make_customer(), time(15), time(16), status=BookingStatus.CANCELLED)

        slots = await service.resolve(booking_date, 60)

        assert all(slot.is_available for slot in slots)

    @pytest.mark.asyncio
    async def test_today_closes_past_slots(
        self, db, cache, booking_date, make_station
    ) -> None:
        make_station()
        now = datetime.combine(booking_date, time(14, 30))
        service = AvailabilityService(db, cache, now_provider=lambda: now)

        slots = await service.resolve(booking_date, 60)

        assert [s.start_time for s in slots if not s.is_available] == [
            time(11),
            time(12),
            time(13),
            time(14),
        ]

    @pytest.mark.asyncio
    async def test_controller_units_are_not_capacity(
        self, service, booking_date, make_station, make_customer, make_booking
    ) -> None:
        console = make_station()
        make_station(parent=console)
        make_booking(console, make_customer(), time(18), time(19))

        slots = await service.resolve(booking_date, 60)

        assert not _slot_at(slots, 18).is_available

    @pytest.mark.asyncio
    async def test_station_type_scopes_capacity(
        self, service, booking_date, make_station, make_customer, make_booking
    ) -> None:
        ps5 = make_station(StationType.PS5)
        make_station(StationType.POOL)
        make_booking(ps5, make_customer(), time(12), time(13))

        ps5_slots = await service.resolve(booking_date, 60, StationType.PS5)
        pool_slots = await service.resolve(booking_date, 60, StationType.POOL)
        all_slots = await service.resolve(booking_date, 60)

        assert not _slot_at(ps5_slots, 12).is_available
        assert _slot_at(pool_slots, 12).is_available
        assert _slot_at(all_slots, 12).is_available

    @pytest.mark.asyncio
    async def test_store_failure_fails_open_and_is_not_cached(
        self, service, cache, booking_date, make_station, make_customer, make_booking
    ) -> None:
        station = make_station()
        make_booking(station, make_customer(), time(15), time(16))

        with patch.object(
            service.booking_repository,
            "get_confirmed_for_date",
            side_effect=RepositoryException("connection reset"),
        ):
            slots = await service.resolve(booking_date, 60)

        assert len(slots) == 12
        assert all(slot.is_available for slot in slots)
        assert cache.get(cache.key("slots", booking_date, 60)) is None

        slots = await service.resolve(booking_date, 60)
        assert not _slot_at(slots, 15).is_available

    @pytest.mark.asyncio
    async def test_cache_hit_skips_store(
        self, service, booking_date, make_station
    ) -> None:
        make_station()
        first = await service.resolve(booking_date, 60)

        with patch.object(
            service.booking_repository,
            "get_confirmed_for_date",
            side_effect=AssertionError("store should not be queried"),
        ):
            second = await service.resolve(booking_date, 60)

        assert second == first

    @pytest.mark.asyncio
    async def test_per_type_scope_needs_every_type_full(
        self, db, cache, booking_date, morning_before, make_station, make_customer, make_booking
    ) -> None:
        ps5 = make_station(StationType.PS5)
        make_station(StationType.POOL)
        make_station(StationType.POOL)
        customer = make_customer()
        make_booking(ps5, customer, time(20), time(21))

        service = AvailabilityService(
            db, cache, now_provider=lambda: morning_before, capacity_scope="station_type"
        )
        slots = await service.resolve(booking_date, 60)

        assert _slot_at(slots, 20).is_available


class TestStations:
    @pytest.mark.asyncio
    async def test_lists_bookable_stations_only(self, service, make_station) -> None:
        console = make_station(StationType.PS5, Decimal("300"), name="PS5 A")
        make_station(parent=console, name="Controller A", is_occupied=True)
        make_station(StationType.POOL, Decimal("200"), name="Table 1")

        stations = await service.list_stations()

        assert [s.name for s in stations] == ["Table 1", "PS5 A"]
        console_snapshot = next(s for s in stations if s.name == "PS5 A")
        assert console_snapshot.is_occupied
        assert console_snapshot.hourly_rate == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_available_stations_exclude_overlaps(
        self, service, booking_date, make_station, make_customer, make_booking
    ) -> None:
        busy = make_station(name="Busy")
        free = make_station(name="Free")
        make_booking(busy, make_customer(), time(15), time(17))

        stations = await service.available_stations(
            booking_date, TimeSlot(start_time=time(16), end_time=time(17))
        )

        assert [s.id for s in stations] == [free.id]

    @pytest.mark.asyncio
    async def test_station_check_fails_open(
        self, service, booking_date, make_station
    ) -> None:
        make_station()
        with patch.object(
            service.booking_repository,
            "get_overlapping_station_ids",
            side_effect=RepositoryException("timeout"),
        ):
            taken = await service.unavailable_station_ids(
                booking_date, TimeSlot(start_time=time(15), end_time=time(16))
            )

        assert taken == set()
