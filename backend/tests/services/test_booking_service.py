from datetime import time
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from lounge.core.enums import BookingStatus, StationType
from lounge.core.exceptions import (
    BookingInsertFailed,
    BookingValidationError,
    CustomerLookupFailed,
    NoBookingsCreated,
    RepositoryConflict,
    RepositoryException,
    SlotNoLongerAvailable,
)
from lounge.models import Booking, BookingView, Customer
from lounge.schemas.booking import BookingRequest, CustomerInfo, TimeSlot
from lounge.schemas.station import StationSnapshot
from lounge.services.availability_service import AvailabilityService, station_snapshot
from lounge.services.booking_lookup_service import BookingLookupService
from lounge.services.booking_service import ACCESS_CODE_ALPHABET, BookingService
from lounge.services.cache_service import CacheNamespace


def _request(stations, booking_date, start=time(18), end=time(19), **overrides):
    minutes = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
    values = dict(
        stations=[station_snapshot(s) for s in stations],
        booking_date=booking_date,
        time_slot=TimeSlot(start_time=start, end_time=end),
        duration_minutes=minutes,
        customer=CustomerInfo(name="Ravi", phone="9000000001"),
    )
    values.update(overrides)
    return BookingRequest(**values)


@pytest.fixture
def service(db, cache, morning_before):
    availability = AvailabilityService(db, cache, now_provider=lambda: morning_before)
    return BookingService(db, cache, availability_service=availability)


class TestSubmit:
    @pytest.mark.asyncio
    async def test_books_every_station_in_one_group(
        self, service, db, booking_date, make_station
    ) -> None:
        stations = [make_station() for _ in range(3)]

        confirmation = await service.submit(_request(stations, booking_date))

        assert len(confirmation.booking_ids) == 3
        bookings = db.query(Booking).filter(Booking.id.in_(confirmation.booking_ids)).all()
        assert {b.booking_group_id for b in bookings} == {confirmation.booking_group_id}
        assert {b.status for b in bookings} == {BookingStatus.CONFIRMED.value}
        assert {b.station_id for b in bookings} == {s.id for s in stations}
        assert confirmation.total_price == Decimal("900.00")

    @pytest.mark.asyncio
    async def test_prices_from_rate_duration_and_discount(
        self, service, db, booking_date, make_station
    ) -> None:
        station = make_station(hourly_rate=Decimal("300"))
        request = _request(
            [station],
            booking_date,
            start=time(18),
            end=time(19, 30),
            discount_percentage=Decimal("50"),
            coupon_code=" half50 ",
        )

        confirmation = await service.submit(request)

        booking = db.get(Booking, confirmation.booking_ids[0])
        assert booking.original_price == Decimal("450.00")
        assert booking.final_price == Decimal("225.00")
        assert booking.coupon_code == "HALF50"
        assert confirmation.total_price == Decimal("225.00")

    @pytest.mark.asyncio
    async def test_reuses_customer_with_same_phone(
        self, service, db, booking_date, make_station, make_customer
    ) -> None:
        existing = make_customer(name="Ravi", phone="9000000001")

        confirmation = await service.submit(_request([make_station()], booking_date))

        assert confirmation.customer_id == existing.id
        assert db.query(Customer).count() == 1

    @pytest.mark.asyncio
    async def test_issues_access_code_for_first_booking(
        self, service, db, booking_date, make_station
    ) -> None:
        confirmation = await service.submit(
            _request([make_station(), make_station()], booking_date)
        )

        views = db.query(BookingView).all()
        assert len(views) == 1
        assert views[0].booking_id == confirmation.booking_ids[0]
        assert views[0].access_code == confirmation.access_code
        assert len(confirmation.access_code) == 8
        assert set(confirmation.access_code) <= set(ACCESS_CODE_ALPHABET)

    @pytest.mark.asyncio
    async def test_validation_runs_before_any_io(self, db, cache, booking_date) -> None:
        customer_service = AsyncMock()
        service = BookingService(db, cache, customer_service=customer_service)
        request = BookingRequest(booking_date=booking_date, customer=CustomerInfo(name=" "))

        with pytest.raises(BookingValidationError) as exc_info:
            await service.submit(request)

        assert "stations: select at least one station" in exc_info.value.problems
        assert "customer.name: required" in exc_info.value.problems
        customer_service.resolve_or_create_customer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_conflicting_booking_is_rejected(
        self, service, db, booking_date, make_station, make_customer, make_booking
    ) -> None:
        free = make_station()
        taken = make_station()
        make_booking(taken, make_customer(), time(17, 30), time(18, 30))

        with pytest.raises(SlotNoLongerAvailable) as exc_info:
            await service.submit(_request([free, taken], booking_date))

        assert exc_info.value.station_ids == [taken.id]
        assert exc_info.value.details["booking_date"] == booking_date.isoformat()
        assert db.query(Booking).count() == 1

    @pytest.mark.asyncio
    async def test_store_failure_becomes_insert_failed(
        self, service, booking_date, make_station
    ) -> None:
        with patch.object(
            service.booking_repository,
            "create_group",
            side_effect=RepositoryException("disk full"),
        ):
            with pytest.raises(BookingInsertFailed):
                await service.submit(_request([make_station()], booking_date))

    @pytest.mark.asyncio
    async def test_empty_insert_result(self, service, booking_date, make_station) -> None:
        with patch.object(service.booking_repository, "create_group", return_value=[]):
            with pytest.raises(NoBookingsCreated):
                await service.submit(_request([make_station()], booking_date))

    @pytest.mark.asyncio
    async def test_access_code_falls_back_to_booking_id(
        self, service, db, booking_date, make_station
    ) -> None:
        with patch.object(
            service.booking_view_repository,
            "create_view",
            side_effect=RepositoryConflict("access code taken"),
        ) as create_view:
            confirmation = await service.submit(_request([make_station()], booking_date))

        assert create_view.call_count == 4
        assert confirmation.access_code == confirmation.booking_ids[0][-8:].upper()
        assert db.query(Booking).count() == 1

    @pytest.mark.asyncio
    async def test_fallback_access_code_is_stored_and_resolvable(
        self, service, db, booking_date, morning_before, make_station, make_customer, make_booking
    ) -> None:
        earlier = make_booking(make_station(), make_customer(), time(12), time(13))
        db.add(
            BookingView(
                booking_id=earlier.id,
                booking_group_id=earlier.booking_group_id,
                access_code="TAKEN222",
            )
        )
        db.commit()

        with patch(
            "lounge.services.booking_service.generate_access_code", return_value="TAKEN222"
        ):
            confirmation = await service.submit(_request([make_station()], booking_date))

        assert confirmation.access_code == confirmation.booking_ids[0][-8:].upper()
        lookup = BookingLookupService(db, now_provider=lambda: morning_before)
        details = await lookup.find_by_access_code(confirmation.access_code)
        assert details.id == confirmation.booking_ids[0]

    @pytest.mark.asyncio
    async def test_unknown_customer_id_is_a_lookup_failure(
        self, service, db, booking_date, make_station
    ) -> None:
        customer = CustomerInfo(
            name="Ravi", phone="9000000001", customer_id="01J00000000000000000000000"
        )

        with pytest.raises(CustomerLookupFailed):
            await service.submit(_request([make_station()], booking_date, customer=customer))

        assert db.query(Booking).count() == 0

    @pytest.mark.asyncio
    async def test_known_customer_id_is_used_as_is(
        self, service, db, booking_date, make_station, make_customer
    ) -> None:
        existing = make_customer(name="Asha", phone="9000000099")
        customer = CustomerInfo(name="Ravi", phone="9000000001", customer_id=existing.id)

        confirmation = await service.submit(
            _request([make_station()], booking_date, customer=customer)
        )

        assert confirmation.customer_id == existing.id
        assert db.query(Customer).count() == 1

    @pytest.mark.asyncio
    async def test_unknown_station_is_an_insert_failure(
        self, service, db, booking_date
    ) -> None:
        ghost = StationSnapshot(
            id="01J00000000000000000000001",
            name="Removed console",
            station_type=StationType.PS5,
            hourly_rate=Decimal("300"),
        )

        with pytest.raises(BookingInsertFailed):
            await service.submit(_request([], booking_date, stations=[ghost]))

        assert db.query(Booking).count() == 0

    @pytest.mark.asyncio
    async def test_customer_lookup_failure(self, service, booking_date, make_station) -> None:
        with patch.object(
            service.customer_service.customer_repository,
            "find_by_phone",
            side_effect=RepositoryException("timeout"),
        ):
            with pytest.raises(CustomerLookupFailed):
                await service.submit(_request([make_station()], booking_date))

    @pytest.mark.asyncio
    async def test_invalidates_slots_and_today_cache(
        self, service, cache, booking_date, make_station
    ) -> None:
        station = make_station()
        slots = await service.availability_service.resolve(booking_date, 60)
        assert all(slot.is_available for slot in slots)
        cache.set(cache.key(CacheNamespace.TODAY_BOOKINGS, booking_date), [])

        await service.submit(_request([station], booking_date))

        assert cache.get(cache.key(CacheNamespace.TODAY_BOOKINGS, booking_date)) is None
        slots = await service.availability_service.resolve(booking_date, 60)
        eighteen = next(s for s in slots if s.start_time == time(18))
        assert not eighteen.is_available
