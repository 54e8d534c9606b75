# backend/lounge/routes/bookings.py
"""
Booking routes.

Public endpoints (walk-in customers, booking kiosk):
    GET /api/public/stations - Bookable stations
    GET /api/public/slots - Time slots for a date and duration
    GET /api/public/stations/available - Stations free for a slot
    GET /api/public/controllers - PS5 controllers left for a slot
    POST /api/public/bookings - Book one or more stations
    GET /api/public/bookings/lookup - Find bookings by access code or phone
    POST /api/public/bookings/{booking_id}/cancel - Customer cancellation

Staff endpoints:
    GET /api/staff/bookings/today - Today's bookings grouped by start time
    GET /api/staff/bookings/stats - Booking statistics
    POST /api/staff/bookings/{booking_id}/cancel - Staff cancellation
    POST /api/staff/bookings/{booking_id}/no-show - Mark a no-show

All business logic delegated to the services.
"""

import asyncio
from datetime import date, time
import logging
from typing import List, NoReturn, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..api.dependencies import (
    get_availability_service,
    get_booking_lookup_service,
    get_booking_service,
    get_booking_status_service,
    get_controller_allocator,
    get_station_repository,
    get_today_bookings_service,
)
from ..core.enums import StationType, StatusActor
from ..core.exceptions import (
    DomainException,
    NotFoundException,
    RepositoryException,
    ServiceException,
)
from ..repositories.station_repository import StationRepository
from ..schemas.booking import (
    BookingConfirmation,
    BookingCreateBody,
    BookingDetails,
    BookingRequest,
    BookingStats,
    ControllerAvailability,
    StatusChangeResponse,
    TimeSlot,
    TodayBookings,
)
from ..schemas.station import StationSnapshot
from ..services.availability_service import AvailabilityService, station_snapshot
from ..services.booking_lookup_service import BookingLookupService
from ..services.booking_service import BookingService
from ..services.booking_status import BookingStatusService, StatusMutation
from ..services.controller_allocator import ControllerAllocator
from ..services.today_bookings_service import TodayBookingsService

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/api/public", tags=["public"])
staff_router = APIRouter(prefix="/api/staff", tags=["staff"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _slot(start_time: Optional[time], end_time: Optional[time]) -> Optional[TimeSlot]:
    if start_time is None or end_time is None:
        return None
    return TimeSlot(start_time=start_time, end_time=end_time)


def _status_response(mutation: StatusMutation) -> StatusChangeResponse:
    return StatusChangeResponse(
        booking_id=mutation.booking_id,
        status=mutation.to_status,
        updated_by=mutation.updated_by.value,
        updated_at=mutation.updated_at,
    )


# Public


@public_router.get("/stations", response_model=List[StationSnapshot])
async def list_stations(
    station_type: Optional[StationType] = Query(None),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[StationSnapshot]:
    try:
        return await availability_service.list_stations(station_type)
    except DomainException as e:
        handle_domain_exception(e)


@public_router.get("/slots", response_model=List[TimeSlot])
async def get_time_slots(
    booking_date: date = Query(..., alias="date", description="Date (YYYY-MM-DD)"),
    duration: int = Query(60, description="Slot length in minutes"),
    station_type: Optional[StationType] = Query(None),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[TimeSlot]:
    """Time slots for a date; unavailable slots are included and flagged."""
    try:
        return await availability_service.resolve(booking_date, duration, station_type)
    except DomainException as e:
        handle_domain_exception(e)


@public_router.get("/stations/available", response_model=List[StationSnapshot])
async def get_available_stations(
    booking_date: date = Query(..., alias="date"),
    start_time: time = Query(...),
    end_time: time = Query(...),
    station_type: Optional[StationType] = Query(None),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[StationSnapshot]:
    try:
        slot = TimeSlot(start_time=start_time, end_time=end_time)
        return await availability_service.available_stations(booking_date, slot, station_type)
    except DomainException as e:
        handle_domain_exception(e)


@public_router.get("/controllers", response_model=ControllerAvailability)
async def get_available_controllers(
    booking_date: Optional[date] = Query(None, alias="date"),
    start_time: Optional[time] = Query(None),
    end_time: Optional[time] = Query(None),
    allocator: ControllerAllocator = Depends(get_controller_allocator),
) -> ControllerAvailability:
    available = await allocator.available_controllers(booking_date, _slot(start_time, end_time))
    return ControllerAvailability(
        available_controllers=available, total_controllers=allocator.total_controllers
    )


@public_router.post(
    "/bookings", response_model=BookingConfirmation, status_code=status.HTTP_201_CREATED
)
async def create_booking(
    body: BookingCreateBody,
    station_repository: StationRepository = Depends(get_station_repository),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingConfirmation:
    """
    Book every listed station for the same slot.

    Station rates are always read from the store, never from the client.
    """
    try:
        stations = []
        if body.station_ids:
            try:
                rows = await asyncio.to_thread(station_repository.get_by_ids, body.station_ids)
                stations = [station_snapshot(row) for row in rows]
            except RepositoryException as e:
                raise ServiceException(
                    "Failed to load stations", code="STATIONS_UNAVAILABLE"
                ) from e
            missing = sorted(set(body.station_ids) - {s.id for s in stations})
            if missing:
                raise NotFoundException(
                    "Unknown stations", code="STATION_NOT_FOUND", details={"station_ids": missing}
                )
            order = {station_id: i for i, station_id in enumerate(body.station_ids)}
            stations.sort(key=lambda s: order[s.id])

        request = BookingRequest(
            stations=stations,
            booking_date=body.booking_date,
            time_slot=_slot(body.start_time, body.end_time),
            duration_minutes=body.duration_minutes,
            customer=body.customer,
            coupon_code=body.coupon_code,
            discount_percentage=body.discount_percentage,
        )
        return await booking_service.submit(request)
    except DomainException as e:
        handle_domain_exception(e)


@public_router.get(
    "/bookings/lookup", response_model=Union[BookingDetails, List[BookingDetails]]
)
async def lookup_bookings(
    code: Optional[str] = Query(None, description="Access code from the confirmation"),
    phone: Optional[str] = Query(None, description="Phone number used for booking"),
    lookup_service: BookingLookupService = Depends(get_booking_lookup_service),
) -> Union[BookingDetails, List[BookingDetails]]:
    """Single booking by access code, or every booking for a phone number."""
    try:
        if code:
            return await lookup_service.find_by_access_code(code)
        if phone:
            return await lookup_service.find_by_phone(phone)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Provide either code or phone"
        )
    except DomainException as e:
        handle_domain_exception(e)


@public_router.post("/bookings/{booking_id}/cancel", response_model=StatusChangeResponse)
async def cancel_booking_as_customer(
    booking_id: str,
    status_service: BookingStatusService = Depends(get_booking_status_service),
) -> StatusChangeResponse:
    try:
        mutation = await status_service.cancel_booking(booking_id, StatusActor.CUSTOMER)
        return _status_response(mutation)
    except DomainException as e:
        handle_domain_exception(e)


# Staff


@staff_router.get("/bookings/today", response_model=TodayBookings)
async def get_today_bookings(
    refresh: bool = Query(False, description="Complete overdue bookings and bypass the cache"),
    today_service: TodayBookingsService = Depends(get_today_bookings_service),
    status_service: BookingStatusService = Depends(get_booking_status_service),
) -> TodayBookings:
    try:
        if refresh:
            await status_service.sweep()
        return await today_service.get_today(force_refresh=refresh)
    except DomainException as e:
        handle_domain_exception(e)


@staff_router.get("/bookings/stats", response_model=BookingStats)
async def get_booking_stats(
    lookup_service: BookingLookupService = Depends(get_booking_lookup_service),
) -> BookingStats:
    try:
        return await lookup_service.stats()
    except DomainException as e:
        handle_domain_exception(e)


@staff_router.post("/bookings/{booking_id}/cancel", response_model=StatusChangeResponse)
async def cancel_booking_as_staff(
    booking_id: str,
    status_service: BookingStatusService = Depends(get_booking_status_service),
) -> StatusChangeResponse:
    try:
        mutation = await status_service.cancel_booking(booking_id, StatusActor.STAFF)
        return _status_response(mutation)
    except DomainException as e:
        handle_domain_exception(e)


@staff_router.post("/bookings/{booking_id}/no-show", response_model=StatusChangeResponse)
async def mark_booking_no_show(
    booking_id: str,
    status_service: BookingStatusService = Depends(get_booking_status_service),
) -> StatusChangeResponse:
    try:
        mutation = await status_service.mark_no_show(booking_id)
        return _status_response(mutation)
    except DomainException as e:
        handle_domain_exception(e)
