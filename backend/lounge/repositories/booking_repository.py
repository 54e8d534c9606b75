# backend/lounge/repositories/booking_repository.py
"""
Booking Repository for the lounge.

This repository handles:
- Date-based booking queries for availability and controller counts
- Group inserts with an in-transaction conflict re-check
- Customer lookups (newest first)
- Compare-and-set status transitions
"""

from datetime import date, datetime, time
import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import BookingStatus, StationType
from ..core.exceptions import RepositoryConflict, RepositoryException
from ..models.booking import Booking
from ..models.station import Station
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

CONFIRMED = BookingStatus.CONFIRMED.value

SLOT_UNIQUE_INDEX = "uq_bookings_confirmed_station_start"
# SQLite reports partial unique index violations by column, not by name
SQLITE_SLOT_UNIQUE_COLUMNS = "bookings.station_id, bookings.booking_date, bookings.start_time"


def is_slot_collision(exc: IntegrityError) -> bool:
    """Whether exc is a second confirmed booking for the same station, date and start."""
    message = str(exc.orig)
    return SLOT_UNIQUE_INDEX in message or SQLITE_SLOT_UNIQUE_COLUMNS in message


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Booking.station), joinedload(Booking.customer))

    # Availability queries

    def get_confirmed_for_date(
        self,
        booking_date: date,
        station_type: Optional[StationType] = None,
    ) -> List[Booking]:
        """Confirmed bookings on a date, optionally limited to one station type."""
        try:
            query = (
                self.db.query(Booking)
                .options(joinedload(Booking.station))
                .filter(Booking.booking_date == booking_date, Booking.status == CONFIRMED)
            )
            if station_type is not None:
                query = query.join(Station, Booking.station_id == Station.id).filter(
                    Station.station_type == StationType(station_type).value
                )
            return query.order_by(Booking.start_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching bookings for {booking_date}: {str(e)}")
            raise RepositoryException(f"Failed to fetch bookings: {str(e)}")

    def count_ps5_controller_bookings(
        self, booking_date: date, start_time: time, end_time: time
    ) -> int:
        """
        Count confirmed PS5 bookings holding a controller for a slot.

        A booking holds a controller for the slot when it starts exactly at the
        slot start and runs at least until the slot end.
        """
        try:
            return (
                self.db.query(Booking)
                .join(Station, Booking.station_id == Station.id)
                .filter(
                    Booking.booking_date == booking_date,
                    Booking.status == CONFIRMED,
                    Booking.start_time == start_time,
                    Booking.end_time >= end_time,
                    Station.station_type == StationType.PS5.value,
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting PS5 bookings for {booking_date}: {str(e)}")
            raise RepositoryException(f"Failed to count PS5 bookings: {str(e)}")

    def get_overlapping_station_ids(
        self,
        booking_date: date,
        start_time: time,
        end_time: time,
        station_ids: Optional[Sequence[str]] = None,
    ) -> Set[str]:
        """Stations holding a confirmed booking that overlaps [start_time, end_time)."""
        try:
            query = self.db.query(Booking.station_id).filter(
                Booking.booking_date == booking_date,
                Booking.status == CONFIRMED,
                and_(Booking.start_time < end_time, Booking.end_time > start_time),
            )
            if station_ids is not None:
                query = query.filter(Booking.station_id.in_(list(station_ids)))
            return {row[0] for row in query.all()}
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking overlaps for {booking_date}: {str(e)}")
            raise RepositoryException(f"Failed to check overlaps: {str(e)}")

    # Writes

    def create_group(self, rows: List[Dict[str, Any]]) -> List[Booking]:
        """
        Insert all bookings of a group in one transaction.

        The overlap check runs inside the same transaction as the insert, and
        the partial unique index backs it up for same-start duplicates.

        Raises:
            RepositoryConflict: a station already has an overlapping confirmed booking
            RepositoryException: any other store failure
        """
        if not rows:
            return []

        first = rows[0]
        station_ids = [row["station_id"] for row in rows]
        try:
            with self.transaction():
                taken = self.get_overlapping_station_ids(
                    first["booking_date"], first["start_time"], first["end_time"], station_ids
                )
                if taken:
                    raise RepositoryConflict(
                        "Stations already booked for this time", station_ids=sorted(taken)
                    )
                bookings = [Booking(**row) for row in rows]
                self.db.add_all(bookings)
                self.db.flush()
            return bookings
        except IntegrityError as exc:
            if is_slot_collision(exc):
                self.logger.warning(f"Slot collision inserting booking group: {exc}")
                raise RepositoryConflict(str(exc), station_ids=station_ids) from exc
            self.logger.error(f"Integrity error inserting booking group: {exc}")
            raise RepositoryException(f"Failed to insert bookings: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting booking group: {str(e)}")
            raise RepositoryException(f"Failed to insert bookings: {str(e)}") from e

    def transition_status(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        new_status: BookingStatus,
        updated_by: str,
        updated_at: datetime,
    ) -> bool:
        """
        Compare-and-set a booking's status.

        Returns:
            True if the row was still in expected_status and got updated
        """
        try:
            with self.transaction():
                result = self.db.execute(
                    update(Booking)
                    .where(Booking.id == booking_id, Booking.status == expected_status.value)
                    .values(
                        status=new_status.value,
                        status_updated_at=updated_at,
                        status_updated_by=updated_by,
                    )
                    .execution_options(synchronize_session="fetch")
                )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating status for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking status: {str(e)}") from e

    # Reads with details

    def get_for_date(self, booking_date: date) -> List[Booking]:
        """All bookings on a date with station and customer, earliest first."""
        try:
            query = self._apply_eager_loading(
                self.db.query(Booking).filter(Booking.booking_date == booking_date)
            )
            return query.order_by(Booking.start_time, Booking.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching bookings for {booking_date}: {str(e)}")
            raise RepositoryException(f"Failed to fetch bookings: {str(e)}")

    def get_for_customer(self, customer_id: str) -> List[Booking]:
        """Customer bookings, most recent date and start time first."""
        try:
            query = self._apply_eager_loading(
                self.db.query(Booking).filter(Booking.customer_id == customer_id)
            )
            return query.order_by(Booking.booking_date.desc(), Booking.start_time.desc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching bookings for customer {customer_id}: {str(e)}")
            raise RepositoryException(f"Failed to fetch customer bookings: {str(e)}")

    def get_all_with_details(self) -> List[Booking]:
        try:
            query = self._apply_eager_loading(self.db.query(Booking))
            return query.order_by(Booking.booking_date.desc(), Booking.start_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching bookings: {str(e)}")
            raise RepositoryException(f"Failed to fetch bookings: {str(e)}")

    def get_overdue_confirmed(self, now: datetime) -> List[Booking]:
        """Confirmed bookings whose end has passed."""
        try:
            candidates = (
                self.db.query(Booking)
                .filter(Booking.status == CONFIRMED, Booking.booking_date <= now.date())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching overdue bookings: {str(e)}")
            raise RepositoryException(f"Failed to fetch overdue bookings: {str(e)}")
        return [booking for booking in candidates if booking.ends_at < now]
