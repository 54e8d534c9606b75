# backend/lounge/repositories/booking_view_repository.py
"""Access-code rows for booking groups."""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryConflict, RepositoryException
from ..models.booking import Booking, BookingView
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingViewRepository(BaseRepository[BookingView]):
    def __init__(self, db: Session):
        super().__init__(db, BookingView)

    def create_view(self, booking_id: str, booking_group_id: str, access_code: str) -> BookingView:
        """
        Insert and commit an access code row.

        Raises:
            RepositoryConflict: the code (or the booking) already has a row
        """
        try:
            with self.transaction():
                view = BookingView(
                    booking_id=booking_id,
                    booking_group_id=booking_group_id,
                    access_code=access_code,
                )
                self.db.add(view)
                self.db.flush()
            return view
        except IntegrityError as exc:
            raise RepositoryConflict(f"Access code collision: {exc}") from exc
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to store access code: {str(e)}") from e

    def get_by_access_code(self, access_code: str) -> Optional[BookingView]:
        try:
            return (
                self.db.query(BookingView)
                .options(
                    joinedload(BookingView.booking).joinedload(Booking.station),
                    joinedload(BookingView.booking).joinedload(Booking.customer),
                )
                .filter(BookingView.access_code == access_code)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error looking up access code: {str(e)}")
            raise RepositoryException(f"Failed to look up access code: {str(e)}")

    def get_access_code_for_booking(self, booking_id: str) -> Optional[str]:
        """Code for a booking's group, whichever booking of the group is asked for."""
        try:
            booking = (
                self.db.query(Booking.booking_group_id).filter(Booking.id == booking_id).first()
            )
            if booking is None:
                return None
            row = (
                self.db.query(BookingView.access_code)
                .filter(BookingView.booking_group_id == booking[0])
                .first()
            )
            return row[0] if row else None
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching access code for {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to fetch access code: {str(e)}")

    def touch(self, booking_id: str, accessed_at: datetime) -> None:
        """Record the last time a customer opened the booking."""
        try:
            with self.transaction():
                self.db.execute(
                    update(BookingView)
                    .where(BookingView.booking_id == booking_id)
                    .values(last_accessed_at=accessed_at)
                    .execution_options(synchronize_session="fetch")
                )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to update last access: {str(e)}") from e
