# backend/lounge/repositories/factory.py
"""
Repository Factory for the lounge booking store.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .booking_view_repository import BookingViewRepository
    from .customer_repository import CustomerRepository
    from .station_repository import StationRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_station_repository(db: Session) -> "StationRepository":
        """Create repository for station queries."""
        from .station_repository import StationRepository

        return StationRepository(db)

    @staticmethod
    def create_customer_repository(db: Session) -> "CustomerRepository":
        """Create repository for customer lookups."""
        from .customer_repository import CustomerRepository

        return CustomerRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_booking_view_repository(db: Session) -> "BookingViewRepository":
        """Create repository for access codes."""
        from .booking_view_repository import BookingViewRepository

        return BookingViewRepository(db)
