# backend/lounge/services/customer_service.py
"""Customer resolution for walk-in bookings, keyed by phone number."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    CustomerCreateFailed,
    CustomerLookupFailed,
    RepositoryConflict,
    RepositoryException,
)
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import CustomerInfo
from .base import BaseService

logger = logging.getLogger(__name__)


class CustomerService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.customer_repository = RepositoryFactory.create_customer_repository(db)

    @BaseService.measure_operation("resolve_customer")
    async def resolve_or_create_customer(self, phone: str, profile: CustomerInfo) -> str:
        """
        Return the id of the customer owning phone, creating one if needed.

        An explicit profile.customer_id wins over the phone, but must exist.

        Raises:
            CustomerLookupFailed: the lookup failed or the explicit id is unknown
            CustomerCreateFailed: the customer could not be created
        """
        if profile.customer_id:
            return await self._require_existing(profile.customer_id)

        existing_id = await self._find_id_by_phone(phone)
        if existing_id:
            self.logger.info(f"Found existing customer {existing_id}")
            return existing_id

        try:
            customer_id = await self.run_sync(self._create_customer, phone, profile)
        except RepositoryConflict:
            # Created concurrently by another submission
            existing_id = await self._find_id_by_phone(phone)
            if existing_id:
                return existing_id
            raise CustomerCreateFailed("phone number already registered")
        except RepositoryException as e:
            self.logger.error(f"Failed to create customer: {e}")
            raise CustomerCreateFailed(str(e)) from e

        self.logger.info(f"Created customer {customer_id}")
        return customer_id

    async def _require_existing(self, customer_id: str) -> str:
        try:
            customer = await self.run_sync(
                self.customer_repository.get_by_id, customer_id, False
            )
        except RepositoryException as e:
            self.logger.error(f"Customer lookup failed: {e}")
            raise CustomerLookupFailed(str(e)) from e
        if customer is None:
            self.logger.warning(f"Unknown customer id {customer_id} on booking request")
            raise CustomerLookupFailed(f"customer {customer_id} does not exist")
        return customer_id

    async def _find_id_by_phone(self, phone: str) -> Optional[str]:
        try:
            return await self.run_sync(self._customer_id_for_phone, phone)
        except RepositoryException as e:
            self.logger.error(f"Customer lookup failed: {e}")
            raise CustomerLookupFailed(str(e)) from e

    def _customer_id_for_phone(self, phone: str) -> Optional[str]:
        customer = self.customer_repository.find_by_phone(phone)
        return customer.id if customer else None

    def _create_customer(self, phone: str, profile: CustomerInfo) -> str:
        customer = self.customer_repository.create_customer(profile.name, phone, profile.email)
        return customer.id
