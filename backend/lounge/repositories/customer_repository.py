# backend/lounge/repositories/customer_repository.py
"""Customer lookups keyed by phone number."""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryConflict, RepositoryException
from ..models.customer import Customer
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CustomerRepository(BaseRepository[Customer]):
    def __init__(self, db: Session):
        super().__init__(db, Customer)

    def find_by_phone(self, phone: str) -> Optional[Customer]:
        try:
            return self.db.query(Customer).filter(Customer.phone == phone).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding customer by phone: {str(e)}")
            raise RepositoryException(f"Failed to look up customer: {str(e)}")

    def create_customer(self, name: str, phone: str, email: Optional[str] = None) -> Customer:
        """
        Insert and commit a customer.

        Raises:
            RepositoryConflict: another customer already owns this phone number
            RepositoryException: any other store failure
        """
        try:
            with self.transaction():
                customer = Customer(name=name, phone=phone, email=email)
                self.db.add(customer)
                self.db.flush()
            return customer
        except IntegrityError as exc:
            raise RepositoryConflict(f"Customer with phone already exists: {exc}") from exc
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create customer: {str(e)}") from e
