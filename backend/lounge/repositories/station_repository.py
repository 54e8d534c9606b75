# backend/lounge/repositories/station_repository.py
"""Read-only station queries. Controller units are never bookable."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.enums import StationType
from ..core.exceptions import RepositoryException
from ..models.station import Station
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class StationRepository(BaseRepository[Station]):
    def __init__(self, db: Session):
        super().__init__(db, Station)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(Station.controller_units))

    def _bookable_query(self, station_type: Optional[StationType] = None) -> Query:
        query = self.db.query(Station).filter(Station.is_controller_unit.is_(False))
        if station_type is not None:
            query = query.filter(Station.station_type == StationType(station_type).value)
        return query

    def list_bookable(self, station_type: Optional[StationType] = None) -> List[Station]:
        """All bookable stations ordered by type then name."""
        try:
            query = self._apply_eager_loading(self._bookable_query(station_type))
            return query.order_by(Station.station_type, Station.name).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing stations: {str(e)}")
            raise RepositoryException(f"Failed to list stations: {str(e)}")

    def count_bookable(self, station_type: Optional[StationType] = None) -> int:
        try:
            return self._bookable_query(station_type).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting stations: {str(e)}")
            raise RepositoryException(f"Failed to count stations: {str(e)}")

    def get_by_ids(self, station_ids: Sequence[str]) -> List[Station]:
        if not station_ids:
            return []
        try:
            query = self._apply_eager_loading(self._bookable_query())
            return query.filter(Station.id.in_(list(station_ids))).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading stations {station_ids}: {str(e)}")
            raise RepositoryException(f"Failed to load stations: {str(e)}")
