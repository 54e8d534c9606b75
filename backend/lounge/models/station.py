# backend/lounge/models/station.py
"""
Station model.

A station is a bookable PS5 console or pool table. PS5 consoles may carry
controller units: non-bookable child rows that share the console's
occupancy.
"""

import logging
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
import ulid

from ..core.enums import StationType
from ..database import Base

logger = logging.getLogger(__name__)


class Station(Base):
    """Physical gaming station."""

    __tablename__ = "stations"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(120), nullable=False)
    station_type = Column("type", String(20), nullable=False, index=True)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    is_occupied = Column(Boolean, nullable=False, default=False)

    is_controller_unit = Column(Boolean, nullable=False, default=False)
    parent_station_id = Column(String(26), ForeignKey("stations.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    parent = relationship("Station", remote_side=[id], back_populates="controller_units")
    controller_units = relationship("Station", back_populates="parent")

    __table_args__ = (
        CheckConstraint("type IN ('ps5', '8ball')", name="ck_stations_type"),
        CheckConstraint("hourly_rate >= 0", name="ck_stations_rate_non_negative"),
        CheckConstraint(
            "parent_station_id IS NULL OR is_controller_unit",
            name="ck_stations_parent_only_for_controllers",
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if self.is_occupied is None:
            self.is_occupied = False
        if self.is_controller_unit is None:
            self.is_controller_unit = False

    @validates("station_type")
    def _validate_station_type(self, _key: str, value: Any) -> str:
        return StationType(value).value

    @validates("parent")
    def _validate_parent(self, _key: str, parent: "Station") -> "Station":
        if parent is None:
            return parent
        if not self.is_controller_unit:
            raise ValueError("Only controller units can be attached to a console")
        if parent.is_controller_unit:
            raise ValueError("Controller units cannot have children")
        if parent.station_type != StationType.PS5.value:
            raise ValueError("Controller units can only be attached to PS5 consoles")
        return parent

    @property
    def is_bookable(self) -> bool:
        return not self.is_controller_unit

    @property
    def is_effectively_occupied(self) -> bool:
        """A console is occupied if itself or any attached controller unit is."""
        if self.is_occupied:
            return True
        return any(unit.is_occupied for unit in self.controller_units)

    def __repr__(self) -> str:
        return f"<Station {self.id}: {self.name} ({self.station_type})>"
