# backend/lounge/routes/__init__.py
from .bookings import public_router, staff_router
from .metrics import router as metrics_router

__all__ = ["metrics_router", "public_router", "staff_router"]
