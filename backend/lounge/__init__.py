"""Booking and availability engine for the gaming lounge."""

__version__ = "0.1.0"
