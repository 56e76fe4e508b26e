"""Bookings domain - Availability, pricing and reservations for courts, sessions and classes"""

__all__ = []
