"""Exceptions raised by the flight reservation system."""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class ReservationSystemError(RuntimeError):
    """Base class for every recoverable error raised by the system."""


class NotFoundError(ReservationSystemError):
    """Raised when a record with the requested id does not exist."""


class FlightNotFoundError(NotFoundError):
    def __init__(self, flight_id: str):
        super().__init__(f"flight '{flight_id}' not found")
        self.flight_id = flight_id


class DuplicateKeyError(ReservationSystemError):
    """Raised when creating a record whose key is already taken."""


class SeatInvalidError(ReservationSystemError):
    def __init__(self, seat: str, flight_id: str):
        super().__init__(f"seat '{seat}' does not exist on flight '{flight_id}'")
        self.seat = seat
        self.flight_id = flight_id


class SeatTakenError(ReservationSystemError):
    def __init__(self, seat: Optional[str], flight_id: str):
        if seat is None:
            message = f"flight '{flight_id}' is sold out"
        else:
            message = f"seat '{seat}' on flight '{flight_id}' is already booked"
        super().__init__(message)
        self.seat = seat
        self.flight_id = flight_id


class ForbiddenError(ReservationSystemError):
    """Raised when a caller acts on a record it does not own."""


class AlreadyCancelledError(ReservationSystemError):
    def __init__(self, reservation_id: str):
        super().__init__(f"reservation '{reservation_id}' is already cancelled")
        self.reservation_id = reservation_id


class FlightInUseError(ReservationSystemError):
    def __init__(self, flight_id: str, active: int):
        super().__init__(
            f"flight '{flight_id}' cannot be deleted: {active} confirmed reservation(s)"
        )
        self.flight_id = flight_id
        self.active = active


class AuthenticationError(ReservationSystemError):
    """Raised when an email/password pair does not match a user."""


class StorageError(ReservationSystemError):
    """Raised when a collection file cannot be read, parsed or written."""

    def __init__(self, message: str, path: Path):
        super().__init__(f"{message}: {path}")
        self.path = path


__all__ = [
    "ReservationSystemError",
    "NotFoundError",
    "FlightNotFoundError",
    "DuplicateKeyError",
    "SeatInvalidError",
    "SeatTakenError",
    "ForbiddenError",
    "AlreadyCancelledError",
    "FlightInUseError",
    "AuthenticationError",
    "StorageError",
]
