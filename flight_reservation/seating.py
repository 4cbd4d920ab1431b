"""Seat maps and seat availability."""
from __future__ import annotations

from typing import Iterable, List, Sequence, Set

from .errors import SeatTakenError
from .models import Flight, Reservation


class SeatAllocator:
    """Seat allocation helper that ensures deterministic seat numbering.

    Seats are laid out in rows of six, lettered A to F. Seat maps are derived
    from the seat count on demand and never stored.
    """

    seat_letters: Sequence[str] = tuple("ABCDEF")

    @classmethod
    def seat_map(cls, total_seats: int) -> List[str]:
        seats: List[str] = []
        row = 1
        while len(seats) < total_seats:
            for letter in cls.seat_letters:
                if len(seats) >= total_seats:
                    break
                seats.append(f"{row}{letter}")
            row += 1
        return seats

    @classmethod
    def is_valid(cls, total_seats: int, seat: str) -> bool:
        return seat in cls.seat_map(total_seats)

    @staticmethod
    def occupied_seats(flight_id: str, reservations: Iterable[Reservation]) -> Set[str]:
        return {
            reservation.seat
            for reservation in reservations
            if reservation.flight_id == flight_id and reservation.is_confirmed
        }

    @classmethod
    def available_seats(cls, flight: Flight, reservations: Iterable[Reservation]) -> List[str]:
        taken = cls.occupied_seats(flight.id, reservations)
        return [seat for seat in cls.seat_map(flight.total_seats) if seat not in taken]

    @classmethod
    def next_available_seat(cls, flight: Flight, reservations: Iterable[Reservation]) -> str:
        free = cls.available_seats(flight, reservations)
        if not free:
            raise SeatTakenError(None, flight.id)
        return free[0]


def normalize_seat(seat: str) -> str:
    return seat.strip().upper()


__all__ = ["SeatAllocator", "normalize_seat"]
