from datetime import datetime

import pytest

from flight_reservation.errors import SeatTakenError
from flight_reservation.models import Flight, Reservation, ReservationStatus
from flight_reservation.seating import SeatAllocator


def _flight(total_seats: int) -> Flight:
    return Flight(
        id="F1",
        origin="GRU",
        destination="GIG",
        departure_time=datetime(2030, 1, 1, 10, 0),
        carrier="GOL",
        total_seats=total_seats,
        price=100.0,
    )


def _reservation(seat: str, status=ReservationStatus.CONFIRMED, flight_id="F1") -> Reservation:
    return Reservation(
        id=f"R-{seat}-{status.name}",
        user_id="U1",
        flight_id=flight_id,
        seat=seat,
        status=status,
        created_at=datetime(2030, 1, 1),
        amount_paid=100.0,
    )


def test_seat_map_truncates_partial_row():
    assert SeatAllocator.seat_map(7) == ["1A", "1B", "1C", "1D", "1E", "1F", "2A"]
    assert SeatAllocator.seat_map(6)[-1] == "1F"
    assert SeatAllocator.seat_map(1) == ["1A"]


@pytest.mark.parametrize("total", [1, 5, 6, 13, 144, 180])
def test_seat_map_is_length_exact_and_deterministic(total):
    seats = SeatAllocator.seat_map(total)
    assert len(seats) == total
    assert len(set(seats)) == total
    assert seats == SeatAllocator.seat_map(total)


def test_validity_follows_seat_map():
    assert SeatAllocator.is_valid(7, "2A")
    assert not SeatAllocator.is_valid(7, "2B")
    assert not SeatAllocator.is_valid(6, "1G")


def test_available_seats_ignore_cancelled_and_other_flights():
    reservations = [
        _reservation("1A"),
        _reservation("1B", status=ReservationStatus.CANCELLED),
        _reservation("1C", flight_id="F2"),
    ]

    assert SeatAllocator.available_seats(_flight(6), reservations) == [
        "1B",
        "1C",
        "1D",
        "1E",
        "1F",
    ]


def test_next_available_seat():
    assert SeatAllocator.next_available_seat(_flight(3), [_reservation("1A")]) == "1B"
    full = [_reservation(seat) for seat in ("1A", "1B")]
    with pytest.raises(SeatTakenError):
        SeatAllocator.next_available_seat(_flight(2), full)
