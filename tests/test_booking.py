from __future__ import annotations

import itertools
import multiprocessing
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from flight_reservation.database import open_stores
from flight_reservation.errors import (
    AlreadyCancelledError,
    FlightInUseError,
    FlightNotFoundError,
    ForbiddenError,
    NotFoundError,
    SeatInvalidError,
    SeatTakenError,
)
from flight_reservation.models import Flight, ReservationStatus, Role, User
from flight_reservation.services import BookingService, FlightCatalog

ALL_SIX = ["1A", "1B", "1C", "1D", "1E", "1F"]


def make_services(tmp_path, *, total_seats: int = 6, price: float = 100.0):
    stores = open_stores(tmp_path / "data")
    stores.flights.save(
        Flight(
            id="F1",
            origin="São Paulo",
            destination="Rio de Janeiro",
            departure_time=datetime(2030, 3, 1, 7, 45),
            carrier="LATAM",
            total_seats=total_seats,
            price=price,
        )
    )
    for user_id in ("U1", "U2"):
        stores.users.save(
            User(
                id=user_id,
                name=f"User {user_id}",
                email=f"{user_id.lower()}@email.com",
                password_hash="0" * 64,
                role=Role.CUSTOMER,
                created_at=datetime(2030, 1, 1),
            )
        )
    counter = itertools.count(1)
    booking = BookingService(
        stores.flights,
        stores.reservations,
        stores.users,
        id_factory=lambda: f"R{next(counter)}",
    )
    catalog = FlightCatalog(stores.flights, stores.reservations)
    return stores, booking, catalog


def test_book_and_cancel_scenario(tmp_path):
    stores, booking, _ = make_services(tmp_path)

    reservation_id = booking.create_reservation("U1", "F1", "1A")

    reservation = stores.reservations.get_by_id(reservation_id)
    assert reservation.status is ReservationStatus.CONFIRMED
    assert reservation.amount_paid == 100.0
    assert booking.available_seats("F1") == ["1B", "1C", "1D", "1E", "1F"]

    booking.cancel_reservation(reservation_id, "U1")
    assert booking.available_seats("F1") == ALL_SIX
    assert stores.reservations.get_by_id(reservation_id).status is ReservationStatus.CANCELLED


def test_cancelled_seat_can_be_booked_again(tmp_path):
    _, booking, _ = make_services(tmp_path)
    first = booking.create_reservation("U1", "F1", "1A")
    booking.cancel_reservation(first, "U1")

    second = booking.create_reservation("U2", "F1", "1A")

    assert second != first
    assert "1A" not in booking.available_seats("F1")


def test_cancel_twice_fails_already_cancelled(tmp_path):
    _, booking, _ = make_services(tmp_path)
    reservation_id = booking.create_reservation("U1", "F1", "1B")

    cancelled = booking.cancel_reservation(reservation_id, "U1")
    assert cancelled.status is ReservationStatus.CANCELLED
    with pytest.raises(AlreadyCancelledError):
        booking.cancel_reservation(reservation_id, "U1")


def test_cancel_by_non_owner_is_forbidden(tmp_path):
    stores, booking, _ = make_services(tmp_path)
    reservation_id = booking.create_reservation("U1", "F1", "1C")

    with pytest.raises(ForbiddenError):
        booking.cancel_reservation(reservation_id, "U2")
    assert stores.reservations.get_by_id(reservation_id).status is ReservationStatus.CONFIRMED


def test_cancel_unknown_reservation(tmp_path):
    _, booking, _ = make_services(tmp_path)
    with pytest.raises(NotFoundError):
        booking.cancel_reservation("nope", "U1")


def test_booking_validation_errors(tmp_path):
    _, booking, _ = make_services(tmp_path, total_seats=7)

    with pytest.raises(FlightNotFoundError):
        booking.create_reservation("U1", "F404", "1A")
    with pytest.raises(SeatInvalidError):
        booking.create_reservation("U1", "F1", "2B")
    with pytest.raises(NotFoundError):
        booking.create_reservation("U404", "F1", "1A")
    with pytest.raises(FlightNotFoundError):
        booking.available_seats("F404")

    booking.create_reservation("U1", "F1", "2a")
    with pytest.raises(SeatTakenError):
        booking.create_reservation("U2", "F1", "2A")


def test_booking_without_seat_takes_first_free_one(tmp_path):
    stores, booking, _ = make_services(tmp_path, total_seats=2)
    booking.create_reservation("U1", "F1", "1A")

    reservation_id = booking.create_reservation("U2", "F1")

    assert stores.reservations.get_by_id(reservation_id).seat == "1B"
    with pytest.raises(SeatTakenError):
        booking.create_reservation("U2", "F1")


def test_amount_paid_is_price_at_booking_time(tmp_path):
    stores, booking, catalog = make_services(tmp_path, price=100.0)
    early = booking.create_reservation("U1", "F1", "1A")
    catalog.edit_flight("F1", price=180.0)
    late = booking.create_reservation("U2", "F1", "1B")

    assert stores.reservations.get_by_id(early).amount_paid == 100.0
    assert stores.reservations.get_by_id(late).amount_paid == 180.0


def test_reservations_for_user(tmp_path):
    _, booking, _ = make_services(tmp_path)
    booking.create_reservation("U1", "F1", "1A")
    booking.create_reservation("U2", "F1", "1B")
    booking.create_reservation("U1", "F1", "1C")

    assert sorted(r.seat for r in booking.reservations_for_user("U1")) == ["1A", "1C"]


def test_concurrent_bookings_for_same_seat_only_one_wins(tmp_path):
    stores, booking, _ = make_services(tmp_path)
    attempts = 12

    def attempt(index: int) -> bool:
        try:
            booking.create_reservation("U1" if index % 2 else "U2", "F1", "1A")
            return True
        except SeatTakenError:
            return False

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        results = list(pool.map(attempt, range(attempts)))

    assert sum(results) == 1
    confirmed = stores.reservations.confirmed_for_flight("F1")
    assert [r.seat for r in confirmed] == ["1A"]


def test_concurrent_bookings_for_different_seats_all_succeed(tmp_path):
    stores, booking, _ = make_services(tmp_path, total_seats=30)
    seats = stores.flights.get_by_id("F1")
    wanted = [f"{row}{letter}" for row in range(1, 6) for letter in "ABCDEF"]
    assert len(wanted) == seats.total_seats

    with ThreadPoolExecutor(max_workers=10) as pool:
        ids = list(pool.map(lambda seat: booking.create_reservation("U1", "F1", seat), wanted))

    assert len(set(ids)) == len(wanted)
    assert booking.available_seats("F1") == []
    held = [r.seat for r in stores.reservations.confirmed_for_flight("F1")]
    assert sorted(held) == sorted(wanted)


def _book_from_child(data_dir: str, seat: str, barrier) -> None:
    stores = open_stores(data_dir)
    booking = BookingService(stores.flights, stores.reservations, stores.users)
    barrier.wait()
    try:
        booking.create_reservation("U1", "F1", seat)
    except SeatTakenError:
        sys.exit(3)


def _run_children(data_dir, seats):
    context = multiprocessing.get_context("fork")
    barrier = context.Barrier(len(seats))
    workers = [
        context.Process(target=_book_from_child, args=(str(data_dir), seat, barrier))
        for seat in seats
    ]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=60)
    return sorted(worker.exitcode for worker in workers)


needs_fork = pytest.mark.skipif(
    "fork" not in multiprocessing.get_all_start_methods(), reason="requires fork()"
)


@needs_fork
def test_separate_processes_book_different_seats_without_losing_any(tmp_path):
    stores, _, _ = make_services(tmp_path)

    assert _run_children(stores.data_dir, ALL_SIX) == [0] * 6

    held = [r.seat for r in stores.reservations.confirmed_for_flight("F1")]
    assert sorted(held) == ALL_SIX


@needs_fork
def test_separate_processes_for_same_seat_only_one_wins(tmp_path):
    stores, _, _ = make_services(tmp_path)

    assert _run_children(stores.data_dir, ["1A"] * 6) == [0, 3, 3, 3, 3, 3]

    confirmed = stores.reservations.confirmed_for_flight("F1")
    assert [r.seat for r in confirmed] == ["1A"]


def test_delete_flight_guarded_by_confirmed_reservation(tmp_path):
    stores, booking, catalog = make_services(tmp_path)
    reservation_id = booking.create_reservation("U1", "F1", "1A")

    with pytest.raises(FlightInUseError) as excinfo:
        catalog.delete_flight("F1")
    assert excinfo.value.active == 1
    assert stores.flights.get_by_id("F1") is not None

    booking.cancel_reservation(reservation_id, "U1")
    catalog.delete_flight("F1")
    assert stores.flights.get_by_id("F1") is None
    with pytest.raises(FlightNotFoundError):
        catalog.delete_flight("F1")


def test_edit_flight_cannot_drop_booked_seats(tmp_path):
    _, booking, catalog = make_services(tmp_path, total_seats=12)
    booking.create_reservation("U1", "F1", "2C")

    with pytest.raises(SeatInvalidError):
        catalog.edit_flight("F1", total_seats=6)

    updated = catalog.edit_flight("F1", total_seats=9, carrier="Azul")
    assert updated.total_seats == 9
    assert updated.carrier == "Azul"
    free = booking.available_seats("F1")
    assert "2C" not in free
    assert len(free) == 8


def test_add_and_search_flights(tmp_path):
    _, _, catalog = make_services(tmp_path)
    flight = catalog.add_flight(
        origin=" Brasília ",
        destination="Fortaleza",
        departure_time=datetime(2030, 3, 5, 18, 0),
        carrier="GOL",
        total_seats=144,
        price=720,
    )

    assert flight.origin == "Brasília"
    assert flight.price == 720.0
    assert [f.id for f in catalog.search_flights(origin="brasília")] == [flight.id]
    assert len(catalog.list_flights()) == 2
