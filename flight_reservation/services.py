"""Business logic for booking seats and managing the flight catalogue."""
from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from .errors import (
    AlreadyCancelledError,
    DuplicateKeyError,
    FlightInUseError,
    FlightNotFoundError,
    ForbiddenError,
    NotFoundError,
    ReservationSystemError,
    SeatInvalidError,
    SeatTakenError,
)
from .models import Flight, Reservation, ReservationStatus
from .seating import SeatAllocator, normalize_seat
from .store import FlightStore, ReservationStore, UserStore


def new_id() -> str:
    return str(uuid.uuid4())


class BookingService:
    """Create and cancel reservations without ever double-booking a seat.

    The availability check and the write of a new reservation happen inside
    one :meth:`ReservationStore.transaction`, so two callers racing for the
    same seat are serialised and the second one sees the first one's booking.
    """

    def __init__(
        self,
        flights: FlightStore,
        reservations: ReservationStore,
        users: Optional[UserStore] = None,
        *,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.flights = flights
        self.reservations = reservations
        self.users = users
        self._id_factory = id_factory
        self._clock = clock

    def _require_flight(self, flight_id: str) -> Flight:
        flight = self.flights.get_by_id(flight_id)
        if flight is None:
            raise FlightNotFoundError(flight_id)
        return flight

    def create_reservation(self, user_id: str, flight_id: str, seat: Optional[str] = None) -> str:
        """Book ``seat`` (or the first free seat) on ``flight_id`` for ``user_id``."""

        try:
            with self.reservations.transaction() as reservations:
                flight = self._require_flight(flight_id)
                if self.users is not None and self.users.get_by_id(user_id) is None:
                    raise NotFoundError(f"user '{user_id}' not found")

                if seat is None:
                    chosen = SeatAllocator.next_available_seat(flight, reservations)
                else:
                    chosen = normalize_seat(seat)
                    if not SeatAllocator.is_valid(flight.total_seats, chosen):
                        raise SeatInvalidError(chosen, flight_id)
                    if chosen in SeatAllocator.occupied_seats(flight_id, reservations):
                        raise SeatTakenError(chosen, flight_id)

                reservation = Reservation(
                    id=self._id_factory(),
                    user_id=user_id,
                    flight_id=flight_id,
                    seat=chosen,
                    status=ReservationStatus.CONFIRMED,
                    created_at=self._clock(),
                    amount_paid=flight.price,
                )
                if any(existing.id == reservation.id for existing in reservations):
                    raise DuplicateKeyError(f"reservation '{reservation.id}' already exists")
                reservations.append(reservation)
        except ReservationSystemError as exc:
            logger.warning(f"Booking rejected for user {user_id} on flight {flight_id}: {exc}")
            raise

        logger.info(
            f"Reservation {reservation.id} confirmed: user {user_id}, flight {flight_id}, "
            f"seat {reservation.seat}, paid {reservation.amount_paid:.2f}"
        )
        return reservation.id

    def cancel_reservation(self, reservation_id: str, requesting_user_id: str) -> Reservation:
        """Cancel a reservation owned by ``requesting_user_id``, freeing its seat."""

        try:
            with self.reservations.transaction() as reservations:
                index = next(
                    (i for i, item in enumerate(reservations) if item.id == reservation_id),
                    None,
                )
                if index is None:
                    raise NotFoundError(f"reservation '{reservation_id}' not found")
                current = reservations[index]
                if current.user_id != requesting_user_id:
                    raise ForbiddenError(
                        f"reservation '{reservation_id}' belongs to another user"
                    )
                if current.status is ReservationStatus.CANCELLED:
                    raise AlreadyCancelledError(reservation_id)
                cancelled = replace(current, status=ReservationStatus.CANCELLED)
                reservations[index] = cancelled
        except ReservationSystemError as exc:
            logger.warning(f"Cancellation rejected for {reservation_id}: {exc}")
            raise

        logger.info(f"Reservation {reservation_id} cancelled by user {requesting_user_id}")
        return cancelled

    def available_seats(self, flight_id: str) -> List[str]:
        flight = self._require_flight(flight_id)
        return SeatAllocator.available_seats(flight, self.reservations.for_flight(flight_id))

    def reservations_for_user(self, user_id: str) -> List[Reservation]:
        return self.reservations.for_user(user_id)

    def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = self.reservations.get_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError(f"reservation '{reservation_id}' not found")
        return reservation


class FlightCatalog:
    """Admin operations on flights."""

    def __init__(
        self,
        flights: FlightStore,
        reservations: ReservationStore,
        *,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.flights = flights
        self.reservations = reservations
        self._id_factory = id_factory

    def add_flight(
        self,
        *,
        origin: str,
        destination: str,
        departure_time: datetime,
        carrier: str,
        total_seats: int,
        price: float,
    ) -> Flight:
        flight = Flight(
            id=self._id_factory(),
            origin=origin.strip(),
            destination=destination.strip(),
            departure_time=departure_time,
            carrier=carrier.strip(),
            total_seats=total_seats,
            price=float(price),
        )
        self.flights.save(flight)
        logger.info(f"Flight {flight.id} created: {flight.route} on {flight.departure_time:%Y-%m-%d %H:%M}")
        return flight

    def get_flight(self, flight_id: str) -> Flight:
        flight = self.flights.get_by_id(flight_id)
        if flight is None:
            raise FlightNotFoundError(flight_id)
        return flight

    def edit_flight(
        self,
        flight_id: str,
        *,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departure_time: Optional[datetime] = None,
        carrier: Optional[str] = None,
        total_seats: Optional[int] = None,
        price: Optional[float] = None,
    ) -> Flight:
        """Apply the given changes; seat count may only shrink past free seats."""

        changes = {
            name: value
            for name, value in (
                ("origin", origin),
                ("destination", destination),
                ("departure_time", departure_time),
                ("carrier", carrier),
                ("total_seats", total_seats),
                ("price", None if price is None else float(price)),
            )
            if value is not None
        }
        # Hold the reservation lock so no booking lands on a seat being removed.
        with self.reservations.transaction() as reservations:
            flight = self.get_flight(flight_id)
            updated = replace(flight, **changes)
            if updated.total_seats < flight.total_seats:
                valid = set(SeatAllocator.seat_map(updated.total_seats))
                for seat in sorted(SeatAllocator.occupied_seats(flight_id, reservations)):
                    if seat not in valid:
                        raise SeatInvalidError(seat, flight_id)
            self.flights.update(updated)
        logger.info(f"Flight {flight_id} edited: {sorted(changes)}")
        return updated

    def delete_flight(self, flight_id: str) -> Flight:
        """Delete a flight that has no confirmed reservations."""

        with self.reservations.transaction() as reservations:
            self.get_flight(flight_id)
            active = sum(
                1 for item in reservations if item.flight_id == flight_id and item.is_confirmed
            )
            if active:
                logger.warning(f"Refused to delete flight {flight_id}: {active} active reservation(s)")
                raise FlightInUseError(flight_id, active)
            removed = self.flights.delete(flight_id)
        logger.info(f"Flight {flight_id} deleted")
        return removed

    def list_flights(self) -> List[Flight]:
        return self.flights.list_all()

    def search_flights(
        self,
        *,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departure_date: Optional[datetime] = None,
    ) -> List[Flight]:
        return self.flights.search(
            origin=origin, destination=destination, departure_date=departure_date
        )


__all__ = ["BookingService", "FlightCatalog", "new_id"]
