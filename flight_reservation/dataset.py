"""Utilities to populate the data files with sample data for tests and demos."""
from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Dict, Sequence, Tuple

from .auth import AuthService
from .database import Stores
from .errors import DuplicateKeyError, SeatTakenError
from .services import BookingService, FlightCatalog

SAMPLE_USERS: Sequence[Tuple[str, str, str]] = (
    ("João Silva", "joao@email.com", "123456"),
    ("Maria Santos", "maria@email.com", "123456"),
    ("Pedro Oliveira", "pedro@email.com", "123456"),
)
SAMPLE_ROUTES: Sequence[Tuple[str, str, str, int, float]] = (
    ("São Paulo", "Rio de Janeiro", "LATAM", 180, 450.00),
    ("São Paulo", "Brasília", "GOL", 144, 380.00),
    ("Rio de Janeiro", "Salvador", "Azul", 156, 520.00),
    ("São Paulo", "Recife", "LATAM", 180, 680.00),
    ("Brasília", "Fortaleza", "GOL", 144, 720.00),
)


def _departure(rng: random.Random, days_from_now: int) -> datetime:
    start = datetime.now() + timedelta(days=days_from_now)
    hour = rng.randint(5, 22)
    minute = rng.choice((0, 15, 30, 45))
    return start.replace(hour=hour, minute=minute, second=0, microsecond=0)


def generate_sample_data(
    stores: Stores,
    *,
    flights: int = len(SAMPLE_ROUTES),
    bookings: int = 10,
    seed: int = 42,
) -> Dict[str, int]:
    """Create demo customers, flights and bookings; existing emails are skipped."""

    rng = random.Random(seed)
    auth = AuthService(stores.users)
    catalog = FlightCatalog(stores.flights, stores.reservations)
    booking = BookingService(stores.flights, stores.reservations, stores.users)

    user_ids = []
    for name, email, password in SAMPLE_USERS:
        try:
            user_ids.append(auth.register(name, email, password))
        except DuplicateKeyError:
            existing = stores.users.find_by_email(email)
            if existing is not None:
                user_ids.append(existing.id)

    flight_ids = []
    for index in range(flights):
        origin, destination, carrier, seats, price = SAMPLE_ROUTES[index % len(SAMPLE_ROUTES)]
        flight = catalog.add_flight(
            origin=origin,
            destination=destination,
            departure_time=_departure(rng, index + 1),
            carrier=carrier,
            total_seats=seats,
            price=price,
        )
        flight_ids.append(flight.id)

    successful = 0
    if flight_ids and user_ids:
        for _ in range(bookings):
            flight_id = rng.choice(flight_ids)
            seats = booking.available_seats(flight_id)
            if not seats:
                continue
            try:
                booking.create_reservation(rng.choice(user_ids), flight_id, rng.choice(seats))
            except SeatTakenError:
                continue
            successful += 1
    return {"users": len(user_ids), "flights": len(flight_ids), "bookings": successful}


__all__ = ["generate_sample_data", "SAMPLE_USERS", "SAMPLE_ROUTES"]
