"""Data-directory configuration for the flight reservation system."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .store import FlightStore, ReservationStore, UserStore

DATA_DIR_ENV = "FLIGHT_RESERVATION_DATA"

USERS_FILE = "users.txt"
FLIGHTS_FILE = "flights.txt"
RESERVATIONS_FILE = "reservations.txt"


def default_data_dir() -> Path:
    """Return the directory configured through ``FLIGHT_RESERVATION_DATA``."""

    return Path(os.environ.get(DATA_DIR_ENV, "./data"))


@dataclass(frozen=True)
class Stores:
    """The three collections, shared by every service built on top of them."""

    users: UserStore
    flights: FlightStore
    reservations: ReservationStore
    data_dir: Path


def open_stores(data_dir: Optional[Path | str] = None) -> Stores:
    """Open (creating if needed) the collection files under ``data_dir``."""

    root = Path(data_dir) if data_dir is not None else default_data_dir()
    return Stores(
        users=UserStore(root / USERS_FILE),
        flights=FlightStore(root / FLIGHTS_FILE),
        reservations=ReservationStore(root / RESERVATIONS_FILE),
        data_dir=root,
    )


__all__ = [
    "DATA_DIR_ENV",
    "Stores",
    "default_data_dir",
    "open_stores",
]
