"""Record types for the flight reservation system and their line encoding."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Sequence

FIELD_SEPARATOR = ";"
_FORBIDDEN = (FIELD_SEPARATOR, "\n", "\r")


class Role(str, Enum):
    CUSTOMER = "CLIENTE"
    ADMIN = "ADMIN"


class ReservationStatus(str, Enum):
    CONFIRMED = "CONFIRMADA"
    CANCELLED = "CANCELADA"
    # Declared for compatibility with existing data files; bookings are
    # confirmed immediately so nothing produces this state.
    PENDING = "PENDENTE"


def _join(fields: Sequence[str]) -> str:
    for value in fields:
        if any(token in value for token in _FORBIDDEN):
            raise ValueError(f"field value {value!r} contains a reserved character")
    return FIELD_SEPARATOR.join(fields)


def _split(line: str, expected: int, kind: str) -> List[str]:
    parts = line.rstrip("\r\n").split(FIELD_SEPARATOR)
    if len(parts) != expected:
        raise ValueError(f"{kind} line has {len(parts)} fields, expected {expected}")
    return parts


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    password_hash: str
    role: Role
    created_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_line(self) -> str:
        return _join(
            (
                self.id,
                self.name,
                self.email,
                self.password_hash,
                self.role.value,
                self.created_at.isoformat(),
            )
        )

    @classmethod
    def from_line(cls, line: str) -> "User":
        id_, name, email, password_hash, role, created_at = _split(line, 6, "user")
        return cls(
            id=id_,
            name=name,
            email=email,
            password_hash=password_hash,
            role=Role(role),
            created_at=datetime.fromisoformat(created_at),
        )


@dataclass(frozen=True)
class Flight:
    id: str
    origin: str
    destination: str
    departure_time: datetime
    carrier: str
    total_seats: int
    price: float

    def __post_init__(self) -> None:
        if self.total_seats < 1:
            raise ValueError("total_seats must be a positive integer")
        if not self.price >= 0:
            raise ValueError("price must be a non-negative number")

    @property
    def route(self) -> str:
        return f"{self.origin}-{self.destination}"

    def to_line(self) -> str:
        return _join(
            (
                self.id,
                self.origin,
                self.destination,
                self.departure_time.isoformat(),
                self.carrier,
                str(self.total_seats),
                repr(float(self.price)),
            )
        )

    @classmethod
    def from_line(cls, line: str) -> "Flight":
        id_, origin, destination, departure, carrier, seats, price = _split(line, 7, "flight")
        return cls(
            id=id_,
            origin=origin,
            destination=destination,
            departure_time=datetime.fromisoformat(departure),
            carrier=carrier,
            total_seats=int(seats),
            price=float(price),
        )


@dataclass(frozen=True)
class Reservation:
    id: str
    user_id: str
    flight_id: str
    seat: str
    status: ReservationStatus
    created_at: datetime
    amount_paid: float

    @property
    def is_confirmed(self) -> bool:
        return self.status is ReservationStatus.CONFIRMED

    def to_line(self) -> str:
        return _join(
            (
                self.id,
                self.user_id,
                self.flight_id,
                self.seat,
                self.status.value,
                self.created_at.isoformat(),
                repr(float(self.amount_paid)),
            )
        )

    @classmethod
    def from_line(cls, line: str) -> "Reservation":
        id_, user_id, flight_id, seat, status, created_at, amount = _split(
            line, 7, "reservation"
        )
        return cls(
            id=id_,
            user_id=user_id,
            flight_id=flight_id,
            seat=seat,
            status=ReservationStatus(status),
            created_at=datetime.fromisoformat(created_at),
            amount_paid=float(amount),
        )


__all__ = [
    "FIELD_SEPARATOR",
    "Role",
    "ReservationStatus",
    "User",
    "Flight",
    "Reservation",
]
