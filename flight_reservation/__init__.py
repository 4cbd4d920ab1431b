"""Flight seat reservation system backed by line-oriented data files."""
from .auth import AuthService, Session, hash_password, require_admin
from .database import Stores, open_stores
from .dataset import generate_sample_data
from .errors import (
    AlreadyCancelledError,
    AuthenticationError,
    DuplicateKeyError,
    FlightInUseError,
    FlightNotFoundError,
    ForbiddenError,
    NotFoundError,
    ReservationSystemError,
    SeatInvalidError,
    SeatTakenError,
    StorageError,
)
from .models import Flight, Reservation, ReservationStatus, Role, User
from .reports import ReportingService
from .seating import SeatAllocator
from .services import BookingService, FlightCatalog
from .store import FlightStore, RecordStore, ReservationStore, UserStore

__all__ = [
    "AuthService",
    "Session",
    "hash_password",
    "require_admin",
    "Stores",
    "open_stores",
    "generate_sample_data",
    "AlreadyCancelledError",
    "AuthenticationError",
    "DuplicateKeyError",
    "FlightInUseError",
    "FlightNotFoundError",
    "ForbiddenError",
    "NotFoundError",
    "ReservationSystemError",
    "SeatInvalidError",
    "SeatTakenError",
    "StorageError",
    "Flight",
    "Reservation",
    "ReservationStatus",
    "Role",
    "User",
    "ReportingService",
    "SeatAllocator",
    "BookingService",
    "FlightCatalog",
    "FlightStore",
    "RecordStore",
    "ReservationStore",
    "UserStore",
]
