"""Command line interface for booking seats and reading reports."""
from __future__ import annotations

import argparse
import sys
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from tabulate import tabulate

from .auth import AuthService, Session, require_admin
from .database import Stores, open_stores
from .dataset import generate_sample_data
from .errors import ReservationSystemError
from .logging_setup import configure_logging
from .reports import ReportingService, export_rows, mapping_rows
from .seating import SeatAllocator
from .services import BookingService, FlightCatalog

_DATETIME_FORMAT = "%Y-%m-%d %H:%M"
_DATE_FORMAT = "%Y-%m-%d"


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.strptime(value, _DATETIME_FORMAT)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected 'YYYY-MM-DD HH:MM', got '{value}'") from exc


def _parse_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, _DATE_FORMAT)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected 'YYYY-MM-DD', got '{value}'") from exc


def _render_table(rows: Iterable[Mapping[str, object]]) -> str:
    rows = list(rows)
    if not rows:
        return "(no rows)"
    return tabulate(rows, headers="keys", tablefmt="github", floatfmt=".2f")


def _login(stores: Stores, args: argparse.Namespace) -> Session:
    return AuthService(stores.users).login(args.email, args.password)


def _booking(stores: Stores) -> BookingService:
    return BookingService(stores.flights, stores.reservations, stores.users)


def _reservation_rows(stores: Stores, reservations) -> List[dict]:
    flights = {flight.id: flight for flight in stores.flights.list_all()}
    rows = []
    for reservation in reservations:
        flight = flights.get(reservation.flight_id)
        rows.append(
            {
                "reservation": reservation.id,
                "flight": reservation.flight_id,
                "route": flight.route if flight else "-",
                "seat": reservation.seat,
                "status": reservation.status.name.lower(),
                "booked at": reservation.created_at.strftime(_DATETIME_FORMAT),
                "paid": reservation.amount_paid,
            }
        )
    return rows


# -- commands ----------------------------------------------------------------


def _cmd_init(stores: Stores, args: argparse.Namespace) -> int:
    admin_id = AuthService(stores.users).ensure_admin()
    if admin_id:
        print(f"Administrator account created (id {admin_id}).")
    if args.sample:
        summary = generate_sample_data(stores, bookings=args.bookings)
        print(
            f"Sample data: {summary['users']} users, {summary['flights']} flights, "
            f"{summary['bookings']} bookings."
        )
    print(f"Data directory ready: {stores.data_dir}")
    return 0


def _cmd_register(stores: Stores, args: argparse.Namespace) -> int:
    user_id = AuthService(stores.users).register(args.name, args.user_email, args.user_password)
    print(f"User registered with id {user_id}")
    return 0


def _cmd_flights(stores: Stores, args: argparse.Namespace) -> int:
    catalog = FlightCatalog(stores.flights, stores.reservations)
    flights = catalog.search_flights(
        origin=args.origin, destination=args.destination, departure_date=args.date
    )
    free = ReportingService(stores.flights, stores.reservations).free_seats_by_flight()
    rows = [
        {
            "id": flight.id,
            "route": f"{flight.origin} -> {flight.destination}",
            "departure": flight.departure_time.strftime(_DATETIME_FORMAT),
            "carrier": flight.carrier,
            "seats": f"{free.get(flight.id, flight.total_seats)}/{flight.total_seats}",
            "price": flight.price,
        }
        for flight in flights
    ]
    print(_render_table(rows))
    return 0


def _cmd_seats(stores: Stores, args: argparse.Namespace) -> int:
    seats = _booking(stores).available_seats(args.flight_id)
    letters = len(SeatAllocator.seat_letters)
    by_row: Dict[str, List[str]] = {}
    for seat in seats:
        by_row.setdefault(seat[:-1], []).append(seat)
    print(f"{len(seats)} seat(s) available ({letters} per row):")
    for row, row_seats in by_row.items():
        print(f"  row {row:>3}: {' '.join(row_seats)}")
    return 0


def _cmd_book(stores: Stores, args: argparse.Namespace) -> int:
    session = _login(stores, args)
    booking = _booking(stores)
    reservation_id = booking.create_reservation(session.user_id, args.flight_id, args.seat)
    reservation = booking.get_reservation(reservation_id)
    print(
        f"Reservation {reservation.id} confirmed: seat {reservation.seat}, "
        f"paid {reservation.amount_paid:.2f}"
    )
    return 0


def _cmd_reservations(stores: Stores, args: argparse.Namespace) -> int:
    session = _login(stores, args)
    history = ReportingService(stores.flights, stores.reservations).user_history(session.user_id)
    print(_render_table(_reservation_rows(stores, history)))
    return 0


def _cmd_cancel(stores: Stores, args: argparse.Namespace) -> int:
    session = _login(stores, args)
    _booking(stores).cancel_reservation(args.reservation_id, session.user_id)
    print(f"Reservation {args.reservation_id} cancelled")
    return 0


def _cmd_add_flight(stores: Stores, args: argparse.Namespace) -> int:
    require_admin(_login(stores, args))
    flight = FlightCatalog(stores.flights, stores.reservations).add_flight(
        origin=args.origin,
        destination=args.destination,
        departure_time=args.departure,
        carrier=args.carrier,
        total_seats=args.seats,
        price=args.price,
    )
    print(f"Flight created with id {flight.id}")
    return 0


def _cmd_edit_flight(stores: Stores, args: argparse.Namespace) -> int:
    require_admin(_login(stores, args))
    flight = FlightCatalog(stores.flights, stores.reservations).edit_flight(
        args.flight_id,
        origin=args.origin,
        destination=args.destination,
        departure_time=args.departure,
        carrier=args.carrier,
        total_seats=args.seats,
        price=args.price,
    )
    print(f"Flight {flight.id} updated")
    return 0


def _cmd_delete_flight(stores: Stores, args: argparse.Namespace) -> int:
    require_admin(_login(stores, args))
    FlightCatalog(stores.flights, stores.reservations).delete_flight(args.flight_id)
    print(f"Flight {args.flight_id} deleted")
    return 0


def _report_rows(stores: Stores, args: argparse.Namespace, session: Session) -> List[dict]:
    reports = ReportingService(stores.flights, stores.reservations)
    if args.kind == "history":
        user_id = session.user_id
        if args.user:
            require_admin(session)
            user = stores.users.find_by_email(args.user)
            if user is None:
                raise ValueError(f"no user registered with email '{args.user}'")
            user_id = user.id
        return _reservation_rows(stores, reports.user_history(user_id))

    if args.kind == "top":
        # Customers default to the five most booked flights.
        limit = args.limit if args.limit is not None else (10 if session.is_admin else 5)
        counts = reports.count_confirmed_by_flight()
        return [
            {"rank": rank, "flight": flight_id, "confirmed": counts[flight_id]}
            for rank, flight_id in enumerate(reports.top_flights(limit), start=1)
        ]

    require_admin(session)
    if args.kind == "bookings":
        return mapping_rows(reports.count_confirmed_by_flight(), key="flight", value="confirmed")
    if args.kind == "free-seats":
        return mapping_rows(reports.free_seats_by_flight(), key="flight", value="free seats")
    if args.kind == "revenue":
        return mapping_rows(reports.revenue_by_flight(), key="flight", value="revenue")
    return reports.capacity_summary()


def _cmd_report(stores: Stores, args: argparse.Namespace) -> int:
    session = _login(stores, args)
    rows = _report_rows(stores, args, session)
    if args.export:
        target = export_rows(rows, args.export)
        print(f"Report written to {target}")
    else:
        print(_render_table(rows))
    return 0


# -- argument parsing --------------------------------------------------------


def _add_credentials(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--email", required=True, help="Email of the account to act as.")
    parser.add_argument("--password", required=True, help="Password of that account.")


def _add_flight_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--origin", required=required)
    parser.add_argument("--destination", required=required)
    parser.add_argument(
        "--departure", type=_parse_datetime, required=required, help="YYYY-MM-DD HH:MM"
    )
    parser.add_argument("--carrier", required=required)
    parser.add_argument("--seats", type=int, required=required, help="Total seat count.")
    parser.add_argument("--price", type=float, required=required)


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Book seats on scheduled flights.")
    parser.add_argument("--data-dir", help="Directory holding the data files (default: ./data).")
    parser.add_argument("--log-dir", help="Directory for system.log (default: ./logs).")
    parser.add_argument("--log-level", help="Minimum level written to system.log.")
    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init", help="Create the data files and the admin account.")
    init.add_argument("--sample", action="store_true", help="Also load demo users and flights.")
    init.add_argument("--bookings", type=int, default=10, help="Demo bookings to attempt.")
    init.set_defaults(handler=_cmd_init)

    register = commands.add_parser("register", help="Register a customer account.")
    register.add_argument("name")
    register.add_argument("user_email", metavar="email")
    register.add_argument("user_password", metavar="password")
    register.set_defaults(handler=_cmd_register)

    flights = commands.add_parser("flights", help="List flights with free seats.")
    flights.add_argument("--origin")
    flights.add_argument("--destination")
    flights.add_argument("--date", type=_parse_date, help="YYYY-MM-DD")
    flights.set_defaults(handler=_cmd_flights)

    seats = commands.add_parser("seats", help="Show the free seats of a flight.")
    seats.add_argument("flight_id")
    seats.set_defaults(handler=_cmd_seats)

    book = commands.add_parser("book", help="Book a seat (first free seat when omitted).")
    book.add_argument("flight_id")
    book.add_argument("seat", nargs="?")
    _add_credentials(book)
    book.set_defaults(handler=_cmd_book)

    reservations = commands.add_parser("reservations", help="List your reservations.")
    _add_credentials(reservations)
    reservations.set_defaults(handler=_cmd_reservations)

    cancel = commands.add_parser("cancel", help="Cancel one of your reservations.")
    cancel.add_argument("reservation_id")
    _add_credentials(cancel)
    cancel.set_defaults(handler=_cmd_cancel)

    add_flight = commands.add_parser("add-flight", help="[admin] Create a flight.")
    _add_flight_fields(add_flight, required=True)
    _add_credentials(add_flight)
    add_flight.set_defaults(handler=_cmd_add_flight)

    edit_flight = commands.add_parser("edit-flight", help="[admin] Edit a flight.")
    edit_flight.add_argument("flight_id")
    _add_flight_fields(edit_flight, required=False)
    _add_credentials(edit_flight)
    edit_flight.set_defaults(handler=_cmd_edit_flight)

    delete_flight = commands.add_parser(
        "delete-flight", help="[admin] Delete a flight without confirmed reservations."
    )
    delete_flight.add_argument("flight_id")
    _add_credentials(delete_flight)
    delete_flight.set_defaults(handler=_cmd_delete_flight)

    report = commands.add_parser("report", help="Usage reports.")
    report.add_argument(
        "kind",
        choices=["bookings", "free-seats", "revenue", "top", "history", "capacity"],
    )
    report.add_argument(
        "--limit",
        type=int,
        help="Rows for the 'top' report (default 10 for administrators, 5 otherwise).",
    )
    report.add_argument("--user", help="[admin] Email whose history to show.")
    report.add_argument("--export", help="Write the report to a .csv or .xlsx file.")
    _add_credentials(report)
    report.set_defaults(handler=_cmd_report)

    return parser.parse_args(list(argv))


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    handler: Callable[[Stores, argparse.Namespace], int] = args.handler
    try:
        configure_logging(args.log_dir, level=args.log_level)
        stores = open_stores(args.data_dir)
        return handler(stores, args)
    except (ReservationSystemError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
