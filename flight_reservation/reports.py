"""Read-only usage reports over the flight and reservation collections."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Mapping

import pandas as pd

from .models import Reservation
from .store import FlightStore, ReservationStore


class ReportingService:
    def __init__(self, flights: FlightStore, reservations: ReservationStore) -> None:
        self.flights = flights
        self.reservations = reservations

    def _confirmed(self) -> List[Reservation]:
        return self.reservations.find(lambda reservation: reservation.is_confirmed)

    def count_confirmed_by_flight(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for reservation in self._confirmed():
            counts[reservation.flight_id] = counts.get(reservation.flight_id, 0) + 1
        return counts

    def free_seats_by_flight(self) -> Dict[str, int]:
        counts = self.count_confirmed_by_flight()
        return {
            flight.id: flight.total_seats - counts.get(flight.id, 0)
            for flight in self.flights.list_all()
        }

    def revenue_by_flight(self) -> Dict[str, float]:
        revenue: Dict[str, float] = {}
        for reservation in self._confirmed():
            revenue[reservation.flight_id] = (
                revenue.get(reservation.flight_id, 0.0) + reservation.amount_paid
            )
        return revenue

    def top_flights(self, limit: int) -> List[str]:
        """Flight ids by confirmed bookings, busiest first; ties keep first-seen order."""

        counts = self.count_confirmed_by_flight()
        ranked = sorted(counts, key=counts.__getitem__, reverse=True)
        return ranked[: max(limit, 0)]

    def user_history(self, user_id: str) -> List[Reservation]:
        return sorted(
            self.reservations.for_user(user_id),
            key=lambda reservation: reservation.created_at,
            reverse=True,
        )

    def capacity_summary(self) -> List[dict]:
        counts = self.count_confirmed_by_flight()
        revenue = self.revenue_by_flight()
        return [
            {
                "flight": flight.id,
                "route": flight.route,
                "carrier": flight.carrier,
                "departure": flight.departure_time.strftime("%Y-%m-%d %H:%M"),
                "capacity": flight.total_seats,
                "booked": counts.get(flight.id, 0),
                "free": flight.total_seats - counts.get(flight.id, 0),
                "revenue": round(revenue.get(flight.id, 0.0), 2),
            }
            for flight in self.flights.list_all()
        ]


def mapping_rows(mapping: Mapping[str, object], *, key: str, value: str) -> List[dict]:
    return [{key: k, value: v} for k, v in mapping.items()]


def as_dataframe(rows: Iterable[Mapping[str, object]]) -> pd.DataFrame:
    return pd.DataFrame(list(rows))


def export_rows(rows: Iterable[Mapping[str, object]], path: Path | str) -> Path:
    """Write report rows to ``path`` as CSV or XLSX depending on its suffix."""

    target = Path(path)
    dataframe = as_dataframe(rows)
    suffix = target.suffix.lower()
    if suffix == ".csv":
        dataframe.to_csv(target, index=False)
    elif suffix == ".xlsx":
        with pd.ExcelWriter(target, engine="openpyxl") as writer:
            dataframe.to_excel(writer, index=False, sheet_name="Report")
    else:
        raise ValueError(f"Unsupported export format '{target.suffix}'.")
    return target


__all__ = ["ReportingService", "as_dataframe", "export_rows", "mapping_rows"]
