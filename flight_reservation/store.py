"""Line-oriented persisted collections with serialised read-modify-write.

Each :class:`RecordStore` owns one text file holding one record per line.
Every mutation loads the whole collection, changes it in memory and writes it
back through a temporary file that atomically replaces the file. The
sequence runs under a per-store thread lock and a sidecar lock file, so
concurrent ``save``/``update``/``delete`` calls on the same collection behave
as if they ran one after another, whether they come from threads or from
separate processes. Stores for different collections never block each other.

:meth:`RecordStore.transaction` exposes the same critical section to callers
that need to check the collection and write to it as a single step, such as
booking a seat.
"""
from __future__ import annotations

import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from operator import attrgetter
from pathlib import Path
from typing import Callable, Generic, Iterator, List, Optional, Protocol, Type, TypeVar

from filelock import FileLock

from .errors import DuplicateKeyError, NotFoundError, StorageError
from .models import Flight, Reservation, User


class LineRecord(Protocol):
    id: str

    def to_line(self) -> str:
        ...

    @classmethod
    def from_line(cls, line: str) -> "LineRecord":
        ...


T = TypeVar("T", bound=LineRecord)


class RecordStore(Generic[T]):
    """Persisted collection of ``record_type`` items keyed by ``key``."""

    def __init__(
        self,
        path: Path | str,
        record_type: Type[T],
        *,
        key: Callable[[T], str] = attrgetter("id"),
    ) -> None:
        self.path = Path(path)
        self.record_type = record_type
        self._key = key
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self.path.with_name(self.path.name + ".lock")))
        self._in_transaction = False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
        except OSError as exc:
            raise StorageError("cannot create collection file", self.path) from exc

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"

    # -- persistence -------------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        # The file lock is taken second; other processes only see that one.
        with self._lock:
            try:
                self._file_lock.acquire()
            except OSError as exc:
                raise StorageError("cannot lock collection", self.path) from exc
            try:
                yield
            finally:
                self._file_lock.release()

    def _load(self) -> List[T]:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                lines = fh.readlines()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageError("cannot read collection", self.path) from exc

        records: List[T] = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                records.append(self.record_type.from_line(line))
            except (ValueError, KeyError) as exc:
                raise StorageError(f"malformed record on line {number}", self.path) from exc
        return records

    def _persist(self, records: List[T]) -> None:
        # Encode everything first so an invalid field leaves the file untouched.
        payload = "".join(f"{record.to_line()}\n" for record in records)
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError("cannot write collection", self.path) from exc

    @contextmanager
    def transaction(self) -> Iterator[List[T]]:
        """Hold the writer lock and yield the collection for in-place changes.

        The list is written back when the block exits normally and discarded
        when it raises. Other mutating calls on this store must not be made
        from inside the block; reads are allowed but see the persisted state.
        """

        with self._lock:
            if self._in_transaction:
                raise RuntimeError(f"{self!r} is already inside a transaction")
            with self._exclusive():
                self._in_transaction = True
                try:
                    records = self._load()
                    snapshot = list(records)
                    yield records
                    if records != snapshot:
                        self._persist(records)
                finally:
                    self._in_transaction = False

    # -- contract ----------------------------------------------------------

    def _index_of(self, records: List[T], record_id: str) -> int:
        for index, record in enumerate(records):
            if self._key(record) == record_id:
                return index
        return -1

    def save(self, item: T) -> T:
        with self.transaction() as records:
            if self._index_of(records, self._key(item)) >= 0:
                raise DuplicateKeyError(
                    f"{self.record_type.__name__} '{self._key(item)}' already exists"
                )
            records.append(item)
        return item

    def update(self, item: T) -> T:
        with self.transaction() as records:
            index = self._index_of(records, self._key(item))
            if index < 0:
                raise NotFoundError(
                    f"{self.record_type.__name__} '{self._key(item)}' not found"
                )
            records[index] = item
        return item

    def delete(self, record_id: str) -> T:
        with self.transaction() as records:
            index = self._index_of(records, record_id)
            if index < 0:
                raise NotFoundError(f"{self.record_type.__name__} '{record_id}' not found")
            return records.pop(index)

    def get_by_id(self, record_id: str) -> Optional[T]:
        for record in self.list_all():
            if self._key(record) == record_id:
                return record
        return None

    def list_all(self) -> List[T]:
        with self._exclusive():
            return self._load()

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [record for record in self.list_all() if predicate(record)]


def _same_text(left: str, right: str) -> bool:
    return left.strip().casefold() == right.strip().casefold()


class UserStore(RecordStore[User]):
    def __init__(self, path: Path | str) -> None:
        super().__init__(path, User)

    def find_by_email(self, email: str) -> Optional[User]:
        matches = self.find(lambda user: _same_text(user.email, email))
        return matches[0] if matches else None


class FlightStore(RecordStore[Flight]):
    def __init__(self, path: Path | str) -> None:
        super().__init__(path, Flight)

    def find_by_origin(self, origin: str) -> List[Flight]:
        return self.find(lambda flight: _same_text(flight.origin, origin))

    def find_by_destination(self, destination: str) -> List[Flight]:
        return self.find(lambda flight: _same_text(flight.destination, destination))

    def search(
        self,
        *,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        departure_date: Optional[datetime] = None,
    ) -> List[Flight]:
        """Return flights matching every given filter, ignoring case for places."""

        flights = self.list_all()
        if origin:
            flights = [f for f in flights if _same_text(f.origin, origin)]
        if destination:
            flights = [f for f in flights if _same_text(f.destination, destination)]
        if departure_date:
            start = departure_date.replace(hour=0, minute=0, second=0, microsecond=0)
            end = start + timedelta(days=1)
            flights = [f for f in flights if start <= f.departure_time < end]
        return flights


class ReservationStore(RecordStore[Reservation]):
    def __init__(self, path: Path | str) -> None:
        super().__init__(path, Reservation)

    def for_user(self, user_id: str) -> List[Reservation]:
        return self.find(lambda reservation: reservation.user_id == user_id)

    def for_flight(self, flight_id: str) -> List[Reservation]:
        return self.find(lambda reservation: reservation.flight_id == flight_id)

    def confirmed_for_flight(self, flight_id: str) -> List[Reservation]:
        return self.find(
            lambda reservation: reservation.flight_id == flight_id and reservation.is_confirmed
        )


__all__ = [
    "LineRecord",
    "RecordStore",
    "UserStore",
    "FlightStore",
    "ReservationStore",
]
