"""Ephemeral keyed lease storage behind the seat hold table."""

from dataclasses import dataclass
from typing import Iterator, Protocol


@dataclass(frozen=True)
class Lease:
    """An advisory claim on a seat."""

    seat_id: str
    holder_id: str
    event_id: str
    connection_id: str | None
    acquired_at: float

    def age(self, now: float) -> float:
        return now - self.acquired_at

    def is_expired(self, now: float, timeout: float) -> bool:
        """A lease is expired once it is strictly older than the timeout."""
        return self.age(now) > timeout


class LeaseStore(Protocol):
    """
    Keyed lease storage.

    The hold table serializes access itself, so implementations only need
    single-operation atomicity. A shared TTL cache can implement this
    protocol to make holds visible across instances.
    """

    def get(self, key: str) -> Lease | None: ...

    def put(self, key: str, lease: Lease) -> None: ...

    def delete(self, key: str) -> Lease | None: ...

    def items(self) -> Iterator[tuple[str, Lease]]: ...

    def __len__(self) -> int: ...


class InMemoryLeaseStore:
    """Process-local lease store."""

    def __init__(self) -> None:
        self._leases: dict[str, Lease] = {}

    def get(self, key: str) -> Lease | None:
        return self._leases.get(key)

    def put(self, key: str, lease: Lease) -> None:
        self._leases[key] = lease

    def delete(self, key: str) -> Lease | None:
        return self._leases.pop(key, None)

    def items(self) -> Iterator[tuple[str, Lease]]:
        # Snapshot so callers may delete while iterating
        return iter(list(self._leases.items()))

    def __len__(self) -> int:
        return len(self._leases)
