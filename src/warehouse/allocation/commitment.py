"""Soft stock commitments.

A commitment earmarks base units of one SKU at one location (optionally a
specific lot) for a fulfillment item. It stays ``active`` until it is
``released`` (cancellation, re-allocation) or ``consumed`` (shipment).
Active commitments are subtracted from on-hand stock when availability is
computed.

The book's lock is re-entrant; readers hold it to get a point-in-time view,
writers hold it for every mutation.
"""

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4


class CommitmentStatus(Enum):
    ACTIVE = "active"
    RELEASED = "released"
    CONSUMED = "consumed"


@dataclass(frozen=True)
class CommitHandle:
    """Proof of a successful commit, needed to release or consume it."""

    handle_id: str
    sku: str
    location: str
    lot: str | None
    quantity: int
    reference: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class CommitmentBook:
    def __init__(self):
        self.lock = threading.RLock()
        self._handles: dict[str, CommitHandle] = {}
        self._status: dict[str, CommitmentStatus] = {}

    def add(self, sku: str, location: str, quantity: int, lot: str | None = None, reference: str | None = None):
        handle = CommitHandle(
            handle_id=f"cmt-{uuid4().hex[:12]}",
            sku=sku,
            location=location,
            lot=lot,
            quantity=quantity,
            reference=reference,
        )
        with self.lock:
            self._handles[handle.handle_id] = handle
            self._status[handle.handle_id] = CommitmentStatus.ACTIVE
        return handle

    def get(self, handle_id: str) -> CommitHandle | None:
        with self.lock:
            return self._handles.get(handle_id)

    def status_of(self, handle_id: str) -> CommitmentStatus | None:
        with self.lock:
            return self._status.get(handle_id)

    def release(self, handle_id: str) -> bool:
        """Mark an active commitment released. Returns False if it was not active."""
        with self.lock:
            if self._status.get(handle_id) != CommitmentStatus.ACTIVE:
                return False
            self._status[handle_id] = CommitmentStatus.RELEASED
            return True

    def consume(self, handle_id: str) -> bool:
        with self.lock:
            if self._status.get(handle_id) != CommitmentStatus.ACTIVE:
                return False
            self._status[handle_id] = CommitmentStatus.CONSUMED
            return True

    def active(self, sku: str | None = None, location: str | None = None) -> list[CommitHandle]:
        with self.lock:
            return [
                handle
                for handle_id, handle in self._handles.items()
                if self._status[handle_id] == CommitmentStatus.ACTIVE
                and (sku is None or handle.sku == sku)
                and (location is None or handle.location == location)
            ]

    def find(
        self,
        sku: str | None = None,
        location: str | None = None,
        reference: str | None = None,
        status: CommitmentStatus | None = None,
    ) -> list[tuple[CommitHandle, CommitmentStatus]]:
        """Handles with their status, oldest first.

        ``reference`` matches a handle's reference exactly, or its leading
        ``<reference>:`` segment, so a task id finds every item's commitment.
        """
        with self.lock:
            rows = [
                (handle, self._status[handle_id])
                for handle_id, handle in self._handles.items()
                if (status is None or self._status[handle_id] == status)
                and (sku is None or handle.sku == sku)
                and (location is None or handle.location == location)
                and (reference is None or _reference_matches(handle.reference, reference))
            ]
        return sorted(rows, key=lambda row: row[0].created_at)

    def committed(self, sku: str, location: str) -> int:
        """Base units actively committed for ``sku`` at ``location``, all lots."""
        return sum(handle.quantity for handle in self.active(sku, location))

    def committed_by_lot(self, sku: str, location: str) -> dict:
        """Active committed base units keyed by lot (None for lot-less commits)."""
        totals = {}
        for handle in self.active(sku, location):
            totals[handle.lot] = totals.get(handle.lot, 0) + handle.quantity
        return totals

    def clear(self):
        with self.lock:
            self._handles.clear()
            self._status.clear()


def _reference_matches(reference: str | None, wanted: str) -> bool:
    if reference is None:
        return False
    return reference == wanted or reference.startswith(f"{wanted}:")
