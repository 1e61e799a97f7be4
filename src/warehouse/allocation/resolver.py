"""Allocation resolver: finds stock for a request and commits it atomically.

Candidates are (location, lot) pairs ordered first-expired-first-out:

1. earliest manufacture date first (undated lots after dated ones),
2. then most available stock,
3. then location code, for a stable order.

``commit`` is the only writer of availability. It runs under a lock per
(location, SKU), which covers every lot in that slot, and re-checks
availability inside the lock, since stock may have moved since the caller
looked at the candidates.

Consumption takes the same slot locks. ``settle`` plans every withdrawal
first and only then lets the caller apply them, so a shipment either moves
all of its stock or none of it.
"""

from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime

import structlog
from protean.exceptions import ValidationError

from warehouse.allocation.commitment import CommitHandle, CommitmentStatus
from warehouse.errors import InsufficientStockError
from warehouse.location.codes import location_sort_key, normalize_location_code, route_sort_key
from warehouse.stock.ledger import StockLedger
from warehouse.units.conversion import check_quantity, from_base_units
from warehouse.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LocationCandidate:
    location: str
    lot: str | None
    manufactured_on: date | None
    on_hand: int
    available: int
    insufficient: bool
    shortage: int


@dataclass(frozen=True)
class PickAllocation:
    location: str
    lot: str | None
    manufactured_on: date | None
    quantity: int


@dataclass(frozen=True)
class PickingPlan:
    sku: str
    requested: int
    total_available: int
    status: str  # sufficient | insufficient | not_found
    percentage: float
    shortage: int
    allocations: list[PickAllocation] = field(default_factory=list)
    route: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CommitmentView:
    handle_id: str
    sku: str
    location: str
    lot: str | None
    quantity: int
    qty1: int
    qty2: int
    qty3: int
    reference: str | None
    status: str
    created_at: datetime


@dataclass(frozen=True)
class CommitmentTotal:
    location: str
    sku: str
    commitments: int
    quantity: int
    qty1: int
    qty2: int
    qty3: int


@dataclass(frozen=True)
class Withdrawal:
    record_id: str
    quantity: int


@dataclass(frozen=True)
class Consumption:
    handle: CommitHandle
    quantity: int
    withdrawals: list[Withdrawal]


class Settlement:
    """Planned withdrawals for commitments being consumed together."""

    def __init__(self, source, plans: list[Consumption], reference: str | None = None):
        self.source = source
        self.plans = plans
        self.reference = reference
        self.applied = False

    @property
    def withdrawn(self) -> int:
        return sum(plan.quantity for plan in self.plans) if self.applied else 0

    def apply(self) -> None:
        """Withdraw the planned units from their records."""
        if self.applied:
            raise ValidationError({"commitment": ["Settlement has already been applied"]})
        for plan in self.plans:
            product = self.source.get_product(plan.handle.sku)
            for withdrawal in plan.withdrawals:
                self.source.withdraw(
                    withdrawal.record_id,
                    withdrawal.quantity,
                    product,
                    reference=self.reference or plan.handle.handle_id,
                )
        self.applied = True


def _fefo_key(row):
    return (
        row.manufactured_on is None,
        row.manufactured_on or date.max,
        -row.available,
        location_sort_key(row.location),
        row.lot or "",
    )


def picking_route(codes) -> list[str]:
    """Distinct location codes in walking order: row, then position, then level."""
    return sorted({normalize_location_code(code) for code in codes}, key=route_sort_key)


class AllocationResolver:
    def __init__(self, source, book):
        self.source = source
        self.book = book
        self.ledger = StockLedger(source, book)
        self._locks = KeyedLocks()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def find_candidates(self, sku: str, requested: int) -> list[LocationCandidate]:
        """All lots holding ``sku``, FEFO ordered, flagged when short of ``requested``."""
        requested = check_quantity("quantity", requested)
        candidates = []
        for row in sorted(self.ledger.lot_stock(sku), key=_fefo_key):
            if row.on_hand <= 0:
                continue
            available = max(0, row.available)
            shortage = max(0, requested - available)
            candidates.append(
                LocationCandidate(
                    location=row.location,
                    lot=row.lot,
                    manufactured_on=row.manufactured_on,
                    on_hand=row.on_hand,
                    available=available,
                    insufficient=shortage > 0,
                    shortage=shortage,
                )
            )

        # Lots with nothing left to give go last, keeping their FEFO order.
        return [c for c in candidates if c.available > 0] + [c for c in candidates if c.available == 0]

    def plan_picking(self, sku: str, requested: int) -> PickingPlan:
        """Split ``requested`` greedily across candidates in FEFO order."""
        candidates = self.find_candidates(sku, requested)
        if not candidates:
            return PickingPlan(
                sku=sku,
                requested=requested,
                total_available=0,
                status="not_found",
                percentage=0.0,
                shortage=requested,
            )

        remaining = requested
        allocations = []
        for candidate in candidates:
            if remaining <= 0:
                break
            if candidate.available <= 0:
                continue
            take = min(candidate.available, remaining)
            allocations.append(
                PickAllocation(
                    location=candidate.location,
                    lot=candidate.lot,
                    manufactured_on=candidate.manufactured_on,
                    quantity=take,
                )
            )
            remaining -= take

        total_available = sum(c.available for c in candidates)
        percentage = 100.0 if requested == 0 else min(total_available / requested * 100, 100.0)
        return PickingPlan(
            sku=sku,
            requested=requested,
            total_available=total_available,
            status="sufficient" if remaining == 0 else "insufficient",
            percentage=round(percentage, 2),
            shortage=remaining,
            allocations=allocations,
            route=picking_route(a.location for a in allocations),
        )

    # -------------------------------------------------------------------
    # Commitments
    # -------------------------------------------------------------------
    def _available_for(self, sku: str, code: str, lot: str | None) -> int:
        if lot is None:
            return self.ledger.available_base_units(sku, code)
        rows = [row for row in self.ledger.lot_stock(sku, code) if row.lot == lot]
        return rows[0].available if rows else 0

    def commit(self, sku: str, location: str, quantity: int, lot: str | None = None, reference: str | None = None):
        """Earmark ``quantity`` base units of ``sku`` at ``location``.

        Raises ``InsufficientStockError`` carrying the shortage when the
        units are not available at commit time.
        """
        quantity = check_quantity("quantity", quantity)
        if quantity == 0:
            raise ValidationError({"quantity": ["Cannot commit zero units"]})
        code = normalize_location_code(location)
        self.source.get_product(sku)
        self.source.get_location(code)

        with self._locks.hold((code, sku)):
            available = self._available_for(sku, code, lot or None)
            if quantity > available:
                logger.info(
                    "commitment_rejected",
                    sku=sku,
                    location=code,
                    lot=lot,
                    requested=quantity,
                    available=available,
                )
                raise InsufficientStockError(quantity - available, sku=sku, location=code)
            handle = self.book.add(sku, code, quantity, lot=lot or None, reference=reference)

        logger.info(
            "commitment_created",
            handle_id=handle.handle_id,
            sku=sku,
            location=code,
            lot=lot,
            quantity=quantity,
            reference=reference,
        )
        return handle

    def release(self, handle) -> bool:
        """Return committed units to availability. Releasing twice is a no-op."""
        handle_id = getattr(handle, "handle_id", handle)
        released = self.book.release(handle_id)
        if released:
            logger.info("commitment_released", handle_id=handle_id)
        return released

    # -------------------------------------------------------------------
    # Consumption
    # -------------------------------------------------------------------
    def _consumable(self, handle, quantity: int | None) -> tuple[CommitHandle, int]:
        handle_id = getattr(handle, "handle_id", handle)
        committed = self.book.get(handle_id)
        if committed is None:
            raise ValidationError({"commitment": [f"Unknown commitment {handle_id}"]})
        quantity = committed.quantity if quantity is None else check_quantity("quantity", quantity)
        if quantity > committed.quantity:
            message = f"Cannot consume {quantity} of a {committed.quantity} unit commitment"
            raise ValidationError({"quantity": [message]})
        return committed, quantity

    def _lot_holds(self, committed: CommitHandle, settling: set[str]) -> dict[str, int]:
        """Units held on each lot at the slot by lot-specific commitments outside this settlement."""
        holds: dict[str, int] = {}
        for handle in self.book.active(committed.sku, committed.location):
            if handle.lot is not None and handle.handle_id not in settling:
                holds[handle.lot] = holds.get(handle.lot, 0) + handle.quantity
        return holds

    def _plan_consumption(self, requests: list[tuple[CommitHandle, int]]) -> list[Consumption]:
        """Decide which records each commitment draws from, without touching them.

        Lot-specific commitments are planned first, on their own lot. A
        lot-less commitment then draws FEFO across the slot, leaving on every
        lot whatever other lot-specific commitments still hold there. Raises
        ``InsufficientStockError`` if any commitment cannot be covered.
        """
        settling = {committed.handle_id for committed, _ in requests}
        taken: dict[str, int] = {}
        plans = []
        for committed, quantity in sorted(requests, key=lambda request: request[0].lot is None):
            product = self.source.get_product(committed.sku)
            records = [
                record
                for record in self.source.records(sku=committed.sku, location_code=committed.location)
                if committed.lot is None or record.lot == committed.lot
            ]
            records.sort(key=lambda r: (r.manufactured_on is None, r.manufactured_on or date.max, r.lot or ""))
            holds = {} if committed.lot is not None else self._lot_holds(committed, settling)

            remaining = quantity
            withdrawals = []
            for record in records:
                if remaining <= 0:
                    break
                record_id = str(record.id)
                free = record.base_total(product) - taken.get(record_id, 0)
                held = min(free, holds.get(record.lot, 0)) if record.lot else 0
                if held:
                    holds[record.lot] -= held
                    free -= held
                take = min(free, remaining)
                if take <= 0:
                    continue
                taken[record_id] = taken.get(record_id, 0) + take
                withdrawals.append(Withdrawal(record_id=record_id, quantity=take))
                remaining -= take

            if remaining > 0:
                logger.warning(
                    "consumption_short",
                    handle_id=committed.handle_id,
                    sku=committed.sku,
                    location=committed.location,
                    requested=quantity,
                    shortage=remaining,
                )
                raise InsufficientStockError(remaining, sku=committed.sku, location=committed.location)
            plans.append(Consumption(handle=committed, quantity=quantity, withdrawals=withdrawals))
        return plans

    @contextmanager
    def settle(self, requests, reference: str | None = None):
        """Consume several commitments as one unit.

        ``requests`` holds ``(handle, quantity)`` pairs; a quantity of None
        means the whole commitment. Every affected slot is locked and the
        withdrawals are planned before the block runs, so a shortfall raises
        before any stock moves. The block calls ``apply()`` on the yielded
        settlement to withdraw the stock, typically inside the unit of work
        that persists the caller's own changes. The commitments are marked
        consumed only when the block exits cleanly.
        """
        resolved = [self._consumable(handle, quantity) for handle, quantity in requests]
        slots = sorted({(committed.location, committed.sku) for committed, _ in resolved})

        with ExitStack() as stack:
            for slot in slots:
                stack.enter_context(self._locks.hold(slot))
            stack.enter_context(self.book.lock)

            for committed, _ in resolved:
                if self.book.status_of(committed.handle_id) != CommitmentStatus.ACTIVE:
                    raise ValidationError({"commitment": [f"Commitment {committed.handle_id} is no longer active"]})

            settlement = Settlement(self.source, self._plan_consumption(resolved), reference)
            yield settlement

            for plan in settlement.plans:
                self.book.consume(plan.handle.handle_id)

        for plan in settlement.plans:
            logger.info(
                "commitment_consumed",
                handle_id=plan.handle.handle_id,
                sku=plan.handle.sku,
                location=plan.handle.location,
                quantity=plan.quantity if settlement.applied else 0,
            )

    def consume(self, handle, quantity: int | None = None, reference: str | None = None) -> int:
        """Withdraw committed units from stock on shipment.

        ``quantity`` defaults to the full commitment; any part not consumed is
        returned to availability with the commitment. Draws from the
        commitment's lot, or from the slot's lots in FEFO order when the
        commitment names no lot.
        """
        with self.settle([(handle, quantity)], reference=reference) as settlement:
            settlement.apply()
        return settlement.withdrawn

    # -------------------------------------------------------------------
    # Commitment queries
    # -------------------------------------------------------------------
    def commitments(
        self,
        sku: str | None = None,
        location: str | None = None,
        reference: str | None = None,
        status: str | None = CommitmentStatus.ACTIVE.value,
    ) -> list[CommitmentView]:
        """Commitments matching the filters, with tier breakdowns, oldest first.

        ``reference`` is a fulfillment reference (``task_id:item_id``) or just
        the task id. ``status=None`` lists commitments in every status.
        """
        code = normalize_location_code(location) if location else None
        wanted = None
        if status:
            try:
                wanted = CommitmentStatus(str(status).lower())
            except ValueError:
                allowed = ", ".join(s.value for s in CommitmentStatus)
                raise ValidationError({"status": [f"Invalid status '{status}'. Expected one of: {allowed}"]}) from None

        products = {}
        views = []
        for handle, handle_status in self.book.find(sku=sku, location=code, reference=reference, status=wanted):
            if handle.sku not in products:
                products[handle.sku] = self.source.get_product(handle.sku)
            tiers = from_base_units(products[handle.sku], handle.quantity)
            views.append(
                CommitmentView(
                    handle_id=handle.handle_id,
                    sku=handle.sku,
                    location=handle.location,
                    lot=handle.lot,
                    quantity=handle.quantity,
                    qty1=tiers.qty1,
                    qty2=tiers.qty2,
                    qty3=tiers.qty3,
                    reference=handle.reference,
                    status=handle_status.value,
                    created_at=handle.created_at,
                )
            )
        return views

    def commitment_totals(self, sku: str | None = None, location: str | None = None) -> list[CommitmentTotal]:
        """Active committed units per (location, SKU), in location order."""
        groups: dict[tuple[str, str], list[CommitmentView]] = {}
        for view in self.commitments(sku=sku, location=location):
            groups.setdefault((view.location, view.sku), []).append(view)

        totals = []
        for (loc, item_sku), views in groups.items():
            quantity = sum(view.quantity for view in views)
            tiers = from_base_units(self.source.get_product(item_sku), quantity)
            totals.append(
                CommitmentTotal(
                    location=loc,
                    sku=item_sku,
                    commitments=len(views),
                    quantity=quantity,
                    qty1=tiers.qty1,
                    qty2=tiers.qty2,
                    qty3=tiers.qty3,
                )
            )
        totals.sort(key=lambda total: (location_sort_key(total.location), total.sku))
        return totals
