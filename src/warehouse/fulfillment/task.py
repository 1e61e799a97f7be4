"""FulfillmentTask aggregate (CQRS): the fulfillment state machine.

Item state machine:
    PENDING → ASSIGNED → PICKING → COMPLETED
    {PENDING, ASSIGNED, PICKING} → CANCELLED
    ASSIGNED → ASSIGNED (re-allocation to another location)

Task status is derived from item statuses after every change:
    CANCELLED    every item cancelled
    COMPLETED    every non-cancelled item completed (at least one)
    PENDING      every non-cancelled item pending
    IN_PROGRESS  anything else
    SHIPPED      explicit, only from COMPLETED

Entering ASSIGNED needs a commit handle from the allocation resolver;
PICKING and COMPLETED need an allocated location. The aggregate records
handles but never talks to the resolver; the coordinator commits before
assigning and releases before cancelling.
"""

import json
from datetime import UTC, date, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, HasMany, Identifier, Integer, String

from warehouse.domain import warehouse
from warehouse.errors import InvalidTransitionError
from warehouse.fulfillment.events import (
    FulfillmentTaskCreated,
    ItemAssigned,
    ItemCancelled,
    ItemCompleted,
    ItemPickingStarted,
    TaskShipped,
    TaskStatusChanged,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ItemStatus(Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKING = "picking"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SHIPPED = "shipped"


class SourceType(Enum):
    API = "api"
    MANUAL = "manual"


class TaskPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


PRIORITY_RANK = {
    TaskPriority.URGENT.value: 0,
    TaskPriority.HIGH.value: 1,
    TaskPriority.NORMAL.value: 2,
    TaskPriority.LOW.value: 3,
}

_ITEM_TRANSITIONS = {
    ItemStatus.PENDING: {ItemStatus.ASSIGNED, ItemStatus.CANCELLED},
    ItemStatus.ASSIGNED: {ItemStatus.ASSIGNED, ItemStatus.PICKING, ItemStatus.CANCELLED},
    ItemStatus.PICKING: {ItemStatus.COMPLETED, ItemStatus.CANCELLED},
    ItemStatus.COMPLETED: set(),  # terminal
    ItemStatus.CANCELLED: set(),  # terminal
}

TERMINAL_ITEM_STATUSES = {ItemStatus.COMPLETED, ItemStatus.CANCELLED}
RETIRED_TASK_STATUSES = {TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.SHIPPED}


def parse_enum(enum_cls, value, field: str):
    """Map a boundary string onto ``enum_cls``; anything outside it is rejected."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError({field: [f"Unknown {field} {value!r}; expected one of: {allowed}"]}) from None


def derive_task_status(statuses) -> TaskStatus:
    """Task status implied by a collection of item statuses (shipping aside)."""
    statuses = [ItemStatus(s) for s in statuses]
    live = [s for s in statuses if s != ItemStatus.CANCELLED]
    if not live:
        return TaskStatus.CANCELLED
    if all(s == ItemStatus.COMPLETED for s in live):
        return TaskStatus.COMPLETED
    if all(s == ItemStatus.PENDING for s in live):
        return TaskStatus.PENDING
    return TaskStatus.IN_PROGRESS


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@warehouse.entity(part_of="FulfillmentTask")
class FulfillmentItem:
    """A single product line of a task, counted in base units."""

    line_number = Integer(required=True, min_value=1)
    sku = Identifier(required=True)
    qty1 = Integer(min_value=0, default=0)
    qty2 = Integer(min_value=0, default=0)
    qty3 = Integer(min_value=0, default=0)
    requested_quantity = Integer(required=True, min_value=1)
    fulfilled_quantity = Integer(min_value=0, default=0)
    status = String(
        max_length=20,
        choices=ItemStatus,
        default=ItemStatus.PENDING.value,
    )
    allocated_location = String(max_length=20)
    allocated_lot = String(max_length=100)
    commit_handle_id = String(max_length=50)
    assigned_at = DateTime()
    picking_started_at = DateTime()
    completed_at = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@warehouse.aggregate
class FulfillmentTask:
    source_ref = String(required=True, max_length=100)
    source_type = String(choices=SourceType, default=SourceType.MANUAL.value)
    priority = String(choices=TaskPriority, default=TaskPriority.NORMAL.value)
    delivery_date = Date()
    customer_code = String(max_length=50)
    warehouse_id = Identifier()
    status = String(
        max_length=20,
        choices=TaskStatus,
        default=TaskStatus.PENDING.value,
    )
    items = HasMany(FulfillmentItem)
    shipped_at = DateTime()
    retired_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def fulfilled_quantity_cannot_exceed_requested(self):
        for item in self.items or []:
            if (item.fulfilled_quantity or 0) > item.requested_quantity:
                raise ValidationError(
                    {"fulfilled_quantity": [f"Item {item.line_number} fulfilled more than requested"]}
                )

    @invariant.post
    def completed_items_must_have_a_location(self):
        for item in self.items or []:
            if item.status == ItemStatus.COMPLETED.value and not item.allocated_location:
                raise ValidationError({"allocated_location": [f"Item {item.line_number} completed without a location"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        source_ref: str,
        items_data: list[dict],
        source_type: str = SourceType.MANUAL.value,
        priority: str = TaskPriority.NORMAL.value,
        delivery_date: date | None = None,
        customer_code: str | None = None,
        warehouse_id: str | None = None,
    ):
        """Create a task with every item pending.

        Each entry of ``items_data`` carries ``sku``, the tier quantities and
        the already-normalized ``requested_quantity``.
        """
        if not items_data:
            raise ValidationError({"items": ["A fulfillment task needs at least one item"]})

        now = datetime.now(UTC)
        task = cls(
            source_ref=source_ref,
            source_type=parse_enum(SourceType, source_type, "source_type").value,
            priority=parse_enum(TaskPriority, priority, "priority").value,
            delivery_date=delivery_date,
            customer_code=customer_code,
            warehouse_id=warehouse_id,
            status=TaskStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for line_number, item_data in enumerate(items_data, start=1):
            task.add_items(
                FulfillmentItem(
                    line_number=line_number,
                    status=ItemStatus.PENDING.value,
                    fulfilled_quantity=0,
                    **item_data,
                )
            )
        task.raise_(
            FulfillmentTaskCreated(
                task_id=str(task.id),
                source_ref=source_ref,
                source_type=task.source_type,
                priority=task.priority,
                delivery_date=delivery_date,
                items=json.dumps(
                    [{"sku": d["sku"], "requested_quantity": d["requested_quantity"]} for d in items_data]
                ),
                item_count=len(items_data),
                created_at=now,
            )
        )
        return task

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def ordered_items(self) -> list:
        return sorted(self.items or [], key=lambda i: i.line_number)

    def get_item(self, item_id: str):
        item = next((i for i in (self.items or []) if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": [f"Item {item_id} not found in this task"]})
        return item

    def has_item(self, item_id: str) -> bool:
        return any(str(i.id) == str(item_id) for i in (self.items or []))

    @property
    def progress(self) -> float:
        """Completed items as a percentage of all items, cancelled included."""
        items = self.items or []
        if not items:
            return 0.0
        completed = sum(1 for i in items if i.status == ItemStatus.COMPLETED.value)
        return round(completed / len(items) * 100, 2)

    @property
    def items_owed(self) -> int:
        """Items still to be fulfilled; cancelled and completed items owe nothing."""
        return sum(1 for i in (self.items or []) if ItemStatus(i.status) not in TERMINAL_ITEM_STATUSES)

    @property
    def is_retired(self) -> bool:
        return TaskStatus(self.status) in RETIRED_TASK_STATUSES

    def is_overdue(self, today: date | None = None) -> bool:
        if not self.delivery_date or self.is_retired:
            return False
        return self.delivery_date < (today or date.today())

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def assert_item_can_transition(self, item, target: ItemStatus) -> None:
        """Raise ``InvalidTransitionError`` unless ``item`` may move to ``target``."""
        current = ItemStatus(item.status)
        if TaskStatus(self.status) == TaskStatus.SHIPPED:
            raise InvalidTransitionError(current.value, target.value, "task has already shipped")
        if target not in _ITEM_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, target.value, "transition not allowed")
        if target in (ItemStatus.PICKING, ItemStatus.COMPLETED) and not item.allocated_location:
            raise InvalidTransitionError(current.value, target.value, "item has no allocated location")

    def _refresh_status(self, now: datetime) -> None:
        previous = TaskStatus(self.status)
        if previous == TaskStatus.SHIPPED:
            return
        new_status = derive_task_status(i.status for i in self.items or [])
        if new_status == previous:
            return

        self.status = new_status.value
        self.retired_at = now if new_status in RETIRED_TASK_STATUSES else None
        self.raise_(
            TaskStatusChanged(
                task_id=str(self.id),
                previous_status=previous.value,
                new_status=new_status.value,
                progress=self.progress,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Item transitions
    # -------------------------------------------------------------------
    def assign_item(self, item_id: str, location: str, commit_handle_id: str, lot: str | None = None) -> str | None:
        """Record a successful commit for the item.

        Returns the handle it replaces on re-allocation, which the caller
        must release.
        """
        item = self.get_item(item_id)
        self.assert_item_can_transition(item, ItemStatus.ASSIGNED)

        previous_location = item.allocated_location
        replaced_handle = item.commit_handle_id
        now = datetime.now(UTC)
        with atomic_change(self):
            item.status = ItemStatus.ASSIGNED.value
            item.allocated_location = location
            item.allocated_lot = lot
            item.commit_handle_id = commit_handle_id
            item.assigned_at = now
            self.updated_at = now
            self._refresh_status(now)
        self.raise_(
            ItemAssigned(
                task_id=str(self.id),
                item_id=str(item.id),
                sku=str(item.sku),
                location=location,
                lot=lot or "",
                quantity=item.requested_quantity,
                commit_handle_id=commit_handle_id,
                previous_location=previous_location or "",
                assigned_at=now,
            )
        )
        return replaced_handle

    def start_picking(self, item_id: str) -> None:
        item = self.get_item(item_id)
        self.assert_item_can_transition(item, ItemStatus.PICKING)

        now = datetime.now(UTC)
        with atomic_change(self):
            item.status = ItemStatus.PICKING.value
            item.picking_started_at = now
            self.updated_at = now
            self._refresh_status(now)
        self.raise_(
            ItemPickingStarted(
                task_id=str(self.id),
                item_id=str(item.id),
                location=item.allocated_location,
                started_at=now,
            )
        )

    def complete_item(self, item_id: str, fulfilled_quantity: int | None = None) -> None:
        """Mark the item picked. ``fulfilled_quantity`` defaults to the full request."""
        item = self.get_item(item_id)
        self.assert_item_can_transition(item, ItemStatus.COMPLETED)

        if fulfilled_quantity is None:
            fulfilled_quantity = item.requested_quantity
        if isinstance(fulfilled_quantity, bool) or not isinstance(fulfilled_quantity, int) or fulfilled_quantity < 0:
            raise ValidationError({"fulfilled_quantity": ["Fulfilled quantity must be a non-negative whole number"]})
        if fulfilled_quantity > item.requested_quantity:
            raise ValidationError(
                {"fulfilled_quantity": [f"Cannot fulfill {fulfilled_quantity} of {item.requested_quantity} requested"]}
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            item.fulfilled_quantity = fulfilled_quantity
            item.status = ItemStatus.COMPLETED.value
            item.completed_at = now
            self.updated_at = now
            self._refresh_status(now)
        self.raise_(
            ItemCompleted(
                task_id=str(self.id),
                item_id=str(item.id),
                location=item.allocated_location,
                requested_quantity=item.requested_quantity,
                fulfilled_quantity=fulfilled_quantity,
                completed_at=now,
            )
        )

    def cancel_item(self, item_id: str, reason: str | None = None) -> None:
        """Cancel the item. Its commit handle must already be released."""
        item = self.get_item(item_id)
        self.assert_item_can_transition(item, ItemStatus.CANCELLED)

        previous = item.status
        released_handle = item.commit_handle_id
        now = datetime.now(UTC)
        with atomic_change(self):
            item.fulfilled_quantity = 0
            item.status = ItemStatus.CANCELLED.value
            item.commit_handle_id = None
            item.cancelled_at = now
            item.cancellation_reason = reason
            self.updated_at = now
            self._refresh_status(now)
        self.raise_(
            ItemCancelled(
                task_id=str(self.id),
                item_id=str(item.id),
                previous_status=previous,
                released_handle_id=released_handle or "",
                reason=reason or "",
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def ship(self) -> None:
        current = TaskStatus(self.status)
        open_items = [i for i in self.items or [] if ItemStatus(i.status) not in TERMINAL_ITEM_STATUSES]
        if open_items:
            raise InvalidTransitionError(
                current.value, TaskStatus.SHIPPED.value, f"{len(open_items)} item(s) are not completed or cancelled"
            )
        if current != TaskStatus.COMPLETED:
            raise InvalidTransitionError(current.value, TaskStatus.SHIPPED.value, "only completed tasks can ship")

        now = datetime.now(UTC)
        shipped = [
            {
                "item_id": str(i.id),
                "sku": str(i.sku),
                "location": i.allocated_location,
                "quantity": i.fulfilled_quantity,
            }
            for i in self.ordered_items
            if i.status == ItemStatus.COMPLETED.value
        ]
        self.status = TaskStatus.SHIPPED.value
        self.shipped_at = now
        self.retired_at = now
        self.updated_at = now
        self.raise_(
            TaskShipped(
                task_id=str(self.id),
                source_ref=self.source_ref,
                shipped_items=json.dumps(shipped),
                shipped_at=now,
            )
        )
