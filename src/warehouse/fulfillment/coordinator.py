"""Fulfillment queue coordinator: the single entry point for task changes.

Creates tasks (normalizing tier quantities to base units), lists and counts
them, and routes every item status change through the allocation resolver
and the task state machine. Status changes are serialized per task, which
also serializes them per item, and each one is committed before the task's
lock is let go.
"""

from dataclasses import dataclass
from datetime import date

import structlog
from protean import UnitOfWork
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from warehouse.errors import ConcurrentModificationError, InsufficientStockError
from warehouse.fulfillment.task import (
    PRIORITY_RANK,
    FulfillmentTask,
    ItemStatus,
    SourceType,
    TaskPriority,
    TaskStatus,
    parse_enum,
)
from warehouse.location.codes import normalize_location_code
from warehouse.units.conversion import to_base_units
from warehouse.utils.locks import KeyedLocks
from warehouse.utils.transactions import own_transaction

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AdvanceResult:
    task_id: str
    item_id: str
    previous_status: str
    status: str
    task_status: str
    changed: bool
    location: str | None = None
    commit_handle_id: str | None = None


class FulfillmentQueueCoordinator:
    def __init__(self, resolver):
        self.resolver = resolver
        self._task_locks = KeyedLocks()

    @staticmethod
    def _repo():
        return current_domain.repository_for(FulfillmentTask)

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def create_task(
        self,
        source_ref: str,
        items: list[dict],
        source_type: str = SourceType.MANUAL.value,
        priority: str = TaskPriority.NORMAL.value,
        delivery_date: date | None = None,
        customer_code: str | None = None,
        warehouse_id: str | None = None,
    ) -> FulfillmentTask:
        """Queue a task; each item's tier quantities become a base-unit request."""
        if not source_ref or not str(source_ref).strip():
            raise ValidationError({"source_ref": ["Source reference is required"]})
        if not items:
            raise ValidationError({"items": ["A fulfillment task needs at least one item"]})

        items_data = []
        for line_number, item in enumerate(items, start=1):
            sku = item.get("sku")
            if not sku:
                raise ValidationError({"items": [f"Item {line_number} has no SKU"]})
            product = self.resolver.source.get_product(sku)
            quantities = {key: 0 if item.get(key) is None else item.get(key) for key in ("qty1", "qty2", "qty3")}
            requested = to_base_units(product, **quantities)
            if requested == 0:
                raise ValidationError({"items": [f"Item {line_number} ({sku}) requests no stock"]})
            items_data.append({"sku": sku, **quantities, "requested_quantity": requested})

        task = FulfillmentTask.create(
            source_ref=str(source_ref).strip(),
            items_data=items_data,
            source_type=source_type or SourceType.MANUAL.value,
            priority=priority or TaskPriority.NORMAL.value,
            delivery_date=delivery_date,
            customer_code=customer_code,
            warehouse_id=warehouse_id,
        )
        self._repo().add(task)
        logger.info("task_created", task_id=str(task.id), source_ref=task.source_ref, item_count=len(items_data))
        return task

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_task(self, task_id: str) -> FulfillmentTask:
        return self._repo().get(task_id)

    def list_tasks(self, status: str | None = None, source_type: str | None = None, include_retired: bool = True):
        """Tasks matching the filters, most urgent and earliest due first."""
        filters = {}
        if status:
            filters["status"] = parse_enum(TaskStatus, status, "status").value
        if source_type:
            filters["source_type"] = parse_enum(SourceType, source_type, "source_type").value

        tasks = self._repo().matching(**filters)
        if not include_retired:
            tasks = [t for t in tasks if not t.is_retired]
        return sorted(
            tasks,
            key=lambda t: (
                PRIORITY_RANK.get(t.priority, len(PRIORITY_RANK)),
                t.delivery_date or date.max,
                t.source_ref,
            ),
        )

    def statistics(self, today: date | None = None) -> dict:
        tasks = self._repo().matching()
        stats = {status.value: 0 for status in TaskStatus}
        for task in tasks:
            stats[task.status] += 1
        stats["total"] = len(tasks)
        stats["overdue"] = sum(1 for t in tasks if t.is_overdue(today))
        stats["urgent"] = sum(1 for t in tasks if t.priority == TaskPriority.URGENT.value and not t.is_retired)
        return stats

    def find_task_for_item(self, item_id: str) -> FulfillmentTask:
        task = self._repo().holding_item(item_id)
        if task is None:
            raise ObjectNotFoundError({"item_id": [f"No fulfillment task holds item {item_id}"]})
        return task

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    @own_transaction
    def advance(
        self,
        task_id: str,
        item_id: str,
        target_status,
        location: str | None = None,
        lot: str | None = None,
        fulfilled_quantity: int | None = None,
        expected_status=None,
        reason: str | None = None,
    ) -> AdvanceResult:
        """Move one item to ``target_status``.

        Requesting the status the item already has is a no-op, except for an
        assigned item given a different location or lot, which is
        re-allocated. ``expected_status`` guards against lost updates.

        The task is read, changed and committed while its lock is held.
        Commitments made for the change are released if the commit fails;
        commitments the change retires are released only after it succeeds.
        """
        target = parse_enum(ItemStatus, target_status, "status")
        expected = parse_enum(ItemStatus, expected_status, "expected_status") if expected_status else None
        code = normalize_location_code(location) if location else None
        lot = lot or None

        with self._task_locks.hold(str(task_id)):
            acquired, retired = [], []
            try:
                with UnitOfWork():
                    repo = self._repo()
                    task = repo.get(task_id)
                    item = task.get_item(item_id)
                    current = ItemStatus(item.status)

                    if expected is not None and current != expected:
                        raise ConcurrentModificationError(expected.value, current.value, entity_id=str(item_id))

                    if current == target and not self._reallocating(item, target, code, lot):
                        return self._result(task, item, current, changed=False)

                    if target == ItemStatus.ASSIGNED:
                        self._assign(task, item, code, lot, acquired, retired)
                    elif target == ItemStatus.PICKING:
                        task.start_picking(item_id)
                    elif target == ItemStatus.COMPLETED:
                        task.complete_item(item_id, fulfilled_quantity)
                    elif target == ItemStatus.CANCELLED:
                        self._cancel(task, item, reason, retired)
                    else:
                        task.assert_item_can_transition(item, target)

                    repo.add(task)
                    result = self._result(task, item, current, changed=True)
            except Exception:
                for handle in acquired:
                    self.resolver.release(handle)
                raise

            for handle_id in retired:
                self.resolver.release(handle_id)

        logger.info(
            "item_advanced",
            task_id=result.task_id,
            item_id=result.item_id,
            previous_status=result.previous_status,
            status=result.status,
            task_status=result.task_status,
        )
        return result

    def cancel_item(self, item_id: str, reason: str | None = None, task_id: str | None = None) -> AdvanceResult:
        if task_id is None:
            task_id = str(self.find_task_for_item(item_id).id)
        return self.advance(task_id, item_id, ItemStatus.CANCELLED, reason=reason)

    @staticmethod
    def _reallocating(item, target: ItemStatus, code: str | None, lot: str | None) -> bool:
        if target != ItemStatus.ASSIGNED:
            return False
        moved = code is not None and code != item.allocated_location
        relotted = lot is not None and lot != item.allocated_lot
        return moved or relotted

    def _assign(self, task, item, code, lot, acquired, retired):
        task.assert_item_can_transition(item, ItemStatus.ASSIGNED)
        sku = str(item.sku)

        if code is None:
            candidates = self.resolver.find_candidates(sku, item.requested_quantity)
            eligible = [c for c in candidates if lot is None or c.lot == lot]
            chosen = next((c for c in eligible if not c.insufficient), None)
            if chosen is None:
                shortage = min((c.shortage for c in eligible), default=item.requested_quantity)
                raise InsufficientStockError(shortage, sku=sku)
            code, lot = chosen.location, chosen.lot

        handle = self.resolver.commit(sku, code, item.requested_quantity, lot=lot, reference=f"{task.id}:{item.id}")
        acquired.append(handle)
        replaced = task.assign_item(str(item.id), code, handle.handle_id, lot=lot)
        if replaced:
            retired.append(replaced)

    def _cancel(self, task, item, reason, retired):
        task.assert_item_can_transition(item, ItemStatus.CANCELLED)
        if item.commit_handle_id:
            retired.append(item.commit_handle_id)
        task.cancel_item(str(item.id), reason=reason)

    @staticmethod
    def _result(task, item, previous: ItemStatus, changed: bool) -> AdvanceResult:
        return AdvanceResult(
            task_id=str(task.id),
            item_id=str(item.id),
            previous_status=previous.value,
            status=item.status,
            task_status=task.status,
            changed=changed,
            location=item.allocated_location,
            commit_handle_id=item.commit_handle_id,
        )

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    @own_transaction
    def ship_task(self, task_id: str) -> FulfillmentTask:
        """Ship a completed task, withdrawing every completed item's stock.

        All withdrawals are planned before anything changes. A shortfall
        raises ``InsufficientStockError`` and leaves the task, the stock and
        the commitments as they were.
        """
        with self._task_locks.hold(str(task_id)):
            task = self._repo().get(task_id)
            task.ship()
            requests = [
                (item.commit_handle_id, item.fulfilled_quantity)
                for item in task.ordered_items
                if item.status == ItemStatus.COMPLETED.value and item.commit_handle_id
            ]
            with self.resolver.settle(requests, reference=task.source_ref) as settlement:
                with UnitOfWork():
                    settlement.apply()
                    self._repo().add(task)

        logger.info("task_shipped", task_id=str(task.id), source_ref=task.source_ref)
        return task
