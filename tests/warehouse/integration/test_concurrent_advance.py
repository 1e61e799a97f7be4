"""Concurrent status changes on one item leave exactly one outcome behind."""

import json
import threading

import pytest
from protean import current_domain
from warehouse.domain import warehouse
from warehouse.engine import get_coordinator, get_ledger, get_resolver
from warehouse.errors import ConcurrentModificationError, InvalidTransitionError
from warehouse.fulfillment.advancement import AdvanceItem, CancelItem
from warehouse.fulfillment.creation import CreateFulfillmentTask
from warehouse.fulfillment.task import FulfillmentTask
from warehouse.location.management import RegisterLocation
from warehouse.stock.receiving import RecordInventory
from warehouse.units.registration import RegisterProduct

pytestmark = pytest.mark.slow


def _race(workers, target):
    """Start ``workers`` threads at once on ``target(index)``, each in its own domain context."""
    barrier = threading.Barrier(workers)
    outcomes = [None] * workers

    def run(index):
        with warehouse.domain_context():
            barrier.wait()
            try:
                outcomes[index] = target(index)
            except Exception as exc:
                outcomes[index] = exc

    threads = [threading.Thread(target=run, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return outcomes


def _changed(outcomes):
    return [o for o in outcomes if not isinstance(o, Exception) and o.changed]


def _unchanged(outcomes):
    return [o for o in outcomes if not isinstance(o, Exception) and not o.changed]


@pytest.fixture()
def shelf(stock):
    stock.product()
    stock.record(location="A/1/01", qty3=100)
    return "A/1/01"


def _new_item(coordinator, quantity=40):
    task = coordinator.create_task(source_ref="PO-001", items=[{"sku": "SKU-001", "qty3": quantity}])
    return str(task.id), str(task.ordered_items[0].id)


class TestConcurrentAdvance:
    def test_parallel_assignments_commit_once(self, shelf, coordinator):
        for _ in range(5):
            task_id, item_id = _new_item(coordinator)

            outcomes = _race(4, lambda _: coordinator.advance(task_id, item_id, "assigned"))

            assert len(_changed(outcomes)) == 1
            assert len(_unchanged(outcomes)) == 3
            item = coordinator.get_task(task_id).get_item(item_id)
            assert [h.handle_id for h in coordinator.resolver.book.active()] == [item.commit_handle_id]
            coordinator.cancel_item(item_id, task_id=task_id)

        assert coordinator.resolver.book.active() == []
        assert coordinator.resolver.ledger.available_base_units("SKU-001", shelf) == 100

    def test_guarded_assignments_let_one_through(self, shelf, coordinator):
        task_id, item_id = _new_item(coordinator)

        outcomes = _race(
            3,
            lambda _: coordinator.advance(task_id, item_id, "assigned", expected_status="pending"),
        )

        assert len(_changed(outcomes)) == 1
        assert sum(isinstance(o, ConcurrentModificationError) for o in outcomes) == 2
        assert len(coordinator.resolver.book.active()) == 1

    def test_parallel_cancellations_release_once(self, shelf, coordinator):
        task_id, item_id = _new_item(coordinator)
        coordinator.advance(task_id, item_id, "assigned")

        outcomes = _race(4, lambda _: coordinator.cancel_item(item_id, task_id=task_id))

        assert len(_changed(outcomes)) == 1
        assert len(_unchanged(outcomes)) == 3
        assert coordinator.get_task(task_id).get_item(item_id).status == "cancelled"
        assert coordinator.resolver.book.active() == []
        assert coordinator.resolver.ledger.available_base_units("SKU-001", shelf) == 100

    def test_assignment_racing_cancellation(self, shelf, coordinator):
        for _ in range(5):
            task_id, item_id = _new_item(coordinator)

            def assign_or_cancel(index):
                if index == 0:
                    return coordinator.advance(task_id, item_id, "assigned")
                return coordinator.cancel_item(item_id, task_id=task_id)

            outcomes = _race(2, assign_or_cancel)

            # Cancelling first leaves nothing to assign
            errors = [o for o in outcomes if isinstance(o, Exception)]
            assert all(isinstance(error, InvalidTransitionError) for error in errors)
            assert coordinator.get_task(task_id).get_item(item_id).status == "cancelled"
            assert coordinator.resolver.book.active() == []

        assert coordinator.resolver.ledger.available_base_units("SKU-001", shelf) == 100

    def test_items_of_one_task_advance_side_by_side(self, shelf, coordinator):
        task = coordinator.create_task(source_ref="PO-001", items=[{"sku": "SKU-001", "qty3": 10}] * 4)
        task_id = str(task.id)
        item_ids = [str(item.id) for item in task.ordered_items]

        outcomes = _race(4, lambda i: coordinator.advance(task_id, item_ids[i], "assigned"))

        assert len(_changed(outcomes)) == 4
        stored = coordinator.get_task(task_id)
        assert {item.status for item in stored.ordered_items} == {"assigned"}
        assert {h.handle_id for h in coordinator.resolver.book.active()} == {
            item.commit_handle_id for item in stored.ordered_items
        }
        assert coordinator.resolver.ledger.available_base_units("SKU-001", shelf) == 60


def _process(command):
    return current_domain.process(command, asynchronous=False)


@pytest.fixture()
def registered():
    """Stock registered through commands, read back through the repository source."""
    _process(RegisterProduct(sku="SKU-001", rate1=144, rate2=12))
    _process(RegisterLocation(code="A/1/01"))
    _process(RecordInventory(sku="SKU-001", location_code="A/1/01", qty3=100))
    task_id = _process(
        CreateFulfillmentTask(source_ref="PO-001", items=json.dumps([{"sku": "SKU-001", "qty3": 40}]))
    )
    task = current_domain.repository_for(FulfillmentTask).get(task_id)
    return str(task_id), str(task.ordered_items[0].id)


class TestConcurrentCommands:
    def test_parallel_advance_commands_commit_once(self, registered):
        task_id, item_id = registered

        outcomes = _race(
            4,
            lambda _: _process(AdvanceItem(task_id=task_id, item_id=item_id, target_status="assigned")),
        )

        assert not any(isinstance(o, Exception) for o in outcomes)
        assert len(_changed(outcomes)) == 1
        stored = current_domain.repository_for(FulfillmentTask).get(task_id)
        assert [h.handle_id for h in get_resolver().book.active()] == [stored.get_item(item_id).commit_handle_id]
        assert get_ledger().available_base_units("SKU-001", "A/1/01") == 60

    def test_parallel_cancel_commands_release_once(self, registered):
        task_id, item_id = registered
        _process(AdvanceItem(task_id=task_id, item_id=item_id, target_status="assigned"))

        outcomes = _race(4, lambda _: _process(CancelItem(item_id=item_id, task_id=task_id)))

        assert not any(isinstance(o, Exception) for o in outcomes)
        assert len(_changed(outcomes)) == 1
        assert get_resolver().book.active() == []
        assert get_ledger().available_base_units("SKU-001", "A/1/01") == 100
        assert get_coordinator().get_task(task_id).get_item(item_id).status == "cancelled"
