"""Custom repositories for fulfillment tasks and inventory records."""

import pytest
from protean import current_domain
from warehouse.fulfillment.repository import FulfillmentTaskRepository
from warehouse.fulfillment.task import FulfillmentTask, TaskStatus
from warehouse.stock.record import InventoryRecord
from warehouse.stock.repository import InventoryRecordRepository


def _task(source_ref, **kwargs):
    task = FulfillmentTask.create(
        source_ref=source_ref,
        items_data=[{"sku": "SKU-001", "qty1": 0, "qty2": 0, "qty3": 5, "requested_quantity": 5}],
        **kwargs,
    )
    current_domain.repository_for(FulfillmentTask).add(task)
    return task


def _record(sku, location_code, qty3):
    record = InventoryRecord.record(sku=sku, location_code=location_code, qty3=qty3)
    current_domain.repository_for(InventoryRecord).add(record)
    return record


class TestFulfillmentTaskRepository:
    @pytest.fixture()
    def repo(self):
        return current_domain.repository_for(FulfillmentTask)

    def test_is_the_registered_repository(self, repo):
        assert isinstance(repo, FulfillmentTaskRepository)

    def test_matching_filters_on_fields(self, repo):
        _task("PO-001", priority="urgent")
        _task("PO-002")

        assert {t.source_ref for t in repo.matching()} == {"PO-001", "PO-002"}
        assert [t.source_ref for t in repo.matching(priority="urgent")] == ["PO-001"]
        assert len(repo.matching(status=TaskStatus.PENDING.value)) == 2
        assert repo.matching(status=TaskStatus.SHIPPED.value) == []

    def test_holding_item(self, repo):
        _task("PO-001")
        wanted = _task("PO-002")
        item_id = str(wanted.ordered_items[0].id)

        assert repo.holding_item(item_id).source_ref == "PO-002"
        assert repo.holding_item("missing") is None


class TestInventoryRecordRepository:
    @pytest.fixture()
    def repo(self):
        return current_domain.repository_for(InventoryRecord)

    def test_is_the_registered_repository(self, repo):
        assert isinstance(repo, InventoryRecordRepository)

    def test_for_stock(self, repo):
        _record("SKU-001", "A/1/01", 10)
        _record("SKU-001", "B/1/01", 20)
        _record("SKU-002", "A/1/01", 30)

        assert len(repo.for_stock()) == 3
        assert sorted(r.qty3 for r in repo.for_stock(sku="SKU-001")) == [10, 20]
        assert sorted(r.qty3 for r in repo.for_stock(location_code="A/1/01")) == [10, 30]
        assert [r.qty3 for r in repo.for_stock(sku="SKU-002", location_code="A/1/01")] == [30]
        assert repo.for_stock(sku="SKU-003") == []
