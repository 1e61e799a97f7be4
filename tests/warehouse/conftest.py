import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def warehouse_bed():
    from warehouse.domain import warehouse

    bed = DomainFixture(warehouse)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(warehouse_bed):
    with warehouse_bed.domain_context():
        yield


@pytest.fixture()
def memory_source(monkeypatch):
    """Swap the engine onto the in-memory stock source."""
    from warehouse.engine import reset_engine
    from warehouse.sources import get_stock_source

    monkeypatch.setenv("STOCK_SOURCE", "memory")
    reset_engine()
    source = get_stock_source()
    yield source
    reset_engine()


@pytest.fixture()
def resolver(memory_source):
    from warehouse.engine import get_resolver

    return get_resolver()


@pytest.fixture()
def coordinator(memory_source):
    from warehouse.engine import get_coordinator

    return get_coordinator()


@pytest.fixture()
def stock(memory_source):
    """Helpers that put products, locations and records into the memory source."""
    from warehouse.location.codes import normalize_location_code
    from warehouse.location.location import Location
    from warehouse.stock.record import InventoryRecord
    from warehouse.units.product import Product

    class _Stock:
        source = memory_source

        def product(self, sku="SKU-001", rate1=144, rate2=12, **kwargs):
            return memory_source.add_product(Product.register(sku=sku, rate1=rate1, rate2=rate2, **kwargs))

        def location(self, code="A/1/01", **kwargs):
            return memory_source.add_location(Location.register(code=code, **kwargs))

        def record(self, sku="SKU-001", location="A/1/01", qty1=0, qty2=0, qty3=0, lot=None, mfd=None, **kwargs):
            code = normalize_location_code(location)
            if memory_source.find_location(code) is None:
                self.location(code)
            return memory_source.add_record(
                InventoryRecord.record(
                    sku=sku,
                    location_code=location,
                    qty1=qty1,
                    qty2=qty2,
                    qty3=qty3,
                    lot=lot,
                    manufactured_on=mfd,
                    **kwargs,
                )
            )

    return _Stock()
