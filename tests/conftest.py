import os

import pytest

_LAYER_MARKERS = {
    "domain": pytest.mark.domain,
    "application": pytest.mark.application,
    "integration": pytest.mark.integration,
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Activate the warehouse domain before collection.

    Pushes the domain context so that ``current_domain`` resolves everywhere,
    and pins the stock source to the repository adapter; tests that want
    the in-memory one swap it per test.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ["STOCK_SOURCE"] = "repository"

    from warehouse.domain import warehouse

    warehouse.init()
    warehouse.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Mark tests by layer (the directory they live in)."""
    for item in items:
        layer = next((part for part in item.path.parts if part in _LAYER_MARKERS), None)
        if layer is None:
            continue
        item.add_marker(_LAYER_MARKERS[layer])
        if layer == "integration" and not any(m.name == "fast" for m in item.iter_markers()):
            item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Reset the engine and every data store after each test."""
    yield

    from protean import current_domain

    from warehouse.engine import reset_engine

    # Commitments live in the engine, not in a provider
    reset_engine()

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
