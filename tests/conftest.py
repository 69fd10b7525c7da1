import os
from datetime import date, timedelta
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Fetch and activate the domain by pushing the associated domain_context. The activated domain can then be referred to elsewhere as `current_domain`
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from marketplace.domain import marketplace

    marketplace.init()
    marketplace.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def setup_db(request):
    from marketplace.domain import marketplace
    from marketplace.utils.db import drop_db, setup_db

    setup_db(marketplace)

    yield

    drop_db(marketplace)


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from marketplace.config import reset_settings
    from marketplace.gateway import reset_gateway
    from marketplace.notifications import reset_mailer
    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()

    reset_gateway()
    reset_mailer()
    reset_settings()


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------
@pytest.fixture()
def gateway():
    """A fresh FakeGateway installed as the active gateway."""
    from marketplace.gateway import set_gateway
    from marketplace.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def mailer():
    from marketplace.notifications import set_mailer
    from marketplace.notifications.fake_email import FakeEmailAdapter

    fake = FakeEmailAdapter()
    set_mailer(fake)
    return fake


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------
@pytest.fixture()
def create_vendor():
    from marketplace.vendor.registration import RegisterVendor
    from protean import current_domain

    def _create(name="Harbour Kayaks", email="owner@harbourkayaks.test", connect_account_id="acct_harbour", **kwargs):
        command = RegisterVendor(name=name, email=email, connect_account_id=connect_account_id, **kwargs)
        return current_domain.process(command, asynchronous=False)

    return _create


@pytest.fixture()
def create_unit():
    from marketplace.inventory.management import PublishInventoryUnit, RegisterInventoryUnit
    from protean import current_domain

    def _create(vendor_id, name="Sunset paddle", unit_price=5000, available_quantity=10, publish=True, **kwargs):
        kwargs.setdefault("product_date", date.today() + timedelta(days=14))
        kwargs.setdefault("start_time", "18:30")
        kwargs.setdefault("duration_minutes", 90)
        unit_id = current_domain.process(
            RegisterInventoryUnit(
                vendor_id=vendor_id,
                name=name,
                unit_price=unit_price,
                available_quantity=available_quantity,
                **kwargs,
            ),
            asynchronous=False,
        )
        if publish:
            current_domain.process(PublishInventoryUnit(unit_id=unit_id), asynchronous=False)
        return unit_id

    return _create
