import os
import sys
from datetime import datetime
from decimal import Decimal

import pytest

# Make the repository root importable (processes/ and main/ are top-level packages)
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from processes.P06_class_items import FeeConfiguration, FeeModel, Franchisee, PaymentDirection
from processes.P08_report_store import InMemoryReportStore, SqliteReportStore


FIXED_NOW = datetime(2025, 2, 10, 9, 0)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def memory_store():
    return InMemoryReportStore()


@pytest.fixture
def sqlite_store(tmp_path):
    return SqliteReportStore(tmp_path / "franchise.sqlite3")


@pytest.fixture
def flat_franchisee():
    return Franchisee(
        id="fr-1",
        name="Wing Shack Co - Loughton",
        location="Wing Shack Co - Loughton",
        brands=["Wing Shack", "SMSH BN", "Eggs n Stuff"],
        fee_config=FeeConfiguration(
            model=FeeModel.FLAT_PERCENTAGE,
            percentage_rate=Decimal("6"),
            direct_rate=Decimal("10"),
        ),
    )


@pytest.fixture
def pay_them_franchisee():
    return Franchisee(
        id="fr-2",
        name="Wing Shack Co - Loughton",
        location="Wing Shack Co - Loughton",
        brands=["Wing Shack"],
        fee_config=FeeConfiguration(
            model=FeeModel.FLAT_PERCENTAGE,
            percentage_rate=Decimal("6"),
            direct_rate=Decimal("10"),
            payment_direction=PaymentDirection.PAY_THEM,
        ),
    )


@pytest.fixture
def per_platform_franchisee():
    return Franchisee(
        id="fr-3",
        name="Eggs n Stuff Ltd",
        fee_config=FeeConfiguration(
            model=FeeModel.PER_PLATFORM_PERCENTAGE,
            deliveroo_rate=Decimal("6"),
            ubereats_rate=Decimal("8"),
            justeat_rate=Decimal("5"),
        ),
    )


@pytest.fixture
def monthly_franchisee():
    return Franchisee(
        id="fr-4",
        name="SMSH BN Hackney",
        fee_config=FeeConfiguration(model=FeeModel.FIXED_MONTHLY, monthly_fee=Decimal("250")),
    )
