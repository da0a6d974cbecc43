import logging
from datetime import datetime
from decimal import Decimal

import pytest

from txn_dedupe.config import DedupSettings
from txn_dedupe.models import TransactionRecord


def make_record(
    record_id,
    when="2024-01-10T09:00:00",
    amount="-100.00",
    description="Subscription",
    source="bank-export",
    **kwargs,
) -> TransactionRecord:
    return TransactionRecord(
        id=record_id,
        date=datetime.fromisoformat(when) if isinstance(when, str) else when,
        amount=Decimal(amount) if isinstance(amount, str) else amount,
        description=description,
        source=source,
        **kwargs,
    )


@pytest.fixture
def settings() -> DedupSettings:
    return DedupSettings()


@pytest.fixture(autouse=True)
def _reset_app_logger():
    yield
    # CLI tests attach handlers bound to CliRunner streams
    logging.getLogger("txn_dedupe").handlers = []
