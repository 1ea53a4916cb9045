"""
Pytest fixtures for the billing kernel test suite.

Provides:
- A session-scoped engine with tables created once
- Per-test database sessions isolated by an outer transaction
- Logging capture and deterministic clock fixtures
- Factory fixtures for businesses, bank accounts and invoices

Environment Variables:
- DATABASE_URL: database to test against.  Defaults to in-memory SQLite;
  set a PostgreSQL URL to run the ``postgres``-marked concurrency tests.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    is_postgres,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.models.business import BankAccount, Business
from billing_kernel.models.invoice import Invoice, InvoiceType
from billing_kernel.services.invoice_service import InvoiceService

DEFAULT_TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"

# Valid GSTIN used by the business factory
GSTIN_A = "27AAPFU0939F1ZV"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, session):
            ...
            logs = captured_logs()
            assert any(r["message"] == "payment_allocation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session."""
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection:
    ``session.commit()`` inside a test only releases a savepoint, and the
    outer transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture
def requires_postgres(db_engine):
    if not is_postgres():
        pytest.skip("requires PostgreSQL (set DATABASE_URL)")


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Clock pinned to 2024-06-01 12:00 UTC."""
    return DeterministicClock(datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Factory fixtures
# =============================================================================


@pytest.fixture
def create_business(session):
    """Factory for Business rows.  Committed so that service rollbacks keep them."""

    def _create(
        business_name: str = "Acme Traders",
        gst_number: str = GSTIN_A,
        **fields,
    ) -> Business:
        business = Business(business_name=business_name, gst_number=gst_number, **fields)
        session.add(business)
        session.commit()
        return business

    return _create


@pytest.fixture
def create_bank_account(session):
    """Factory for company BankAccount rows."""

    def _create(
        bank_name: str = "HDFC Bank",
        account_number: str = "50100234567",
        ifsc_code: str | None = "HDFC0001234",
    ) -> BankAccount:
        account = BankAccount(
            bank_name=bank_name,
            account_number=account_number,
            ifsc_code=ifsc_code,
        )
        session.add(account)
        session.commit()
        return account

    return _create


@pytest.fixture
def create_invoice(session):
    """Factory for invoices issued through InvoiceService (numbers are real)."""

    def _create(
        grand_total: Decimal | str = Decimal("1000"),
        invoice_date: date = date(2024, 5, 10),
        business: Business | None = None,
        invoice_type: InvoiceType = InvoiceType.B2B,
        **fields,
    ) -> Invoice:
        info = InvoiceService(session).create_invoice(
            invoice_type=invoice_type,
            invoice_date=invoice_date,
            grand_total=Decimal(grand_total),
            business_id=business.id if business is not None else None,
            **fields,
        )
        return session.get(Invoice, info.id)

    return _create
