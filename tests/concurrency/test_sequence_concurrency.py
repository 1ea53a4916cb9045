"""
Concurrent number issuance against PostgreSQL.

Each worker thread uses its own session and commits for real, so the
counter row lock (SELECT ... FOR UPDATE) is what keeps numbers unique.

Run with: DATABASE_URL=postgresql://... pytest tests/concurrency -v
Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import delete

from billing_kernel.db.engine import get_session_factory
from billing_kernel.services.sequence_allocator import SequenceAllocator
from billing_kernel.services.sequence_service import SequenceCounter, SequenceService

pytestmark = [pytest.mark.postgres, pytest.mark.slow_locks]


@pytest.fixture
def counter_name(requires_postgres, db_tables):
    name = f"test:concurrent:{uuid4()}"
    yield name
    factory = get_session_factory()
    with factory() as cleanup:
        cleanup.execute(delete(SequenceCounter).where(SequenceCounter.name == name))
        cleanup.commit()


def _issue(name: str) -> int:
    factory = get_session_factory()
    with factory() as session:
        value = SequenceService(session).next_value(name)
        session.commit()
        return value


class TestConcurrentIssuance:
    def test_no_duplicates_or_gaps(self, counter_name):
        workers = 8
        per_worker = 25

        with ThreadPoolExecutor(max_workers=workers) as pool:
            values = list(pool.map(_issue, [counter_name] * (workers * per_worker)))

        assert sorted(values) == list(range(1, workers * per_worker + 1))

    def test_concurrent_first_use_creates_one_counter(self, counter_name):
        with ThreadPoolExecutor(max_workers=10) as pool:
            values = list(pool.map(_issue, [counter_name] * 10))

        assert sorted(values) == list(range(1, 11))


class TestConcurrentVouchers:
    def test_voucher_numbers_unique(self, requires_postgres, db_tables):
        # A financial year far in the future keeps this counter private to the test
        reference = date(2090, 6, 1)
        factory = get_session_factory()

        def issue(_):
            with factory() as session:
                number = SequenceAllocator(session).next_voucher_number(reference)
                session.commit()
                return number

        try:
            with ThreadPoolExecutor(max_workers=6) as pool:
                numbers = list(pool.map(issue, range(30)))
            assert sorted(numbers, key=lambda n: int(n[6:])) == [f"209091{i}" for i in range(1, 31)]
        finally:
            with factory() as cleanup:
                cleanup.execute(delete(SequenceCounter).where(SequenceCounter.name == "voucher:209091"))
                cleanup.commit()
