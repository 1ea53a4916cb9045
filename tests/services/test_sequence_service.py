"""
Tests for SequenceService (locked counter rows).

Covers:
- Monotonic, gap-free values per name
- Independent names
- Seeding on first use
- Rollback returns the number
"""

import inspect as inspect_module
from pathlib import Path

from sqlalchemy import inspect, select

from billing_kernel.services.sequence_service import SequenceCounter, SequenceService


class TestNextValue:
    def test_starts_at_one(self, session):
        assert SequenceService(session).next_value("test:start") == 1

    def test_strictly_increasing_without_gaps(self, session):
        service = SequenceService(session)
        values = [service.next_value("test:monotonic") for _ in range(50)]
        assert values == list(range(1, 51))

    def test_names_are_independent(self, session):
        service = SequenceService(session)
        service.next_value("test:a")
        service.next_value("test:a")
        assert service.next_value("test:b") == 1
        assert service.next_value("test:a") == 3

    def test_seed_used_only_on_creation(self, session):
        service = SequenceService(session)
        calls = []

        def seed():
            calls.append(1)
            return 41

        assert service.next_value("test:seeded", seed=seed) == 42
        assert service.next_value("test:seeded", seed=seed) == 43
        assert len(calls) == 1

    def test_current_value(self, session):
        service = SequenceService(session)
        assert service.current_value("test:current") is None
        service.next_value("test:current")
        service.next_value("test:current")
        assert service.current_value("test:current") == 2

    def test_counter_row_persisted(self, session):
        SequenceService(session).next_value("test:row")
        counter = session.execute(
            select(SequenceCounter).where(SequenceCounter.name == "test:row")
        ).scalar_one()
        assert counter.current_value == 1


class TestTransactional:
    def test_rollback_returns_number(self, session):
        service = SequenceService(session)
        service.next_value("test:rollback")
        session.commit()

        service.next_value("test:rollback")
        session.rollback()

        assert service.next_value("test:rollback") == 2

    def test_reset(self, session):
        service = SequenceService(session)
        service.next_value("test:reset")
        service.reset("test:reset", 10)
        assert service.next_value("test:reset") == 11


class TestLockedCounter:
    def test_counter_table_exists(self, session):
        inspector = inspect(session.bind)
        assert "sequence_counters" in inspector.get_table_names()
        columns = {c["name"] for c in inspector.get_columns("sequence_counters")}
        assert {"name", "current_value"} <= columns

    def test_next_value_locks_the_row(self):
        source = Path(inspect_module.getfile(SequenceService)).read_text()
        assert "with_for_update()" in source
