"""
Tests for version chains: admission, point lookups and history.
"""

from datetime import datetime, timezone

import pytest

from chronostore.core.exceptions import (
    InconsistentChainError,
    OverlapError,
    TemporalConstraintError,
)
from chronostore.temporal.chain import VersionChain
from chronostore.temporal.interval import INFINITY, Interval
from chronostore.temporal.record import VersionRecord


def at(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


# Processing instants
T1 = at(2025, 1, 1)
T2 = at(2025, 2, 1)
T3 = at(2025, 3, 1)


def salary(amount: int, business: Interval | None, processing: Interval) -> VersionRecord:
    return VersionRecord("Salary", 1, {"amount": amount}, processing, business)


@pytest.fixture
def corrected_chain() -> VersionChain:
    """Salary of 100 from 2024-01-01, corrected at T2 to 110 from 2024-07-01."""
    chain = VersionChain("Salary", 1)
    chain.append(salary(100, Interval.open(at(2024, 1, 1)), Interval(T1, T2)))
    chain.append(salary(100, Interval(at(2024, 1, 1), at(2024, 7, 1)), Interval.open(T2)))
    chain.append(salary(110, Interval.open(at(2024, 7, 1)), Interval.open(T2)))
    return chain


class TestAdmission:
    """Test that chains keep business x processing rectangles disjoint."""

    def test_append_disjoint_records(self, corrected_chain):
        assert len(corrected_chain) == 3
        corrected_chain.validate()

    def test_overlapping_record_rejected(self, corrected_chain):
        """A second current record for an already covered period is refused."""
        duplicate = salary(120, Interval.open(at(2024, 9, 1)), Interval.open(T3))

        with pytest.raises(OverlapError) as exc_info:
            corrected_chain.append(duplicate)

        assert exc_info.value.kind == "Salary"
        assert exc_info.value.entity_id == 1
        assert len(corrected_chain) == 3

    def test_same_business_different_belief_periods_allowed(self):
        chain = VersionChain("Salary", 1)
        chain.append(salary(100, Interval.open(at(2024, 1, 1)), Interval(T1, T2)))
        chain.append(salary(105, Interval.open(at(2024, 1, 1)), Interval.open(T2)))

        chain.validate()

    def test_wrong_identity_rejected(self):
        chain = VersionChain("Salary", 2)

        with pytest.raises(TemporalConstraintError):
            chain.append(salary(100, Interval.open(at(2024, 1, 1)), Interval.open(T1)))

    def test_uni_temporal_chain_rejects_business_interval(self):
        chain = VersionChain("Salary", 1, bitemporal=False)

        with pytest.raises(TemporalConstraintError):
            chain.append(salary(100, Interval.open(at(2024, 1, 1)), Interval.open(T1)))

    def test_replace_closes_processing(self):
        chain = VersionChain("Salary", 1)
        record = chain.append(salary(100, Interval.open(at(2024, 1, 1)), Interval.open(T1)))

        closed = chain.replace(record, record.closed(T2))

        assert closed.processing == Interval(T1, T2)
        assert chain.current() == []

    def test_replace_refuses_attribute_changes(self):
        chain = VersionChain("Salary", 1)
        record = chain.append(salary(100, Interval.open(at(2024, 1, 1)), Interval.open(T1)))

        with pytest.raises(TemporalConstraintError):
            chain.replace(record, salary(999, record.business, record.processing))

    def test_validate_detects_corruption(self):
        """Records loaded without admission checks can still be audited."""
        chain = VersionChain(
            "Salary",
            1,
            [
                salary(100, Interval.open(at(2024, 1, 1)), Interval.open(T1)),
                salary(200, Interval.open(at(2024, 6, 1)), Interval.open(T2)),
            ],
        )

        with pytest.raises(InconsistentChainError):
            chain.validate()


class TestLookups:
    """Test current and as-of resolution."""

    def test_current_as_of(self, corrected_chain):
        assert corrected_chain.current_as_of(at(2024, 6, 15)).attributes["amount"] == 100
        assert corrected_chain.current_as_of(at(2024, 8, 1)).attributes["amount"] == 110
        assert corrected_chain.current_as_of(at(2023, 12, 31)) is None

    def test_current_as_of_boundaries(self, corrected_chain):
        """Business boundaries are start-inclusive and thru-exclusive."""
        assert corrected_chain.current_as_of(at(2024, 7, 1)).attributes["amount"] == 110
        assert corrected_chain.current_as_of(at(2024, 1, 1)).attributes["amount"] == 100

    def test_current_ignores_superseded_records(self):
        """Only records with an INFINITY processing thru count as current."""
        chain = VersionChain("Salary", 1)
        chain.append(salary(100, Interval.open(at(2024, 1, 1)), Interval(T1, T2)))

        assert chain.current_as_of(at(2024, 6, 1)) is None

    def test_current_as_of_requires_business_time(self, corrected_chain):
        with pytest.raises(TemporalConstraintError) as exc_info:
            corrected_chain.current_as_of()

        assert exc_info.value.kind == "Salary"
        assert exc_info.value.entity_id == 1

    def test_as_of_requires_business_time(self, corrected_chain):
        with pytest.raises(TemporalConstraintError):
            corrected_chain.as_of(None, T2)

    def test_as_of_past_belief(self, corrected_chain):
        """Before the correction the system believed 100 for all of 2024."""
        believed = corrected_chain.as_of(at(2024, 8, 1), at(2025, 1, 15))
        assert believed.attributes["amount"] == 100

        assert corrected_chain.as_of(at(2024, 8, 1), at(2025, 2, 15)).attributes["amount"] == 110

    def test_as_of_before_first_processing_is_none(self, corrected_chain):
        assert corrected_chain.as_of(at(2024, 8, 1), at(2024, 12, 31)) is None

    def test_as_of_infinity_means_current(self, corrected_chain):
        assert corrected_chain.as_of(at(2024, 8, 1), INFINITY) == corrected_chain.current_as_of(
            at(2024, 8, 1)
        )

    def test_inconsistent_lookup_raises(self):
        chain = VersionChain(
            "Salary",
            1,
            [
                salary(100, Interval.open(at(2024, 1, 1)), Interval.open(T1)),
                salary(200, Interval.open(at(2024, 1, 1)), Interval.open(T2)),
            ],
        )

        with pytest.raises(InconsistentChainError) as exc_info:
            chain.current_as_of(at(2024, 3, 1))
        assert len(exc_info.value.matches) == 2

    def test_latest(self, corrected_chain):
        assert corrected_chain.latest().attributes["amount"] == 110

    def test_first_processing_start(self, corrected_chain):
        assert corrected_chain.first_processing_start() == T1
        assert VersionChain("Salary", 1).first_processing_start() is None

    def test_is_active(self, corrected_chain):
        assert corrected_chain.is_active(at(2024, 3, 1))
        assert not corrected_chain.is_active(at(2023, 3, 1))


class TestUniTemporalChain:
    """Test chains that only track processing time."""

    @pytest.fixture
    def company_chain(self) -> VersionChain:
        chain = VersionChain("Company", 7, bitemporal=False)
        chain.append(VersionRecord("Company", 7, {"name": "Acme"}, Interval(T1, T2)))
        chain.append(VersionRecord("Company", 7, {"name": "Acme Corp"}, Interval.open(T2)))
        return chain

    def test_current_ignores_business_time(self, company_chain):
        assert company_chain.current_as_of().attributes["name"] == "Acme Corp"

    def test_as_of_processing_time(self, company_chain):
        assert company_chain.as_of(None, at(2025, 1, 15)).attributes["name"] == "Acme"
        assert company_chain.as_of(None, at(2024, 1, 15)) is None

    def test_second_current_record_rejected(self, company_chain):
        with pytest.raises(OverlapError):
            company_chain.append(VersionRecord("Company", 7, {"name": "Other"}, Interval.open(T3)))


class TestHistory:
    """Test history ordering."""

    def test_oldest_processing_first(self, corrected_chain):
        history = corrected_chain.history()

        assert [r.processing.start for r in history] == [T1, T2, T2]
        # Ties broken by business start
        assert [r.attributes["amount"] for r in history] == [100, 100, 110]

    def test_history_is_restartable(self, corrected_chain):
        assert list(corrected_chain) == list(corrected_chain)
