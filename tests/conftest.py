"""Shared fixtures for benefit_engine tests."""

from datetime import date, datetime, timezone

import pytest

from benefit_engine import DeterminationEngine, HouseholdSnapshot, build_reference_store

FIXED_NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)
FY2025_DATE = date(2025, 3, 1)


@pytest.fixture
def engine():
    """Engine over the reference rules with a fixed clock."""
    return DeterminationEngine(build_reference_store(), clock=lambda: FIXED_NOW)


@pytest.fixture
def make_household():
    """Factory for snapshots; defaults to a one-person US SNAP household."""

    def make(**overrides):
        values = dict(
            household_size=1,
            jurisdiction="US",
            program="SNAP",
            evaluation_date=FY2025_DATE,
        )
        values.update(overrides)
        return HouseholdSnapshot(**values)

    return make
