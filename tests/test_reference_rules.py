"""Tests for the built-in reference rule records."""

from datetime import date

from benefit_engine import RuleKind, default_registry
from benefit_engine.reference_rules import (
    FY2025,
    SNAP_FY2025_PARAMS,
    build_reference_store,
    reference_records,
    snap_records,
)


class TestReferenceRecords:
    """Coverage of the reference rule set."""

    def test_unique_ids(self):
        """Every record has its own rule id."""
        ids = [r.rule_id for r in reference_records()]
        assert len(ids) == len(set(ids))

    def test_every_registered_pair_has_rules(self):
        """Each configured jurisdiction/program has FY2025 limits and allotments."""
        store = build_reference_store()
        on = date(2025, 3, 1)
        for config in default_registry():
            for kind in (RuleKind.INCOME_LIMIT, RuleKind.ALLOTMENT):
                assert store.fetch(kind, config.jurisdiction, config.program, on)

    def test_snap_records_in_cents(self):
        """Dollar parameters are stored as cents."""
        records = {r.rule_id: r for r in snap_records("XX", SNAP_FY2025_PARAMS, FY2025, "test")}
        assert records["XX-SNAP-FY2025-INC-1"].gross_limit == 163200
        assert records["XX-SNAP-FY2025-ALLOT-1"].min_benefit == 2300
        assert records["XX-SNAP-FY2025-ALLOT-3"].min_benefit is None
        assert records["XX-SNAP-FY2025-ALLOT-8"].per_additional_member == 22000
        assert records["XX-SNAP-FY2025-ASSET"].elderly_disabled_limit == 450000

    def test_without_assets(self):
        """Asset records can be left out."""
        records = snap_records("XX", SNAP_FY2025_PARAMS, FY2025, "test", with_assets=False)
        assert not any(r.kind is RuleKind.ASSET_TEST for r in records)
