"""Tests for the rule version resolver."""

import logging
from datetime import date

import pytest

from benefit_engine.errors import MissingRuleData, RuleOverlap
from benefit_engine.models import (
    AllotmentRule,
    DeductionRule,
    DeductionType,
    IncomeLimit,
    RuleKind,
)
from benefit_engine.resolver import RuleVersionResolver
from benefit_engine.store import RuleSet

ON = date(2025, 3, 1)


def _rule_set(*records, on=ON):
    by_kind = {}
    for record in records:
        by_kind.setdefault(record.kind, []).append(record)
    return RuleSet(
        jurisdiction="US",
        program="SNAP",
        on=on,
        records={kind: tuple(rs) for kind, rs in by_kind.items()},
    )


def _allotment(rule_id, size_min, size_max, max_benefit, **overrides):
    values = dict(
        rule_id=rule_id,
        jurisdiction="US",
        program="SNAP",
        effective_from=date(2024, 10, 1),
        effective_to=date(2025, 9, 30),
        size_min=size_min,
        size_max=size_max,
        max_benefit=max_benefit,
    )
    values.update(overrides)
    return AllotmentRule(**values)


def _limit(rule_id, effective_from=date(2024, 10, 1), **overrides):
    values = dict(
        rule_id=rule_id,
        jurisdiction="US",
        program="SNAP",
        effective_from=effective_from,
        gross_limit=163200,
    )
    values.update(overrides)
    return IncomeLimit(**values)


class TestResolve:
    """Tests for single-record resolution."""

    def test_resolves_covering_record(self):
        """The record covering the size is returned."""
        resolver = RuleVersionResolver(
            _rule_set(_allotment("A1", 1, 1, 29200), _allotment("A2", 2, 2, 53600))
        )
        assert resolver.resolve(RuleKind.ALLOTMENT, 2, ON).rule_id == "A2"
        assert resolver.diagnostics == []

    def test_missing_raises(self):
        """No covering record raises MissingRuleData with context."""
        resolver = RuleVersionResolver(_rule_set(_allotment("A1", 1, 1, 29200)))
        with pytest.raises(MissingRuleData) as exc:
            resolver.resolve(RuleKind.ASSET_TEST, 3, ON)
        assert exc.value.kind == "asset_test"
        assert exc.value.household_size == 3
        assert exc.value.on == ON
        assert "No effective asset_test rule for US/SNAP" in str(exc.value)
        assert "date=2025-03-01" in str(exc.value)

    def test_expired_never_selected(self):
        """A record whose window ended before the date is ignored."""
        expired = _limit("OLD", effective_from=date(2023, 10, 1), effective_to=date(2024, 9, 30))
        resolver = RuleVersionResolver(_rule_set(expired))
        with pytest.raises(MissingRuleData):
            resolver.resolve(RuleKind.INCOME_LIMIT, 1, ON)

    def test_future_never_selected(self):
        """A record that starts after the date is ignored."""
        future = _limit("NEXT", effective_from=date(2025, 10, 1))
        resolver = RuleVersionResolver(_rule_set(future))
        assert resolver.resolve_optional(RuleKind.INCOME_LIMIT, 1, ON) is None

    def test_gap_between_versions(self):
        """A date between two closed-ended versions resolves to neither."""
        first = _limit("V1", effective_from=date(2024, 1, 1), effective_to=date(2024, 12, 31))
        second = _limit("V2", effective_from=date(2025, 2, 1), effective_to=date(2025, 9, 30))
        for on, expected in (
            (date(2024, 12, 31), "V1"),
            (date(2025, 2, 1), "V2"),
        ):
            resolver = RuleVersionResolver(_rule_set(first, second, on=on))
            assert resolver.resolve(RuleKind.INCOME_LIMIT, 1, on).rule_id == expected

        gap = date(2025, 1, 15)
        resolver = RuleVersionResolver(_rule_set(first, second, on=gap))
        with pytest.raises(MissingRuleData) as exc:
            resolver.resolve(RuleKind.INCOME_LIMIT, 1, gap)
        assert exc.value.kind == "income_limit"
        assert exc.value.on == gap
        assert resolver.diagnostics == []

    def test_slot_filter(self):
        """Slots pick the matching deduction type."""
        rules = [
            DeductionRule(
                rule_id=f"D-{t.value}",
                jurisdiction="US",
                program="SNAP",
                effective_from=date(2024, 10, 1),
                deduction_type=t,
            )
            for t in (DeductionType.STANDARD, DeductionType.SHELTER)
        ]
        resolver = RuleVersionResolver(_rule_set(*rules))
        rule = resolver.resolve(RuleKind.DEDUCTION, 1, ON, slot="shelter")
        assert rule.rule_id == "D-shelter"
        with pytest.raises(MissingRuleData) as exc:
            resolver.resolve(RuleKind.DEDUCTION, 1, ON, slot="medical")
        assert exc.value.slot == "medical"
        assert "type=medical" in str(exc.value)

    def test_resolve_slots_one_per_slot(self):
        """resolve_slots returns one record per slot, sorted by slot."""
        rules = [
            DeductionRule(
                rule_id=f"D-{t.value}",
                jurisdiction="US",
                program="SNAP",
                effective_from=date(2024, 10, 1),
                deduction_type=t,
            )
            for t in (DeductionType.STANDARD, DeductionType.EARNED_INCOME)
        ]
        resolver = RuleVersionResolver(_rule_set(*rules))
        found = resolver.resolve_slots(RuleKind.DEDUCTION, 1, ON)
        assert [r.rule_id for r in found] == ["D-earned_income", "D-standard"]

    def test_resolve_slots_empty(self):
        """No records of a kind gives an empty list."""
        resolver = RuleVersionResolver(_rule_set())
        assert resolver.resolve_slots(RuleKind.CATEGORICAL, 1, ON) == []


class TestOverlap:
    """Tests for overlapping effective records."""

    def test_latest_effective_from_wins(self, caplog):
        """The most recently effective record is chosen and the overlap logged."""
        resolver = RuleVersionResolver(
            _rule_set(_limit("INC-A"), _limit("INC-B", effective_from=date(2025, 1, 1)))
        )
        with caplog.at_level(logging.WARNING, logger="benefit_engine.resolver"):
            chosen = resolver.resolve(RuleKind.INCOME_LIMIT, 1, ON)
        assert chosen.rule_id == "INC-B"
        assert resolver.diagnostics == [
            RuleOverlap(
                kind="income_limit",
                jurisdiction="US",
                program="SNAP",
                on=ON,
                chosen_id="INC-B",
                competing_ids=("INC-A",),
                household_size=1,
            )
        ]
        assert "chose INC-B over INC-A" in caplog.text

    def test_tie_goes_to_greatest_rule_id(self):
        """Same effective_from: the lexicographically greatest id wins."""
        resolver = RuleVersionResolver(_rule_set(_limit("INC-2"), _limit("INC-10")))
        assert resolver.resolve(RuleKind.INCOME_LIMIT, 1, ON).rule_id == "INC-2"

    def test_overlap_recorded_once(self):
        """Resolving the same overlap twice records one diagnostic."""
        resolver = RuleVersionResolver(_rule_set(_limit("INC-A"), _limit("INC-B")))
        resolver.resolve(RuleKind.INCOME_LIMIT, 1, ON)
        resolver.resolve(RuleKind.INCOME_LIMIT, 1, ON)
        assert len(resolver.diagnostics) == 1

    def test_overlap_describe_and_dict(self):
        """RuleOverlap renders for logs and JSON."""
        overlap = RuleOverlap(
            kind="deduction",
            jurisdiction="US",
            program="SNAP",
            on=ON,
            chosen_id="B",
            competing_ids=("A",),
            slot="shelter",
        )
        assert overlap.describe() == (
            "Overlapping deduction[shelter] rules for US/SNAP on 2025-03-01: "
            "chose B over A"
        )
        assert overlap.to_dict()["competing_ids"] == ["A"]
        assert overlap.to_dict()["date"] == "2025-03-01"


class TestResolveBracket:
    """Tests for size-bracketed tables with per-member extrapolation."""

    def _table(self, per_member=22000):
        return _rule_set(
            _allotment("A1", 1, 1, 29200),
            _allotment("A2", 2, 2, 53600),
            _allotment("A8", 3, 8, 175600, per_additional_member=per_member),
        )

    def test_covered_size(self):
        """Covered sizes have no extra members."""
        resolver = RuleVersionResolver(self._table())
        record, extra = resolver.resolve_bracket(
            RuleKind.ALLOTMENT, 2, ON, "per_additional_member"
        )
        assert (record.rule_id, extra) == ("A2", 0)

    def test_beyond_table(self):
        """Sizes past the last bracket return it with the extra count."""
        resolver = RuleVersionResolver(self._table())
        record, extra = resolver.resolve_bracket(
            RuleKind.ALLOTMENT, 11, ON, "per_additional_member"
        )
        assert (record.rule_id, extra) == ("A8", 3)

    def test_beyond_table_without_increment(self):
        """No increment on the last bracket means missing data."""
        resolver = RuleVersionResolver(self._table(per_member=None))
        with pytest.raises(MissingRuleData, match="defines no per_additional_member"):
            resolver.resolve_bracket(RuleKind.ALLOTMENT, 9, ON, "per_additional_member")

    def test_gap_inside_table(self):
        """A hole inside the table is not extrapolated."""
        resolver = RuleVersionResolver(
            _rule_set(_allotment("A1", 1, 1, 29200), _allotment("A3", 3, 3, 76800))
        )
        with pytest.raises(MissingRuleData):
            resolver.resolve_bracket(RuleKind.ALLOTMENT, 2, ON, "per_additional_member")

    def test_open_ended_bracket(self):
        """An open-ended bracket covers every larger size."""
        resolver = RuleVersionResolver(_rule_set(_allotment("ANY", 1, None, 50000)))
        record, extra = resolver.resolve_bracket(
            RuleKind.ALLOTMENT, 20, ON, "per_additional_member"
        )
        assert (record.rule_id, extra) == ("ANY", 0)

    def test_open_ended_bracket_above_size(self):
        """A size below an open-ended bracket's start is a gap, not extrapolated."""
        resolver = RuleVersionResolver(
            _rule_set(
                _allotment("A1", 1, 1, 29200),
                _allotment("A8", 2, 8, 175600, per_additional_member=22000),
                _allotment("A10", 10, None, 219600),
            )
        )
        with pytest.raises(MissingRuleData, match="size falls between brackets"):
            resolver.resolve_bracket(RuleKind.ALLOTMENT, 9, ON, "per_additional_member")
        record, extra = resolver.resolve_bracket(
            RuleKind.ALLOTMENT, 12, ON, "per_additional_member"
        )
        assert (record.rule_id, extra) == ("A10", 0)

    def test_no_records(self):
        """An empty table raises MissingRuleData."""
        resolver = RuleVersionResolver(_rule_set())
        with pytest.raises(MissingRuleData):
            resolver.resolve_bracket(RuleKind.ALLOTMENT, 1, ON, "per_additional_member")
