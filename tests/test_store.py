"""Tests for rule stores, rule sets and CSV loading."""

import json
import time
from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from benefit_engine.errors import InvalidInput, RuleStoreUnavailable
from benefit_engine.models import (
    AllotmentRule,
    AssetTestRule,
    CategoricalEligibilityRule,
    DeductionRule,
    DeductionType,
    IncomeLimit,
    RuleKind,
)
from benefit_engine.store import (
    InMemoryRuleStore,
    RuleStore,
    household_from_row,
    load_households_csv,
    load_rule_set,
    load_rules_from_csv,
)

FY_START = date(2024, 10, 1)
FY_END = date(2025, 9, 30)


def _limit(rule_id="INC-1", **overrides):
    values = dict(
        rule_id=rule_id,
        jurisdiction="US",
        program="SNAP",
        effective_from=FY_START,
        effective_to=FY_END,
        gross_limit=163200,
        net_limit=125500,
    )
    values.update(overrides)
    return IncomeLimit(**values)


class TestInMemoryRuleStore:
    """Tests for InMemoryRuleStore.fetch."""

    def test_fetch_filters_kind_and_program(self):
        """Only records of the kind and jurisdiction/program come back."""
        store = InMemoryRuleStore(
            [
                _limit("A"),
                _limit("B", jurisdiction="MD"),
                _limit("C", program="TANF"),
                AssetTestRule(
                    rule_id="D",
                    jurisdiction="US",
                    program="SNAP",
                    effective_from=FY_START,
                    limit=300000,
                ),
            ]
        )
        found = store.fetch(RuleKind.INCOME_LIMIT, "US", "SNAP", date(2025, 1, 1))
        assert [r.rule_id for r in found] == ["A"]

    def test_fetch_filters_dates(self):
        """Expired, future and inactive records are excluded."""
        store = InMemoryRuleStore(
            [
                _limit("OLD", effective_from=date(2023, 10, 1), effective_to=date(2024, 9, 30)),
                _limit("CURRENT"),
                _limit("FUTURE", effective_from=date(2025, 10, 1), effective_to=None),
                _limit("INACTIVE", is_active=False),
            ]
        )
        found = store.fetch(RuleKind.INCOME_LIMIT, "US", "SNAP", date(2025, 1, 1))
        assert [r.rule_id for r in found] == ["CURRENT"]

    def test_duplicate_id_rejected(self):
        """Rule ids are unique within a store."""
        store = InMemoryRuleStore([_limit("A")])
        with pytest.raises(ValueError, match="Duplicate rule id"):
            store.add(_limit("A"))

    def test_records_is_immutable_view(self):
        """records returns a tuple copy."""
        store = InMemoryRuleStore([_limit("A")])
        assert isinstance(store.records, tuple)
        assert len(store.records) == 1


class TestRuleHistory:
    """Tests for rule_history and compare_rule_versions."""

    def _store(self):
        return InMemoryRuleStore(
            [
                _limit("FY2025", gross_limit=163200),
                _limit(
                    "FY2024",
                    effective_from=date(2023, 10, 1),
                    effective_to=date(2024, 9, 30),
                    gross_limit=158000,
                ),
                _limit("FY2025-DRAFT", is_active=False, gross_limit=170000),
                _limit("MD", jurisdiction="MD"),
                DeductionRule(
                    rule_id="STD-2024",
                    jurisdiction="US",
                    program="SNAP",
                    effective_from=date(2023, 10, 1),
                    effective_to=date(2024, 9, 30),
                    deduction_type=DeductionType.STANDARD,
                    amount=19800,
                ),
                DeductionRule(
                    rule_id="STD-2025",
                    jurisdiction="US",
                    program="SNAP",
                    effective_from=FY_START,
                    effective_to=FY_END,
                    deduction_type=DeductionType.STANDARD,
                    amount=20400,
                ),
                DeductionRule(
                    rule_id="EARNED-2025",
                    jurisdiction="US",
                    program="SNAP",
                    effective_from=FY_START,
                    deduction_type=DeductionType.EARNED_INCOME,
                    percentage=Decimal(20),
                ),
            ]
        )

    def test_history_oldest_first_with_inactive(self):
        """Every version is listed in effective order, drafts included."""
        history = self._store().rule_history(RuleKind.INCOME_LIMIT, "US", "SNAP")
        assert [r.rule_id for r in history] == ["FY2024", "FY2025", "FY2025-DRAFT"]

    def test_history_by_slot(self):
        """A slot narrows the history to one deduction type."""
        store = self._store()
        standard = store.rule_history(RuleKind.DEDUCTION, "US", "SNAP", slot="standard")
        every = store.rule_history(RuleKind.DEDUCTION, "US", "SNAP")
        assert [r.rule_id for r in standard] == ["STD-2024", "STD-2025"]
        assert len(every) == 3

    def test_history_unknown_rule(self):
        """No versions is an empty history."""
        assert self._store().rule_history(RuleKind.ALLOTMENT, "US", "SNAP") == ()

    def test_compare_versions(self):
        """Differences map each changed field to its old and new value."""
        diff = self._store().compare_rule_versions("FY2024", "FY2025")
        assert diff == {
            "effective_from": (date(2023, 10, 1), FY_START),
            "effective_to": (date(2024, 9, 30), FY_END),
            "gross_limit": (158000, 163200),
        }

    def test_compare_identical(self):
        """A version compared with itself has no differences."""
        assert self._store().compare_rule_versions("STD-2025", "STD-2025") == {}

    def test_compare_different_rules_rejected(self):
        """Different jurisdictions or deduction types are different rules."""
        store = self._store()
        with pytest.raises(ValueError, match="not versions of the same rule"):
            store.compare_rule_versions("FY2025", "MD")
        with pytest.raises(ValueError):
            store.compare_rule_versions("STD-2025", "EARNED-2025")
        with pytest.raises(ValueError):
            store.compare_rule_versions("FY2025", "STD-2025")

    def test_compare_unknown_id(self):
        """Unknown ids raise KeyError."""
        with pytest.raises(KeyError, match="NOPE"):
            self._store().compare_rule_versions("FY2025", "NOPE")


class SlowStore(RuleStore):
    def fetch(self, kind, jurisdiction, program, on):
        time.sleep(0.2)
        return []


class BrokenStore(RuleStore):
    def fetch(self, kind, jurisdiction, program, on):
        raise ConnectionError("database is down")


class TestLoadRuleSet:
    """Tests for load_rule_set."""

    def test_loads_every_kind(self):
        """The rule set has an entry per kind."""
        store = InMemoryRuleStore([_limit("A")])
        rule_set = load_rule_set(store, "US", "SNAP", date(2025, 1, 1))
        assert set(rule_set.records) == set(RuleKind)
        assert [r.rule_id for r in rule_set.of_kind(RuleKind.INCOME_LIMIT)] == ["A"]
        assert rule_set.of_kind(RuleKind.ALLOTMENT) == ()
        assert rule_set.key == ("US", "SNAP", date(2025, 1, 1))

    def test_timeout(self):
        """A slow store raises RuleStoreUnavailable."""
        with pytest.raises(RuleStoreUnavailable, match="did not answer"):
            load_rule_set(SlowStore(), "US", "SNAP", date(2025, 1, 1), timeout=0.05)

    def test_store_error(self):
        """Store exceptions become RuleStoreUnavailable."""
        with pytest.raises(RuleStoreUnavailable, match="database is down"):
            load_rule_set(BrokenStore(), "US", "SNAP", date(2025, 1, 1))


def _write_rules(directory, include_assets=True):
    """Write a small US SNAP rule directory (dollars)."""
    common = {
        "jurisdiction": "US",
        "program": "SNAP",
        "effective_from": "2024-10-01",
        "effective_to": "2025-09-30",
    }
    pd.DataFrame(
        [
            {**common, "rule_id": "INC-1", "size_min": 1, "size_max": 1,
             "gross_limit": "1632", "net_limit": "1255",
             "gross_per_additional_member": "583", "net_per_additional_member": "449",
             "source": "7 CFR 273.9(a)"},
        ]
    ).to_csv(directory / "income_limits.csv", index=False)
    pd.DataFrame(
        [
            {**common, "rule_id": "STD", "deduction_type": "standard", "amount": "204"},
            {**common, "rule_id": "EARNED", "deduction_type": "earned_income",
             "calculation_type": "percentage", "percentage": "20"},
            {**common, "rule_id": "DEPCARE", "deduction_type": "dependent_care"},
            {**common, "rule_id": "MEDICAL", "deduction_type": "medical", "threshold": "35"},
            {**common, "rule_id": "SHELTER", "deduction_type": "shelter",
             "max_amount": "712"},
        ]
    ).to_csv(directory / "deductions.csv", index=False)
    pd.DataFrame(
        [
            {**common, "rule_id": "ALLOT-1", "size_min": 1, "size_max": 1,
             "max_benefit": "292", "min_benefit": "23", "reduction_rate": "30",
             "per_additional_member": "220"},
        ]
    ).to_csv(directory / "allotments.csv", index=False)
    pd.DataFrame(
        [
            {**common, "rule_id": "CAT-SSI", "code": "ssi", "priority": "0",
             "bypass_gross_income_test": "true", "bypass_asset_test": "yes",
             "conditions": json.dumps({"receives_any": ["SSI"]})},
        ]
    ).to_csv(directory / "categorical_rules.csv", index=False)
    if include_assets:
        pd.DataFrame(
            [{**common, "rule_id": "ASSET", "limit": "3000",
              "elderly_disabled_limit": "4500"}]
        ).to_csv(directory / "asset_limits.csv", index=False)


class TestLoadRulesFromCsv:
    """Tests for load_rules_from_csv."""

    def test_loads_all_kinds(self, tmp_path):
        """Every file is parsed into typed records in cents."""
        _write_rules(tmp_path)
        store = load_rules_from_csv(tmp_path)
        by_id = {r.rule_id: r for r in store.records}
        assert len(by_id) == 9

        limit = by_id["INC-1"]
        assert limit.gross_limit == 163200
        assert limit.net_per_additional_member == 44900
        assert limit.effective_to == FY_END

        assert by_id["EARNED"].percentage == Decimal("20")
        assert by_id["MEDICAL"].threshold == 3500
        assert by_id["SHELTER"].max_amount == 71200
        assert by_id["STD"].deduction_type is DeductionType.STANDARD

        allotment = by_id["ALLOT-1"]
        assert isinstance(allotment, AllotmentRule)
        assert allotment.min_benefit == 2300
        assert allotment.reduction_rate == Decimal("30")

        categorical = by_id["CAT-SSI"]
        assert isinstance(categorical, CategoricalEligibilityRule)
        assert categorical.code == "SSI"
        assert categorical.priority == 0
        assert categorical.bypass_gross_income_test
        assert categorical.bypass_asset_test
        assert not categorical.bypass_net_income_test
        assert categorical.conditions == {"receives_any": ["SSI"]}

        assert by_id["ASSET"].elderly_disabled_limit == 450000

    def test_defaults(self, tmp_path):
        """Blank optional columns take the record defaults."""
        _write_rules(tmp_path)
        store = load_rules_from_csv(tmp_path)
        by_id = {r.rule_id: r for r in store.records}
        assert by_id["STD"].calculation_type is None
        assert by_id["STD"].method == "fixed"
        assert by_id["EARNED"].method == "percentage"
        assert by_id["DEPCARE"].max_amount is None
        assert by_id["STD"].size_min is None
        assert by_id["STD"].is_active

    def test_missing_file_is_empty(self, tmp_path):
        """A kind without a file has no records."""
        _write_rules(tmp_path, include_assets=False)
        store = load_rules_from_csv(tmp_path)
        assert not any(isinstance(r, AssetTestRule) for r in store.records)

    def test_missing_directory(self, tmp_path):
        """A missing directory raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_rules_from_csv(tmp_path / "nope")

    def test_bad_row_names_file_and_row(self, tmp_path):
        """Parse errors name the file and the spreadsheet row."""
        _write_rules(tmp_path)
        pd.DataFrame(
            [
                {"rule_id": "A", "jurisdiction": "US", "program": "SNAP",
                 "effective_from": "2024-10-01", "max_benefit": "292"},
                {"rule_id": "B", "jurisdiction": "US", "program": "SNAP",
                 "effective_from": "2024-10-01", "max_benefit": "2.925"},
            ]
        ).to_csv(tmp_path / "allotments.csv", index=False)
        with pytest.raises(ValueError, match="allotments.csv row 3"):
            load_rules_from_csv(tmp_path)

    def test_unknown_calculation_type(self, tmp_path):
        """An unknown deduction calculation_type fails the load, naming the row."""
        _write_rules(tmp_path)
        pd.DataFrame(
            [
                {"rule_id": "STD", "jurisdiction": "US", "program": "SNAP",
                 "effective_from": "2024-10-01", "deduction_type": "standard",
                 "calculation_type": "fixed", "amount": "204"},
                {"rule_id": "EARNED", "jurisdiction": "US", "program": "SNAP",
                 "effective_from": "2024-10-01", "deduction_type": "earned_income",
                 "calculation_type": "sliding", "percentage": "20"},
            ]
        ).to_csv(tmp_path / "deductions.csv", index=False)
        with pytest.raises(ValueError, match="deductions.csv row 3.*sliding"):
            load_rules_from_csv(tmp_path)

    def test_missing_required_column(self, tmp_path):
        """A required money column must have a value."""
        _write_rules(tmp_path)
        pd.DataFrame(
            [{"rule_id": "A", "jurisdiction": "US", "program": "SNAP",
              "effective_from": "2024-10-01", "limit": ""}]
        ).to_csv(tmp_path / "asset_limits.csv", index=False)
        with pytest.raises(ValueError, match="missing required column 'limit'"):
            load_rules_from_csv(tmp_path)


class TestHouseholdCsv:
    """Tests for household CSV loading."""

    def test_household_from_row(self):
        """Dollar strings, counts and flags are converted."""
        household = household_from_row(
            {
                "household_id": "h1",
                "household_size": "3",
                "jurisdiction": "US",
                "program": "SNAP",
                "evaluation_date": "2025-03-01",
                "earned_income": "2000.50",
                "has_elderly": "yes",
                "other_aid": "SSI;TANF",
                "children_count": None,
            }
        )
        assert household.household_size == 3
        assert household.earned_income == 200050
        assert household.has_elderly
        assert household.other_aid == ("SSI", "TANF")
        assert household.children_count == 0

    def test_bad_money(self):
        """Unparseable money raises InvalidInput naming the field."""
        with pytest.raises(InvalidInput) as exc:
            household_from_row(
                {
                    "household_size": "1",
                    "jurisdiction": "US",
                    "program": "SNAP",
                    "evaluation_date": "2025-03-01",
                    "assets": "lots",
                }
            )
        assert exc.value.field == "assets"

    def test_load_households_csv(self, tmp_path):
        """Rows become snapshots in file order."""
        path = tmp_path / "households.csv"
        pd.DataFrame(
            [
                {"household_id": "a", "household_size": 1, "jurisdiction": "US",
                 "program": "SNAP", "evaluation_date": "2025-03-01",
                 "earned_income": "1500"},
                {"household_id": "b", "household_size": 4, "jurisdiction": "MD",
                 "program": "SNAP", "evaluation_date": "2025-03-01",
                 "earned_income": ""},
            ]
        ).to_csv(path, index=False)
        households = load_households_csv(path)
        assert [h.household_id for h in households] == ["a", "b"]
        assert households[0].earned_income == 150000
        assert households[1].earned_income == 0

    def test_bad_row_number(self, tmp_path):
        """Errors name the CSV row."""
        path = tmp_path / "households.csv"
        pd.DataFrame(
            [
                {"household_size": 1, "jurisdiction": "US", "program": "SNAP",
                 "evaluation_date": "2025-03-01"},
                {"household_size": "two", "jurisdiction": "US", "program": "SNAP",
                 "evaluation_date": "2025-03-01"},
            ]
        ).to_csv(path, index=False)
        with pytest.raises(InvalidInput, match="households.csv row 3"):
            load_households_csv(path)

    def test_missing_file(self, tmp_path):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_households_csv(tmp_path / "missing.csv")
