"""
Rule Store: read-only access to effective-dated rule records.

The engine only needs one operation from a store: "fetch all records of kind K
for (jurisdiction, program) as of date D". ``load_rule_set`` wraps that into an
immutable ``RuleSet`` covering every kind, fetched once per evaluation or batch.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .errors import InvalidInput, RuleStoreUnavailable
from .models import (
    HOUSEHOLD_FLAGS,
    MONEY_FIELDS,
    AllotmentRule,
    AssetTestRule,
    CategoricalEligibilityRule,
    DeductionRule,
    DeductionType,
    HouseholdSnapshot,
    IncomeLimit,
    RuleKind,
    RuleRecord,
)
from .money import dollars_to_cents

logger = logging.getLogger(__name__)


class RuleStore:
    """Interface for rule storage backends."""

    def fetch(
        self, kind: RuleKind, jurisdiction: str, program: str, on: date
    ) -> List[RuleRecord]:
        """Return every active record of ``kind`` effective on ``on``."""
        raise NotImplementedError


class InMemoryRuleStore(RuleStore):
    """Rule store backed by a list of records."""

    def __init__(self, records: Iterable[RuleRecord] = ()):
        self._records: List[RuleRecord] = []
        self.add(*records)

    def add(self, *records: RuleRecord) -> None:
        for record in records:
            if any(r.rule_id == record.rule_id for r in self._records):
                raise ValueError(f"Duplicate rule id: {record.rule_id}")
            self._records.append(record)

    @property
    def records(self) -> tuple:
        return tuple(self._records)

    def fetch(
        self, kind: RuleKind, jurisdiction: str, program: str, on: date
    ) -> List[RuleRecord]:
        return [
            r
            for r in self._records
            if r.kind == kind
            and r.jurisdiction == jurisdiction
            and r.program == program
            and r.is_effective(on)
        ]

    def rule_history(
        self,
        kind: RuleKind,
        jurisdiction: str,
        program: str,
        slot: Optional[str] = None,
    ) -> tuple:
        """
        Every version of a rule, oldest first, inactive ones included.

        Args:
            kind: Rule kind
            jurisdiction: Jurisdiction code
            program: Program code
            slot: Deduction type or categorical code; None returns every slot

        Returns:
            Records ordered by (effective_from, rule_id)
        """
        history = [
            r
            for r in self._records
            if r.kind == kind
            and r.jurisdiction == jurisdiction
            and r.program == program
            and (slot is None or r.slot == slot)
        ]
        return tuple(sorted(history, key=lambda r: (r.effective_from, r.rule_id)))

    def compare_rule_versions(self, rule_id_a: str, rule_id_b: str) -> Dict[str, tuple]:
        """
        Field-by-field differences between two versions of the same rule.

        Returns:
            ``{field: (value_a, value_b)}`` for every field that differs,
            rule_id excluded

        Raises:
            KeyError: if either id is unknown
            ValueError: if the records are not versions of one rule (different
                kind, jurisdiction, program or slot)
        """
        by_id = {r.rule_id: r for r in self._records}
        for rule_id in (rule_id_a, rule_id_b):
            if rule_id not in by_id:
                raise KeyError(f"Unknown rule id: {rule_id}")
        a, b = by_id[rule_id_a], by_id[rule_id_b]
        if _rule_identity(a) != _rule_identity(b):
            raise ValueError(
                f"Cannot compare {rule_id_a} and {rule_id_b}: they are not "
                "versions of the same rule"
            )
        return {
            f.name: (getattr(a, f.name), getattr(b, f.name))
            for f in fields(a)
            if f.name != "rule_id" and getattr(a, f.name) != getattr(b, f.name)
        }


def _rule_identity(record: RuleRecord) -> tuple:
    return (record.kind, record.jurisdiction, record.program, record.slot)


@dataclass(frozen=True)
class RuleSet:
    """Immutable snapshot of all records for one (jurisdiction, program, date)."""

    jurisdiction: str
    program: str
    on: date
    records: Dict[RuleKind, tuple]

    def of_kind(self, kind: RuleKind) -> tuple:
        return self.records.get(kind, ())

    @property
    def key(self) -> tuple:
        return (self.jurisdiction, self.program, self.on)


def load_rule_set(
    store: RuleStore,
    jurisdiction: str,
    program: str,
    on: date,
    timeout: Optional[float] = None,
) -> RuleSet:
    """
    Fetch every rule kind for a jurisdiction/program as of a date.

    Args:
        store: Rule store to read
        jurisdiction: Jurisdiction code
        program: Program code
        on: Evaluation date
        timeout: Seconds allowed for the whole fetch (None waits forever)

    Returns:
        RuleSet shared by every household evaluated against it

    Raises:
        RuleStoreUnavailable: if the store errors or the timeout expires
    """

    def fetch_all() -> Dict[RuleKind, tuple]:
        return {
            kind: tuple(store.fetch(kind, jurisdiction, program, on))
            for kind in RuleKind
        }

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(fetch_all)
    try:
        records = future.result(timeout=timeout)
    except FutureTimeout:
        raise RuleStoreUnavailable(
            f"Rule store did not answer within {timeout}s "
            f"for {jurisdiction}/{program} on {on.isoformat()}"
        )
    except Exception as e:
        raise RuleStoreUnavailable(f"Rule store failed: {e}") from e
    finally:
        # A timed-out fetch is abandoned, not joined
        executor.shutdown(wait=False)

    logger.debug(
        "Loaded %d rule records for %s/%s on %s",
        sum(len(v) for v in records.values()),
        jurisdiction,
        program,
        on.isoformat(),
    )
    return RuleSet(jurisdiction=jurisdiction, program=program, on=on, records=records)


# ============================================================
# CSV loading
# ============================================================

RULE_FILES = {
    RuleKind.INCOME_LIMIT: "income_limits.csv",
    RuleKind.DEDUCTION: "deductions.csv",
    RuleKind.ALLOTMENT: "allotments.csv",
    RuleKind.CATEGORICAL: "categorical_rules.csv",
    RuleKind.ASSET_TEST: "asset_limits.csv",
}

# Columns holding dollar amounts, converted to cents on load
MONEY_COLUMNS = {
    RuleKind.INCOME_LIMIT: (
        "gross_limit",
        "net_limit",
        "gross_per_additional_member",
        "net_per_additional_member",
    ),
    RuleKind.DEDUCTION: ("amount", "threshold", "max_amount"),
    RuleKind.ALLOTMENT: ("max_benefit", "min_benefit", "per_additional_member"),
    RuleKind.CATEGORICAL: (),
    RuleKind.ASSET_TEST: ("limit", "elderly_disabled_limit"),
}


def load_rules_from_csv(directory) -> InMemoryRuleStore:
    """
    Load rule records from a directory of CSV files, one file per kind.

    Missing files are treated as empty tables. Money columns are in dollars.

    Raises:
        FileNotFoundError: if the directory does not exist
        ValueError: if a row cannot be parsed (message names file and row)
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Rules directory not found: {directory}")

    store = InMemoryRuleStore()
    for kind, filename in RULE_FILES.items():
        path = directory / filename
        if not path.exists():
            continue
        df = pd.read_csv(path, dtype=str, keep_default_na=True)
        for idx, row in df.iterrows():
            values = {k: (None if pd.isna(v) else v.strip()) for k, v in row.items()}
            try:
                store.add(_record_from_row(kind, values))
            except (KeyError, ValueError, TypeError) as e:
                raise ValueError(f"{filename} row {idx + 2}: {e}") from e
        logger.info("Loaded %d %s records from %s", len(df), kind.value, path)
    return store


def _record_from_row(kind: RuleKind, values: dict) -> RuleRecord:
    common = dict(
        rule_id=values["rule_id"],
        jurisdiction=values["jurisdiction"],
        program=values["program"],
        effective_from=date.fromisoformat(values["effective_from"]),
        effective_to=_opt(values.get("effective_to"), date.fromisoformat),
        size_min=_opt(values.get("size_min"), int),
        size_max=_opt(values.get("size_max"), int),
        is_active=_parse_bool(values.get("is_active"), default=True),
        source=values.get("source") or "",
        approved_by=values.get("approved_by"),
        approved_at=_opt(values.get("approved_at"), datetime.fromisoformat),
        notes=values.get("notes") or "",
    )
    for column in MONEY_COLUMNS[kind]:
        values[column] = _opt(values.get(column), dollars_to_cents)

    if kind is RuleKind.INCOME_LIMIT:
        return IncomeLimit(
            **common,
            gross_limit=_required(values, "gross_limit"),
            net_limit=values.get("net_limit"),
            percent_of_poverty=_opt(values.get("percent_of_poverty"), int),
            gross_per_additional_member=values.get("gross_per_additional_member"),
            net_per_additional_member=values.get("net_per_additional_member"),
        )
    if kind is RuleKind.DEDUCTION:
        return DeductionRule(
            **common,
            deduction_type=DeductionType(values["deduction_type"]),
            calculation_type=values.get("calculation_type") or None,
            amount=values.get("amount"),
            percentage=_opt(values.get("percentage"), Decimal),
            threshold=values.get("threshold"),
            max_amount=values.get("max_amount"),
        )
    if kind is RuleKind.ALLOTMENT:
        return AllotmentRule(
            **common,
            max_benefit=_required(values, "max_benefit"),
            min_benefit=values.get("min_benefit"),
            reduction_rate=_opt(values.get("reduction_rate"), Decimal, Decimal(30)),
            rounding=values.get("rounding") or "nearest_dollar",
            per_additional_member=values.get("per_additional_member"),
        )
    if kind is RuleKind.CATEGORICAL:
        return CategoricalEligibilityRule(
            **common,
            code=values["code"].upper(),
            name=values.get("name") or values["code"],
            priority=_opt(values.get("priority"), int, 100),
            bypass_gross_income_test=_parse_bool(values.get("bypass_gross_income_test")),
            bypass_net_income_test=_parse_bool(values.get("bypass_net_income_test")),
            bypass_asset_test=_parse_bool(values.get("bypass_asset_test")),
            broad_based=_parse_bool(values.get("broad_based")),
            conditions=_opt(values.get("conditions"), json.loads) or {},
        )
    return AssetTestRule(
        **common,
        limit=_required(values, "limit"),
        elderly_disabled_limit=values.get("elderly_disabled_limit"),
    )


def _opt(value, parse, default=None):
    return default if value is None or value == "" else parse(value)


def _required(values: dict, column: str):
    if values.get(column) is None:
        raise ValueError(f"missing required column '{column}'")
    return values[column]


def _parse_bool(value, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes", "y"):
        return True
    if lowered in ("false", "0", "no", "n"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# ============================================================
# Household CSV loading
# ============================================================

HOUSEHOLD_COUNTS = ("household_size", "children_count")


def household_from_row(values: dict) -> HouseholdSnapshot:
    """
    Build a snapshot from one CSV row of strings. Money is in dollars;
    ``other_aid`` codes may be separated by ``;`` or ``,``.

    Raises:
        InvalidInput: for values that cannot be parsed
    """
    data = {k: v for k, v in values.items() if v is not None}
    for name in MONEY_FIELDS:
        if name in data:
            try:
                data[name] = dollars_to_cents(data[name])
            except ValueError as e:
                raise InvalidInput(f"{name}: {e}", field=name) from e
    for name in HOUSEHOLD_COUNTS:
        if name in data:
            try:
                data[name] = int(data[name])
            except ValueError as e:
                raise InvalidInput(f"{name} must be a whole number", field=name) from e
    for name in HOUSEHOLD_FLAGS:
        if name in data:
            try:
                data[name] = _parse_bool(data[name])
            except ValueError as e:
                raise InvalidInput(f"{name}: {e}", field=name) from e
    if isinstance(data.get("other_aid"), str):
        data["other_aid"] = data["other_aid"].replace(";", ",")
    return HouseholdSnapshot.from_dict(data)


def households_from_frame(df: pd.DataFrame, source: str = "households") -> List[HouseholdSnapshot]:
    """Convert a string-typed DataFrame into snapshots, naming the row on error."""
    households = []
    for idx, row in df.iterrows():
        values = {
            k: (None if pd.isna(v) else str(v).strip()) for k, v in row.items()
        }
        try:
            households.append(household_from_row(values))
        except InvalidInput as e:
            raise InvalidInput(f"{source} row {idx + 2}: {e}", field=e.field) from e
    return households


def load_households_csv(path) -> List[HouseholdSnapshot]:
    """
    Load household snapshots from a CSV file.

    Columns are HouseholdSnapshot field names; money columns are in dollars.

    Raises:
        FileNotFoundError: if the file does not exist
        InvalidInput: if a row is malformed (message names the row)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Households file not found: {path}")
    df = pd.read_csv(path, dtype=str)
    households = households_from_frame(df, source=path.name)
    logger.info("Loaded %d households from %s", len(households), path)
    return households
