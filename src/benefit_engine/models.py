"""
Data model: household snapshots, effective-dated rule records, determinations.

All monetary fields are integer cents. Everything here is immutable.
"""

import json
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import InvalidInput

# ============================================================
# Household input
# ============================================================

MONEY_FIELDS = (
    "earned_income",
    "unearned_income",
    "assets",
    "shelter_cost",
    "utility_cost",
    "dependent_care_cost",
    "medical_cost",
)

HOUSEHOLD_FLAGS = ("has_elderly", "has_disabled", "is_pregnant")


@dataclass(frozen=True)
class HouseholdSnapshot:
    """Point-in-time facts about an applicant household."""

    household_size: int
    jurisdiction: str
    program: str
    evaluation_date: date
    earned_income: int = 0
    unearned_income: int = 0
    assets: int = 0
    has_elderly: bool = False
    has_disabled: bool = False
    is_pregnant: bool = False
    children_count: int = 0
    shelter_cost: int = 0
    utility_cost: int = 0
    dependent_care_cost: int = 0
    medical_cost: int = 0
    other_aid: tuple = ()
    household_id: Optional[str] = None

    @property
    def gross_income(self) -> int:
        return self.earned_income + self.unearned_income

    @property
    def has_elderly_or_disabled(self) -> bool:
        return self.has_elderly or self.has_disabled

    def check(self) -> None:
        """
        Validate field ranges.

        Raises:
            InvalidInput: naming the first offending field
        """
        if not _is_int(self.household_size) or self.household_size < 1:
            raise InvalidInput(
                f"household_size must be a positive integer, got {self.household_size!r}",
                field="household_size",
            )
        if not _is_int(self.children_count) or self.children_count < 0:
            raise InvalidInput(
                f"children_count must be >= 0, got {self.children_count!r}",
                field="children_count",
            )
        for name in MONEY_FIELDS:
            value = getattr(self, name)
            if not _is_int(value):
                raise InvalidInput(
                    f"{name} must be an integer number of cents, got {value!r}",
                    field=name,
                )
            if value < 0:
                raise InvalidInput(f"{name} must be >= 0, got {value}", field=name)
        for name in HOUSEHOLD_FLAGS:
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise InvalidInput(
                    f"{name} must be true or false, got {value!r}", field=name
                )
        if not isinstance(self.other_aid, tuple) or not all(
            isinstance(code, str) and code.strip() for code in self.other_aid
        ):
            raise InvalidInput(
                f"other_aid must be a list of aid codes, got {self.other_aid!r}",
                field="other_aid",
            )
        if self.household_id is not None and not isinstance(self.household_id, str):
            raise InvalidInput(
                f"household_id must be a string, got {self.household_id!r}",
                field="household_id",
            )
        for name in ("jurisdiction", "program"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise InvalidInput(f"{name} must be a non-empty code", field=name)
        # datetime is a date subclass but carries a time component
        if not isinstance(self.evaluation_date, date) or isinstance(
            self.evaluation_date, datetime
        ):
            raise InvalidInput(
                f"evaluation_date must be a calendar date, got {self.evaluation_date!r}",
                field="evaluation_date",
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HouseholdSnapshot":
        """
        Build a snapshot from a plain mapping (e.g. parsed JSON).

        ``evaluation_date`` may be an ISO string. ``other_aid`` may be a list
        or a comma-separated string. Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidInput(f"Unknown household fields: {', '.join(unknown)}")
        missing = [
            name
            for name in ("household_size", "jurisdiction", "program", "evaluation_date")
            if name not in data
        ]
        if missing:
            raise InvalidInput(
                f"Missing household fields: {', '.join(missing)}", field=missing[0]
            )

        values = dict(data)
        values["evaluation_date"] = parse_date(values["evaluation_date"])
        aid = values.get("other_aid", ())
        if isinstance(aid, str):
            aid = [a.strip() for a in aid.split(",") if a.strip()]
        if isinstance(aid, (list, tuple)):
            aid = tuple(a.upper() if isinstance(a, str) else a for a in aid)
        values["other_aid"] = aid
        if values.get("household_id") is not None:
            values["household_id"] = str(values["household_id"])
        return cls(**values)


def parse_date(value: Any) -> date:
    """Parse an ISO date, raising InvalidInput for anything else."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidInput(
        f"evaluation_date must be a valid YYYY-MM-DD date, got {value!r}",
        field="evaluation_date",
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ============================================================
# Rule records
# ============================================================


class RuleKind(str, Enum):
    INCOME_LIMIT = "income_limit"
    DEDUCTION = "deduction"
    ALLOTMENT = "allotment"
    CATEGORICAL = "categorical"
    ASSET_TEST = "asset_test"


class DeductionType(str, Enum):
    STANDARD = "standard"
    EARNED_INCOME = "earned_income"
    DEPENDENT_CARE = "dependent_care"
    MEDICAL = "medical"
    SHELTER = "shelter"


# Order deductions are computed and reported in. Shelter must be last.
DEDUCTION_ORDER = (
    DeductionType.STANDARD,
    DeductionType.EARNED_INCOME,
    DeductionType.DEPENDENT_CARE,
    DeductionType.MEDICAL,
    DeductionType.SHELTER,
)

# How a deduction rule turns its base (income or cost) into an amount.
# "capped" takes the base itself; every method honours max_amount.
CALCULATION_TYPES = ("fixed", "percentage", "capped", "threshold")

DEFAULT_CALCULATION = {
    DeductionType.STANDARD: "fixed",
    DeductionType.EARNED_INCOME: "percentage",
    DeductionType.DEPENDENT_CARE: "capped",
    DeductionType.MEDICAL: "threshold",
    DeductionType.SHELTER: "capped",
}


@dataclass(frozen=True, kw_only=True)
class RuleRecord:
    """
    One version of a policy rule, valid within [effective_from, effective_to].

    Records are never edited: a correction is a new record, and the old one is
    closed-ended or deactivated.
    """

    kind = None

    rule_id: str
    jurisdiction: str
    program: str
    effective_from: date
    effective_to: Optional[date] = None
    size_min: Optional[int] = None
    size_max: Optional[int] = None
    is_active: bool = True
    source: str = ""
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    notes: str = ""

    @property
    def slot(self) -> Optional[str]:
        """Sub-key that distinguishes independent rules of the same kind."""
        return None

    def is_effective(self, on: date) -> bool:
        if not self.is_active or self.effective_from > on:
            return False
        return self.effective_to is None or on <= self.effective_to

    def covers_size(self, household_size: int) -> bool:
        if self.size_min is not None and household_size < self.size_min:
            return False
        return self.size_max is None or household_size <= self.size_max


@dataclass(frozen=True, kw_only=True)
class IncomeLimit(RuleRecord):
    kind = RuleKind.INCOME_LIMIT

    gross_limit: int
    net_limit: Optional[int] = None
    percent_of_poverty: Optional[int] = None
    gross_per_additional_member: Optional[int] = None
    net_per_additional_member: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class DeductionRule(RuleRecord):
    kind = RuleKind.DEDUCTION

    deduction_type: DeductionType
    calculation_type: Optional[str] = None
    amount: Optional[int] = None
    percentage: Optional[Decimal] = None
    threshold: Optional[int] = None
    max_amount: Optional[int] = None

    def __post_init__(self):
        if (
            self.calculation_type is not None
            and self.calculation_type not in CALCULATION_TYPES
        ):
            raise ValueError(
                f"Deduction rule {self.rule_id}: unknown calculation_type "
                f"{self.calculation_type!r} (expected one of {', '.join(CALCULATION_TYPES)})"
            )

    @property
    def method(self) -> str:
        """calculation_type, or the usual method for this deduction type."""
        return self.calculation_type or DEFAULT_CALCULATION[self.deduction_type]

    @property
    def slot(self) -> Optional[str]:
        return self.deduction_type.value


@dataclass(frozen=True, kw_only=True)
class AllotmentRule(RuleRecord):
    kind = RuleKind.ALLOTMENT

    max_benefit: int
    min_benefit: Optional[int] = None
    reduction_rate: Decimal = Decimal(30)
    rounding: str = "nearest_dollar"
    per_additional_member: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class CategoricalEligibilityRule(RuleRecord):
    kind = RuleKind.CATEGORICAL

    code: str
    name: str = ""
    priority: int = 100
    bypass_gross_income_test: bool = False
    bypass_net_income_test: bool = False
    bypass_asset_test: bool = False
    broad_based: bool = False
    conditions: Mapping[str, Any] = field(default_factory=dict)

    @property
    def slot(self) -> Optional[str]:
        return self.code

    @property
    def bypassed_tests(self) -> tuple:
        tests = []
        if self.bypass_gross_income_test:
            tests.append("gross_income")
        if self.bypass_net_income_test:
            tests.append("net_income")
        if self.bypass_asset_test:
            tests.append("asset")
        return tuple(tests)


@dataclass(frozen=True, kw_only=True)
class AssetTestRule(RuleRecord):
    kind = RuleKind.ASSET_TEST

    limit: int
    elderly_disabled_limit: Optional[int] = None


# ============================================================
# Determination output
# ============================================================


class CheckStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    BYPASSED = "bypassed"
    NOT_APPLICABLE = "not_applicable"


class IneligibilityReason(str, Enum):
    GROSS_INCOME = "gross income exceeds limit"
    NET_INCOME = "net income exceeds limit"
    ASSETS = "asset limit exceeded"
    NO_DEPENDENT_CHILDREN = "dependent children required"


@dataclass(frozen=True)
class CheckOutcome:
    """Result of one eligibility test."""

    status: CheckStatus
    limit: Optional[int] = None
    actual: Optional[int] = None
    bypassed_by: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status is not CheckStatus.FAILED

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "limit": self.limit,
            "actual": self.actual,
            "bypassed_by": self.bypassed_by,
        }


@dataclass(frozen=True)
class DeductionBreakdown:
    """Itemized deductions in cents."""

    standard: int = 0
    earned_income: int = 0
    dependent_care: int = 0
    medical: int = 0
    shelter: int = 0

    @property
    def total(self) -> int:
        return (
            self.standard
            + self.earned_income
            + self.dependent_care
            + self.medical
            + self.shelter
        )

    def to_dict(self) -> dict:
        return {
            "standard": self.standard,
            "earned_income": self.earned_income,
            "dependent_care": self.dependent_care,
            "medical": self.medical,
            "shelter": self.shelter,
            "total": self.total,
        }


@dataclass(frozen=True)
class Determination:
    """
    Outcome of one evaluation. Append-only audit record: a re-evaluation
    produces a new Determination rather than editing this one.
    """

    household_id: Optional[str]
    jurisdiction: str
    program: str
    evaluation_date: date
    is_eligible: bool
    gross_income: int
    net_income: int
    deductions: DeductionBreakdown
    categorical_code: Optional[str]
    gross_income_test: CheckOutcome
    net_income_test: CheckOutcome
    asset_test: Optional[CheckOutcome]
    monthly_benefit: int
    max_allotment: Optional[int]
    ineligibility_reasons: tuple
    rules_snapshot: tuple
    citations: tuple
    calculation_breakdown: tuple
    diagnostics: tuple
    evaluated_at: datetime
    calculated_by: str

    def __post_init__(self):
        if self.is_eligible != (not self.ineligibility_reasons):
            raise ValueError(
                "is_eligible must be true exactly when there are no "
                "ineligibility reasons"
            )

    def to_dict(self) -> dict:
        return {
            "household_id": self.household_id,
            "jurisdiction": self.jurisdiction,
            "program": self.program,
            "evaluation_date": self.evaluation_date.isoformat(),
            "is_eligible": self.is_eligible,
            "gross_income": self.gross_income,
            "net_income": self.net_income,
            "deductions": self.deductions.to_dict(),
            "categorical_code": self.categorical_code,
            "gross_income_test": self.gross_income_test.to_dict(),
            "net_income_test": self.net_income_test.to_dict(),
            "asset_test": self.asset_test.to_dict() if self.asset_test else None,
            "monthly_benefit": self.monthly_benefit,
            "max_allotment": self.max_allotment,
            "ineligibility_reasons": [r.value for r in self.ineligibility_reasons],
            "rules_snapshot": list(self.rules_snapshot),
            "citations": [dict(c) for c in self.citations],
            "calculation_breakdown": list(self.calculation_breakdown),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "evaluated_at": self.evaluated_at.isoformat(),
            "calculated_by": self.calculated_by,
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        """Canonical JSON: identical inputs give byte-identical output."""
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent)


__all__ = [
    "AllotmentRule",
    "AssetTestRule",
    "CALCULATION_TYPES",
    "CategoricalEligibilityRule",
    "CheckOutcome",
    "CheckStatus",
    "DEDUCTION_ORDER",
    "DeductionBreakdown",
    "DeductionRule",
    "DeductionType",
    "Determination",
    "HouseholdSnapshot",
    "IncomeLimit",
    "IneligibilityReason",
    "RuleKind",
    "RuleRecord",
    "parse_date",
]
