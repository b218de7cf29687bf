"""
Income Test Evaluator.

Source: 7 CFR 273.9(a)

Gross test: earned + unearned income against the gross ceiling. Net test:
gross income minus total deductions (floored at zero) against the net
ceiling. Both limits are inclusive. Either test may be bypassed by
categorical eligibility; the gross test is also waived for elderly/disabled
households where the jurisdiction says so.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..errors import RuleDataError
from ..jurisdictions import JurisdictionConfig
from ..models import CheckOutcome, CheckStatus, HouseholdSnapshot, IncomeLimit
from ..money import format_dollars
from .categorical import CategoricalMatch

ELDERLY_DISABLED_EXEMPTION = "ELDERLY_DISABLED"


@dataclass
class IncomeTestResult:
    """Outcome of one income test with explanation lines."""

    outcome: CheckOutcome
    lines: list = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.outcome.status is CheckStatus.FAILED


def extrapolated_limit(
    base: Optional[int], per_member: Optional[int], extra_members: int
) -> Optional[int]:
    """
    Limit for a household larger than the table's last bracket.

    Returns None when the base limit is absent, or when members beyond the
    table need an increment the rule does not define.
    """
    if base is None:
        return None
    if extra_members == 0:
        return base
    if per_member is None:
        return None
    return base + extra_members * per_member


def evaluate_gross_income_test(
    household: HouseholdSnapshot,
    limit: Optional[IncomeLimit],
    jurisdiction: JurisdictionConfig,
    categorical: Optional[CategoricalMatch] = None,
    extra_members: int = 0,
) -> IncomeTestResult:
    """
    Run the gross income test.

    Args:
        household: Household being evaluated
        limit: Resolved IncomeLimit (may be None only when the test is bypassed)
        jurisdiction: Policy toggles
        categorical: Matched categorical rule, if any
        extra_members: Members beyond the limit table's largest bracket

    Returns:
        IncomeTestResult
    """
    gross = household.gross_income
    ceiling = (
        extrapolated_limit(limit.gross_limit, limit.gross_per_additional_member, extra_members)
        if limit
        else None
    )

    if categorical and categorical.bypasses_gross:
        return IncomeTestResult(
            outcome=CheckOutcome(
                status=CheckStatus.BYPASSED,
                limit=ceiling,
                actual=gross,
                bypassed_by=categorical.code,
            ),
            lines=[f"Gross income test bypassed (categorical eligibility: {categorical.code})"],
        )

    if ceiling is not None and gross <= ceiling:
        return IncomeTestResult(
            outcome=CheckOutcome(status=CheckStatus.PASSED, limit=ceiling, actual=gross),
            lines=[
                f"Gross income test passed: {format_dollars(gross)} <= "
                f"{format_dollars(ceiling)}"
            ],
        )

    if jurisdiction.elderly_disabled_gross_exempt and household.has_elderly_or_disabled:
        return IncomeTestResult(
            outcome=CheckOutcome(
                status=CheckStatus.BYPASSED,
                limit=ceiling,
                actual=gross,
                bypassed_by=ELDERLY_DISABLED_EXEMPTION,
            ),
            lines=["Gross income test waived (household has elderly or disabled member)"],
        )

    if ceiling is None:
        raise RuleDataError("Gross income test requires a resolved income limit")

    return IncomeTestResult(
        outcome=CheckOutcome(status=CheckStatus.FAILED, limit=ceiling, actual=gross),
        lines=[
            f"Gross income test failed: {format_dollars(gross)} > {format_dollars(ceiling)}"
        ],
    )


def calculate_net_income(gross_income: int, total_deductions: int) -> int:
    """Gross income minus deductions, never below zero."""
    return max(0, gross_income - total_deductions)


def evaluate_net_income_test(
    net_income: int,
    limit: Optional[IncomeLimit],
    categorical: Optional[CategoricalMatch] = None,
    extra_members: int = 0,
) -> IncomeTestResult:
    """
    Run the net income test.

    A limit without a net ceiling means the program has no net test; the
    outcome is then ``not_applicable``.
    """
    ceiling = (
        extrapolated_limit(limit.net_limit, limit.net_per_additional_member, extra_members)
        if limit
        else None
    )

    if categorical and categorical.bypasses_net:
        return IncomeTestResult(
            outcome=CheckOutcome(
                status=CheckStatus.BYPASSED,
                limit=ceiling,
                actual=net_income,
                bypassed_by=categorical.code,
            ),
            lines=[f"Net income test bypassed (categorical eligibility: {categorical.code})"],
        )

    if limit is None:
        raise RuleDataError("Net income test requires a resolved income limit")

    if limit.net_limit is None:
        return IncomeTestResult(
            outcome=CheckOutcome(status=CheckStatus.NOT_APPLICABLE, actual=net_income),
            lines=["Net income test not applicable"],
        )

    if ceiling is None:
        raise RuleDataError(
            f"Income limit {limit.rule_id} has no net increment for large households",
            rule_id=limit.rule_id,
        )

    if net_income <= ceiling:
        return IncomeTestResult(
            outcome=CheckOutcome(status=CheckStatus.PASSED, limit=ceiling, actual=net_income),
            lines=[
                f"Net income test passed: {format_dollars(net_income)} <= "
                f"{format_dollars(ceiling)}"
            ],
        )
    return IncomeTestResult(
        outcome=CheckOutcome(status=CheckStatus.FAILED, limit=ceiling, actual=net_income),
        lines=[
            f"Net income test failed: {format_dollars(net_income)} > "
            f"{format_dollars(ceiling)}"
        ],
    )
