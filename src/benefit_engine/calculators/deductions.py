"""
Deduction Calculator.

Source: 7 CFR 273.9(d)

Deductions are taken in a fixed order (standard, earned income, dependent
care, medical, shelter) because the shelter deduction depends on income left
after all the others. Amounts are integer cents; percentages and the
half-income shelter offset round half-up to the cent.

Each deduction type supplies a base (earned income, a cost, excess shelter
cost) and the rule's calculation_type turns it into an amount:

    fixed       the rule's amount
    percentage  percentage of the base
    threshold   base above the threshold
    capped      the base itself

max_amount caps every method, except shelter for exempt households.
"""

from dataclasses import dataclass, field
from typing import Dict

from ..errors import RuleDataError
from ..jurisdictions import JurisdictionConfig
from ..models import DeductionBreakdown, DeductionRule, DeductionType, HouseholdSnapshot
from ..money import format_dollars, half_of, percent_of

LABELS = {
    DeductionType.STANDARD: "Standard deduction",
    DeductionType.EARNED_INCOME: "Earned income deduction",
    DeductionType.DEPENDENT_CARE: "Dependent care deduction",
    DeductionType.MEDICAL: "Medical expense deduction",
    DeductionType.SHELTER: "Shelter deduction",
}


@dataclass
class DeductionResult:
    """Itemized deductions with their explanation lines."""

    breakdown: DeductionBreakdown
    lines: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.breakdown.total


def apply_calculation(rule: DeductionRule, base: int, uncapped: bool = False) -> int:
    """
    Turn a deduction base into an amount using the rule's method.

    Raises:
        RuleDataError: if a percentage rule has no percentage
    """
    method = rule.method
    if method == "fixed":
        amount = rule.amount or 0
    elif method == "percentage":
        if rule.percentage is None:
            raise RuleDataError(
                f"Deduction rule {rule.rule_id} is a percentage rule without a percentage",
                rule_id=rule.rule_id,
            )
        amount = percent_of(max(0, base), rule.percentage)
    elif method == "threshold":
        amount = max(0, base - (rule.threshold or 0))
    else:
        amount = max(0, base)
    if rule.max_amount is not None and not uncapped:
        amount = min(amount, rule.max_amount)
    return amount


def excess_shelter_cost(household: HouseholdSnapshot, income_after_other_deductions: int) -> int:
    """Shelter + utilities above half of the income left after other deductions."""
    cost = household.shelter_cost + household.utility_cost
    return max(0, cost - half_of(max(0, income_after_other_deductions)))


def deduction_base(
    deduction_type: DeductionType,
    household: HouseholdSnapshot,
    income_after_other_deductions: int,
) -> int:
    """The income or cost a deduction of this type is computed from."""
    if deduction_type is DeductionType.STANDARD:
        return household.gross_income
    if deduction_type is DeductionType.EARNED_INCOME:
        # Unearned income never counts
        return household.earned_income
    if deduction_type is DeductionType.DEPENDENT_CARE:
        return household.dependent_care_cost
    if deduction_type is DeductionType.MEDICAL:
        return household.medical_cost if household.has_elderly_or_disabled else 0
    return excess_shelter_cost(household, income_after_other_deductions)


def _describe(rule: DeductionRule, base: int, uncapped: bool) -> str:
    method = rule.method
    if method == "percentage":
        return f" ({rule.percentage}% of {format_dollars(base)})"
    if method == "threshold":
        return f" (amount over {format_dollars(rule.threshold or 0)})"
    if method == "capped" and rule.deduction_type is DeductionType.SHELTER:
        if uncapped or rule.max_amount is None:
            return " (uncapped)"
        return f" (capped at {format_dollars(rule.max_amount)})"
    return ""


def calculate_deductions(
    household: HouseholdSnapshot,
    rules: Dict[DeductionType, DeductionRule],
    jurisdiction: JurisdictionConfig,
) -> DeductionResult:
    """
    Compute every deduction the jurisdiction allows.

    Every type except the standard deduction is zero when its base is zero,
    whatever the rule's method.

    Args:
        household: Household being evaluated
        rules: Resolved rule per deduction type (one per applicable type)
        jurisdiction: Which deduction types apply, shelter-cap exemption

    Returns:
        DeductionResult with itemized amounts and explanation lines
    """
    amounts = {d: 0 for d in DeductionType}
    lines = []

    for deduction_type in jurisdiction.ordered_deductions:
        rule = rules[deduction_type]
        others = sum(amounts.values())
        base = deduction_base(deduction_type, household, household.gross_income - others)
        uncapped = (
            deduction_type is DeductionType.SHELTER
            and jurisdiction.elderly_disabled_shelter_uncapped
            and household.has_elderly_or_disabled
        )

        if deduction_type is not DeductionType.STANDARD and base <= 0:
            continue
        amounts[deduction_type] = apply_calculation(rule, base, uncapped)
        if amounts[deduction_type] or deduction_type is DeductionType.STANDARD:
            lines.append(
                f"{LABELS[deduction_type]}{_describe(rule, base, uncapped)}: "
                f"{format_dollars(amounts[deduction_type])}"
            )

    breakdown = DeductionBreakdown(
        standard=amounts[DeductionType.STANDARD],
        earned_income=amounts[DeductionType.EARNED_INCOME],
        dependent_care=amounts[DeductionType.DEPENDENT_CARE],
        medical=amounts[DeductionType.MEDICAL],
        shelter=amounts[DeductionType.SHELTER],
    )
    lines.append(f"Total deductions: {format_dollars(breakdown.total)}")
    return DeductionResult(breakdown=breakdown, lines=lines)
