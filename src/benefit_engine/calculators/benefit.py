"""
Benefit Amount Calculator.

Source: 7 USC 2017(a), 7 CFR 273.10(e)

Benefit = maximum allotment - reduction_rate% of net income, floored at zero,
rounded per the allotment rule, then raised to the posted minimum benefit.
Households larger than the allotment table get the largest bracket's
allotment plus a fixed amount per additional member.
"""

from dataclasses import dataclass, field

from ..errors import RuleDataError
from ..models import AllotmentRule
from ..money import format_dollars, percent_of, round_to_dollar

ROUNDING_MODES = ("nearest_dollar", "cent")


@dataclass
class BenefitResult:
    """Benefit calculation result."""

    benefit: int
    max_allotment: int
    reduction: int
    lines: list = field(default_factory=list)


def max_allotment_for(rule: AllotmentRule, extra_members: int = 0) -> int:
    """Allotment for the household, extending past the table if needed."""
    if extra_members <= 0:
        return rule.max_benefit
    if rule.per_additional_member is None:
        raise RuleDataError(
            f"Allotment {rule.rule_id} has no per-additional-member amount",
            rule_id=rule.rule_id,
        )
    return rule.max_benefit + extra_members * rule.per_additional_member


def calculate_benefit(
    rule: AllotmentRule,
    net_income: int,
    extra_members: int = 0,
) -> BenefitResult:
    """
    Calculate the monthly benefit for an eligible household.

    Args:
        rule: Resolved allotment rule for the household size
        net_income: Net monthly income in cents
        extra_members: Members beyond the allotment table's largest bracket

    Returns:
        BenefitResult with benefit in cents
    """
    if rule.rounding not in ROUNDING_MODES:
        raise RuleDataError(
            f"Unknown rounding mode on {rule.rule_id}: {rule.rounding}",
            rule_id=rule.rule_id,
        )

    lines = []
    max_allotment = max_allotment_for(rule, extra_members)
    if extra_members:
        lines.append(
            f"Maximum allotment extended by {extra_members} member(s) at "
            f"{format_dollars(rule.per_additional_member)} each: "
            f"{format_dollars(max_allotment)}"
        )

    reduction = percent_of(net_income, rule.reduction_rate)
    benefit = max(0, max_allotment - reduction)
    if rule.rounding == "nearest_dollar":
        benefit = round_to_dollar(benefit)
    lines.append(
        f"Benefit calculation: {format_dollars(max_allotment)} - "
        f"({rule.reduction_rate}% x {format_dollars(net_income)}) = "
        f"{format_dollars(benefit)}"
    )

    if rule.min_benefit and benefit < rule.min_benefit:
        benefit = rule.min_benefit
        lines.append(f"Minimum benefit applied: {format_dollars(benefit)}")

    return BenefitResult(
        benefit=benefit,
        max_allotment=max_allotment,
        reduction=reduction,
        lines=lines,
    )
