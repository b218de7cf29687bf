"""
Asset Test Evaluator.

Source: 7 CFR 273.8(b)

Only runs where the jurisdiction requires an asset test and categorical
eligibility has not waived it. Households with an elderly or disabled member
use the higher ceiling when the rule defines one.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..errors import RuleDataError
from ..models import AssetTestRule, CheckOutcome, CheckStatus, HouseholdSnapshot
from ..money import format_dollars


@dataclass
class AssetTestResult:
    outcome: CheckOutcome
    lines: list = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.outcome.status is CheckStatus.FAILED


def asset_limit_for(rule: AssetTestRule, household: HouseholdSnapshot) -> int:
    if household.has_elderly_or_disabled and rule.elderly_disabled_limit is not None:
        return rule.elderly_disabled_limit
    return rule.limit


def evaluate_asset_test(
    household: HouseholdSnapshot,
    rule: Optional[AssetTestRule],
    waived_by: Optional[str] = None,
) -> AssetTestResult:
    """
    Compare countable assets to the resolved ceiling (inclusive).

    Args:
        household: Household being evaluated
        rule: Resolved AssetTestRule (may be None only when waived)
        waived_by: Categorical code that waives the test, if any

    Returns:
        AssetTestResult
    """
    limit = asset_limit_for(rule, household) if rule else None

    if waived_by:
        return AssetTestResult(
            outcome=CheckOutcome(
                status=CheckStatus.BYPASSED,
                limit=limit,
                actual=household.assets,
                bypassed_by=waived_by,
            ),
            lines=[f"Asset test bypassed (categorical eligibility: {waived_by})"],
        )

    if rule is None:
        raise RuleDataError("Asset test requires a resolved asset rule")

    if household.assets <= limit:
        return AssetTestResult(
            outcome=CheckOutcome(
                status=CheckStatus.PASSED, limit=limit, actual=household.assets
            ),
            lines=[
                f"Asset test passed: {format_dollars(household.assets)} <= "
                f"{format_dollars(limit)}"
            ],
        )
    return AssetTestResult(
        outcome=CheckOutcome(status=CheckStatus.FAILED, limit=limit, actual=household.assets),
        lines=[
            f"Asset test failed: {format_dollars(household.assets)} > "
            f"{format_dollars(limit)}"
        ],
    )
