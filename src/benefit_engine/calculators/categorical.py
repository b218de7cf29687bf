"""
Categorical Eligibility Resolver.

Source: 7 CFR 273.2(j) - households receiving SSI, TANF or GA, and households
qualifying under broad-based categorical eligibility, skip some of the
standard tests.

Rules are tried in ascending (priority, code) order so that a specific
category (SSI) wins over a broad one (BBCE). The first match is returned.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ..errors import RuleDataError
from ..jurisdictions import JurisdictionConfig
from ..models import CategoricalEligibilityRule, HouseholdSnapshot

SUPPORTED_CONDITIONS = (
    "receives_any",
    "requires_elderly_or_disabled",
    "max_gross_income",
    "min_children",
)


@dataclass
class CategoricalMatch:
    """The categorical rule a household qualifies under."""

    rule: CategoricalEligibilityRule

    @property
    def code(self) -> str:
        return self.rule.code

    @property
    def bypasses_gross(self) -> bool:
        return self.rule.bypass_gross_income_test

    @property
    def bypasses_net(self) -> bool:
        return self.rule.bypass_net_income_test

    @property
    def bypasses_assets(self) -> bool:
        return self.rule.bypass_asset_test


@dataclass
class CategoricalResult:
    """Outcome of categorical resolution, matched or not."""

    match: Optional[CategoricalMatch]
    evaluated_ids: list


def conditions_match(rule: CategoricalEligibilityRule, household: HouseholdSnapshot) -> bool:
    """
    Check a rule's conditions against a household. Every condition present
    must hold; a rule with no conditions matches everyone.

    Raises:
        RuleDataError: for an unknown condition key
    """
    conditions = rule.conditions or {}
    unknown = set(conditions) - set(SUPPORTED_CONDITIONS)
    if unknown:
        raise RuleDataError(
            f"Categorical rule {rule.rule_id} has unsupported conditions: "
            f"{', '.join(sorted(unknown))}",
            rule_id=rule.rule_id,
        )

    if "receives_any" in conditions:
        wanted = {str(code).upper() for code in conditions["receives_any"]}
        if not wanted & set(household.other_aid):
            return False
    if conditions.get("requires_elderly_or_disabled") and not household.has_elderly_or_disabled:
        return False
    if "max_gross_income" in conditions:
        if household.gross_income > int(conditions["max_gross_income"]):
            return False
    if "min_children" in conditions:
        if household.children_count < int(conditions["min_children"]):
            return False
    return True


def resolve_categorical_eligibility(
    household: HouseholdSnapshot,
    rules: Iterable[CategoricalEligibilityRule],
    jurisdiction: JurisdictionConfig,
) -> CategoricalResult:
    """
    Find the first categorical rule the household qualifies under.

    Args:
        household: Household being evaluated
        rules: Effective categorical rules for the jurisdiction/program
        jurisdiction: Policy toggles (broad-based rules need it enabled)

    Returns:
        CategoricalResult; ``match`` is None when no rule applies
    """
    evaluated = []
    for rule in sorted(rules, key=lambda r: (r.priority, r.code)):
        if rule.broad_based and not jurisdiction.broad_based_categorical:
            continue
        evaluated.append(rule.rule_id)
        if conditions_match(rule, household):
            return CategoricalResult(
                match=CategoricalMatch(rule=rule),
                evaluated_ids=evaluated,
            )
    return CategoricalResult(match=None, evaluated_ids=evaluated)
