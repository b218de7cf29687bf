"""
Determination engine: runs one household through the eligibility pipeline
and assembles the Determination audit record.

Pipeline order:
    categorical eligibility -> gross income test -> deductions ->
    net income test -> asset test -> benefit amount

A household that fails a test still goes through every test so that the
audit trail is complete, but no benefit is computed for it.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .calculators import (
    calculate_benefit,
    calculate_deductions,
    calculate_net_income,
    evaluate_asset_test,
    evaluate_gross_income_test,
    evaluate_net_income_test,
    resolve_categorical_eligibility,
)
from .config import EngineConfig
from .errors import InvalidInput, MissingRuleData, RuleDataError
from .jurisdictions import JurisdictionConfig, JurisdictionRegistry, default_registry
from .models import (
    CheckOutcome,
    CheckStatus,
    Determination,
    HouseholdSnapshot,
    IneligibilityReason,
    RuleKind,
    RuleRecord,
)
from .money import format_dollars
from .reference_rules import build_reference_store
from .resolver import RuleVersionResolver
from .store import RuleSet, RuleStore, load_rule_set, load_rules_from_csv

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DeterminationEngine:
    """
    Evaluates households against effective-dated rules.

    Args:
        store: Rule store to load records from
        jurisdictions: Policy configuration per (jurisdiction, program)
        config: Engine settings
        clock: Returns the evaluation timestamp (inject a fixed clock for
            reproducible output)
    """

    def __init__(
        self,
        store: RuleStore,
        jurisdictions: Optional[JurisdictionRegistry] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.jurisdictions = jurisdictions or default_registry()
        self.config = config or EngineConfig()
        self.clock = clock or utc_now

    def validate(self, household: HouseholdSnapshot) -> JurisdictionConfig:
        """
        Check input preconditions before any rule lookup.

        Raises:
            InvalidInput: for malformed data or an unknown jurisdiction/program
        """
        if not isinstance(household, HouseholdSnapshot):
            raise InvalidInput(f"Expected a HouseholdSnapshot, got {type(household).__name__}")
        household.check()
        return self.jurisdictions.get(household.jurisdiction, household.program)

    def load_rules(self, household: HouseholdSnapshot) -> RuleSet:
        """Load the rule snapshot a household is evaluated against."""
        return load_rule_set(
            self.store,
            household.jurisdiction,
            household.program,
            household.evaluation_date,
            timeout=self.config.store_timeout,
        )

    def evaluate(
        self,
        household: HouseholdSnapshot,
        actor: Optional[str] = None,
        rule_set: Optional[RuleSet] = None,
    ) -> Determination:
        """
        Produce a Determination for one household.

        Args:
            household: Household snapshot
            actor: Who requested the calculation (defaults to config)
            rule_set: Pre-loaded rules; loaded from the store when omitted

        Returns:
            Determination

        Raises:
            InvalidInput: bad household data
            MissingRuleData: a required rule has no effective version
            RuleDataError: a resolved rule is malformed
            RuleStoreUnavailable: the store could not be read
        """
        jurisdiction = self.validate(household)
        if rule_set is None:
            rule_set = self.load_rules(household)
        elif rule_set.key != (
            household.jurisdiction,
            household.program,
            household.evaluation_date,
        ):
            raise ValueError(
                f"Rule set {rule_set.key} does not match household "
                f"{household.jurisdiction}/{household.program} "
                f"on {household.evaluation_date.isoformat()}"
            )

        try:
            determination = self._evaluate(household, jurisdiction, rule_set, actor)
        except (MissingRuleData, RuleDataError) as e:
            logger.warning("Cannot evaluate household %s: %s", household.household_id, e)
            raise

        logger.debug(
            "Household %s: eligible=%s benefit=%s rules=%s",
            household.household_id,
            determination.is_eligible,
            determination.monthly_benefit,
            ",".join(determination.rules_snapshot),
        )
        return determination

    def _evaluate(
        self,
        household: HouseholdSnapshot,
        jurisdiction: JurisdictionConfig,
        rule_set: RuleSet,
        actor: Optional[str],
    ) -> Determination:
        resolver = RuleVersionResolver(rule_set)
        on = household.evaluation_date
        size = household.household_size
        consulted: List[RuleRecord] = []
        reasons: List[IneligibilityReason] = []
        lines = [
            f"Household size: {size}",
            f"Gross monthly income: {format_dollars(household.gross_income)}",
        ]

        # Step 1: categorical eligibility
        categorical_rules = resolver.resolve_slots(RuleKind.CATEGORICAL, size, on)
        categorical = resolve_categorical_eligibility(
            household, categorical_rules, jurisdiction
        )
        by_id = {r.rule_id: r for r in categorical_rules}
        consulted.extend(by_id[rule_id] for rule_id in categorical.evaluated_ids)
        match = categorical.match
        if match:
            waived = ", ".join(t.replace("_", " ") for t in match.rule.bypassed_tests)
            lines.append(
                f"Categorical eligibility: {match.rule.name or match.code}"
                + (f" (waives {waived} test)" if waived else "")
            )

        # Step 2: program prerequisite
        if jurisdiction.requires_dependent_children and not _has_dependents(
            household, jurisdiction
        ):
            reasons.append(IneligibilityReason.NO_DEPENDENT_CHILDREN)
            lines.append("Program requires dependent children: none in household")

        # Step 3: income limits and gross test
        both_bypassed = bool(match and match.bypasses_gross and match.bypasses_net)
        try:
            income_limit, extra = resolver.resolve_bracket(
                RuleKind.INCOME_LIMIT, size, on, "gross_per_additional_member"
            )
        except MissingRuleData:
            if not both_bypassed:
                raise
            income_limit, extra = None, 0
        if income_limit is not None:
            consulted.append(income_limit)
            needs_net_increment = (
                extra
                and income_limit.net_limit is not None
                and income_limit.net_per_additional_member is None
                and not (match and match.bypasses_net)
            )
            if needs_net_increment:
                raise MissingRuleData(
                    kind=RuleKind.INCOME_LIMIT.value,
                    jurisdiction=household.jurisdiction,
                    program=household.program,
                    on=on,
                    household_size=size,
                    detail=f"{income_limit.rule_id} defines no net_per_additional_member",
                )

        gross = evaluate_gross_income_test(household, income_limit, jurisdiction, match, extra)
        lines.extend(gross.lines)
        if gross.failed:
            reasons.append(IneligibilityReason.GROSS_INCOME)

        # Step 4: deductions
        deduction_rules = {
            deduction_type: resolver.resolve(
                RuleKind.DEDUCTION, size, on, slot=deduction_type.value
            )
            for deduction_type in jurisdiction.ordered_deductions
        }
        consulted.extend(deduction_rules.values())
        deductions = calculate_deductions(household, deduction_rules, jurisdiction)
        lines.extend(deductions.lines)

        # Step 5: net test
        net_income = calculate_net_income(household.gross_income, deductions.total)
        lines.append(f"Net monthly income: {format_dollars(net_income)}")
        net = evaluate_net_income_test(net_income, income_limit, match, extra)
        lines.extend(net.lines)
        if net.failed:
            reasons.append(IneligibilityReason.NET_INCOME)

        # Step 6: asset test
        asset_outcome: Optional[CheckOutcome] = None
        if jurisdiction.asset_test_applies:
            waived_by = match.code if match and match.bypasses_assets else None
            if waived_by:
                asset_rule = resolver.resolve_optional(RuleKind.ASSET_TEST, size, on)
            else:
                asset_rule = resolver.resolve(RuleKind.ASSET_TEST, size, on)
            if asset_rule is not None:
                consulted.append(asset_rule)
            assets = evaluate_asset_test(household, asset_rule, waived_by)
            lines.extend(assets.lines)
            if assets.failed:
                reasons.append(IneligibilityReason.ASSETS)
            # A waived test is reported as absent
            if assets.outcome.status is not CheckStatus.BYPASSED:
                asset_outcome = assets.outcome
        else:
            lines.append("Asset test not required in this jurisdiction")

        # Step 7: benefit amount, eligible households only
        monthly_benefit = 0
        max_allotment = None
        if not reasons:
            allotment, allotment_extra = resolver.resolve_bracket(
                RuleKind.ALLOTMENT, size, on, "per_additional_member"
            )
            consulted.append(allotment)
            benefit = calculate_benefit(allotment, net_income, allotment_extra)
            lines.extend(benefit.lines)
            monthly_benefit = benefit.benefit
            max_allotment = benefit.max_allotment
            lines.append(f"Monthly benefit: {format_dollars(monthly_benefit)}")
        else:
            lines.append("Not eligible: " + "; ".join(r.value for r in reasons))

        rules_snapshot = _unique_ids(consulted)
        return Determination(
            household_id=household.household_id,
            jurisdiction=household.jurisdiction,
            program=household.program,
            evaluation_date=on,
            is_eligible=not reasons,
            gross_income=household.gross_income,
            net_income=net_income,
            deductions=deductions.breakdown,
            categorical_code=match.code if match else None,
            gross_income_test=gross.outcome,
            net_income_test=net.outcome,
            asset_test=asset_outcome,
            monthly_benefit=monthly_benefit,
            max_allotment=max_allotment,
            ineligibility_reasons=tuple(reasons),
            rules_snapshot=rules_snapshot,
            citations=_citations(consulted),
            calculation_breakdown=tuple(lines),
            diagnostics=tuple(resolver.diagnostics),
            evaluated_at=self.clock(),
            calculated_by=actor or self.config.default_actor,
        )


def _has_dependents(household: HouseholdSnapshot, jurisdiction: JurisdictionConfig) -> bool:
    if household.children_count > 0:
        return True
    return jurisdiction.pregnancy_satisfies_children and household.is_pregnant


def _unique_ids(records: List[RuleRecord]) -> tuple:
    seen = []
    for record in records:
        if record.rule_id not in seen:
            seen.append(record.rule_id)
    return tuple(seen)


def _citations(records: List[RuleRecord]) -> tuple:
    citations = []
    seen = set()
    for record in records:
        if record.rule_id in seen:
            continue
        seen.add(record.rule_id)
        citations.append(
            {"rule_id": record.rule_id, "kind": record.kind.value, "source": record.source}
        )
    return tuple(citations)


def build_engine(rules_dir=None, config: Optional[EngineConfig] = None) -> DeterminationEngine:
    """Engine over a directory of rule CSVs, or the reference rules if None."""
    store = load_rules_from_csv(rules_dir) if rules_dir else build_reference_store()
    return DeterminationEngine(store, jurisdictions=default_registry(), config=config)
