"""
benefit-engine: Deterministic eligibility and benefit determinations.

Evaluates a household snapshot against effective-dated, versioned policy rules
(income limits, deductions, allotments, categorical eligibility, asset tests)
and returns a Determination with a full audit trail of the rules used.
"""

__version__ = "0.1.0"

from .batch import BatchCoordinator, BatchItem, results_to_frame
from .config import EngineConfig
from .engine import DeterminationEngine, build_engine
from .errors import (
    BatchCancelled,
    BatchTooLarge,
    BenefitEngineError,
    InvalidInput,
    MissingRuleData,
    RuleDataError,
    RuleOverlap,
    RuleStoreUnavailable,
)
from .jurisdictions import JurisdictionConfig, JurisdictionRegistry, default_registry
from .models import (
    AllotmentRule,
    AssetTestRule,
    CategoricalEligibilityRule,
    CheckOutcome,
    CheckStatus,
    DeductionBreakdown,
    DeductionRule,
    DeductionType,
    Determination,
    HouseholdSnapshot,
    IncomeLimit,
    IneligibilityReason,
    RuleKind,
    RuleRecord,
)
from .reference_rules import build_reference_store
from .resolver import RuleVersionResolver
from .store import (
    InMemoryRuleStore,
    RuleSet,
    RuleStore,
    load_households_csv,
    load_rule_set,
    load_rules_from_csv,
)

__all__ = [
    "DeterminationEngine",
    "build_engine",
    "BatchCoordinator",
    "BatchItem",
    "results_to_frame",
    "EngineConfig",
    "BenefitEngineError",
    "InvalidInput",
    "MissingRuleData",
    "RuleDataError",
    "RuleOverlap",
    "RuleStoreUnavailable",
    "BatchTooLarge",
    "BatchCancelled",
    "JurisdictionConfig",
    "JurisdictionRegistry",
    "default_registry",
    "HouseholdSnapshot",
    "Determination",
    "CheckOutcome",
    "CheckStatus",
    "DeductionBreakdown",
    "IneligibilityReason",
    "RuleKind",
    "RuleRecord",
    "IncomeLimit",
    "DeductionRule",
    "DeductionType",
    "AllotmentRule",
    "CategoricalEligibilityRule",
    "AssetTestRule",
    "RuleVersionResolver",
    "RuleStore",
    "InMemoryRuleStore",
    "RuleSet",
    "load_rule_set",
    "load_rules_from_csv",
    "load_households_csv",
    "build_reference_store",
]
