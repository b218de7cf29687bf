"""
Eligibility and benefit calculators.

Each calculator is a pure function over a household snapshot and already
resolved rule records. The engine resolves rules and wires them together.
"""

from .assets import AssetTestResult, evaluate_asset_test
from .benefit import BenefitResult, calculate_benefit
from .categorical import CategoricalMatch, CategoricalResult, resolve_categorical_eligibility
from .deductions import DeductionResult, calculate_deductions
from .income import (
    IncomeTestResult,
    calculate_net_income,
    evaluate_gross_income_test,
    evaluate_net_income_test,
)

__all__ = [
    "resolve_categorical_eligibility",
    "CategoricalMatch",
    "CategoricalResult",
    "calculate_deductions",
    "DeductionResult",
    "evaluate_gross_income_test",
    "evaluate_net_income_test",
    "calculate_net_income",
    "IncomeTestResult",
    "evaluate_asset_test",
    "AssetTestResult",
    "calculate_benefit",
    "BenefitResult",
]
