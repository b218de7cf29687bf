"""
Validation module: check engine determinations against expected outcomes.

Scenario files list households with the eligibility and benefit a caseworker
or published example says they should get. The engine is run on every row and
compared with a tolerance, with a mismatch report per variable.
"""

from .comparator import Comparator, ComparisonConfig, ComparisonResults, MismatchRecord
from .runners import run_engine, run_scenarios
from .scenarios import load_scenarios, scenario_households

__all__ = [
    "Comparator",
    "ComparisonConfig",
    "ComparisonResults",
    "MismatchRecord",
    "run_engine",
    "run_scenarios",
    "load_scenarios",
    "scenario_households",
]
