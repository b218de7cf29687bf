"""
Runners for validation: execute the engine on scenario households.

Each row is evaluated on its own so that one malformed household or missing
rule shows up as an error on that row instead of stopping the run.
"""

import numpy as np
import pandas as pd
from tqdm import tqdm

from ..engine import DeterminationEngine
from ..errors import BenefitEngineError
from ..money import cents_to_dollars
from ..store import household_from_row
from .scenarios import EXPECTED_COLUMNS

RESULT_COLUMNS = [
    "household_id",
    "jurisdiction",
    "engine_eligible",
    "engine_benefit",
    "error",
]


def run_engine(
    df: pd.DataFrame, engine: DeterminationEngine, show_progress: bool = True
) -> pd.DataFrame:
    """
    Run the engine on scenario household data.

    Args:
        df: DataFrame with household data (from load_scenarios)
        engine: Engine to evaluate with
        show_progress: Show progress bar

    Returns:
        DataFrame with household_id and engine results (dollars); failed rows
        have NaN results and the error message
    """
    results = []
    iterator = (
        tqdm(df.iterrows(), total=len(df), desc="Engine")
        if show_progress
        else df.iterrows()
    )

    for _, row in iterator:
        values = {
            k: (None if pd.isna(v) else str(v).strip())
            for k, v in row.items()
            if k not in EXPECTED_COLUMNS
        }
        record = {
            "household_id": values.get("household_id"),
            "jurisdiction": values.get("jurisdiction"),
            "engine_eligible": np.nan,
            "engine_benefit": np.nan,
            "error": "",
        }
        try:
            determination = engine.evaluate(household_from_row(values))
        except BenefitEngineError as e:
            record["error"] = f"{type(e).__name__}: {e}"
        else:
            record["engine_eligible"] = 1.0 if determination.is_eligible else 0.0
            record["engine_benefit"] = cents_to_dollars(determination.monthly_benefit)
        results.append(record)

    return pd.DataFrame(results, columns=RESULT_COLUMNS)


def run_scenarios(
    df: pd.DataFrame, engine: DeterminationEngine, show_progress: bool = True
) -> pd.DataFrame:
    """
    Run the engine and join its results to the expectations.

    Returns:
        DataFrame with household_id, jurisdiction, expected_* and engine_*
        columns, in scenario order
    """
    results = run_engine(df, engine, show_progress=show_progress)
    expected = df[["household_id"] + EXPECTED_COLUMNS].reset_index(drop=True)
    combined = pd.concat([results, expected.drop(columns=["household_id"])], axis=1)
    return combined[
        [
            "household_id",
            "jurisdiction",
            "expected_eligible",
            "engine_eligible",
            "expected_benefit",
            "engine_benefit",
            "error",
        ]
    ]
