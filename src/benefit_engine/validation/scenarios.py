"""
Scenario loader: households with expected outcomes.

A scenario CSV has one household per row (HouseholdSnapshot columns, money in
dollars) plus ``expected_eligible`` and ``expected_benefit`` (dollars). A
blank expectation is skipped when comparing.
"""

import pandas as pd

from ..store import households_from_frame

EXPECTED_COLUMNS = ["expected_eligible", "expected_benefit"]
REQUIRED_COLUMNS = ["household_size", "jurisdiction", "program", "evaluation_date"]


def load_scenarios(path) -> pd.DataFrame:
    """
    Load a scenario CSV.

    Args:
        path: CSV file path

    Returns:
        DataFrame with string household columns, a ``household_id`` for every
        row, ``expected_eligible`` as 1.0/0.0 and ``expected_benefit`` as float
        (NaN where blank)

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: if required columns are missing
    """
    df = pd.read_csv(path, dtype=str)

    missing = [c for c in REQUIRED_COLUMNS + EXPECTED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Scenario file missing columns: {', '.join(missing)}")

    if "household_id" not in df.columns:
        df["household_id"] = [str(i + 1) for i in range(len(df))]
    else:
        df["household_id"] = df["household_id"].fillna(
            pd.Series([str(i + 1) for i in range(len(df))], index=df.index)
        )

    df["expected_eligible"] = df["expected_eligible"].map(_parse_expected_flag)
    df["expected_benefit"] = pd.to_numeric(df["expected_benefit"], errors="raise")
    return df


def household_frame(df: pd.DataFrame) -> pd.DataFrame:
    """The household columns of a scenario frame (expectations dropped)."""
    return df.drop(columns=EXPECTED_COLUMNS)


def scenario_households(df: pd.DataFrame) -> list:
    """Build a HouseholdSnapshot for every scenario row."""
    return households_from_frame(household_frame(df), source="scenarios")


def _parse_expected_flag(value) -> float:
    if pd.isna(value) or str(value).strip() == "":
        return float("nan")
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes", "y"):
        return 1.0
    if lowered in ("false", "0", "no", "n"):
        return 0.0
    raise ValueError(f"expected_eligible is not a boolean: {value!r}")
