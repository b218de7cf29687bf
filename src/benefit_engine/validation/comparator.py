"""
Comparator: Compare engine determinations against expected outcomes.

Generates detailed comparison reports with tolerance-based matching.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class ComparisonConfig:
    """Configuration for validation comparison."""

    # Tolerances (absolute, in dollars or 0/1 for eligibility)
    eligible_tolerance: float = 0.0
    benefit_tolerance: float = 0.0

    # Column mappings
    id_col: str = "household_id"


@dataclass
class MismatchRecord:
    """Record of a determination mismatch."""

    household_id: str
    variable: str
    engine_value: float
    expected_value: float
    difference: float
    pct_difference: Optional[float] = None
    jurisdiction: Optional[str] = None
    error: str = ""


@dataclass
class ComparisonResults:
    """Results from comparing engine output with expectations."""

    total_households: int
    variables_compared: List[str]
    matches: Dict[str, int]
    mismatches: Dict[str, List[MismatchRecord]]
    match_rates: Dict[str, float]
    config: ComparisonConfig
    full_data: Optional[pd.DataFrame] = None

    def failures(self) -> pd.DataFrame:
        """Households the engine could not evaluate, with the error type split out."""
        columns = ["household_id", "jurisdiction", "error_type", "error"]
        if self.full_data is None or "error" not in self.full_data.columns:
            return pd.DataFrame(columns=columns)
        failed = self.full_data[self.full_data["error"].fillna("") != ""].copy()
        failed["error_type"] = failed["error"].astype(str).str.split(":").str[0]
        return failed.reindex(columns=columns).reset_index(drop=True)

    def summary(self) -> Dict[str, Any]:
        """Agreement per variable, plus engine outcomes and failures by error type."""
        failures = self.failures()
        outcomes = {}
        if self.full_data is not None and "engine_eligible" in self.full_data.columns:
            eligible = self.full_data["engine_eligible"]
            outcomes = {
                "eligible": int((eligible == 1).sum()),
                "ineligible": int((eligible == 0).sum()),
            }
        return {
            "total_households": self.total_households,
            "failed": len(failures),
            "failures_by_type": failures["error_type"].value_counts().to_dict(),
            **outcomes,
            "variables": {
                var: {
                    "matches": self.matches[var],
                    "mismatches": len(self.mismatches[var]),
                    "match_rate": self.match_rates[var],
                    "tolerance": getattr(self.config, f"{var}_tolerance"),
                }
                for var in self.variables_compared
            },
        }

    def detailed_report(self) -> str:
        """Generate detailed text report."""
        lines = [
            "=" * 70,
            "Benefit Engine Scenario Validation Report",
            "=" * 70,
            f"Total Households: {self.total_households:,}",
            f"Engine Failures:  {len(self.failures()):,}",
            "",
        ]

        for var in self.variables_compared:
            total_compared = self.matches[var] + len(self.mismatches[var])
            if total_compared == 0:
                lines.extend([
                    f"{var.upper()} Comparison:",
                    "-" * 40,
                    "  Skipped (no expected values)",
                    "",
                ])
                continue

            tol = getattr(self.config, f"{var}_tolerance")
            lines.extend([
                f"{var.upper()} Comparison:",
                "-" * 40,
                f"  Matches:     {self.matches[var]:,} ({self.match_rates[var]:.2f}%)",
                f"  Mismatches:  {len(self.mismatches[var]):,}",
                f"  Tolerance:   ±{tol:g}",
                "",
            ])

            # Show worst mismatches; errors first since their difference is NaN
            if self.mismatches[var]:
                worst = sorted(
                    self.mismatches[var],
                    key=lambda m: (not m.error, -abs(np.nan_to_num(m.difference))),
                )[:5]
                lines.append("  Worst mismatches:")
                for m in worst:
                    if m.error:
                        lines.append(f"    HH {m.household_id}: {m.error}")
                    else:
                        lines.append(
                            f"    HH {m.household_id}: engine={m.engine_value:.2f}, "
                            f"expected={m.expected_value:.2f}, diff={m.difference:.2f}"
                        )
                lines.append("")

        lines.append("=" * 70)
        return "\n".join(lines)

    def save_report(self, output_dir: Path) -> List[Path]:
        """
        Write the text report, the joined data, every mismatch in one CSV
        (one row per household and variable) and the engine failures.

        Returns:
            Paths written
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(exist_ok=True, parents=True)
        written = []

        report_path = output_dir / "validation_report.txt"
        report_path.write_text(self.detailed_report())
        written.append(report_path)

        if self.full_data is not None:
            data_path = output_dir / "validation_data.csv"
            self.full_data.to_csv(data_path, index=False)
            written.append(data_path)

        rows = [
            {
                "household_id": m.household_id,
                "jurisdiction": m.jurisdiction,
                "variable": var,
                "expected": m.expected_value,
                "engine": m.engine_value,
                "difference": m.difference,
                "error": m.error,
            }
            for var in self.variables_compared
            for m in self.mismatches[var]
        ]
        if rows:
            mismatch_path = output_dir / "mismatches.csv"
            pd.DataFrame(rows).to_csv(mismatch_path, index=False)
            written.append(mismatch_path)

        failures = self.failures()
        if len(failures):
            failures_path = output_dir / "failures.csv"
            failures.to_csv(failures_path, index=False)
            written.append(failures_path)

        logger.info(
            "Saved validation report to %s (%s)",
            output_dir,
            ", ".join(p.name for p in written),
        )
        return written


class Comparator:
    """Compare engine results with expected outcomes."""

    VARIABLES = [
        ("eligible", "engine_eligible", "expected_eligible"),
        ("benefit", "engine_benefit", "expected_benefit"),
    ]

    def __init__(self, config: Optional[ComparisonConfig] = None):
        self.config = config or ComparisonConfig()

    def compare(self, df: pd.DataFrame) -> ComparisonResults:
        """
        Compare engine and expected results.

        Args:
            df: DataFrame with both engine and expected columns
                (output from runners.run_scenarios)

        Returns:
            ComparisonResults with match statistics and mismatches
        """
        matches = {}
        mismatches = {}
        match_rates = {}

        for var_name, engine_col, expected_col in self.VARIABLES:
            if engine_col not in df.columns or expected_col not in df.columns:
                continue

            tolerance = getattr(self.config, f"{var_name}_tolerance")
            var_matches, var_mismatches = self._compare_variable(
                df, var_name, engine_col, expected_col, tolerance
            )
            matches[var_name] = var_matches
            mismatches[var_name] = var_mismatches
            valid_count = var_matches + len(var_mismatches)
            match_rates[var_name] = (var_matches / valid_count * 100) if valid_count > 0 else 0

        logger.info(
            "Compared %d households: %s",
            len(df),
            ", ".join(f"{var}={rate:.1f}%" for var, rate in match_rates.items()),
        )
        return ComparisonResults(
            total_households=len(df),
            variables_compared=list(matches.keys()),
            matches=matches,
            mismatches=mismatches,
            match_rates=match_rates,
            config=self.config,
            full_data=df,
        )

    def _compare_variable(
        self,
        df: pd.DataFrame,
        var_name: str,
        engine_col: str,
        expected_col: str,
        tolerance: float,
    ) -> tuple:
        """Compare a single variable."""
        mismatches = []
        id_col = self.config.id_col

        # Rows without an expectation are not compared
        valid_mask = ~df[expected_col].isna()
        df_valid = df[valid_mask]

        if len(df_valid) == 0:
            return 0, []

        # A failed evaluation (NaN engine value) never matches
        is_match = np.isclose(
            df_valid[engine_col].astype(float),
            df_valid[expected_col].astype(float),
            rtol=0,
            atol=tolerance,
            equal_nan=False,
        )

        match_count = int(is_match.sum())

        mismatch_rows = df_valid[~is_match]
        for _, row in mismatch_rows.iterrows():
            engine_val = row[engine_col]
            expected_val = row[expected_col]
            diff = engine_val - expected_val

            # Calculate percentage difference (avoid div by zero)
            pct_diff = None
            if expected_val != 0 and not np.isnan(diff):
                pct_diff = (diff / expected_val) * 100

            mismatches.append(MismatchRecord(
                household_id=row[id_col],
                variable=var_name,
                engine_value=engine_val,
                expected_value=expected_val,
                difference=diff,
                pct_difference=pct_diff,
                jurisdiction=row.get("jurisdiction"),
                error=row.get("error") or "",
            ))

        return match_count, mismatches


def validate(
    scenarios_path: str,
    rules_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
    config: Optional[ComparisonConfig] = None,
    show_progress: bool = True,
) -> ComparisonResults:
    """
    Run the scenario validation pipeline.

    Args:
        scenarios_path: Scenario CSV path
        rules_dir: Directory of rule CSVs (default: reference rules)
        output_dir: Directory to save results
        config: Comparison configuration
        show_progress: Show progress bar

    Returns:
        ComparisonResults
    """
    from ..engine import build_engine
    from .runners import run_scenarios
    from .scenarios import load_scenarios

    print(f"Loading scenarios from {scenarios_path}...")
    df = load_scenarios(scenarios_path)
    print(f"Loaded {len(df):,} households")

    print("\nRunning engine...")
    engine = build_engine(rules_dir)
    results_df = run_scenarios(df, engine, show_progress=show_progress)

    print("\nComparing results...")
    comparator = Comparator(config)
    results = comparator.compare(results_df)

    print("\n" + results.detailed_report())

    if output_dir:
        for path in results.save_report(Path(output_dir)):
            print(f"Saved {path}")

    return results
