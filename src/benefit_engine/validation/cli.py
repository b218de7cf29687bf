"""
CLI for running scenario validation.

Usage:
    python -m benefit_engine.validation.cli scenarios.csv [options]
    benefit-validate scenarios.csv [options]  # if installed

Examples:
    # Validate against the built-in reference rules
    benefit-validate scenarios.csv

    # Validate a rules directory and save reports
    benefit-validate scenarios.csv --rules-dir rules/ --output-dir out/
"""

import argparse
import logging
import sys

from ..errors import BenefitEngineError
from .comparator import ComparisonConfig, validate


def main():
    parser = argparse.ArgumentParser(
        prog="benefit-validate",
        description="Validate engine determinations against expected scenario outcomes",
    )

    parser.add_argument(
        "scenarios",
        type=str,
        help="Scenario CSV with expected_eligible and expected_benefit columns",
    )

    parser.add_argument(
        "--rules-dir",
        type=str,
        help="Directory of rule CSV files (default: built-in reference rules)",
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory to save results",
    )

    # Tolerance overrides
    parser.add_argument(
        "--benefit-tolerance",
        type=float,
        default=0.0,
        help="Benefit tolerance in dollars (default: 0)",
    )

    parser.add_argument(
        "--min-match-rate",
        type=float,
        default=100.0,
        help="Exit with an error below this match rate in percent (default: 100)",
    )

    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Hide the progress bar",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = ComparisonConfig(benefit_tolerance=args.benefit_tolerance)

    try:
        results = validate(
            scenarios_path=args.scenarios,
            rules_dir=args.rules_dir,
            output_dir=args.output_dir,
            config=config,
            show_progress=not args.no_progress,
        )
    except (BenefitEngineError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Exit with error if match rates are too low (only for variables with data)
    valid_rates = [
        rate for var, rate in results.match_rates.items()
        if results.matches[var] + len(results.mismatches[var]) > 0
    ]
    min_match_rate = min(valid_rates) if valid_rates else 100
    if min_match_rate < args.min_match_rate:
        print(f"\nWarning: Lowest match rate is {min_match_rate:.1f}%")
        sys.exit(1)


if __name__ == "__main__":
    main()
