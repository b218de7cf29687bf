"""
Command-line interface for benefit-engine.

Usage:
    benefit-engine evaluate household.json -o determination.json
    benefit-engine batch households.csv --rules-dir rules/ -o results.csv
    benefit-engine jurisdictions

Household JSON holds money in cents; household CSV holds money in dollars.
Without --rules-dir the built-in reference rules are used.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .batch import BatchCoordinator, results_to_frame
from .config import EngineConfig
from .engine import build_engine
from .errors import BenefitEngineError
from .jurisdictions import default_registry
from .models import HouseholdSnapshot
from .store import load_households_csv

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="benefit-engine",
        description="Determine benefit eligibility and amounts from versioned rules",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Evaluate command
    evaluate_parser = subparsers.add_parser(
        "evaluate",
        help="Evaluate one household from a JSON file",
    )
    evaluate_parser.add_argument(
        "input",
        type=Path,
        help="Household JSON file (money in cents)",
    )
    evaluate_parser.add_argument(
        "--rules-dir",
        type=Path,
        help="Directory of rule CSV files (default: built-in reference rules)",
    )
    evaluate_parser.add_argument(
        "--actor",
        help="Name recorded as calculated_by",
    )
    evaluate_parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file path (default: stdout)",
    )

    # Batch command
    batch_parser = subparsers.add_parser(
        "batch",
        help="Evaluate households from a CSV file",
    )
    batch_parser.add_argument(
        "input",
        type=Path,
        help="Households CSV file (money in dollars)",
    )
    batch_parser.add_argument(
        "--rules-dir",
        type=Path,
        help="Directory of rule CSV files (default: built-in reference rules)",
    )
    batch_parser.add_argument(
        "--max-size",
        type=int,
        default=EngineConfig.max_batch_size,
        help=f"Maximum households per batch (default: {EngineConfig.max_batch_size})",
    )
    batch_parser.add_argument(
        "--workers",
        type=int,
        default=EngineConfig.max_workers,
        help=f"Worker threads (default: {EngineConfig.max_workers})",
    )
    batch_parser.add_argument(
        "--actor",
        help="Name recorded as calculated_by",
    )
    batch_parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Output CSV path (default: stdout)",
    )

    # Jurisdictions command
    subparsers.add_parser(
        "jurisdictions",
        help="List configured jurisdiction/program pairs",
    )

    # Version
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "evaluate":
            run_evaluate(args)
        elif args.command == "batch":
            run_batch(args)
        elif args.command == "jurisdictions":
            for config in default_registry():
                print(f"{config.jurisdiction}\t{config.program}\t{config.name}")
    except (BenefitEngineError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def run_evaluate(args):
    if not args.input.exists():
        raise FileNotFoundError(f"{args.input} not found")
    data = json.loads(args.input.read_text())
    household = HouseholdSnapshot.from_dict(data)

    engine = build_engine(args.rules_dir)
    determination = engine.evaluate(household, actor=args.actor)
    output = determination.to_json(indent=2)

    if args.output:
        args.output.write_text(output + "\n")
        print(f"Evaluated {args.input} -> {args.output}", file=sys.stderr)
    else:
        print(output)


def run_batch(args):
    households = load_households_csv(args.input)
    config = EngineConfig(max_batch_size=args.max_size, max_workers=args.workers)
    engine = build_engine(args.rules_dir, config=config)

    coordinator = BatchCoordinator(engine)
    items = coordinator.evaluate_batch(households, actor=args.actor, show_progress=True)
    df = results_to_frame(items)

    failed = sum(1 for item in items if not item.ok)
    eligible = sum(1 for item in items if item.ok and item.determination.is_eligible)
    if args.output:
        df.to_csv(args.output, index=False)
        print(f"Evaluated {len(items)} households -> {args.output}", file=sys.stderr)
    else:
        print(df.to_csv(index=False), end="")
    print(
        f"{eligible} eligible, {len(items) - eligible - failed} ineligible, "
        f"{failed} failed",
        file=sys.stderr,
    )


if __name__ == "__main__":
    main()
