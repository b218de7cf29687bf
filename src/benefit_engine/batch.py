"""
Batch Coordinator: evaluates many households in one request.

Rules are loaded once per distinct (jurisdiction, program, evaluation date)
and shared by every household in the batch. Bad input, missing or malformed
rules, and a rule set the store could not return are reported on the
affected households' items and never stop the rest.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import pandas as pd
from tqdm import tqdm

from .engine import DeterminationEngine
from .errors import (
    BatchCancelled,
    BatchTooLarge,
    BenefitEngineError,
    InvalidInput,
    MissingRuleData,
    RuleDataError,
    RuleStoreUnavailable,
)
from .models import Determination, HouseholdSnapshot
from .money import cents_to_dollars
from .store import RuleSet

logger = logging.getLogger(__name__)


@dataclass
class BatchItem:
    """Result for one household, at the same position as its input."""

    index: int
    household_id: Optional[str]
    determination: Optional[Determination] = None
    error: Optional[BenefitEngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchCoordinator:
    """
    Runs households through a DeterminationEngine on a thread pool.

    Args:
        engine: Engine used for every household
        max_size: Batch cap (defaults to the engine's config)
        max_workers: Worker threads (defaults to the engine's config)
    """

    def __init__(
        self,
        engine: DeterminationEngine,
        max_size: Optional[int] = None,
        max_workers: Optional[int] = None,
    ):
        self.engine = engine
        self.max_size = max_size if max_size is not None else engine.config.max_batch_size
        self.max_workers = max_workers or engine.config.max_workers

    def evaluate_batch(
        self,
        snapshots: Iterable[HouseholdSnapshot],
        max_size: Optional[int] = None,
        actor: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
        show_progress: bool = False,
    ) -> List[BatchItem]:
        """
        Evaluate every household and return items in input order.

        Args:
            snapshots: Households to evaluate
            max_size: Override the coordinator's cap for this call
            actor: Recorded on every determination
            cancel_event: When set, households not yet started are skipped
            show_progress: Show a progress bar

        Returns:
            List of BatchItem, one per input household

        Raises:
            BatchTooLarge: before any evaluation if the batch exceeds the cap
            BatchCancelled: if cancelled before every household ran
        """
        snapshots = list(snapshots)
        cap = max_size if max_size is not None else self.max_size
        if len(snapshots) > cap:
            raise BatchTooLarge(len(snapshots), cap)
        if not snapshots:
            return []

        items: List[Optional[BatchItem]] = [None] * len(snapshots)
        rule_sets = self._load_rule_sets(snapshots, items)

        pending = [i for i, item in enumerate(items) if item is None]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(pending) or 1)) as pool:
            futures = [
                pool.submit(
                    self._evaluate_one,
                    i,
                    snapshots[i],
                    rule_sets[_rule_set_key(snapshots[i])],
                    actor,
                    cancel_event,
                )
                for i in pending
            ]
            done = as_completed(futures)
            if show_progress:
                done = tqdm(done, total=len(futures), desc="Households")
            for future in done:
                item = future.result()
                if item is not None:
                    items[item.index] = item

        completed = [item for item in items if item is not None]
        if len(completed) < len(items):
            logger.info(
                "Batch cancelled: %d of %d households evaluated",
                len(completed),
                len(items),
            )
            raise BatchCancelled(completed)

        failures = sum(1 for item in items if not item.ok)
        logger.info(
            "Evaluated batch of %d households (%d failed) using %d rule sets",
            len(items),
            failures,
            len(rule_sets),
        )
        return items

    def _load_rule_sets(
        self, snapshots: List[HouseholdSnapshot], items: List[Optional[BatchItem]]
    ) -> Dict[tuple, RuleSet]:
        """
        Load each distinct rule set once. Invalid households, and households
        whose rule set could not be fetched, get an error item.
        """
        rule_sets: Dict[tuple, RuleSet] = {}
        failed: Dict[tuple, RuleStoreUnavailable] = {}
        for i, snapshot in enumerate(snapshots):
            try:
                self.engine.validate(snapshot)
            except InvalidInput as e:
                logger.info("Household %d rejected: %s", i, e)
                items[i] = BatchItem(
                    index=i, household_id=_household_id(snapshot), error=e
                )
                continue
            key = _rule_set_key(snapshot)
            if key not in rule_sets and key not in failed:
                try:
                    rule_sets[key] = self.engine.load_rules(snapshot)
                except RuleStoreUnavailable as e:
                    logger.warning("Rules unavailable for %s/%s on %s: %s", *key, e)
                    failed[key] = e
            if key in failed:
                items[i] = BatchItem(
                    index=i, household_id=snapshot.household_id, error=failed[key]
                )
        return rule_sets

    def _evaluate_one(
        self,
        index: int,
        snapshot: HouseholdSnapshot,
        rule_set: RuleSet,
        actor: Optional[str],
        cancel_event: Optional[threading.Event],
    ) -> Optional[BatchItem]:
        if cancel_event is not None and cancel_event.is_set():
            return None
        try:
            determination = self.engine.evaluate(snapshot, actor=actor, rule_set=rule_set)
        except (InvalidInput, MissingRuleData, RuleDataError) as e:
            return BatchItem(index=index, household_id=snapshot.household_id, error=e)
        return BatchItem(
            index=index, household_id=snapshot.household_id, determination=determination
        )


def _rule_set_key(snapshot: HouseholdSnapshot) -> tuple:
    return (snapshot.jurisdiction, snapshot.program, snapshot.evaluation_date)


def _household_id(snapshot) -> Optional[str]:
    return getattr(snapshot, "household_id", None)


def results_to_frame(items: List[BatchItem]) -> pd.DataFrame:
    """
    Flatten batch items into a DataFrame, one row per household.

    Dollar columns are floats for reporting; the Determination keeps cents.
    """
    rows = []
    for item in items:
        row = {
            "index": item.index,
            "household_id": item.household_id,
            "is_eligible": None,
            "monthly_benefit": None,
            "gross_income": None,
            "net_income": None,
            "categorical_code": None,
            "ineligibility_reasons": "",
            "rules_snapshot": "",
            "error": "",
        }
        if item.ok:
            d = item.determination
            row.update(
                is_eligible=d.is_eligible,
                monthly_benefit=cents_to_dollars(d.monthly_benefit),
                gross_income=cents_to_dollars(d.gross_income),
                net_income=cents_to_dollars(d.net_income),
                categorical_code=d.categorical_code,
                ineligibility_reasons="; ".join(r.value for r in d.ineligibility_reasons),
                rules_snapshot=";".join(d.rules_snapshot),
            )
        else:
            row["error"] = f"{type(item.error).__name__}: {item.error}"
        rows.append(row)
    return pd.DataFrame(rows)
