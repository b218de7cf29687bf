"""
Rule Version Resolver.

Selects the single effective record for a (kind, slot, household size, date)
out of a loaded RuleSet. Dates are never extrapolated: a date outside every
record's window is MissingRuleData. When several active records claim the same
date, the latest ``effective_from`` wins and ties go to the greatest
``rule_id``; the overlap is logged and kept in ``diagnostics``.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from .errors import MissingRuleData, RuleOverlap
from .models import RuleKind, RuleRecord
from .store import RuleSet

logger = logging.getLogger(__name__)


def _precedence(record: RuleRecord) -> tuple:
    return (record.effective_from, record.rule_id)


class RuleVersionResolver:
    """Resolves effective rule versions from one RuleSet."""

    def __init__(self, rule_set: RuleSet):
        self.rule_set = rule_set
        self.diagnostics: List[RuleOverlap] = []

    def candidates(
        self,
        kind: RuleKind,
        on: date,
        household_size: Optional[int] = None,
        slot: Optional[str] = None,
    ) -> List[RuleRecord]:
        """Every active record of ``kind`` effective on ``on`` for this size/slot."""
        return [
            r
            for r in self.rule_set.of_kind(kind)
            if r.jurisdiction == self.rule_set.jurisdiction
            and r.program == self.rule_set.program
            and r.is_effective(on)
            and (household_size is None or r.covers_size(household_size))
            and (slot is None or r.slot == slot)
        ]

    def resolve(
        self,
        kind: RuleKind,
        household_size: Optional[int],
        on: date,
        slot: Optional[str] = None,
    ) -> RuleRecord:
        """
        Return the effective record.

        Raises:
            MissingRuleData: if no record is effective for the date and size
        """
        found = self.candidates(kind, on, household_size, slot)
        if not found:
            raise self._missing(kind, on, household_size, slot)
        return self._pick(kind, found, on, household_size, slot)

    def resolve_optional(
        self,
        kind: RuleKind,
        household_size: Optional[int],
        on: date,
        slot: Optional[str] = None,
    ) -> Optional[RuleRecord]:
        """Like ``resolve`` but returns None when nothing is effective."""
        found = self.candidates(kind, on, household_size, slot)
        if not found:
            return None
        return self._pick(kind, found, on, household_size, slot)

    def resolve_slots(
        self, kind: RuleKind, household_size: Optional[int], on: date
    ) -> List[RuleRecord]:
        """Resolve one record per slot (e.g. one per categorical code)."""
        by_slot: Dict[Optional[str], List[RuleRecord]] = {}
        for record in self.candidates(kind, on, household_size):
            by_slot.setdefault(record.slot, []).append(record)
        return [
            self._pick(kind, group, on, household_size, slot)
            for slot, group in sorted(by_slot.items(), key=lambda kv: kv[0] or "")
        ]

    def resolve_bracket(
        self,
        kind: RuleKind,
        household_size: int,
        on: date,
        increment_field: str,
    ) -> Tuple[RuleRecord, int]:
        """
        Resolve a size-bracketed table that extends past its last bracket.

        Returns ``(record, extra_members)``. When a bracket covers the size,
        ``extra_members`` is 0. Otherwise the record with the largest bracket
        is returned along with how many members exceed it; that record must
        define ``increment_field`` (the per-additional-member amount).

        Raises:
            MissingRuleData: if the date has no records, or the size is beyond
                the table and the largest bracket has no increment
        """
        covering = self.candidates(kind, on, household_size)
        if covering:
            return self._pick(kind, covering, on, household_size, None), 0

        effective = self.candidates(kind, on)
        upper = [r for r in effective if r.size_max is not None]
        if not upper:
            raise self._missing(kind, on, household_size, None)
        top_size = max(r.size_max for r in upper)
        # A gap inside the table, not past its end. An open-ended bracket that
        # starts above the size also marks a gap.
        if household_size < top_size or any(
            (r.size_min or 1) > household_size for r in effective
        ):
            raise self._missing(
                kind, on, household_size, None, detail="size falls between brackets"
            )

        top = self._pick(
            kind, [r for r in upper if r.size_max == top_size], on, top_size, None
        )
        if getattr(top, increment_field, None) is None:
            raise self._missing(
                kind,
                on,
                household_size,
                None,
                detail=f"size exceeds largest bracket ({top_size}) "
                f"and {top.rule_id} defines no {increment_field}",
            )
        return top, household_size - top_size

    def _pick(
        self,
        kind: RuleKind,
        found: List[RuleRecord],
        on: date,
        household_size: Optional[int],
        slot: Optional[str],
    ) -> RuleRecord:
        ordered = sorted(found, key=_precedence, reverse=True)
        chosen = ordered[0]
        if len(ordered) > 1:
            overlap = RuleOverlap(
                kind=kind.value,
                jurisdiction=self.rule_set.jurisdiction,
                program=self.rule_set.program,
                on=on,
                chosen_id=chosen.rule_id,
                competing_ids=tuple(r.rule_id for r in ordered[1:]),
                slot=slot if slot is not None else chosen.slot,
                household_size=household_size,
            )
            if overlap not in self.diagnostics:
                self.diagnostics.append(overlap)
                logger.warning("Rule overlap detected: %s", overlap.describe())
        return chosen

    def _missing(
        self,
        kind: RuleKind,
        on: date,
        household_size: Optional[int],
        slot: Optional[str],
        detail: str = "",
    ) -> MissingRuleData:
        return MissingRuleData(
            kind=kind.value,
            jurisdiction=self.rule_set.jurisdiction,
            program=self.rule_set.program,
            on=on,
            household_size=household_size,
            slot=slot,
            detail=detail,
        )
