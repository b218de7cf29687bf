"""
Error taxonomy for the determination engine.

Exceptions are for conditions that stop an evaluation. ``RuleOverlap`` is a
diagnostic: it is recorded on the determination and logged, never raised.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional


class BenefitEngineError(Exception):
    """Base class for all engine errors."""


class InvalidInput(BenefitEngineError):
    """Malformed or out-of-range household data. Caller error, never retried."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MissingRuleData(BenefitEngineError):
    """No effective rule record exists for a required lookup."""

    def __init__(
        self,
        kind: str,
        jurisdiction: str,
        program: str,
        on: date,
        household_size: Optional[int] = None,
        slot: Optional[str] = None,
        detail: str = "",
    ):
        self.kind = kind
        self.jurisdiction = jurisdiction
        self.program = program
        self.on = on
        self.household_size = household_size
        self.slot = slot
        parts = [f"No effective {kind} rule for {jurisdiction}/{program}"]
        if slot:
            parts.append(f"type={slot}")
        if household_size is not None:
            parts.append(f"household_size={household_size}")
        parts.append(f"date={on.isoformat()}")
        message = ", ".join(parts)
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RuleDataError(BenefitEngineError):
    """A resolved rule record is malformed and cannot be applied."""

    def __init__(self, message: str, rule_id: Optional[str] = None):
        super().__init__(message)
        self.rule_id = rule_id


class RuleStoreUnavailable(BenefitEngineError):
    """The rule store could not be read within the configured timeout."""


class BatchTooLarge(BenefitEngineError):
    """Batch exceeds the configured cap. Rejected before any evaluation."""

    def __init__(self, size: int, max_size: int):
        super().__init__(f"Batch of {size} households exceeds the limit of {max_size}")
        self.size = size
        self.max_size = max_size


class BatchCancelled(BenefitEngineError):
    """The caller cancelled a batch. ``completed`` holds finished items."""

    def __init__(self, completed: list):
        super().__init__(
            f"Batch cancelled after {len(completed)} households were evaluated"
        )
        self.completed = completed


@dataclass(frozen=True)
class RuleOverlap:
    """Two or more active records claimed the same date; one was picked."""

    kind: str
    jurisdiction: str
    program: str
    on: date
    chosen_id: str
    competing_ids: tuple
    slot: Optional[str] = None
    household_size: Optional[int] = None

    def describe(self) -> str:
        target = f"{self.kind}" + (f"[{self.slot}]" if self.slot else "")
        return (
            f"Overlapping {target} rules for {self.jurisdiction}/{self.program} "
            f"on {self.on.isoformat()}: chose {self.chosen_id} over "
            f"{', '.join(self.competing_ids)}"
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "slot": self.slot,
            "household_size": self.household_size,
            "date": self.on.isoformat(),
            "chosen_id": self.chosen_id,
            "competing_ids": list(self.competing_ids),
        }
