"""
Multi-Jurisdiction Adapter.

Jurisdiction differences live here as data. The evaluators read a
JurisdictionConfig and never branch on jurisdiction codes, so a new
jurisdiction needs rule records plus one config entry.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .errors import InvalidInput
from .models import DEDUCTION_ORDER, DeductionType

ALL_DEDUCTIONS = frozenset(DEDUCTION_ORDER)


@dataclass(frozen=True)
class JurisdictionConfig:
    """Policy toggles for one (jurisdiction, program) pair."""

    jurisdiction: str
    program: str
    name: str = ""
    asset_test_applies: bool = True
    broad_based_categorical: bool = False
    deduction_types: frozenset = field(default=ALL_DEDUCTIONS)
    # Households with an elderly or disabled member skip the gross test
    elderly_disabled_gross_exempt: bool = True
    # Households with an elderly or disabled member have no shelter cap
    elderly_disabled_shelter_uncapped: bool = True
    requires_dependent_children: bool = False
    pregnancy_satisfies_children: bool = True

    @property
    def key(self) -> Tuple[str, str]:
        return (self.jurisdiction, self.program)

    def applies(self, deduction_type: DeductionType) -> bool:
        return deduction_type in self.deduction_types

    @property
    def ordered_deductions(self) -> List[DeductionType]:
        return [d for d in DEDUCTION_ORDER if d in self.deduction_types]


class JurisdictionRegistry:
    """Lookup of JurisdictionConfig by (jurisdiction, program)."""

    def __init__(self, configs: Iterable[JurisdictionConfig] = ()):
        self._configs: Dict[Tuple[str, str], JurisdictionConfig] = {}
        for config in configs:
            self.register(config)

    def register(self, config: JurisdictionConfig) -> None:
        self._configs[config.key] = config

    def get(self, jurisdiction: str, program: str) -> JurisdictionConfig:
        """
        Raises:
            InvalidInput: if the pair is not configured
        """
        config = self._configs.get((jurisdiction, program))
        if config is None:
            raise InvalidInput(
                f"Unknown jurisdiction/program: {jurisdiction}/{program}",
                field="jurisdiction",
            )
        return config

    def __contains__(self, key) -> bool:
        return key in self._configs

    def __iter__(self):
        return iter(sorted(self._configs.values(), key=lambda c: c.key))

    def __len__(self) -> int:
        return len(self._configs)


def default_registry() -> JurisdictionRegistry:
    """Configurations matching the records in ``reference_rules``."""
    return JurisdictionRegistry(
        [
            JurisdictionConfig(
                jurisdiction="US",
                program="SNAP",
                name="Federal SNAP baseline",
                asset_test_applies=True,
                broad_based_categorical=False,
            ),
            JurisdictionConfig(
                jurisdiction="MD",
                program="SNAP",
                name="Maryland Food Supplement Program",
                asset_test_applies=False,
                broad_based_categorical=True,
            ),
            JurisdictionConfig(
                jurisdiction="PA",
                program="SNAP",
                name="Pennsylvania SNAP",
                asset_test_applies=True,
                broad_based_categorical=True,
            ),
            JurisdictionConfig(
                jurisdiction="UT",
                program="SNAP",
                name="Utah SNAP",
                asset_test_applies=True,
                broad_based_categorical=False,
            ),
            JurisdictionConfig(
                jurisdiction="MD",
                program="TANF",
                name="Maryland Temporary Cash Assistance",
                asset_test_applies=True,
                broad_based_categorical=False,
                deduction_types=frozenset(
                    {DeductionType.EARNED_INCOME, DeductionType.DEPENDENT_CARE}
                ),
                elderly_disabled_gross_exempt=False,
                elderly_disabled_shelter_uncapped=False,
                requires_dependent_children=True,
            ),
        ]
    )
