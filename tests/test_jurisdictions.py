"""Tests for the multi-jurisdiction adapter."""

import pytest

from benefit_engine.errors import InvalidInput
from benefit_engine.jurisdictions import (
    JurisdictionConfig,
    JurisdictionRegistry,
    default_registry,
)
from benefit_engine.models import DEDUCTION_ORDER, DeductionType


class TestJurisdictionConfig:
    """Tests for JurisdictionConfig."""

    def test_defaults_allow_all_deductions(self):
        """By default every deduction applies, in pipeline order."""
        config = JurisdictionConfig("XX", "SNAP")
        assert config.ordered_deductions == list(DEDUCTION_ORDER)
        assert config.key == ("XX", "SNAP")

    def test_subset_keeps_order(self):
        """A deduction subset is still returned in pipeline order."""
        config = JurisdictionConfig(
            "XX",
            "TANF",
            deduction_types=frozenset({DeductionType.SHELTER, DeductionType.STANDARD}),
        )
        assert config.ordered_deductions == [DeductionType.STANDARD, DeductionType.SHELTER]
        assert config.applies(DeductionType.SHELTER)
        assert not config.applies(DeductionType.MEDICAL)


class TestRegistry:
    """Tests for JurisdictionRegistry."""

    def test_default_registry_pairs(self):
        """The default registry ships the reference jurisdictions."""
        registry = default_registry()
        assert [c.key for c in registry] == [
            ("MD", "SNAP"),
            ("MD", "TANF"),
            ("PA", "SNAP"),
            ("UT", "SNAP"),
            ("US", "SNAP"),
        ]
        assert len(registry) == 5
        assert ("MD", "SNAP") in registry

    def test_maryland_snap_toggles(self):
        """Maryland SNAP has BBCE and no asset test."""
        config = default_registry().get("MD", "SNAP")
        assert config.broad_based_categorical
        assert not config.asset_test_applies

    def test_tanf_toggles(self):
        """Maryland TANF requires children and has two deductions."""
        config = default_registry().get("MD", "TANF")
        assert config.requires_dependent_children
        assert not config.elderly_disabled_gross_exempt
        assert config.ordered_deductions == [
            DeductionType.EARNED_INCOME,
            DeductionType.DEPENDENT_CARE,
        ]

    def test_unknown_pair(self):
        """Unknown pairs raise InvalidInput."""
        with pytest.raises(InvalidInput, match="Unknown jurisdiction/program: ZZ/SNAP"):
            default_registry().get("ZZ", "SNAP")

    def test_register_replaces(self):
        """Registering the same key replaces the config."""
        registry = JurisdictionRegistry([JurisdictionConfig("XX", "SNAP", name="old")])
        registry.register(JurisdictionConfig("XX", "SNAP", name="new"))
        assert len(registry) == 1
        assert registry.get("XX", "SNAP").name == "new"
