"""
Reference rule data: SNAP for the US baseline, Maryland, Pennsylvania and
Utah, and Maryland TANF (Temporary Cash Assistance).

Source: USDA FNS SNAP COLA memos FY2024 and FY2025, 7 CFR Part 273,
COMAR 07.03.03 (TCA) and 07.03.17 (FSP)

Parameters are kept in dollars, keyed by household size, and converted to
cent-valued rule records by ``build_reference_store``. Size tables run to 8
members; larger households use the per-additional-member amounts.
"""

from datetime import date
from decimal import Decimal
from typing import List

from .models import (
    AllotmentRule,
    AssetTestRule,
    CategoricalEligibilityRule,
    DeductionRule,
    DeductionType,
    IncomeLimit,
    RuleRecord,
)
from .money import dollars_to_cents
from .store import InMemoryRuleStore

FY2024 = (date(2023, 10, 1), date(2024, 9, 30))
FY2025 = (date(2024, 10, 1), date(2025, 9, 30))

SNAP_FY2024_PARAMS = {
    # 7 CFR 273.9(a)(1) - 130% FPL gross income limit (monthly)
    "gross_income_limit": {
        1: 1580, 2: 2137, 3: 2694, 4: 3250, 5: 3807, 6: 4364, 7: 4921, 8: 5478,
    },
    "gross_per_additional_member": 557,
    # 7 CFR 273.9(a)(2) - 100% FPL net income limit (monthly)
    "net_income_limit": {
        1: 1215, 2: 1644, 3: 2072, 4: 2500, 5: 2929, 6: 3357, 7: 3786, 8: 4214,
    },
    "net_per_additional_member": 429,
    # 7 CFR 273.10(e)(2)(ii) - maximum allotments
    "max_allotment": {
        1: 291, 2: 535, 3: 766, 4: 975, 5: 1155, 6: 1386, 7: 1532, 8: 1751,
    },
    "allotment_per_additional_member": 219,
    # 7 CFR 273.9(d)(1) - standard deduction by household size
    "standard_deduction": {1: 198, 2: 198, 3: 198, 4: 208, 5: 244, 6: 279},
    "earned_income_percent": 20,
    "medical_threshold": 35,
    "shelter_cap": 672,
    # 7 CFR 273.8(b) - resource limits
    "asset_limit": 2750,
    "asset_limit_elderly_disabled": 4250,
    # 7 USC 2017(a) - 30% of net income
    "benefit_reduction_rate": 30,
    # Minimum benefit for 1-2 person households
    "min_benefit": 23,
}

SNAP_FY2025_PARAMS = {
    "gross_income_limit": {
        1: 1632, 2: 2215, 3: 2798, 4: 3380, 5: 3963, 6: 4546, 7: 5129, 8: 5712,
    },
    "gross_per_additional_member": 583,
    "net_income_limit": {
        1: 1255, 2: 1704, 3: 2152, 4: 2600, 5: 3049, 6: 3497, 7: 3945, 8: 4394,
    },
    "net_per_additional_member": 449,
    "max_allotment": {
        1: 292, 2: 536, 3: 768, 4: 975, 5: 1158, 6: 1390, 7: 1536, 8: 1756,
    },
    "allotment_per_additional_member": 220,
    "standard_deduction": {1: 204, 2: 204, 3: 204, 4: 217, 5: 254, 6: 291},
    "earned_income_percent": 20,
    "medical_threshold": 35,
    "shelter_cap": 712,
    "asset_limit": 3000,
    "asset_limit_elderly_disabled": 4500,
    "benefit_reduction_rate": 30,
    "min_benefit": 23,
}

# Maryland FSP: BBCE at 200% FPL, no asset test
MD_SNAP_FY2025_PARAMS = {
    **SNAP_FY2025_PARAMS,
    "gross_income_limit": {
        1: 2301, 2: 3109, 3: 3917, 4: 4725, 5: 5533, 6: 6341, 7: 7149, 8: 7957,
    },
    "gross_per_additional_member": 808,
    "net_income_limit": {
        1: 1150.50, 2: 1554.50, 3: 1958.50, 4: 2362.50,
        5: 2766.50, 6: 3170.50, 7: 3574.50, 8: 3978.50,
    },
    "net_per_additional_member": 404,
    "max_allotment": {
        1: 291, 2: 535, 3: 766, 4: 975, 5: 1157, 6: 1389, 7: 1535, 8: 1754,
    },
    "allotment_per_additional_member": 219,
    # $193 for 1-3 persons, $229 for 4+
    "standard_deduction": {1: 193, 4: 229},
    "shelter_cap": 677,
}

# Pennsylvania: BBCE at 200% FPL
PA_SNAP_FY2025_PARAMS = {
    **SNAP_FY2025_PARAMS,
    "gross_income_limit": {
        1: 2510, 2: 3408, 3: 4304, 4: 5200, 5: 6098, 6: 6994, 7: 7890, 8: 8788,
    },
    "gross_per_additional_member": 898,
}

# Maryland TCA: countable income after a 40% earned income disregard must be
# below the grant for the assistance unit size
MD_TANF_FY2025_PARAMS = {
    "gross_income_limit": {
        1: 1984, 2: 2686, 3: 3386, 4: 4086, 5: 4788, 6: 5488, 7: 6190, 8: 6890,
    },
    "gross_per_additional_member": 700,
    "net_income_limit": {
        1: 428, 2: 654, 3: 862, 4: 1044, 5: 1236, 6: 1413, 7: 1605, 8: 1780,
    },
    "net_per_additional_member": 178,
    "max_allotment": {
        1: 428, 2: 654, 3: 862, 4: 1044, 5: 1236, 6: 1413, 7: 1605, 8: 1780,
    },
    "allotment_per_additional_member": 178,
    "earned_income_percent": 40,
    "dependent_care_cap": 200,
    "asset_limit": 2000,
    "benefit_reduction_rate": 100,
}


def _cents(dollars) -> int:
    return dollars_to_cents(Decimal(str(dollars)))


def _brackets(table: dict) -> List[tuple]:
    """
    Turn ``{size: value}`` into ``(size_min, size_max, value)`` brackets.

    Each key starts a bracket that runs up to the next key; the last bracket
    is open-ended.
    """
    sizes = sorted(table)
    brackets = []
    for i, size in enumerate(sizes):
        upper = sizes[i + 1] - 1 if i + 1 < len(sizes) else None
        brackets.append((size, upper, table[size]))
    return brackets


def _sized(table: dict) -> List[tuple]:
    """One closed bracket per size; sizes past the table extrapolate."""
    return [(size, size, table[size]) for size in sorted(table)]


def snap_records(
    jurisdiction: str,
    params: dict,
    window: tuple,
    source: str,
    with_assets: bool = True,
) -> List[RuleRecord]:
    """Build SNAP income limit, deduction, allotment and asset records."""
    effective_from, effective_to = window
    fy = f"FY{effective_to.year}"
    prefix = f"{jurisdiction}-SNAP-{fy}"
    common = dict(
        jurisdiction=jurisdiction,
        program="SNAP",
        effective_from=effective_from,
        effective_to=effective_to,
    )
    records: List[RuleRecord] = []

    for size, _, gross in _sized(params["gross_income_limit"]):
        records.append(
            IncomeLimit(
                rule_id=f"{prefix}-INC-{size}",
                size_min=size,
                size_max=size,
                gross_limit=_cents(gross),
                net_limit=_cents(params["net_income_limit"][size]),
                gross_per_additional_member=_cents(params["gross_per_additional_member"]),
                net_per_additional_member=_cents(params["net_per_additional_member"]),
                source=f"{source}; 7 CFR 273.9(a)",
                **common,
            )
        )

    for size_min, size_max, amount in _brackets(params["standard_deduction"]):
        records.append(
            DeductionRule(
                rule_id=f"{prefix}-DED-STD-{size_min}",
                size_min=size_min,
                size_max=size_max,
                deduction_type=DeductionType.STANDARD,
                calculation_type="fixed",
                amount=_cents(amount),
                source="7 CFR 273.9(d)(1)",
                **common,
            )
        )
    records.extend(
        [
            DeductionRule(
                rule_id=f"{prefix}-DED-EARNED",
                deduction_type=DeductionType.EARNED_INCOME,
                calculation_type="percentage",
                percentage=Decimal(params["earned_income_percent"]),
                source="7 CFR 273.9(d)(2)",
                **common,
            ),
            DeductionRule(
                rule_id=f"{prefix}-DED-DEPCARE",
                deduction_type=DeductionType.DEPENDENT_CARE,
                calculation_type="capped",
                source="7 CFR 273.9(d)(4)",
                notes="Actual dependent care costs, no cap",
                **common,
            ),
            DeductionRule(
                rule_id=f"{prefix}-DED-MEDICAL",
                deduction_type=DeductionType.MEDICAL,
                calculation_type="threshold",
                threshold=_cents(params["medical_threshold"]),
                source="7 CFR 273.9(d)(3)",
                notes="Elderly or disabled members only",
                **common,
            ),
            DeductionRule(
                rule_id=f"{prefix}-DED-SHELTER",
                deduction_type=DeductionType.SHELTER,
                calculation_type="capped",
                max_amount=_cents(params["shelter_cap"]),
                source="7 CFR 273.9(d)(6)(ii)",
                notes="No cap for households with elderly or disabled members",
                **common,
            ),
        ]
    )

    for size, _, max_benefit in _sized(params["max_allotment"]):
        records.append(
            AllotmentRule(
                rule_id=f"{prefix}-ALLOT-{size}",
                size_min=size,
                size_max=size,
                max_benefit=_cents(max_benefit),
                min_benefit=_cents(params["min_benefit"]) if size <= 2 else None,
                reduction_rate=Decimal(params["benefit_reduction_rate"]),
                per_additional_member=_cents(params["allotment_per_additional_member"]),
                source="7 CFR 273.10(e)(2)(ii)",
                **common,
            )
        )

    if with_assets:
        records.append(
            AssetTestRule(
                rule_id=f"{prefix}-ASSET",
                limit=_cents(params["asset_limit"]),
                elderly_disabled_limit=_cents(params["asset_limit_elderly_disabled"]),
                source="7 CFR 273.8(b)",
                **common,
            )
        )
    return records


def categorical_records(
    jurisdiction: str,
    window: tuple,
    broad_based: bool = False,
) -> List[CategoricalEligibilityRule]:
    """SSI/TANF/GA recipients skip the gross and asset tests; BBCE waives assets."""
    effective_from, effective_to = window
    prefix = f"{jurisdiction}-SNAP-FY{effective_to.year}-CAT"
    common = dict(
        jurisdiction=jurisdiction,
        program="SNAP",
        effective_from=effective_from,
        effective_to=effective_to,
        source="7 CFR 273.2(j)(2)",
    )
    records = [
        CategoricalEligibilityRule(
            rule_id=f"{prefix}-{code}",
            code=code,
            name=name,
            priority=priority,
            bypass_gross_income_test=True,
            bypass_asset_test=True,
            conditions={"receives_any": [code]},
            **common,
        )
        for priority, code, name in (
            (10, "SSI", "SSI Recipients"),
            (20, "TANF", "TANF Recipients"),
            (30, "GA", "General Assistance Recipients"),
        )
    ]
    if broad_based:
        records.append(
            CategoricalEligibilityRule(
                rule_id=f"{prefix}-BBCE",
                code="BBCE",
                name="Broad-Based Categorical Eligibility",
                priority=100,
                bypass_asset_test=True,
                broad_based=True,
                notes="Households meeting income limits qualify without asset test",
                **common,
            )
        )
    return records


def tanf_records(jurisdiction: str, params: dict, window: tuple) -> List[RuleRecord]:
    """Cash assistance: no standard or shelter deduction, full income offset."""
    effective_from, effective_to = window
    prefix = f"{jurisdiction}-TANF-FY{effective_to.year}"
    common = dict(
        jurisdiction=jurisdiction,
        program="TANF",
        effective_from=effective_from,
        effective_to=effective_to,
    )
    records: List[RuleRecord] = []
    for size, _, gross in _sized(params["gross_income_limit"]):
        records.append(
            IncomeLimit(
                rule_id=f"{prefix}-INC-{size}",
                size_min=size,
                size_max=size,
                gross_limit=_cents(gross),
                net_limit=_cents(params["net_income_limit"][size]),
                gross_per_additional_member=_cents(params["gross_per_additional_member"]),
                net_per_additional_member=_cents(params["net_per_additional_member"]),
                source="COMAR 07.03.03.13",
                **common,
            )
        )
        records.append(
            AllotmentRule(
                rule_id=f"{prefix}-GRANT-{size}",
                size_min=size,
                size_max=size,
                max_benefit=_cents(params["max_allotment"][size]),
                reduction_rate=Decimal(params["benefit_reduction_rate"]),
                per_additional_member=_cents(params["allotment_per_additional_member"]),
                source="COMAR 07.03.03.17",
                **common,
            )
        )
    records.extend(
        [
            DeductionRule(
                rule_id=f"{prefix}-DED-EARNED",
                deduction_type=DeductionType.EARNED_INCOME,
                calculation_type="percentage",
                percentage=Decimal(params["earned_income_percent"]),
                source="COMAR 07.03.03.13",
                **common,
            ),
            DeductionRule(
                rule_id=f"{prefix}-DED-DEPCARE",
                deduction_type=DeductionType.DEPENDENT_CARE,
                calculation_type="capped",
                max_amount=_cents(params["dependent_care_cap"]),
                source="COMAR 07.03.03.13",
                **common,
            ),
            AssetTestRule(
                rule_id=f"{prefix}-ASSET",
                limit=_cents(params["asset_limit"]),
                source="COMAR 07.03.03.12",
                **common,
            ),
        ]
    )
    return records


def reference_records() -> List[RuleRecord]:
    """Every reference record, in a stable order."""
    records: List[RuleRecord] = []
    records += snap_records("US", SNAP_FY2024_PARAMS, FY2024, "USDA FNS FY2024 COLA")
    records += snap_records("US", SNAP_FY2025_PARAMS, FY2025, "USDA FNS FY2025 COLA")
    records += categorical_records("US", FY2025)
    records += snap_records(
        "MD", MD_SNAP_FY2025_PARAMS, FY2025, "COMAR 07.03.17", with_assets=False
    )
    records += categorical_records("MD", FY2025, broad_based=True)
    records += snap_records("PA", PA_SNAP_FY2025_PARAMS, FY2025, "PA SNAP Handbook")
    records += categorical_records("PA", FY2025, broad_based=True)
    records += snap_records("UT", SNAP_FY2025_PARAMS, FY2025, "Utah DWS")
    records += categorical_records("UT", FY2025)
    records += tanf_records("MD", MD_TANF_FY2025_PARAMS, FY2025)
    return records


def build_reference_store() -> InMemoryRuleStore:
    """An in-memory store loaded with the reference records."""
    return InMemoryRuleStore(reference_records())
