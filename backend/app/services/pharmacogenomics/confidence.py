"""
Confidence Scoring - additive calibration for drug risk calls.

Final confidence = base + variant evidence + phenotype bonus
                 + activity extremity + null-allele concordance,
rounded to 2 dp and capped at the configured ceiling (0.98).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .config import ConfidenceCalibration, get_config
from .models import Phenotype


# ---------------------------------------------------------------------------
# Confidence Breakdown - every component tracked independently
# ---------------------------------------------------------------------------

@dataclass
class ConfidenceBreakdown:
    base: float = 0.0
    variant_evidence: float = 0.0
    phenotype_bonus: float = 0.0
    extremity_bonus: float = 0.0
    concordance_bonus: float = 0.0
    ceiling: float = 1.0

    @property
    def final(self) -> float:
        total = (
            self.base
            + self.variant_evidence
            + self.phenotype_bonus
            + self.extremity_bonus
            + self.concordance_bonus
        )
        return min(round(total, 2), self.ceiling)

    def to_dict(self) -> Dict[str, float]:
        return {
            "base": round(self.base, 4),
            "variant_evidence": round(self.variant_evidence, 4),
            "phenotype_bonus": round(self.phenotype_bonus, 4),
            "extremity_bonus": round(self.extremity_bonus, 4),
            "concordance_bonus": round(self.concordance_bonus, 4),
            "final": self.final,
        }


def confidence_breakdown(
    phenotype: Phenotype,
    variant_count: int,
    no_function_count: int,
    activity_score: float,
    calibration: Optional[ConfidenceCalibration] = None,
) -> ConfidenceBreakdown:
    cal = calibration or get_config().confidence
    bd = ConfidenceBreakdown(base=cal.base, ceiling=cal.ceiling)

    bd.variant_evidence = min(variant_count * cal.per_variant, cal.per_variant_cap)

    if phenotype in (Phenotype.PM, Phenotype.URM):
        bd.phenotype_bonus = (
            cal.extreme_phenotype_multi_null if no_function_count >= 2 else cal.extreme_phenotype
        )
    elif phenotype in (Phenotype.NM, Phenotype.RM):
        bd.phenotype_bonus = cal.normal_phenotype
    elif phenotype is Phenotype.IM:
        bd.phenotype_bonus = cal.intermediate_phenotype

    if activity_score == 0 or activity_score >= 2.5:
        bd.extremity_bonus = cal.extremity_strong
    elif activity_score <= 0.5 or activity_score >= 2.0:
        bd.extremity_bonus = cal.extremity_moderate
    else:
        bd.extremity_bonus = cal.extremity_weak

    if variant_count >= 2 and no_function_count == variant_count:
        bd.concordance_bonus = cal.concordance_bonus

    return bd


def compute_confidence_score(
    phenotype: Phenotype,
    variant_count: int,
    no_function_count: int,
    activity_score: float,
    calibration: Optional[ConfidenceCalibration] = None,
) -> float:
    return confidence_breakdown(
        phenotype, variant_count, no_function_count, activity_score, calibration
    ).final


def wild_type_confidence(
    total_variants: int,
    calibration: Optional[ConfidenceCalibration] = None,
) -> float:
    """Covered gene with nothing detected; grows with evidence elsewhere in the file."""
    cal = calibration or get_config().confidence
    return round(
        min(cal.wild_type_base + cal.wild_type_per_variant * total_variants, cal.wild_type_ceiling),
        2,
    )
