"""
Confidence calibration checks: each component against hand-computed totals.
"""

import pytest

from app.services.pharmacogenomics.config import ConfidenceCalibration
from app.services.pharmacogenomics.confidence import (
    compute_confidence_score,
    confidence_breakdown,
    wild_type_confidence,
)
from app.services.pharmacogenomics.models import Phenotype


class TestComputeConfidenceScore:

    def test_single_null_allele_homozygous(self):
        # 0.40 + 0.07 + 0.12 (PM) + 0.10 (score 0)
        assert compute_confidence_score(Phenotype.PM, 1, 1, 0.0) == pytest.approx(0.69)

    def test_two_null_alleles(self):
        # 0.40 + 0.14 + 0.15 + 0.10 + 0.08 concordance
        assert compute_confidence_score(Phenotype.PM, 2, 2, 0.0) == pytest.approx(0.87)

    def test_intermediate(self):
        # 0.40 + 0.07 + 0.08 + 0.03
        assert compute_confidence_score(Phenotype.IM, 1, 0, 1.0) == pytest.approx(0.58)

    def test_normal_and_rapid_share_bonus(self):
        nm = compute_confidence_score(Phenotype.NM, 1, 0, 2.0)
        rm = compute_confidence_score(Phenotype.RM, 1, 0, 2.0)
        assert nm == rm == pytest.approx(0.63)

    def test_variant_evidence_capped(self):
        bd = confidence_breakdown(Phenotype.IM, 5, 0, 1.0)
        assert bd.variant_evidence == pytest.approx(0.15)

    def test_extremity_bands(self):
        assert confidence_breakdown(Phenotype.URM, 1, 0, 2.5).extremity_bonus == pytest.approx(0.10)
        assert confidence_breakdown(Phenotype.IM, 1, 0, 0.5).extremity_bonus == pytest.approx(0.06)
        assert confidence_breakdown(Phenotype.NM, 1, 0, 2.0).extremity_bonus == pytest.approx(0.06)
        assert confidence_breakdown(Phenotype.IM, 1, 0, 1.5).extremity_bonus == pytest.approx(0.03)

    def test_concordance_needs_all_null(self):
        assert confidence_breakdown(Phenotype.PM, 3, 2, 0.0).concordance_bonus == 0.0
        assert confidence_breakdown(Phenotype.PM, 1, 1, 0.0).concordance_bonus == 0.0

    def test_unknown_phenotype_gets_no_bonus(self):
        assert confidence_breakdown(Phenotype.UNKNOWN, 0, 0, 1.0).phenotype_bonus == 0.0

    def test_ceiling(self):
        calibration = ConfidenceCalibration(base=0.9)
        assert compute_confidence_score(Phenotype.PM, 3, 3, 0.0, calibration) == 0.98

    def test_breakdown_to_dict(self):
        data = confidence_breakdown(Phenotype.PM, 1, 1, 0.0).to_dict()
        assert data["final"] == pytest.approx(0.69)
        assert data["base"] == 0.4


class TestWildTypeConfidence:

    @pytest.mark.parametrize("total,expected", [(0, 0.65), (3, 0.71), (7, 0.79), (8, 0.80), (50, 0.80)])
    def test_scales_with_evidence_and_caps(self, total, expected):
        assert wild_type_confidence(total) == pytest.approx(expected)
