"""
Unit tests for phenotype mapper and diplotype resolution.
Tests the two-allele activity model and the per-gene phenotype bands.
"""

import pytest

from app.services.pharmacogenomics.cpic_loader import get_reference_catalog
from app.services.pharmacogenomics.models import Gene, Phenotype
from app.services.pharmacogenomics.phenotype_mapper import (
    PHENOTYPE_SHORT_TO_LONG,
    DiplotypeResolver,
    activity_score_to_phenotype,
    build_gene_profiles,
    classify_phenotype,
)


class TestClassifyPhenotype:
    """Band tables per gene, first match wins."""

    @pytest.mark.parametrize("gene,score,expected", [
        (Gene.CYP2D6, 0.0, Phenotype.PM),
        (Gene.CYP2D6, 0.25, Phenotype.IM),
        (Gene.CYP2D6, 1.0, Phenotype.IM),
        (Gene.CYP2D6, 1.25, Phenotype.NM),
        (Gene.CYP2D6, 2.25, Phenotype.NM),
        (Gene.CYP2D6, 3.0, Phenotype.URM),
        (Gene.CYP2C19, 0.0, Phenotype.PM),
        (Gene.CYP2C19, 1.0, Phenotype.IM),
        (Gene.CYP2C19, 2.0, Phenotype.NM),
        (Gene.CYP2C19, 2.5, Phenotype.RM),
        (Gene.CYP2C9, 0.5, Phenotype.PM),
        (Gene.CYP2C9, 1.5, Phenotype.IM),
        (Gene.CYP2C9, 2.0, Phenotype.NM),
        (Gene.SLCO1B1, 0.0, Phenotype.PM),
        (Gene.SLCO1B1, 1.0, Phenotype.IM),
        (Gene.SLCO1B1, 2.0, Phenotype.NM),
        (Gene.TPMT, 0.0, Phenotype.PM),
        (Gene.TPMT, 1.0, Phenotype.IM),
        (Gene.DPYD, 0.5, Phenotype.PM),
        (Gene.DPYD, 1.0, Phenotype.IM),
        (Gene.DPYD, 2.0, Phenotype.NM),
    ])
    def test_band_lookup(self, gene, score, expected):
        call = classify_phenotype(gene, score)
        assert call.phenotype is expected
        assert call.fallback is False

    @pytest.mark.parametrize("gene,score", [
        (Gene.CYP2D6, 1.1),
        (Gene.CYP2C19, 1.25),
        (Gene.CYP2C9, 0.75),
        (Gene.SLCO1B1, 1.25),
        (Gene.DPYD, 1.75),
        (Gene.CYP2C9, 2.5),
    ])
    def test_out_of_band_defaults_to_intermediate(self, gene, score):
        call = classify_phenotype(gene, score)
        assert call.phenotype is Phenotype.IM
        assert call.fallback is True

    def test_score_rounded_before_comparison(self):
        assert classify_phenotype(Gene.CYP2D6, 1.2500000001).phenotype is Phenotype.NM

    def test_activity_score_to_phenotype(self):
        assert activity_score_to_phenotype(Gene.CYP2D6, 0.0) is Phenotype.PM

    def test_display_names(self):
        assert PHENOTYPE_SHORT_TO_LONG["URM"] == "Ultrarapid Metabolizer"


class TestDiplotypeResolver:
    """Test diplotype resolution logic."""

    @pytest.fixture
    def resolver(self):
        return DiplotypeResolver()

    def test_homozygous_variant(self, resolver, detected):
        profile = resolver.resolve_gene(Gene.CYP2D6, [detected("rs3892097", "1/1")])
        assert profile.diplotype == "*4/*4"
        assert profile.activity_score == 0.0
        assert profile.phenotype is Phenotype.PM

    def test_heterozygous_with_wild_type(self, resolver, detected):
        profile = resolver.resolve_gene(Gene.CYP2D6, [detected("rs3892097", "0/1")])
        assert profile.diplotype == "*1/*4"
        assert (profile.allele1_activity, profile.allele2_activity) == (1.0, 0.0)
        assert profile.activity_score == 1.0
        assert profile.phenotype is Phenotype.IM

    def test_phased_heterozygous(self, resolver, detected):
        profile = resolver.resolve_gene(Gene.CYP2D6, [detected("rs3892097", "1|0")])
        assert profile.diplotype == "*1/*4"

    def test_compound_heterozygote_sums_both_variant_alleles(self, resolver, detected):
        variants = [detected("rs1065852", "0/1"), detected("rs3892097", "0/1")]
        profile = resolver.resolve_gene(Gene.CYP2D6, variants)
        assert profile.diplotype == "*4/*10"
        assert profile.activity_score == 0.25
        assert profile.phenotype is Phenotype.IM
        assert len(profile.variants) == 2

    def test_worst_two_alleles_kept(self, resolver, detected):
        variants = [
            detected("rs28371725", "0/1"),  # *41, 0.5
            detected("rs16947", "0/1"),     # *2, 1.0
            detected("rs5030655", "0/1"),   # *6, 0.0
        ]
        profile = resolver.resolve_gene(Gene.CYP2D6, variants)
        assert profile.diplotype == "*6/*41"
        assert profile.activity_score == 0.5

    def test_homozygous_allele_among_several_fills_both_slots(self, resolver, detected):
        variants = [detected("rs1065852", "0/1"), detected("rs3892097", "1/1")]
        profile = resolver.resolve_gene(Gene.CYP2D6, variants)
        assert profile.diplotype == "*4/*4"
        assert profile.activity_score == 0.0

    def test_increased_function_allele(self, resolver, detected):
        profile = resolver.resolve_gene(Gene.CYP2C19, [detected("rs12248560", "0/1")])
        assert profile.diplotype == "*1/*17"
        assert profile.activity_score == 2.5
        assert profile.phenotype is Phenotype.RM

    def test_allele_values_come_from_catalog(self, resolver, detected):
        catalog = get_reference_catalog()
        allowed = set(catalog.activity_values(Gene.CYP2C9).values()) | {1.0}
        profile = resolver.resolve_gene(Gene.CYP2C9, [detected("rs1799853"), detected("rs1057910")])
        assert profile.allele1_activity in allowed
        assert profile.allele2_activity in allowed
        assert profile.activity_score == profile.allele1_activity + profile.allele2_activity

    def test_out_of_band_score_flags_fallback(self, resolver, detected):
        # CYP2C9 *2/*3: 0.5 + 0.25 = 0.75 falls between the PM and IM bands
        profile = resolver.resolve_gene(Gene.CYP2C9, [detected("rs1799853"), detected("rs1057910")])
        assert profile.diplotype == "*3/*2"
        assert profile.activity_score == 0.75
        assert profile.phenotype is Phenotype.IM
        assert profile.phenotype_fallback is True

    def test_in_band_score_is_not_fallback(self, resolver, detected):
        profile = resolver.resolve_gene(Gene.CYP2C9, [detected("rs1057910")])
        assert profile.activity_score == 1.25
        assert profile.phenotype is Phenotype.IM
        assert profile.phenotype_fallback is False

    def test_wild_type_profile(self, resolver):
        profile = resolver.wild_type_profile(Gene.TPMT)
        assert profile.diplotype == "*1/*1"
        assert profile.phenotype is Phenotype.NM
        assert profile.activity_score == 2.0
        assert profile.inferred_wild_type is True
        assert profile.variants == ()


class TestBuildGeneProfiles:

    def test_profiles_for_detected_and_covered_genes(self, detected):
        profiles = build_gene_profiles(
            [detected("rs4244285", "1/1")],
            covered_genes={Gene.CYP2C19, Gene.CYP2D6},
        )
        assert [p.gene for p in profiles] == [Gene.CYP2D6, Gene.CYP2C19]
        assert profiles[0].inferred_wild_type is True
        assert profiles[1].diplotype == "*2/*2"
        assert profiles[1].phenotype is Phenotype.PM

    def test_uncovered_gene_has_no_profile(self):
        assert build_gene_profiles([], covered_genes=()) == []

    def test_ordered_by_gene_enumeration(self, detected):
        profiles = build_gene_profiles(
            [detected("rs3918290"), detected("rs1800462"), detected("rs3892097")],
        )
        assert [p.gene for p in profiles] == [Gene.CYP2D6, Gene.TPMT, Gene.DPYD]
