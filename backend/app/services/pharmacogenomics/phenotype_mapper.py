"""
Phenotype Mapper - Diplotype resolution and phenotype determination.

Turns the detected variants of one gene into a two-allele activity score,
a star-allele diplotype and a metabolizer phenotype. Multi-variant genes
are resolved conservatively: with no phasing information the two
lowest-activity alleles are assumed to sit on opposite chromosomes.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from app.services.vcf.genotype import is_homozygous_variant

from .cpic_loader import ReferenceCatalog, get_reference_catalog
from .cpic_tables import (
    FALLBACK_PHENOTYPE,
    PHENOTYPE_BANDS,
    WILD_TYPE_ACTIVITY,
    WILD_TYPE_ALLELE,
)
from .models import DetectedVariant, Gene, GeneProfile, Phenotype

logger = logging.getLogger(__name__)

# Short code → long name
PHENOTYPE_SHORT_TO_LONG = {
    "PM": "Poor Metabolizer",
    "IM": "Intermediate Metabolizer",
    "NM": "Normal Metabolizer",
    "RM": "Rapid Metabolizer",
    "URM": "Ultrarapid Metabolizer",
    "Unknown": "Unknown",
}
PHENOTYPE_LONG_TO_SHORT = {v: k for k, v in PHENOTYPE_SHORT_TO_LONG.items()}


@dataclass(frozen=True)
class PhenotypeCall:
    phenotype: Phenotype
    fallback: bool = False   # True when no band matched and the IM default was used


def classify_phenotype(gene: Gene, activity_score: float) -> PhenotypeCall:
    """Map an activity score to a phenotype via the gene's band table."""
    score = round(activity_score, 2)
    for band in PHENOTYPE_BANDS[gene]:
        if band.contains(score):
            return PhenotypeCall(band.phenotype)
    logger.warning(f"{gene.value} activity score {score} outside every phenotype band, defaulting to IM")
    return PhenotypeCall(FALLBACK_PHENOTYPE, fallback=True)


def activity_score_to_phenotype(gene: Gene, activity_score: float) -> Phenotype:
    return classify_phenotype(gene, activity_score).phenotype


@dataclass(frozen=True)
class _AlleleHit:
    star: str
    activity: float
    genotype: str


class DiplotypeResolver:
    """Resolves diplotypes from detected variants using catalog activity values."""

    def __init__(self, catalog: Optional[ReferenceCatalog] = None):
        self.catalog = catalog or get_reference_catalog()

    def _collect_alleles(self, gene: Gene, variants: Sequence[DetectedVariant]) -> List[_AlleleHit]:
        """One hit per star allele, in detection order. Gene-tag variants without a catalog entry contribute nothing."""
        seen = set()
        hits: List[_AlleleHit] = []
        for variant in variants:
            entry = self.catalog.lookup(variant.catalog_id or variant.rsid, variant.chromosome, variant.position)
            if entry is None or entry.gene is not gene:
                continue
            if entry.star_allele in seen:
                continue
            seen.add(entry.star_allele)
            hits.append(_AlleleHit(entry.star_allele, entry.activity_value, variant.genotype))
        return hits

    def resolve_gene(self, gene: Gene, variants: Sequence[DetectedVariant]) -> GeneProfile:
        hits = self._collect_alleles(gene, variants)

        if not hits:
            allele1 = allele2 = WILD_TYPE_ACTIVITY
            diplotype = f"{WILD_TYPE_ALLELE}/{WILD_TYPE_ALLELE}"
        elif len(hits) == 1:
            hit = hits[0]
            if is_homozygous_variant(hit.genotype):
                allele1 = allele2 = hit.activity
                diplotype = f"{hit.star}/{hit.star}"
            else:
                allele1, allele2 = WILD_TYPE_ACTIVITY, hit.activity
                diplotype = f"{WILD_TYPE_ALLELE}/{hit.star}"
        else:
            # Compound heterozygous: worst first (stable for ties)
            ranked = sorted(hits, key=lambda h: h.activity)
            homozygous = next((h for h in ranked if is_homozygous_variant(h.genotype)), None)
            if homozygous is not None:
                # A homozygous allele occupies both chromosomes
                allele1 = allele2 = homozygous.activity
                diplotype = f"{homozygous.star}/{homozygous.star}"
            else:
                allele1, allele2 = ranked[0].activity, ranked[1].activity
                diplotype = f"{ranked[0].star}/{ranked[1].star}"

        score = round(allele1 + allele2, 2)
        call = classify_phenotype(gene, score)

        return GeneProfile(
            gene=gene,
            diplotype=diplotype,
            phenotype=call.phenotype,
            activity_score=score,
            allele1_activity=allele1,
            allele2_activity=allele2,
            variants=tuple(variants),
            phenotype_fallback=call.fallback,
        )

    def wild_type_profile(self, gene: Gene) -> GeneProfile:
        """Covered gene, nothing detected: *1/*1."""
        score = round(WILD_TYPE_ACTIVITY * 2, 2)
        call = classify_phenotype(gene, score)
        return GeneProfile(
            gene=gene,
            diplotype=f"{WILD_TYPE_ALLELE}/{WILD_TYPE_ALLELE}",
            phenotype=call.phenotype,
            activity_score=score,
            allele1_activity=WILD_TYPE_ACTIVITY,
            allele2_activity=WILD_TYPE_ACTIVITY,
            inferred_wild_type=True,
            phenotype_fallback=call.fallback,
        )

    def build_gene_profiles(
        self,
        variants: Iterable[DetectedVariant],
        covered_genes: Iterable[Gene] = (),
    ) -> List[GeneProfile]:
        """One profile per gene with variants, plus wild-type profiles for covered genes without any."""
        by_gene: Dict[Gene, List[DetectedVariant]] = defaultdict(list)
        for variant in variants:
            by_gene[variant.gene].append(variant)
        covered = set(covered_genes)

        profiles: List[GeneProfile] = []
        for gene in Gene:
            if by_gene.get(gene):
                profile = self.resolve_gene(gene, by_gene[gene])
                logger.info(
                    f"{gene.value}: {profile.diplotype} score={profile.activity_score} "
                    f"phenotype={profile.phenotype.value}"
                )
                profiles.append(profile)
            elif gene in covered:
                profiles.append(self.wild_type_profile(gene))
        return profiles


def build_gene_profiles(
    variants: Iterable[DetectedVariant],
    covered_genes: Iterable[Gene] = (),
    catalog: Optional[ReferenceCatalog] = None,
) -> List[GeneProfile]:
    return DiplotypeResolver(catalog).build_gene_profiles(variants, covered_genes)
