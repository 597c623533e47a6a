"""
Internal data models for the pharmacogenomics service.

Closed enumerations for genes, drugs, phenotypes and risk vocabulary, plus the
immutable records that flow between the catalog, the resolver and the risk
engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class Gene(str, Enum):
    """Pharmacogenes covered by the reference catalog."""
    CYP2D6 = "CYP2D6"
    CYP2C19 = "CYP2C19"
    CYP2C9 = "CYP2C9"
    SLCO1B1 = "SLCO1B1"
    TPMT = "TPMT"
    DPYD = "DPYD"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Gene"]:
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class Drug(str, Enum):
    """Drugs with a consensus gene-drug guideline."""
    CODEINE = "CODEINE"
    CLOPIDOGREL = "CLOPIDOGREL"
    WARFARIN = "WARFARIN"
    SIMVASTATIN = "SIMVASTATIN"
    AZATHIOPRINE = "AZATHIOPRINE"
    FLUOROURACIL = "FLUOROURACIL"


class Phenotype(str, Enum):
    PM = "PM"
    IM = "IM"
    NM = "NM"
    RM = "RM"
    URM = "URM"
    UNKNOWN = "Unknown"


class RiskLabel(str, Enum):
    SAFE = "Safe"
    ADJUST_DOSAGE = "Adjust Dosage"
    TOXIC = "Toxic"
    INEFFECTIVE = "Ineffective"
    UNKNOWN = "Unknown"


class Severity(str, Enum):
    """Severity tiers, declared in ascending order."""
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    def escalate(self) -> "Severity":
        """Return the next tier up; critical stays critical."""
        tiers = list(Severity)
        idx = tiers.index(self)
        return tiers[min(idx + 1, len(tiers) - 1)]


class FunctionalStatus(str, Enum):
    NO_FUNCTION = "no_function"
    DECREASED_FUNCTION = "decreased_function"
    NORMAL_FUNCTION = "normal_function"
    INCREASED_FUNCTION = "increased_function"


class MatchMethod(str, Enum):
    """How a VCF record was tied to a pharmacogene."""
    RSID = "rsID"
    POSITION = "chr:pos"
    FUZZY_POSITION = "chr:pos±5bp"
    GENE_TAG = "INFO/GENE"


@dataclass(frozen=True)
class ReferenceVariant:
    """One defining mutation of a star allele, with GRCh37 and GRCh38 coordinates."""
    rsid: str
    gene: Gene
    chromosome: str
    position_grch37: int
    position_grch38: int
    ref_allele: str
    alt_alleles: Tuple[str, ...]
    star_allele: str
    activity_value: float
    functional_status: FunctionalStatus
    significance: str


@dataclass(frozen=True)
class DetectedVariant:
    """A matched variant the patient actually carries (het or hom-alt)."""
    rsid: str
    chromosome: str
    position: int
    ref_allele: str
    alt_allele: str
    genotype: str
    gene: Gene
    clinical_significance: str
    match_method: MatchMethod
    star_allele: Optional[str] = None
    catalog_id: Optional[str] = None   # None when matched only through the INFO gene tag

    def to_output(self) -> dict:
        return {
            "rsid": self.rsid,
            "chromosome": self.chromosome,
            "position": self.position,
            "ref_allele": self.ref_allele,
            "alt_allele": self.alt_allele,
            "genotype": self.genotype,
            "gene": self.gene.value,
            "clinical_significance": self.clinical_significance,
        }


@dataclass(frozen=True)
class GeneProfile:
    """Resolved diplotype and phenotype for one gene."""
    gene: Gene
    diplotype: str
    phenotype: Phenotype
    activity_score: float
    allele1_activity: float
    allele2_activity: float
    variants: Tuple[DetectedVariant, ...] = field(default_factory=tuple)
    inferred_wild_type: bool = False
    phenotype_fallback: bool = False


@dataclass(frozen=True)
class RiskEntry:
    """Drug-specific verdict for one (drug, gene, phenotype) combination."""
    drug: Drug
    gene: Gene
    phenotype: Phenotype
    risk_label: RiskLabel
    severity: Severity
    confidence: float
    clinical_action: str
    dosing_guidance: str
    monitoring: str
    alternatives: List[str]
    guideline_reference: str
    mechanism: str
    diplotype: str
    recommendation: str
    variant_effects: str = ""
    activity_score: Optional[float] = None
