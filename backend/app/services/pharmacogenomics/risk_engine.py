"""
Risk Engine - Evaluates pharmacogenomic risk for drug-gene-phenotype combinations.

Everything drug-specific lives in ``cpic_tables.DRUG_PROFILES``; this module
only looks rules up and renders guidance text around them. Three paths:

  * detected variants  -> table lookup + severity escalation + confidence
  * covered, wild-type -> Safe / NM with moderate confidence
  * never sequenced    -> Unknown with zero confidence
"""

import logging
from typing import Iterable, List, Optional, Sequence

from .confidence import compute_confidence_score, wild_type_confidence
from .cpic_loader import ReferenceCatalog, get_reference_catalog
from .cpic_tables import DRUG_PROFILES, UNTESTED_CO_GENES, DrugProfile
from .models import (
    Drug,
    FunctionalStatus,
    Gene,
    GeneProfile,
    Phenotype,
    RiskEntry,
    RiskLabel,
    Severity,
)

logger = logging.getLogger(__name__)

INDETERMINATE_DIPLOTYPE = "Indeterminate (gene not sequenced in this panel)"


def _dosing_text(drug: Drug, gene: Gene, phenotype: Phenotype, risk: RiskLabel, score: float):
    """(dosing_guidance, monitoring) for a risk label."""
    name = drug.value
    if risk in (RiskLabel.TOXIC, RiskLabel.INEFFECTIVE):
        dosing = (
            f"AVOID {name}. Activity score {score:.1f} → {phenotype.value} metabolizer. "
            "Use alternative medication."
        )
        if risk is RiskLabel.TOXIC:
            monitoring = (
                f"{name} contraindicated for {phenotype.value} metabolizers. "
                "If administered, monitor for toxicity immediately."
            )
        else:
            monitoring = (
                f"{name} expected to be ineffective. "
                "Monitor for treatment failure and switch to alternative."
            )
    elif risk is RiskLabel.ADJUST_DOSAGE:
        if score < 0.5:
            reduction = "50-80%"
        elif score < 1.0:
            reduction = "25-50%"
        else:
            reduction = "15-25%"
        dosing = (
            f"Reduce {name} dose by {reduction}. Activity score {score:.1f} → reduced metabolism. "
            "Titrate based on response."
        )
        monitoring = (
            "Enhanced monitoring required. Check drug levels if available. "
            "Monitor for efficacy and adverse effects."
        )
    else:
        dosing = f"Use {name} per standard dosing. Activity score {score:.1f} → normal {gene.value} function."
        monitoring = "Standard clinical monitoring per guidelines."
    return dosing, monitoring


def compute_drug_risk(
    gene: Gene,
    drug: Drug,
    phenotype: Phenotype,
    activity_score: float,
    variant_functions: Sequence[FunctionalStatus],
    variant_count: Optional[int] = None,
    diplotype: str = "",
) -> RiskEntry:
    """
    Look up risk/severity for (drug, phenotype) and render guidance.

    Two or more no-function variants raise severity one tier (critical is
    the ceiling). ``variant_count`` defaults to ``len(variant_functions)``;
    gene-tag variants have no functional class but still count.
    """
    profile: DrugProfile = DRUG_PROFILES[drug]
    rule = profile.rules.get(phenotype)

    if rule is None:
        # validate_tables() guarantees every reachable phenotype; Unknown is not one
        risk, severity = RiskLabel.UNKNOWN, Severity.MODERATE
        clinical_action = f"Consult CPIC guidelines for {drug.value} in {phenotype.value} metabolizers"
        mechanism = (
            f"{gene.value} activity score {activity_score:.1f} ({phenotype.value}) → "
            f"altered {drug.value.lower()} metabolism"
        )
    else:
        risk, severity = rule.risk, rule.severity
        clinical_action = rule.clinical_action
        mechanism = rule.mechanism.format(score=activity_score)

    no_function_count = sum(1 for f in variant_functions if f is FunctionalStatus.NO_FUNCTION)
    if no_function_count >= 2 and severity is not Severity.CRITICAL:
        escalated = severity.escalate()
        logger.info(
            f"{drug.value}: {no_function_count} no-function {gene.value} variants, "
            f"severity {severity.value} -> {escalated.value}"
        )
        severity = escalated

    count = len(variant_functions) if variant_count is None else variant_count
    confidence = compute_confidence_score(phenotype, count, no_function_count, activity_score)
    dosing, monitoring = _dosing_text(drug, gene, phenotype, risk, activity_score)

    return RiskEntry(
        drug=drug,
        gene=gene,
        phenotype=phenotype,
        risk_label=risk,
        severity=severity,
        confidence=confidence,
        clinical_action=clinical_action,
        dosing_guidance=dosing,
        monitoring=monitoring,
        alternatives=[] if risk is RiskLabel.SAFE else list(profile.alternatives),
        guideline_reference=profile.guideline_reference,
        mechanism=mechanism,
        diplotype=diplotype,
        recommendation=dosing,
        activity_score=activity_score,
    )


def wild_type_risk(gene: Gene, drug: Drug, total_variants: int) -> RiskEntry:
    """Gene loci present in the file, no deleterious variant found: *1/*1 inferred."""
    profile = DRUG_PROFILES[drug]
    monitoring = "Standard clinical monitoring per treatment guidelines."
    note = UNTESTED_CO_GENES.get(drug)
    if note:
        monitoring = f"{monitoring} {note}"
    function_word = "transporter function" if gene is Gene.SLCO1B1 else "enzyme activity"

    return RiskEntry(
        drug=drug,
        gene=gene,
        phenotype=Phenotype.NM,
        risk_label=RiskLabel.SAFE,
        severity=Severity.NONE,
        confidence=wild_type_confidence(total_variants),
        clinical_action=f"Use standard {drug.value.lower()} dosing per clinical protocol",
        dosing_guidance=(
            f"Standard dosing appropriate. Activity score 2.0 (inferred normal). "
            f"{drug.value} is expected to be metabolized normally."
        ),
        monitoring=monitoring,
        alternatives=[],
        guideline_reference=profile.guideline_reference,
        mechanism=(
            f"{gene.value} was screened in the uploaded VCF data. No known loss-of-function, "
            "decreased-function, or increased-function variants were detected at established "
            "pharmacogenomic loci. By inference, the patient's diplotype is *1/*1 (wild-type), "
            f"corresponding to Normal Metabolizer status with full {function_word} (activity score 2.0)."
        ),
        diplotype="*1/*1",
        recommendation=(
            f"No deleterious {gene.value} variants detected in sequencing data. Wild-type *1/*1 "
            f"inferred → Normal Metabolizer. Use {drug.value} per standard dosing guidelines."
        ),
        variant_effects="NM (inferred from absence of known deleterious variants in sequencing data)",
        activity_score=2.0,
    )


def untested_risk(gene: Gene, drug: Drug) -> RiskEntry:
    """No record at any locus of the gene. Never conflated with wild-type."""
    profile = DRUG_PROFILES[drug]
    g, d = gene.value, drug.value
    return RiskEntry(
        drug=drug,
        gene=gene,
        phenotype=Phenotype.UNKNOWN,
        risk_label=RiskLabel.UNKNOWN,
        severity=Severity.LOW,
        confidence=0.0,
        clinical_action=(
            f"{g} genotype not available from this VCF: cannot determine {d} risk. "
            "Use standard clinical judgment."
        ),
        dosing_guidance=(
            f"No pharmacogenomic guidance available for {d}: {g} genotype data is absent from the "
            f"uploaded VCF. Consider ordering targeted {g} pharmacogenomic testing."
        ),
        monitoring=(
            f"{g} genotype not available. Consider targeted pharmacogenomic panel testing for {g}. "
            "Use standard monitoring until genotype is confirmed."
        ),
        alternatives=[],
        guideline_reference=profile.guideline_reference,
        mechanism=(
            f"{g} variants were not present in the uploaded VCF data. This VCF does not appear to "
            f"cover {g} loci; the gene was likely not included in the sequencing panel. No genotype "
            f"can be inferred. Targeted pharmacogenomic testing for {g} is recommended before making "
            f"{d} dosing decisions."
        ),
        diplotype=INDETERMINATE_DIPLOTYPE,
        recommendation=(
            f"{g} was not tested in this VCF file. Genotype and metabolizer status cannot be "
            f"determined. Use standard clinical judgment for {d} dosing."
        ),
        variant_effects="Unknown: gene not sequenced in this panel",
    )


class RiskEngine:
    """Selects the detected / wild-type / untested path for each drug."""

    def __init__(self, catalog: Optional[ReferenceCatalog] = None):
        self.catalog = catalog or get_reference_catalog()

    def variant_functions(self, profile: GeneProfile) -> List[FunctionalStatus]:
        functions: List[FunctionalStatus] = []
        for variant in profile.variants:
            entry = self.catalog.lookup(
                variant.catalog_id or variant.rsid, variant.chromosome, variant.position
            )
            if entry is not None:
                functions.append(entry.functional_status)
        return functions

    def assess_drug(
        self,
        drug: Drug,
        profiles: Iterable[GeneProfile],
        covered_genes: Iterable[Gene],
        total_variants: int,
    ) -> RiskEntry:
        gene = DRUG_PROFILES[drug].gene
        profile = next((p for p in profiles if p.gene is gene), None)

        if profile is None:
            if gene in set(covered_genes):
                return wild_type_risk(gene, drug, total_variants)
            logger.info(f"{drug.value}: {gene.value} not covered by this file")
            return untested_risk(gene, drug)

        if profile.inferred_wild_type:
            return wild_type_risk(gene, drug, total_variants)

        return compute_drug_risk(
            gene,
            drug,
            profile.phenotype,
            profile.activity_score,
            self.variant_functions(profile),
            variant_count=len(profile.variants),
            diplotype=profile.diplotype,
        )
