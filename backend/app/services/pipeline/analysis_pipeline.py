"""
Analysis Pipeline: orchestrates VCF -> records -> variants -> profiles -> risk -> report.

Receives already-materialized VCF content plus the requested drug names and
returns one DrugRiskReport per supported drug. The LLM step is separate
(``app.services.llm.explanation_service.enrich_with_explanations``) so this
module stays synchronous and deterministic.
"""
import hashlib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set, Union

from app.schemas.internal_contracts import ExplanationRequest, VariantSummary
from app.schemas.pharma_schema import (
    ClinicalRecommendation,
    DetectedVariantOut,
    DrugRiskReport,
    PharmacogenomicProfile,
    QualityMetrics,
    RiskAssessment,
)
from app.services.llm.explanation_service import fallback_explanation
from app.services.pharmacogenomics.cpic_loader import ReferenceCatalog, get_reference_catalog
from app.services.pharmacogenomics.cpic_tables import DRUG_PROFILES, normalize_drug_name
from app.services.pharmacogenomics.models import (
    DetectedVariant,
    Drug,
    Gene,
    GeneProfile,
    RiskEntry,
)
from app.services.pharmacogenomics.phenotype_mapper import build_gene_profiles
from app.services.pharmacogenomics.risk_engine import RiskEngine
from app.services.vcf.parser import (
    ALL_FILTERED_WARNING,
    ParsedRecord,
    ParseWarning,
    parse_vcf_records,
    validate_vcf,
)
from app.services.vcf.variant_extractor import extract_pharma_variants

logger = logging.getLogger(__name__)

SUPPORTED_DRUGS = [d.value for d in Drug]


@dataclass
class VcfAnalysis:
    records: List[ParsedRecord] = field(default_factory=list)
    variants: List[DetectedVariant] = field(default_factory=list)
    profiles: List[GeneProfile] = field(default_factory=list)
    covered_genes: Set[Gene] = field(default_factory=set)
    warnings: List[ParseWarning] = field(default_factory=list)
    sample_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class AnalysisOutcome:
    results: List[DrugRiskReport] = field(default_factory=list)
    warnings: List[ParseWarning] = field(default_factory=list)
    error: Optional[str] = None


def analyze_vcf(
    content: Union[str, bytes, None],
    catalog: Optional[ReferenceCatalog] = None,
) -> VcfAnalysis:
    """Parse, match and resolve one file. Stops early on fatal input or zero surviving records."""
    validation = validate_vcf(content)
    if not validation.valid:
        logger.warning(f"VCF rejected: {validation.error}")
        return VcfAnalysis(error=validation.error)

    catalog = catalog or get_reference_catalog()

    logger.info("Parsing VCF")
    parsed = parse_vcf_records(content)
    warnings = list(parsed.warnings)

    if not parsed.records:
        warnings.append(ParseWarning(0, "ALL", ALL_FILTERED_WARNING, "warning"))
        logger.info("No records survived quality filters")
        return VcfAnalysis(warnings=warnings, sample_ids=parsed.sample_ids)

    logger.info("Matching %d records against %d catalog entries", len(parsed.records), len(catalog))
    extraction = extract_pharma_variants(parsed.records, catalog, warnings)

    logger.info("Resolving diplotypes")
    profiles = build_gene_profiles(extraction.variants, extraction.covered_genes, catalog)

    return VcfAnalysis(
        records=parsed.records,
        variants=extraction.variants,
        profiles=profiles,
        covered_genes=extraction.covered_genes,
        warnings=warnings,
        sample_ids=parsed.sample_ids,
    )


def patient_id_for(content: Union[str, bytes], sample_ids: Iterable[str] = ()) -> str:
    """First sample column name, else a digest of the file head."""
    for sample in sample_ids:
        if sample.strip():
            return sample.strip()
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    digest = hashlib.sha256(content[:100].encode("utf-8")).hexdigest()[:10].upper()
    return f"PATIENT_{digest}"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_report(
    entry: RiskEntry,
    profile: Optional[GeneProfile],
    patient_id: str,
    pharmacogenes_found: int,
    started: float,
) -> DrugRiskReport:
    """Render a RiskEntry into the response model, with the deterministic explanation pre-filled."""
    variants = list(profile.variants) if profile is not None else []
    detected = [DetectedVariantOut(**v.to_output()) for v in variants]

    recommendation = ClinicalRecommendation(
        action=entry.recommendation,
        dosing_guidance=entry.dosing_guidance,
        alternative_drugs=list(entry.alternatives),
        monitoring_recommendations=entry.monitoring,
        cpic_guideline_reference=entry.guideline_reference,
    )

    request = ExplanationRequest(
        drug=entry.drug.value,
        gene=entry.gene.value,
        diplotype=entry.diplotype,
        phenotype=entry.phenotype.value,
        risk_label=entry.risk_label.value,
        severity=entry.severity.value,
        detected_variants=[
            VariantSummary(rsid=v.rsid, genotype=v.genotype, clinical_significance=v.clinical_significance)
            for v in variants
        ],
    )
    explanation = fallback_explanation(
        request,
        entry.mechanism,
        clinical_context=recommendation.action,
        citation=entry.guideline_reference,
        variant_effects=entry.variant_effects,
    )

    return DrugRiskReport(
        patient_id=patient_id,
        drug=entry.drug.value,
        timestamp=_utc_timestamp(),
        risk_assessment=RiskAssessment(
            risk_label=entry.risk_label.value,
            cpic_clinical_action=entry.clinical_action,
            confidence_score=entry.confidence,
            severity=entry.severity.value,
        ),
        pharmacogenomic_profile=PharmacogenomicProfile(
            primary_gene=entry.gene.value,
            diplotype=entry.diplotype,
            phenotype=entry.phenotype.value,
            detected_variants=detected,
            activity_score=entry.activity_score,
        ),
        clinical_recommendation=recommendation,
        llm_generated_explanation=explanation,
        quality_metrics=QualityMetrics(
            vcf_parsing_success=True,
            variants_detected=len(variants),
            pharmacogenes_found=pharmacogenes_found,
            llm_explanation_generated=False,
            processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
        ),
    )


def _normalize_drugs(drugs: Iterable[str], warnings: List[ParseWarning]) -> List[Drug]:
    selected: List[Drug] = []
    for name in drugs:
        if not name or not name.strip():
            continue
        drug = normalize_drug_name(name)
        if drug is None:
            warnings.append(ParseWarning(
                0,
                "drugs",
                f"Unsupported drug '{name.strip()}' ignored. Supported: {', '.join(SUPPORTED_DRUGS)}",
                "warning",
            ))
            continue
        if drug not in selected:
            selected.append(drug)
    return selected


def run_full_analysis(
    content: Union[str, bytes, None],
    drugs: Iterable[str],
    catalog: Optional[ReferenceCatalog] = None,
) -> AnalysisOutcome:
    """
    Full pipeline: VCF -> parse -> match -> resolve -> risk -> report, one report per drug.

    Fatal input and an empty supported-drug list set ``error`` and return no
    results. A failure while evaluating one drug becomes an error-severity
    warning; the remaining drugs are still reported.
    """
    started = time.perf_counter()
    catalog = catalog or get_reference_catalog()

    analysis = analyze_vcf(content, catalog)
    if analysis.error:
        return AnalysisOutcome(warnings=analysis.warnings, error=analysis.error)

    warnings = list(analysis.warnings)
    selected = _normalize_drugs(drugs, warnings)
    if not selected:
        return AnalysisOutcome(
            warnings=warnings,
            error=f"No supported drugs provided. Supported: {', '.join(SUPPORTED_DRUGS)}",
        )

    patient_id = patient_id_for(content, analysis.sample_ids)
    engine = RiskEngine(catalog)
    total_variants = len(analysis.variants)
    pharmacogenes_found = sum(1 for p in analysis.profiles if p.variants)

    results: List[DrugRiskReport] = []
    for drug in selected:
        try:
            logger.info(f"Computing risk for {drug.value}")
            entry = engine.assess_drug(drug, analysis.profiles, analysis.covered_genes, total_variants)
            gene = DRUG_PROFILES[drug].gene
            profile = next((p for p in analysis.profiles if p.gene is gene), None)
            results.append(build_report(entry, profile, patient_id, pharmacogenes_found, started))
        except Exception as e:
            logger.exception(f"Risk assessment failed for {drug.value}")
            warnings.append(ParseWarning(0, drug.value, f"Analysis failed for {drug.value}: {e}", "error"))

    logger.info("Pipeline execution time: %.2fs", time.perf_counter() - started)
    return AnalysisOutcome(results=results, warnings=warnings)
