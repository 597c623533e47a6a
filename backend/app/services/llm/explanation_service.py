import asyncio
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from app.schemas.internal_contracts import ExplanationRequest, VariantSummary
from app.schemas.pharma_schema import DrugRiskReport, LLMExplanation
from app.services.llm.groq_client import GroqClient
from app.services.llm.prompt_builder import build_prompt

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("summary", "mechanism", "variant_specific_effects", "clinical_context", "references")

_PHENOTYPE_NAMES = {
    "PM": "Poor Metabolizer",
    "IM": "Intermediate Metabolizer",
    "NM": "Normal Metabolizer",
    "RM": "Rapid Metabolizer",
    "URM": "Ultra-rapid Metabolizer",
}

# drug -> risk label -> summary template
FALLBACK_SUMMARIES = {
    "CODEINE": {
        "Toxic": (
            "Based on your {gene} {diplotype} genotype, you are classified as a {phenotype} ({phenotype_name}). "
            "Codeine may be dangerous for you because your body cannot properly convert codeine to its active "
            "form morphine, leading to drug accumulation. Alternative pain medications should be considered."
        ),
        "Adjust Dosage": (
            "Your {gene} genotype suggests intermediate metabolism of codeine. You may experience reduced pain "
            "relief at standard doses. Consider using the lowest effective dose or an alternative analgesic."
        ),
        "Safe": (
            "Your {gene} {diplotype} genotype indicates Normal Metabolizer status. Codeine is expected to work "
            "as intended at standard doses with normal conversion to morphine for pain relief."
        ),
    },
    "CLOPIDOGREL": {
        "Ineffective": (
            "Your {gene} {diplotype} genotype classifies you as a {phenotype_name}. Clopidogrel may be "
            "ineffective because your body cannot adequately convert this prodrug into its active antiplatelet "
            "form. This increases your risk of cardiovascular events. Alternative antiplatelet agents like "
            "prasugrel or ticagrelor are recommended."
        ),
        "Safe": (
            "Your {gene} genotype indicates normal clopidogrel activation. The drug is expected to provide "
            "effective antiplatelet protection at standard doses."
        ),
    },
    "WARFARIN": {
        "Adjust Dosage": (
            "Your {gene} {diplotype} genotype indicates reduced warfarin metabolism. You require a lower "
            "warfarin dose to achieve therapeutic anticoagulation and avoid dangerous bleeding complications. "
            "Pharmacogenomic-guided dosing is strongly recommended."
        ),
        "Safe": (
            "Your {gene} genotype indicates normal warfarin metabolism. Standard dosing with routine INR "
            "monitoring is appropriate."
        ),
    },
    "SIMVASTATIN": {
        "Adjust Dosage": (
            "Your {gene} {diplotype} genotype indicates reduced OATP1B1 transporter function. Simvastatin "
            "plasma levels may be higher than expected, increasing myopathy risk. Use a lower simvastatin dose "
            "(≤20mg) or consider switching to pravastatin or rosuvastatin per CPIC guidelines."
        ),
        "Safe": (
            "Your {gene} genotype indicates normal hepatic transporter function. Simvastatin is expected to be "
            "well-tolerated at standard doses."
        ),
    },
    "AZATHIOPRINE": {
        "Toxic": (
            "Your {gene} {diplotype} genotype indicates deficient TPMT enzyme activity. Azathioprine at standard "
            "doses could cause severe, life-threatening myelosuppression. The dose must be drastically reduced "
            "or an alternative immunosuppressant used."
        ),
        "Adjust Dosage": (
            "Your {gene} {diplotype} genotype indicates intermediate TPMT activity. Azathioprine at standard "
            "doses increases the risk of myelosuppression. A dose reduction is recommended with regular "
            "complete blood count monitoring per CPIC guidelines."
        ),
        "Safe": (
            "Your {gene} genotype indicates normal TPMT activity. Azathioprine is expected to be safely "
            "metabolized at standard doses."
        ),
    },
    "FLUOROURACIL": {
        "Toxic": (
            "Your {gene} {diplotype} genotype indicates DPD enzyme deficiency. Fluorouracil cannot be properly "
            "degraded, leading to potentially fatal toxicity including severe mucositis, myelosuppression, and "
            "neurotoxicity. Fluoropyrimidines should be avoided or the dose reduced by ≥50%."
        ),
        "Adjust Dosage": (
            "Your {gene} {diplotype} genotype indicates partial DPD deficiency. Fluorouracil exposure is "
            "approximately 2x normal, increasing the risk of dose-dependent toxicity. A 25-50% dose reduction "
            "is recommended per CPIC guidelines."
        ),
        "Safe": (
            "Your {gene} genotype indicates normal DPD activity. Fluorouracil is expected to be metabolized "
            "normally at standard doses."
        ),
    },
}

# (drug, risk label, phenotype) overrides where one risk label covers opposite mechanisms
_SUMMARY_OVERRIDES = {
    ("CODEINE", "Toxic", "URM"): (
        "Based on your {gene} {diplotype} genotype, you are classified as a {phenotype} ({phenotype_name}). "
        "Codeine may be dangerous for you because your body converts codeine to morphine too quickly, causing "
        "dangerous morphine levels. Alternative pain medications should be considered."
    ),
}

_GENERIC_SUMMARY = (
    "Your {gene} {diplotype} genotype ({phenotype}) has been assessed for {drug}. Risk level: {risk_label}. "
    "Please consult with your healthcare provider for personalized recommendations."
)

DRUG_REFERENCES = {
    "CODEINE": [
        "Crews KR, et al. CPIC Guideline for CYP2D6, OPRM1, COMT and Select Opioid Therapy. Clin Pharmacol Ther. 2021;110(4):888–896.",
        "PharmGKB Clinical Annotation: CYP2D6 and Codeine (www.pharmgkb.org)",
        "Gaedigk A, et al. PharmVar and the Landscape of Pharmacogenetic Resources. Clin Pharmacol Ther. 2018;104(4):611–614.",
    ],
    "CLOPIDOGREL": [
        "Lee CR, et al. CPIC Guideline for CYP2C19 and Clopidogrel Therapy: 2022 Update. Clin Pharmacol Ther. 2022;112(5):959–967.",
        "PharmGKB Clinical Annotation: CYP2C19 and Clopidogrel (www.pharmgkb.org)",
        "Scott SA, et al. CPIC Guidelines for CYP2C19 Genotype and Clopidogrel Therapy. Clin Pharmacol Ther. 2013;94(3):317–323.",
    ],
    "WARFARIN": [
        "Johnson JA, et al. CPIC Guideline for CYP2C9/VKORC1 Pharmacogenetics and Warfarin Dosing: 2017 Update. Clin Pharmacol Ther. 2017;102(3):397–404.",
        "PharmGKB Clinical Annotation: CYP2C9 and Warfarin (www.pharmgkb.org)",
        "Gage BF, et al. Use of Pharmacogenetic and Clinical Factors to Predict the Therapeutic Dose of Warfarin. Clin Pharmacol Ther. 2008;84(3):326–331.",
    ],
    "SIMVASTATIN": [
        "Cooper-DeHoff RM, et al. CPIC Guideline for SLCO1B1, ABCG2, CYP2C9 and Statin-Associated Musculoskeletal Symptoms. Clin Pharmacol Ther. 2022;111(5):1007–1021.",
        "PharmGKB Clinical Annotation: SLCO1B1 and Simvastatin (www.pharmgkb.org)",
        "SEARCH Collaborative Group. SLCO1B1 Variants and Statin-Induced Myopathy. N Engl J Med. 2008;359(8):789–799.",
    ],
    "AZATHIOPRINE": [
        "Relling MV, et al. CPIC Guideline for Thiopurine Dosing Based on TPMT and NUDT15 Genotypes: 2018 Update. Clin Pharmacol Ther. 2019;105(5):1095–1105.",
        "PharmGKB Clinical Annotation: TPMT and Azathioprine (www.pharmgkb.org)",
        "Lennard L. TPMT in the Treatment of Crohn Disease with Azathioprine. Gut. 2002;51(2):143–146.",
    ],
    "FLUOROURACIL": [
        "Amstutz U, et al. CPIC Guideline for DPYD and Fluoropyrimidine Dosing: 2017 Update. Clin Pharmacol Ther. 2018;103(2):210–216.",
        "PharmGKB Clinical Annotation: DPYD and Fluorouracil (www.pharmgkb.org)",
        "Meulendijks D, et al. Clinical Relevance of DPYD Variants for Fluoropyrimidine Treatment. Int J Cancer. 2015;136(10):2275–2282.",
    ],
}


def get_references(drug: str, gene: str) -> List[str]:
    refs = DRUG_REFERENCES.get(drug.upper())
    if refs:
        return list(refs)
    return [
        f"CPIC Guideline for {gene}, Clinical Pharmacogenetics Implementation Consortium (cpicpgx.org)",
        f"PharmGKB Clinical Annotation: {gene} (www.pharmgkb.org)",
        "Relling MV, Klein TE. CPIC: Clinical Pharmacogenetics Implementation Consortium. Clin Pharmacol Ther. 2011;89(3):464–467.",
    ]


def fallback_explanation(
    request: ExplanationRequest,
    mechanism: str,
    clinical_context: str = "",
    citation: str = "",
    variant_effects: str = "",
) -> LLMExplanation:
    """
    Deterministic explanation used whenever the LLM is unavailable.
    ``mechanism`` is passed through untouched.
    """
    drug = request.drug.upper()
    template = (
        _SUMMARY_OVERRIDES.get((drug, request.risk_label, request.phenotype))
        or FALLBACK_SUMMARIES.get(drug, {}).get(request.risk_label)
        or _GENERIC_SUMMARY
    )
    summary = template.format(
        gene=request.gene,
        diplotype=request.diplotype,
        phenotype=request.phenotype,
        phenotype_name=_PHENOTYPE_NAMES.get(request.phenotype, request.phenotype),
        drug=drug,
        risk_label=request.risk_label,
    )

    if not variant_effects:
        if request.detected_variants:
            variant_effects = "; ".join(
                f"{v.rsid} ({v.clinical_significance})" for v in request.detected_variants
            )
        else:
            variant_effects = "No specific pharmacogenomic variants detected"

    references = get_references(drug, request.gene)
    if citation and citation not in references:
        references.insert(0, citation)

    return LLMExplanation(
        summary=summary,
        mechanism=mechanism,
        variant_specific_effects=variant_effects,
        clinical_context=clinical_context,
        references=references,
    )


def _parse_llm_payload(data: dict) -> Optional[LLMExplanation]:
    """All five fields must be present and non-empty."""
    if any(key not in data for key in REQUIRED_FIELDS):
        return None
    try:
        explanation = LLMExplanation(**{key: data[key] for key in REQUIRED_FIELDS})
    except ValidationError:
        return None
    if not all(
        getattr(explanation, key).strip()
        for key in ("summary", "mechanism", "variant_specific_effects", "clinical_context")
    ):
        return None
    return explanation


async def generate_explanation(
    request: ExplanationRequest,
    fallback: LLMExplanation,
    client: Optional[GroqClient] = None,
) -> Tuple[LLMExplanation, bool]:
    """
    Returns (explanation, generated). ``generated`` is False whenever the
    fallback was used.
    """
    client = client or GroqClient()
    if not client.is_configured:
        return fallback, False

    logger.info("Generating clinical explanation for %s/%s", request.gene, request.drug)
    try:
        data = await client.generate_json(build_prompt(request))
    except Exception as e:
        # Safety net: explanation failures never fail the analysis
        logger.error(f"Unexpected error in explanation service: {str(e)}")
        return fallback, False

    if data is None:
        logger.warning("LLM fallback triggered: no usable response for %s", request.drug)
        return fallback, False

    explanation = _parse_llm_payload(data)
    if explanation is None:
        logger.warning("LLM fallback triggered: incomplete JSON for %s", request.drug)
        return fallback, False

    return explanation, True


def explanation_request_from_report(report: DrugRiskReport) -> ExplanationRequest:
    """Strip a report down to the anonymized fields the LLM may see."""
    profile = report.pharmacogenomic_profile
    return ExplanationRequest(
        drug=report.drug,
        gene=profile.primary_gene,
        diplotype=profile.diplotype,
        phenotype=profile.phenotype,
        risk_label=report.risk_assessment.risk_label,
        severity=report.risk_assessment.severity,
        detected_variants=[
            VariantSummary(rsid=v.rsid, genotype=v.genotype, clinical_significance=v.clinical_significance)
            for v in profile.detected_variants
        ],
    )


async def enrich_with_explanations(
    results: List[DrugRiskReport],
    client: Optional[GroqClient] = None,
) -> List[DrugRiskReport]:
    """Fill every report's explanation concurrently; each keeps its fallback on failure."""
    client = client or GroqClient()

    async def _one(report: DrugRiskReport) -> DrugRiskReport:
        explanation, generated = await generate_explanation(
            explanation_request_from_report(report),
            report.llm_generated_explanation,
            client,
        )
        metrics = report.quality_metrics.model_copy(update={"llm_explanation_generated": generated})
        return report.model_copy(update={
            "llm_generated_explanation": explanation,
            "quality_metrics": metrics,
        })

    return list(await asyncio.gather(*(_one(r) for r in results)))
