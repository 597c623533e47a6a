from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, UploadFile, File, Form, HTTPException, status
import logging

from app.schemas.pharma_schema import AnalysisResponse, VcfWarning
from app.services.llm.explanation_service import enrich_with_explanations
from app.services.llm.groq_client import GroqClient
from app.services.pharmacogenomics.config import get_config
from app.services.pipeline.analysis_pipeline import run_full_analysis

router = APIRouter()
logger = logging.getLogger(__name__)

METHODOLOGY = {
    "risk_label_derivation": (
        "Algorithmically computed from genotype-to-phenotype translation using CPIC-standardized "
        "activity scores. Each allele is assigned a CPIC-defined activity value (0 = no function, "
        "0.5 = decreased, 1.0 = normal). The sum of both alleles produces the activity score, which "
        "is mapped to a metabolizer phenotype (Poor / Intermediate / Normal / Rapid / Ultra-Rapid "
        "Metabolizer) using gene-specific CPIC thresholds."
    ),
    "phenotype_thresholds": (
        "Gene-specific CPIC consensus thresholds: CYP2D6 (Caudle 2024), CYP2C19 (Lee 2022), "
        "CYP2C9 (Johnson 2017), DPYD (Amstutz 2018), TPMT (Relling 2019), SLCO1B1 (Cooper-DeHoff 2022)."
    ),
    "data_sources": [
        "CPIC Allele Functionality Table (api.cpicpgx.org/v1/allele)",
        "PharmVar star allele definitions (www.pharmvar.org)",
        "NCBI dbSNP variant coordinates (www.ncbi.nlm.nih.gov/snp)",
        "PharmGKB clinical annotations (www.pharmgkb.org)",
    ],
}

CLINICAL_DISCLAIMER = (
    "Risk labels are algorithmically derived from genotype-to-phenotype translation using "
    "CPIC-standardized activity scores and allele functionality data. These results are intended to "
    "assist, not replace, clinical decision-making. Per CPIC guidelines, pharmacogenomic test results "
    "should be interpreted in the context of the patient's complete clinical picture, including "
    "comorbidities, concomitant medications, renal/hepatic function, and clinical history. The "
    "prescribing clinician's judgment, informed by published CPIC guidelines (cpicpgx.org), remains "
    "the final authority on therapeutic decisions."
)


def _bad_request(detail) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post(
    "/analyze",
    response_model=AnalysisResponse,
    status_code=status.HTTP_200_OK,
    summary="Analyze Pharmacogenomic Risk",
    description="Upload a VCF file and a comma-separated drug list to receive one risk assessment per drug."
)
async def analyze_pharmacogenomics(
    vcf_file: Optional[UploadFile] = File(None, description="Patient's VCF file containing genetic variants"),
    drugs: Optional[str] = Form(None, description="Comma-separated drug names (e.g., CODEINE,WARFARIN)"),
) -> AnalysisResponse:
    """
    Endpoint to trigger the pharmacogenomic analysis pipeline.

    - **vcf_file**: Genetic data file (.vcf, at most 5MB)
    - **drugs**: Target drug names
    """
    if vcf_file is None or not vcf_file.filename:
        raise _bad_request("No VCF file provided. Please upload a .vcf file.")

    if not drugs or not drugs.strip():
        raise _bad_request("No drug names provided. Please specify at least one drug.")

    if not vcf_file.filename.lower().endswith(".vcf"):
        raise _bad_request("Invalid file type. Please upload a .vcf (Variant Call Format) file.")

    content = await vcf_file.read()
    if len(content) > get_config().max_upload_bytes:
        raise _bad_request("File too large. Maximum file size is 5MB.")

    drug_list = [d.strip() for d in drugs.split(",") if d.strip()]

    try:
        outcome = run_full_analysis(content, drug_list)
    except Exception as e:
        logger.exception(f"Unexpected error in analysis pipeline: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error during analysis. Please try again."
        )

    warnings = [VcfWarning(**w.to_dict()) for w in outcome.warnings]

    if outcome.error:
        logger.error(f"Analysis rejected: {outcome.error}")
        raise _bad_request({
            "error": outcome.error,
            "vcf_warnings": [w.model_dump() for w in warnings],
        })

    client = GroqClient()
    results = await enrich_with_explanations(outcome.results, client)

    return AnalysisResponse(
        success=True,
        results=results,
        vcf_warnings=warnings,
        meta={
            "total_drugs_analyzed": len(results),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "llm_enabled": client.is_configured,
            "privacy": {
                "data_stored": False,
                "raw_vcf_sent_to_llm": False,
                "session_only": True,
            },
        },
        methodology=METHODOLOGY,
        clinical_disclaimer=CLINICAL_DISCLAIMER,
    )
