from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional, Any
from datetime import datetime

class DetectedVariantOut(BaseModel):
    rsid: str
    chromosome: str
    position: int
    ref_allele: str
    alt_allele: str
    genotype: str
    gene: str
    clinical_significance: str

class RiskAssessment(BaseModel):
    risk_label: str
    cpic_clinical_action: str
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    severity: str

class PharmacogenomicProfile(BaseModel):
    primary_gene: str
    diplotype: str
    phenotype: str
    detected_variants: List[DetectedVariantOut] = []
    activity_score: Optional[float] = None

class LLMExplanation(BaseModel):
    summary: str = ""
    mechanism: str = ""
    variant_specific_effects: str = ""
    clinical_context: str = ""
    references: List[str] = []

class ClinicalRecommendation(BaseModel):
    action: str
    dosing_guidance: str
    alternative_drugs: List[str] = []
    monitoring_recommendations: str
    cpic_guideline_reference: str

class QualityMetrics(BaseModel):
    vcf_parsing_success: bool = True
    variants_detected: int = 0
    pharmacogenes_found: int = 0
    llm_explanation_generated: bool = False
    processing_time_ms: float = 0.0

class DrugRiskReport(BaseModel):
    patient_id: str
    drug: str
    timestamp: str
    risk_assessment: RiskAssessment
    pharmacogenomic_profile: PharmacogenomicProfile
    clinical_recommendation: ClinicalRecommendation
    llm_generated_explanation: LLMExplanation
    quality_metrics: QualityMetrics

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        try:
            datetime.fromisoformat(v.replace('Z', '+00:00'))
            return v
        except ValueError:
            raise ValueError("Timestamp must be a valid ISO 8601 string")

class VcfWarning(BaseModel):
    line: int
    field: str
    message: str
    severity: str

class AnalysisResponse(BaseModel):
    success: bool = True
    results: List[DrugRiskReport]
    vcf_warnings: List[VcfWarning] = []
    meta: Dict[str, Any] = {}
    methodology: Dict[str, Any] = {}
    clinical_disclaimer: str = ""
