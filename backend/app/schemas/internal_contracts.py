from pydantic import BaseModel, Field
from typing import List

class VariantSummary(BaseModel):
    rsid: str
    genotype: str
    clinical_significance: str

class ExplanationRequest(BaseModel):
    """
    Contract between the risk engine and the explanation service.
    Anonymized: no patient identifier, no raw VCF lines, no coordinates.
    """
    drug: str = Field(..., description="Drug name (e.g., CODEINE)")
    gene: str = Field(..., description="The gene symbol (e.g., CYP2D6)")
    diplotype: str = Field(..., description="The resolved diplotype (e.g., *1/*4)")
    phenotype: str = Field(..., description="Metabolizer code (e.g., IM)")
    risk_label: str = Field(..., description="Risk label (e.g., Adjust Dosage)")
    severity: str = Field(..., description="Severity tier (e.g., moderate)")
    detected_variants: List[VariantSummary] = Field(
        default_factory=list,
        description="Detected variant identifiers and their significance"
    )
