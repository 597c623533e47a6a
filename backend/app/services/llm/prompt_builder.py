from app.schemas.internal_contracts import ExplanationRequest


def build_prompt(request: ExplanationRequest) -> str:
    """
    Constructs a prompt asking the LLM for a five-field JSON explanation.

    Args:
        request: The anonymized assessment summary.

    Returns:
        A formatted prompt string.
    """
    variants = ", ".join(
        f"{v.rsid} ({v.genotype}) - {v.clinical_significance}" for v in request.detected_variants
    ) or "No specific variants detected"

    prompt = (
        "You are a clinical pharmacogenomics expert. Provide a detailed, scientifically accurate "
        "explanation for the following pharmacogenomic assessment.\n\n"
        "PATIENT ASSESSMENT:\n"
        f"- Drug: {request.drug}\n"
        f"- Primary Gene: {request.gene}\n"
        f"- Diplotype: {request.diplotype}\n"
        f"- Phenotype: {request.phenotype}\n"
        f"- Risk Label: {request.risk_label}\n"
        f"- Severity: {request.severity}\n"
        f"- Detected Variants: {variants}\n\n"
        "INSTRUCTIONS:\n"
        "Answer with a single JSON object with exactly these keys:\n"
        '1. "summary": 2-3 sentence patient-friendly summary of the risk\n'
        '2. "mechanism": how the genotype changes enzyme or transporter activity and drug handling '
        "(SLCO1B1 encodes the hepatic uptake transporter OATP1B1, not an enzyme)\n"
        '3. "variant_specific_effects": functional impact of each detected variant, citing rsIDs and star alleles\n'
        '4. "clinical_context": what this means for the treatment plan, per CPIC guidance\n'
        '5. "references": array of 3-5 clinical references (CPIC guidelines, PharmGKB, published studies)\n\n'
        "Only use the provided context. Do NOT invent variants or biology."
    )
    return prompt
