"""
Tests for the explanation layer. No network: the LLM client is stubbed.
"""

import asyncio

import pytest

from app.schemas.internal_contracts import ExplanationRequest, VariantSummary
from app.services.llm.explanation_service import (
    DRUG_REFERENCES,
    enrich_with_explanations,
    explanation_request_from_report,
    fallback_explanation,
    generate_explanation,
)
from app.services.llm.prompt_builder import build_prompt
from app.services.pipeline.analysis_pipeline import run_full_analysis

COMPLETE_REPLY = {
    "summary": "LLM summary",
    "mechanism": "LLM mechanism",
    "variant_specific_effects": "LLM effects",
    "clinical_context": "LLM context",
    "references": ["Ref A", "Ref B", "Ref C"],
}


class StubClient:
    def __init__(self, reply=None, configured=True, error=None):
        self.reply = reply
        self.is_configured = configured
        self.error = error
        self.prompts = []

    async def generate_json(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def request_pm():
    return ExplanationRequest(
        drug="CODEINE",
        gene="CYP2D6",
        diplotype="*4/*4",
        phenotype="PM",
        risk_label="Toxic",
        severity="critical",
        detected_variants=[
            VariantSummary(rsid="rs3892097", genotype="1/1", clinical_significance="*4: splicing defect"),
        ],
    )


@pytest.fixture
def fallback(request_pm):
    return fallback_explanation(request_pm, "mechanism text", "context text", "Guideline citation")


class TestFallbackExplanation:

    def test_mechanism_passed_through_verbatim(self, request_pm):
        mechanism = "CYP2D6 activity score 0.0 (PM) → no conversion"
        assert fallback_explanation(request_pm, mechanism).mechanism == mechanism

    def test_summary_from_drug_and_risk_table(self, fallback):
        assert "cannot properly convert codeine" in fallback.summary
        assert "PM (Poor Metabolizer)" in fallback.summary

    def test_ultrarapid_codeine_summary(self, request_pm):
        urm = request_pm.model_copy(update={"phenotype": "URM", "diplotype": "*1/*2"})
        assert "too quickly" in fallback_explanation(urm, "m").summary

    def test_generic_summary_for_unlisted_combination(self, request_pm):
        unknown = request_pm.model_copy(update={"risk_label": "Unknown", "phenotype": "Unknown"})
        summary = fallback_explanation(unknown, "m").summary
        assert "Risk level: Unknown" in summary

    def test_variant_effects_from_request(self, fallback):
        assert fallback.variant_specific_effects == "rs3892097 (*4: splicing defect)"

    def test_no_variants(self, request_pm):
        empty = request_pm.model_copy(update={"detected_variants": []})
        assert fallback_explanation(empty, "m").variant_specific_effects == (
            "No specific pharmacogenomic variants detected"
        )

    def test_references_lead_with_citation(self, fallback):
        assert fallback.references[0] == "Guideline citation"
        assert fallback.references[1:] == DRUG_REFERENCES["CODEINE"]
        assert fallback.clinical_context == "context text"

    def test_deterministic(self, request_pm):
        assert fallback_explanation(request_pm, "m", "c", "r") == fallback_explanation(request_pm, "m", "c", "r")


class TestGenerateExplanation:

    def test_unconfigured_client_uses_fallback(self, request_pm, fallback):
        client = StubClient(COMPLETE_REPLY, configured=False)
        explanation, generated = asyncio.run(generate_explanation(request_pm, fallback, client))
        assert explanation == fallback
        assert generated is False
        assert client.prompts == []

    def test_complete_reply(self, request_pm, fallback):
        client = StubClient(COMPLETE_REPLY)
        explanation, generated = asyncio.run(generate_explanation(request_pm, fallback, client))
        assert generated is True
        assert explanation.summary == "LLM summary"
        assert explanation.references == ["Ref A", "Ref B", "Ref C"]
        assert "CYP2D6" in client.prompts[0]

    def test_no_reply(self, request_pm, fallback):
        explanation, generated = asyncio.run(generate_explanation(request_pm, fallback, StubClient(None)))
        assert (explanation, generated) == (fallback, False)

    def test_partial_reply(self, request_pm, fallback):
        partial = {k: v for k, v in COMPLETE_REPLY.items() if k != "references"}
        explanation, generated = asyncio.run(generate_explanation(request_pm, fallback, StubClient(partial)))
        assert (explanation, generated) == (fallback, False)

    def test_blank_field_rejected(self, request_pm, fallback):
        blank = dict(COMPLETE_REPLY, mechanism="   ")
        explanation, generated = asyncio.run(generate_explanation(request_pm, fallback, StubClient(blank)))
        assert generated is False

    def test_wrong_types_rejected(self, request_pm, fallback):
        bad = dict(COMPLETE_REPLY, references="not a list")
        explanation, generated = asyncio.run(generate_explanation(request_pm, fallback, StubClient(bad)))
        assert generated is False

    def test_client_error_uses_fallback(self, request_pm, fallback):
        client = StubClient(error=RuntimeError("connection reset"))
        explanation, generated = asyncio.run(generate_explanation(request_pm, fallback, client))
        assert (explanation, generated) == (fallback, False)


class TestPromptAndEnrichment:

    def test_prompt_carries_no_patient_data(self, request_pm):
        prompt = build_prompt(request_pm)
        assert "rs3892097 (1/1)" in prompt
        assert "42526694" not in prompt
        assert '"references"' in prompt

    def test_request_from_report_is_anonymized(self, make_vcf, line):
        content = make_vcf(line(22, 42526694, "rs3892097", sample="1/1:30"))
        report = run_full_analysis(content, ["CODEINE"]).results[0]
        request = explanation_request_from_report(report)
        assert "patient_id" not in request.model_dump()
        assert request.detected_variants[0].rsid == "rs3892097"

    def test_enrich_sets_generated_flag(self, make_vcf, line):
        content = make_vcf(line(22, 42526694, "rs3892097", sample="1/1:30"))
        results = run_full_analysis(content, ["CODEINE", "WARFARIN"]).results
        enriched = asyncio.run(enrich_with_explanations(results, StubClient(COMPLETE_REPLY)))
        assert [r.drug for r in enriched] == ["CODEINE", "WARFARIN"]
        assert all(r.quality_metrics.llm_explanation_generated for r in enriched)
        assert all(r.llm_generated_explanation.summary == "LLM summary" for r in enriched)
        # originals untouched
        assert results[0].quality_metrics.llm_explanation_generated is False

    def test_enrich_keeps_fallback_on_failure(self, make_vcf, line):
        content = make_vcf(line(22, 42526694, "rs3892097", sample="1/1:30"))
        results = run_full_analysis(content, ["CODEINE"]).results
        enriched = asyncio.run(enrich_with_explanations(results, StubClient(None)))
        assert enriched[0].llm_generated_explanation == results[0].llm_generated_explanation
        assert enriched[0].quality_metrics.llm_explanation_generated is False
