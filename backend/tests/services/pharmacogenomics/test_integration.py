"""
Integration tests for the full VCF -> phenotype -> risk workflow.
"""

from app.services.pipeline.analysis_pipeline import analyze_vcf, run_full_analysis
from app.services.vcf.parser import ALL_FILTERED_WARNING, EMPTY_FILE_ERROR


def _stable(report):
    """Report as a dict without the per-run timestamp and timing."""
    data = report.model_dump()
    data.pop("timestamp")
    data["quality_metrics"].pop("processing_time_ms")
    return data


class TestEndToEndWorkflow:

    def test_codeine_homozygous_null_allele(self, make_vcf, line):
        content = make_vcf(line(22, 42526694, "rs3892097", info="GENE=CYP2D6", sample="1/1:30"))
        outcome = run_full_analysis(content, ["CODEINE"])

        assert outcome.error is None
        report = outcome.results[0]
        assert report.pharmacogenomic_profile.phenotype == "PM"
        assert report.pharmacogenomic_profile.diplotype == "*4/*4"
        assert report.pharmacogenomic_profile.activity_score == 0.0
        assert report.risk_assessment.risk_label == "Toxic"
        assert report.risk_assessment.severity == "critical"
        assert report.risk_assessment.confidence_score == 0.69
        assert report.pharmacogenomic_profile.detected_variants[0].rsid == "rs3892097"

    def test_empty_file(self):
        outcome = run_full_analysis("", ["CODEINE"])
        assert outcome.error == EMPTY_FILE_ERROR
        assert outcome.results == []

    def test_all_records_below_quality(self, make_vcf, line):
        content = make_vcf(
            line(22, 42526694, "rs3892097", qual="5"),
            line(10, 96541616, "rs4244285", qual="12"),
        )
        analysis = analyze_vcf(content)
        assert analysis.error is None
        assert analysis.records == []
        assert analysis.profiles == []
        summary = analysis.warnings[-1]
        assert (summary.line, summary.field, summary.message) == (0, "ALL", ALL_FILTERED_WARNING)

    def test_homozygous_reference_only_is_wild_type(self, make_vcf, line):
        content = make_vcf(line(22, 42526694, "rs3892097", sample="0/0:30"))
        report = run_full_analysis(content, ["CODEINE"]).results[0]
        assert report.risk_assessment.risk_label == "Safe"
        assert report.pharmacogenomic_profile.phenotype == "NM"
        assert report.pharmacogenomic_profile.diplotype == "*1/*1"
        assert report.pharmacogenomic_profile.detected_variants == []

    def test_gene_without_coverage_is_unknown(self, make_vcf, line):
        content = make_vcf(line(10, 96541616, "rs4244285", sample="1/1:30"))
        outcome = run_full_analysis(content, ["CODEINE", "CLOPIDOGREL"])
        codeine, clopidogrel = outcome.results
        assert codeine.risk_assessment.risk_label == "Unknown"
        assert codeine.risk_assessment.confidence_score == 0.0
        assert codeine.pharmacogenomic_profile.phenotype == "Unknown"
        assert clopidogrel.risk_assessment.risk_label == "Ineffective"

    def test_compound_heterozygote(self, make_vcf, line):
        content = make_vcf(
            line(22, 42526694, "rs3892097", sample="0/1:30"),
            line(22, 42526763, "rs1065852", sample="0/1:30"),
        )
        report = run_full_analysis(content, ["CODEINE"]).results[0]
        assert report.pharmacogenomic_profile.diplotype == "*4/*10"
        assert report.pharmacogenomic_profile.activity_score == 0.25
        assert report.risk_assessment.risk_label == "Adjust Dosage"

    def test_two_null_alleles_compound_heterozygote(self, make_vcf, line):
        content = make_vcf(
            line(6, 18130918, "rs1800462", sample="0/1:30"),
            line(6, 18130687, "rs1142345", sample="0/1:30"),
        )
        report = run_full_analysis(content, ["AZATHIOPRINE"]).results[0]
        assert report.pharmacogenomic_profile.diplotype == "*2/*3C"
        assert report.pharmacogenomic_profile.phenotype == "PM"
        assert report.risk_assessment.severity == "critical"
        assert report.risk_assessment.confidence_score == 0.87

    def test_chr_prefix_gives_identical_results(self, make_vcf, line):
        plain = make_vcf(line(22, 42526694, ".", sample="1/1:30"))
        prefixed = make_vcf(line("chr22", 42526694, ".", sample="1/1:30"))
        a = run_full_analysis(plain, ["CODEINE"])
        b = run_full_analysis(prefixed, ["CODEINE"])
        assert _stable(a.results[0]) == _stable(b.results[0])
        assert a.warnings == b.warnings

    def test_idempotent(self, make_vcf, line):
        content = make_vcf(
            line(22, 42526694, "rs3892097", sample="0/1:30"),
            line(10, 96702047, ".", qual=".", sample="0/1:30"),
            line(12, 21331549, "rs4149056", filt="LowQual"),
        )
        drugs = ["CODEINE", "WARFARIN", "SIMVASTATIN", "FLUOROURACIL"]
        first = run_full_analysis(content, drugs)
        second = run_full_analysis(content, drugs)
        assert [_stable(r) for r in first.results] == [_stable(r) for r in second.results]
        assert first.warnings == second.warnings

    def test_bytes_input(self, make_vcf, line):
        content = make_vcf(line(22, 42526694, "rs3892097", sample="1/1:30")).encode("utf-8")
        assert run_full_analysis(content, ["CODEINE"]).results[0].risk_assessment.risk_label == "Toxic"

    def test_multi_gene_panel(self, make_vcf, line):
        content = make_vcf(
            line(22, 42526694, "rs3892097", sample="0/1:30"),
            line(10, 96541616, "rs4244285", sample="0/1:30"),
            line(10, 96741053, "rs1057910", sample="1/1:30"),
            line(1, 97915614, "rs3918290", sample="0/1:30"),
        )
        outcome = run_full_analysis(content, ["CODEINE", "CLOPIDOGREL", "WARFARIN", "FLUOROURACIL", "SIMVASTATIN"])
        labels = {r.drug: r.risk_assessment.risk_label for r in outcome.results}
        assert labels == {
            "CODEINE": "Adjust Dosage",
            "CLOPIDOGREL": "Ineffective",
            "WARFARIN": "Adjust Dosage",
            "FLUOROURACIL": "Adjust Dosage",
            "SIMVASTATIN": "Unknown",
        }
        assert all(r.quality_metrics.pharmacogenes_found == 4 for r in outcome.results)
