"""Shared VCF builders for the test suite."""

import pytest

from app.services.pharmacogenomics.config import reset_config
from app.services.pharmacogenomics.cpic_loader import get_reference_catalog
from app.services.pharmacogenomics.models import DetectedVariant, MatchMethod

VCF_HEADER = (
    "##fileformat=VCFv4.2\n"
    "##reference=GRCh37\n"
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tSAMPLE_001\n"
)


def vcf_line(chrom, pos, rsid=".", ref="C", alt="T", qual="50", filt="PASS",
             info=".", fmt="GT:DP", sample="0/1:30"):
    cols = [str(chrom), str(pos), rsid, ref, alt, qual, filt, info]
    if fmt is not None:
        cols += [fmt, sample]
    return "\t".join(cols)


def build_vcf(*lines, header=VCF_HEADER):
    return header + "".join(line + "\n" for line in lines)


@pytest.fixture
def line():
    """Build one tab-separated data line."""
    return vcf_line


@pytest.fixture
def make_vcf():
    """Join data lines under a standard single-sample header."""
    return build_vcf


@pytest.fixture(autouse=True)
def _default_config():
    reset_config()
    yield
    reset_config()


def detected_variant(rsid, genotype="0/1"):
    """DetectedVariant for a catalog entry, as the matcher would produce it."""
    entry = get_reference_catalog().lookup_by_rsid(rsid)
    return DetectedVariant(
        rsid=entry.rsid,
        chromosome=entry.chromosome,
        position=entry.position_grch37,
        ref_allele=entry.ref_allele,
        alt_allele=entry.alt_alleles[0],
        genotype=genotype,
        gene=entry.gene,
        clinical_significance=f"{entry.star_allele}: {entry.significance} [rsID]",
        match_method=MatchMethod.RSID,
        star_allele=entry.star_allele,
        catalog_id=entry.rsid,
    )


@pytest.fixture
def detected():
    return detected_variant
