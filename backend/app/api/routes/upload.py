from fastapi import APIRouter, File, UploadFile, HTTPException
from typing import List
import logging

from app.services.pipeline.analysis_pipeline import analyze_vcf
from app.services.vcf.parser import InfoFields, ParsedRecord

router = APIRouter()
logger = logging.getLogger(__name__)

SAMPLE_LIMIT = 20

_NAMED_INFO_KEYS = (
    ("GENE", "gene"),
    ("GENEINFO", "gene_info"),
    ("STAR", "star"),
    ("EFFECT", "effect"),
    ("RS", "rs"),
    ("DP", "depth"),
)


def _info_keys(info: InfoFields) -> List[str]:
    keys = [key for key, attr in _NAMED_INFO_KEYS if getattr(info, attr) is not None]
    keys.extend(sorted(info.flags))
    keys.extend(info.extra.keys())
    return keys


def _record_sample(record: ParsedRecord) -> dict:
    return {
        "chrom": record.chrom,
        "pos": record.pos,
        "id": record.raw_id,
        "ref": record.ref,
        "alt": record.alt,
        "genotype": record.genotype,
        "info_keys": _info_keys(record.info),
    }


@router.post("/parse")
async def parse_vcf_debug(file: UploadFile = File(...)):
    """
    Debug view of what the parser extracts from an uploaded VCF.

    Returns file statistics, the first 20 parsed records, every matched
    pharmacogenomic variant, the resolved gene profiles and the first 20
    parse warnings.
    """
    content = await file.read()
    text = content.decode("utf-8", errors="replace")

    try:
        analysis = analyze_vcf(content)
    except Exception as e:
        logger.exception(f"Error parsing VCF upload: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to parse VCF: {str(e)}")

    if analysis.error:
        raise HTTPException(status_code=400, detail=analysis.error)

    lines = text.split("\n")
    return {
        "debug": True,
        "vcf_stats": {
            "file_name": file.filename,
            "file_size_bytes": len(content),
            "total_lines": len(lines),
            "header_lines": sum(1 for l in lines if l.startswith("#")),
            "total_records": len(analysis.records),
            "pharmacogenomic_matches": len(analysis.variants),
            "genes_profiled": len(analysis.profiles),
        },
        "raw_records_sample": [_record_sample(r) for r in analysis.records[:SAMPLE_LIMIT]],
        "matched_variants": [
            {**v.to_output(), "star_allele": v.star_allele, "match_method": v.match_method.value}
            for v in analysis.variants
        ],
        "gene_profiles": [
            {
                "gene": p.gene.value,
                "diplotype": p.diplotype,
                "phenotype": p.phenotype.value,
                "activity_score": p.activity_score,
                "variant_count": len(p.variants),
                "inferred_wild_type": p.inferred_wild_type,
            }
            for p in analysis.profiles
        ],
        "parse_warnings": [w.to_dict() for w in analysis.warnings[:SAMPLE_LIMIT]],
    }
