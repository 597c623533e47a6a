from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, List, Mapping, Optional, Tuple, Union

from app.services.pharmacogenomics.config import QualityThresholds, get_config

from .genotype import carries_variant, is_homozygous_variant, zygosity  # noqa: F401


# ----------------------------------------------------------------------
# Result types
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class ParseWarning:
    line: int                # 1-based; 0 for file-level notes
    field: str
    message: str
    severity: str = "warning"   # 'info' | 'warning' | 'error'

    def to_dict(self) -> dict:
        return {
            "line": self.line,
            "field": self.field,
            "message": self.message,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class InfoFields:
    """
    Typed view of the INFO column. Known keys are named fields; everything
    else is kept in ``extra``. Keys are upper-cased on parse.
    """
    gene: Optional[str] = None
    gene_info: Optional[str] = None
    star: Optional[str] = None
    effect: Optional[str] = None
    rs: Optional[str] = None
    depth: Optional[int] = None
    flags: FrozenSet[str] = frozenset()
    extra: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def gene_symbol(self) -> Optional[str]:
        """GENE, else the symbol portion of GENEINFO (``CYP2D6:1565`` -> ``CYP2D6``)."""
        if self.gene:
            return self.gene
        if self.gene_info:
            return self.gene_info.split(":", 1)[0] or None
        return None

    def get(self, key: str) -> Optional[str]:
        key = key.upper()
        named = _INFO_NAMED_KEYS.get(key)
        if named is not None:
            value = getattr(self, named)
            return None if value is None else str(value)
        if key in self.flags:
            return "true"
        return self.extra.get(key)


_INFO_NAMED_KEYS = {
    "GENE": "gene",
    "GENEINFO": "gene_info",
    "STAR": "star",
    "EFFECT": "effect",
    "RS": "rs",
    "DP": "depth",
}


class GenotypeSource(str, Enum):
    """Where a record's genotype came from."""
    CALLED = "called"                           # GT extracted from the sample column
    DEFAULTED_NO_GT = "defaulted_no_gt"         # FORMAT present but no usable GT
    DEFAULTED_NO_FORMAT = "defaulted_no_format" # no FORMAT/SAMPLE columns at all


DEFAULT_GENOTYPE = "1/1"


@dataclass(frozen=True)
class ParsedRecord:
    chrom: str                    # normalized, no 'chr' prefix
    pos: int
    ids: Tuple[str, ...]          # identifier tokens, '.' and empties removed
    raw_id: str
    ref: str
    alt: str
    qual: Optional[float]
    filter: str
    info: InfoFields
    format_keys: Tuple[str, ...]
    genotype: str
    genotype_source: GenotypeSource
    line_number: int

    @property
    def display_id(self) -> str:
        return self.raw_id if self.ids else f"chr{self.chrom}:{self.pos}"

    @property
    def zygosity(self) -> str:
        return zygosity(self.genotype)


@dataclass
class VcfParseResult:
    records: List[ParsedRecord]
    warnings: List[ParseWarning]
    sample_ids: List[str]


@dataclass(frozen=True)
class VcfValidation:
    valid: bool
    error: Optional[str] = None


class VcfParseError(ValueError):
    pass


# ----------------------------------------------------------------------
# Messages
# ----------------------------------------------------------------------

EMPTY_FILE_ERROR = "VCF file is empty"
HEADERS_ONLY_ERROR = (
    "No actionable pharmacogenomic variants found. "
    "The VCF file contains only headers and no variant records."
)
NO_VALID_RECORDS_ERROR = (
    "No valid variant records found (expected at least 5 columns: CHROM, POS, ID, REF, ALT)"
)
ALL_FILTERED_WARNING = (
    "No variants passed quality filters. All variants were excluded due to low QUAL, "
    "failed FILTER, or insufficient read depth (DP)."
)

_MIN_COLUMNS = 5
_CHR_PREFIX = re.compile(r"^chr", re.IGNORECASE)


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def validate_vcf(content: Union[str, bytes, None]) -> VcfValidation:
    """Fatal pre-pass: empty file, headers only, or no line with 5+ columns."""
    text = _to_text(content)
    if not text.strip():
        return VcfValidation(False, EMPTY_FILE_ERROR)

    data_lines = [l for l in _split_lines(text) if l.strip() and not l.startswith("#")]
    if not data_lines:
        return VcfValidation(False, HEADERS_ONLY_ERROR)

    if not any(len(_split_columns(l)) >= _MIN_COLUMNS for l in data_lines):
        return VcfValidation(False, NO_VALID_RECORDS_ERROR)

    return VcfValidation(True)


def parse_vcf_records(
    content: Union[str, bytes],
    *,
    thresholds: Optional[QualityThresholds] = None,
) -> VcfParseResult:
    """
    Turn VCF text into ParsedRecords plus per-line warnings.

    Malformed lines never raise: they are skipped and reported. Quality
    gates (QUAL, FILTER, DP) drop the record; GQ only warns.
    """
    limits = thresholds or get_config().quality
    text = _to_text(content)

    records: List[ParsedRecord] = []
    warnings: List[ParseWarning] = []
    sample_ids: List[str] = []

    for line_number, line in enumerate(_split_lines(text), start=1):
        if line.startswith("#CHROM"):
            sample_ids = [s for s in line.split("\t")[9:] if s.strip()]
            continue
        if not line.strip() or line.startswith("#"):
            continue
        record = _parse_record_line(line, line_number, limits, warnings)
        if record is not None:
            records.append(record)

    return VcfParseResult(records=records, warnings=warnings, sample_ids=sample_ids)


def parse_vcf_or_raise(content: Union[str, bytes], **kwargs) -> VcfParseResult:
    """Same as parse_vcf_records but raises VcfParseError on fatal input."""
    validation = validate_vcf(content)
    if not validation.valid:
        raise VcfParseError(validation.error)
    return parse_vcf_records(content, **kwargs)


# ----------------------------------------------------------------------
# Internals
# ----------------------------------------------------------------------

def _to_text(content: Union[str, bytes, None]) -> str:
    if content is None:
        return ""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def _split_lines(text: str) -> List[str]:
    return [raw.rstrip("\r") for raw in text.split("\n")]


def _split_columns(line: str) -> List[str]:
    cols = line.split("\t")
    if len(cols) < _MIN_COLUMNS:
        cols = line.split()
    return cols


def _parse_float(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_info_field(info: str) -> InfoFields:
    if not info or info == ".":
        return InfoFields()

    named: dict = {}
    flags = set()
    extra: dict = {}
    for item in info.split(";"):
        if not item:
            continue
        if "=" not in item or item.startswith("="):
            flags.add(item.upper())
            continue
        k, v = item.split("=", 1)
        k = k.upper()
        attr = _INFO_NAMED_KEYS.get(k)
        if attr == "depth":
            depth = _parse_int(v)
            if depth is None:
                extra[k] = v
            else:
                named[attr] = depth
        elif attr is not None:
            named[attr] = v
        else:
            extra[k] = v

    return InfoFields(flags=frozenset(flags), extra=MappingProxyType(extra), **named)


def _parse_record_line(
    line: str,
    line_number: int,
    limits: QualityThresholds,
    warnings: List[ParseWarning],
) -> Optional[ParsedRecord]:
    def warn(field_name: str, message: str, severity: str = "warning") -> None:
        warnings.append(ParseWarning(line_number, field_name, message, severity))

    cols = _split_columns(line)
    if len(cols) < _MIN_COLUMNS:
        warn(
            "ALL",
            f"Skipped: only {len(cols)} column(s) found, need at least 5 (CHROM, POS, ID, REF, ALT)",
            "error",
        )
        return None

    chrom, pos_s, raw_id, ref, alt = cols[:5]
    qual_s = cols[5] if len(cols) > 5 else ""
    filter_s = cols[6] if len(cols) > 6 else ""
    info_s = cols[7] if len(cols) > 7 else ""
    format_s = cols[8] if len(cols) > 8 else ""
    sample_s = cols[9] if len(cols) > 9 else ""

    pos = _parse_int(pos_s)
    if pos is None:
        warn("POS", f'Invalid position "{pos_s}": must be a number', "error")
        return None

    # ── Quality gates ───────────────────────────────────────────────────────
    qual = _parse_float(qual_s) if qual_s not in ("", ".") else None
    if qual is not None and qual < limits.min_qual:
        warn(
            "QUAL",
            f"Variant skipped: QUAL={qual:g} is below minimum threshold ({limits.min_qual:g}). "
            "Low-quality variants may be sequencing artifacts.",
        )
        return None

    if filter_s and filter_s not in (".", "PASS"):
        warn(
            "FILTER",
            f'Variant skipped: FILTER="{filter_s}" indicates the variant did not pass quality control. '
            "Only PASS variants are used for pharmacogenomic analysis.",
        )
        return None

    ids = tuple(t.strip() for t in raw_id.split(";") if t.strip() not in ("", "."))
    if not ids:
        warn("ID", "rsID missing: will attempt chr:pos matching against database", "info")
    if qual_s in ("", "."):
        warn(
            "QUAL",
            "Quality score missing: variant will still be processed but with lower confidence",
            "info",
        )

    info = parse_info_field(info_s)

    # ── Genotype ────────────────────────────────────────────────────────────
    genotype = DEFAULT_GENOTYPE
    format_keys: Tuple[str, ...] = ()
    if format_s and sample_s:
        format_keys = tuple(format_s.split(":"))
        sample_values = sample_s.split(":")
        if len(format_keys) != len(sample_values):
            warn(
                "FORMAT",
                f"FORMAT/SAMPLE field count mismatch: FORMAT has {len(format_keys)} fields ({format_s}) "
                f"but SAMPLE has {len(sample_values)} values. Using available fields cautiously.",
            )
        # Only overlapping positions are read
        sample = dict(zip(format_keys, sample_values))

        if "GT" in sample:
            genotype = sample["GT"]
            source = GenotypeSource.CALLED
        else:
            warn("FORMAT/GT", "Genotype (GT) not found in FORMAT: defaulting to 1/1 (homozygous)")
            source = GenotypeSource.DEFAULTED_NO_GT

        depth = _parse_int(sample.get("DP"))
        if depth is not None and depth < limits.min_depth:
            warn(
                "DP",
                f"Variant skipped: read depth DP={depth} is below minimum threshold ({limits.min_depth}). "
                "Insufficient sequencing coverage may produce unreliable genotype calls.",
            )
            return None

        gq = _parse_int(sample.get("GQ"))
        if gq is not None and gq < limits.min_genotype_quality:
            warn(
                "GQ",
                f"Low genotype quality (GQ={gq}): genotype call may be unreliable. "
                "Consider validating with orthogonal method.",
            )
    else:
        warn("FORMAT", "No FORMAT/SAMPLE columns: defaulting genotype to 1/1 (homozygous)", "info")
        source = GenotypeSource.DEFAULTED_NO_FORMAT

    return ParsedRecord(
        chrom=_CHR_PREFIX.sub("", chrom),
        pos=pos,
        ids=ids,
        raw_id=raw_id or ".",
        ref=ref,
        alt=alt,
        qual=qual,
        filter=filter_s or ".",
        info=info,
        format_keys=format_keys,
        genotype=genotype,
        genotype_source=source,
        line_number=line_number,
    )
