from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from app.services.pharmacogenomics.config import MatcherConfig, get_config
from app.services.pharmacogenomics.cpic_loader import ReferenceCatalog
from app.services.pharmacogenomics.models import (
    DetectedVariant,
    Gene,
    MatchMethod,
    ReferenceVariant,
)

from .genotype import carries_variant
from .parser import ParsedRecord, ParseWarning

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    variants: List[DetectedVariant] = field(default_factory=list)
    covered_genes: Set[Gene] = field(default_factory=set)


def match_record(
    record: ParsedRecord,
    catalog: ReferenceCatalog,
    *,
    fuzzy_window: int = 5,
) -> Tuple[Optional[ReferenceVariant], Optional[MatchMethod]]:
    """
    Resolve one record against the catalog.

    Order: identifier tokens -> exact coordinate (GRCh37, GRCh38) ->
    fuzzy coordinate within +/- fuzzy_window bp. First hit wins.
    """
    for token in record.ids:
        hit = catalog.lookup_by_rsid(token)
        if hit is not None:
            return hit, MatchMethod.RSID

    hit = catalog.lookup_by_position(record.chrom, record.pos)
    if hit is not None:
        return hit, MatchMethod.POSITION

    if fuzzy_window > 0:
        hit = catalog.lookup_near_position(record.chrom, record.pos, window=fuzzy_window)
        if hit is not None:
            return hit, MatchMethod.FUZZY_POSITION

    return None, None


def extract_pharma_variants(
    records: Sequence[ParsedRecord],
    catalog: ReferenceCatalog,
    warnings: Optional[List[ParseWarning]] = None,
    *,
    config: Optional[MatcherConfig] = None,
) -> ExtractionResult:
    """
    Match parsed records to pharmacogenes.

    Primary strategy:
    - Catalog match by rsID, exact position or fuzzy position
    Fallback:
    - INFO GENE / GENEINFO naming one of the supported genes

    Every catalog or gene-tag hit marks its gene as covered, including
    homozygous-reference calls; only carried variants are returned.
    """
    cfg = config or get_config().matcher
    result = ExtractionResult()
    seen_stars: Set[str] = set()
    seen_positions: Set[str] = set()

    for record in records:
        matched, method = match_record(record, catalog, fuzzy_window=cfg.fuzzy_window_bp)

        if matched is None:
            if cfg.use_gene_tag_fallback:
                _gene_tag_fallback(record, result, seen_positions)
            continue

        result.covered_genes.add(matched.gene)

        if not record.info.gene_symbol and warnings is not None:
            warnings.append(ParseWarning(
                record.line_number,
                "INFO/GENE",
                f"GENE field missing in INFO column for {record.display_id}. "
                f"Gene inferred as {matched.gene.value} ({matched.star_allele}) via "
                f"{method.value} match against CPIC variant database.",
                "info",
            ))

        # Same star allele reachable through several rsIDs / positions
        star_key = f"{matched.gene.value}:{matched.star_allele}"
        if star_key in seen_stars:
            continue
        pos_key = f"{matched.gene.value}:{record.chrom}:{record.pos}"
        if pos_key in seen_positions:
            continue

        if not carries_variant(record.genotype):
            continue

        seen_stars.add(star_key)
        seen_positions.add(pos_key)

        result.variants.append(DetectedVariant(
            rsid=matched.rsid,
            chromosome=record.chrom,
            position=record.pos,
            ref_allele=record.ref,
            alt_allele=record.alt,
            genotype=record.genotype,
            gene=matched.gene,
            clinical_significance=f"{matched.star_allele}: {matched.significance} [{method.value}]",
            match_method=method,
            star_allele=matched.star_allele,
            catalog_id=matched.rsid,
        ))

    logger.debug(
        f"Matched {len(result.variants)} variants across "
        f"{len(result.covered_genes)} covered genes from {len(records)} records"
    )
    return result


def _gene_tag_fallback(
    record: ParsedRecord,
    result: ExtractionResult,
    seen_positions: Set[str],
) -> None:
    gene = Gene.parse(record.info.gene_symbol)
    if gene is None:
        return

    result.covered_genes.add(gene)
    if not carries_variant(record.genotype):
        return

    pos_key = f"{gene.value}:{record.chrom}:{record.pos}"
    if pos_key in seen_positions:
        return
    seen_positions.add(pos_key)

    star = record.info.star
    if star:
        significance = f"Star allele {star} in {gene.value} ({record.info.effect or 'unknown effect'})"
    else:
        significance = f"Variant in pharmacogene {gene.value}"

    result.variants.append(DetectedVariant(
        rsid=record.raw_id if record.ids else f"{record.chrom}:{record.pos}",
        chromosome=record.chrom,
        position=record.pos,
        ref_allele=record.ref,
        alt_allele=record.alt,
        genotype=record.genotype,
        gene=gene,
        clinical_significance=significance,
        match_method=MatchMethod.GENE_TAG,
        star_allele=star or None,
    ))
