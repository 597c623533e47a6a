"""
Reference catalog - read-only lookup structures over the CPIC variant table.
Built once per process and shared by every analysis.
"""

import logging
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .cpic_tables import VARIANT_DEFINITIONS
from .models import Gene, ReferenceVariant

logger = logging.getLogger(__name__)


def strip_chr_prefix(chrom: str) -> str:
    """'chr22' / 'CHR22' / '22' -> '22'"""
    if chrom[:3].lower() == "chr":
        return chrom[3:]
    return chrom


class ReferenceCatalog:
    """
    Indexed view of the reference variant definitions.

    Three indices are built at construction and never mutated:
      * identifier (lower-cased rsID) -> entry
      * "chrom:pos" on GRCh37 -> entry
      * "chrom:pos" on GRCh38 -> entry
    Position keys are stored both with and without the "chr" prefix.
    """

    def __init__(self, definitions: Iterable[ReferenceVariant] = VARIANT_DEFINITIONS):
        self._definitions: Tuple[ReferenceVariant, ...] = tuple(definitions)

        by_rsid: Dict[str, ReferenceVariant] = {}
        by_pos37: Dict[str, ReferenceVariant] = {}
        by_pos38: Dict[str, ReferenceVariant] = {}
        by_gene: Dict[Gene, List[ReferenceVariant]] = {}

        for entry in self._definitions:
            by_rsid[entry.rsid.lower()] = entry
            chrom = strip_chr_prefix(entry.chromosome)
            for key in (f"{chrom}:{entry.position_grch37}", f"chr{chrom}:{entry.position_grch37}"):
                by_pos37[key] = entry
            for key in (f"{chrom}:{entry.position_grch38}", f"chr{chrom}:{entry.position_grch38}"):
                by_pos38[key] = entry
            by_gene.setdefault(entry.gene, []).append(entry)

        self.by_rsid: Mapping[str, ReferenceVariant] = MappingProxyType(by_rsid)
        self.by_position_grch37: Mapping[str, ReferenceVariant] = MappingProxyType(by_pos37)
        self.by_position_grch38: Mapping[str, ReferenceVariant] = MappingProxyType(by_pos38)
        self._by_gene: Mapping[Gene, Tuple[ReferenceVariant, ...]] = MappingProxyType(
            {gene: tuple(entries) for gene, entries in by_gene.items()}
        )

    def __len__(self) -> int:
        return len(self._definitions)

    # ===== Lookups =====

    def lookup_by_rsid(self, rsid: Optional[str]) -> Optional[ReferenceVariant]:
        if not rsid:
            return None
        return self.by_rsid.get(rsid.strip().lower())

    def lookup_by_position(self, chrom: str, pos: int) -> Optional[ReferenceVariant]:
        """Exact coordinate match, GRCh37 first then GRCh38."""
        key = f"{strip_chr_prefix(chrom)}:{pos}"
        return self.by_position_grch37.get(key) or self.by_position_grch38.get(key)

    def lookup_near_position(
        self, chrom: str, pos: int, window: int = 5
    ) -> Optional[ReferenceVariant]:
        """
        Probe offsets -window..+window (excluding 0) in ascending order,
        GRCh37 before GRCh38 at each offset. First hit wins.
        """
        chrom = strip_chr_prefix(chrom)
        for offset in range(-window, window + 1):
            if offset == 0:
                continue
            key = f"{chrom}:{pos + offset}"
            hit = self.by_position_grch37.get(key) or self.by_position_grch38.get(key)
            if hit is not None:
                return hit
        return None

    def lookup(self, rsid: Optional[str], chrom: str, pos: int) -> Optional[ReferenceVariant]:
        """Identifier first, then exact coordinate."""
        return self.lookup_by_rsid(rsid) or self.lookup_by_position(chrom, pos)

    # ===== Gene Data Access =====

    def genes(self) -> List[Gene]:
        """Genes with at least one definition, in enumeration order."""
        return [gene for gene in Gene if gene in self._by_gene]

    def definitions_for(self, gene: Gene) -> Tuple[ReferenceVariant, ...]:
        return self._by_gene.get(gene, ())

    def activity_values(self, gene: Gene) -> Dict[str, float]:
        """star allele -> activity value for one gene."""
        return {entry.star_allele: entry.activity_value for entry in self.definitions_for(gene)}


@lru_cache(maxsize=1)
def get_reference_catalog() -> ReferenceCatalog:
    """Get the process-wide reference catalog."""
    catalog = ReferenceCatalog()
    logger.info(f"Reference catalog initialized: {len(catalog)} definitions, {len(catalog.genes())} genes")
    return catalog
