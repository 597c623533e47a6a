"""GT string helpers shared by the matcher and the diplotype resolver."""

from __future__ import annotations

from typing import List, Optional


def carries_variant(gt: Optional[str]) -> bool:
    """False only for an explicit homozygous-reference call."""
    return (gt or "") not in ("0/0", "0|0")


def gt_alleles(gt: Optional[str]) -> List[str]:
    if not gt:
        return []
    sep = "|" if "|" in gt else "/"
    return [a.strip() for a in gt.split(sep) if a.strip() not in ("", ".")]


def is_homozygous_variant(gt: Optional[str]) -> bool:
    alleles = gt_alleles(gt)
    return len(alleles) >= 2 and len(set(alleles)) == 1 and alleles[0] != "0"


def zygosity(gt: Optional[str]) -> str:
    """
    'Hom-Ref'  : 0/0, 0|0
    'Het'      : 0/1, 1|0, 1/2
    'Hom-Alt'  : 1/1, 2/2
    'Unknown'  : missing, ./. or haploid
    """
    alleles = gt_alleles(gt)
    if len(alleles) < 2:
        return "Unknown"
    if len(set(alleles)) > 1:
        return "Het"
    return "Hom-Ref" if alleles[0] == "0" else "Hom-Alt"
