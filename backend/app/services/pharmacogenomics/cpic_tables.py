"""
cpic_tables.py
==============
Consensus pharmacogenomic reference data for the 6 supported genes.

Contents:
  * VARIANT_DEFINITIONS  - one row per defining mutation, GRCh37 + GRCh38
  * PHENOTYPE_BANDS      - activity score → phenotype thresholds per gene
  * DRUG_PROFILES        - per-drug risk / severity / action / mechanism by phenotype

Sources:
  CPIC allele functionality tables (https://cpicpgx.org/genes-drugs/),
  PharmVar star allele definitions, dbSNP coordinates.

The drug tables are keyed by the closed ``Drug`` enumeration; ``validate_tables``
runs at import and refuses to load if a drug, or a phenotype its gene can
produce, has no entry.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .models import (
    Drug,
    FunctionalStatus,
    Gene,
    Phenotype,
    ReferenceVariant,
    RiskLabel,
    Severity,
)

_NF = FunctionalStatus.NO_FUNCTION
_DF = FunctionalStatus.DECREASED_FUNCTION
_NORM = FunctionalStatus.NORMAL_FUNCTION
_INC = FunctionalStatus.INCREASED_FUNCTION


def _v(rsid, gene, chrom, pos37, pos38, ref, alts, star, activity, status, significance):
    return ReferenceVariant(
        rsid=rsid,
        gene=gene,
        chromosome=chrom,
        position_grch37=pos37,
        position_grch38=pos38,
        ref_allele=ref,
        alt_alleles=tuple(alts),
        star_allele=star,
        activity_value=activity,
        functional_status=status,
        significance=significance,
    )


# ---------------------------------------------------------------------------
# Variant definitions
# ---------------------------------------------------------------------------

VARIANT_DEFINITIONS: Tuple[ReferenceVariant, ...] = (
    # ── CYP2D6 (chr22) ──────────────────────────────────────────────────────
    _v("rs3892097",  Gene.CYP2D6, "22", 42526694, 42128945, "C", ["T", "A"], "*4",  0.0,  _NF,   "Splicing defect (IVS3+1G>A), complete loss of enzyme activity"),
    _v("rs5030655",  Gene.CYP2D6, "22", 42525085, 42127336, "T", ["TA"],     "*6",  0.0,  _NF,   "Frameshift deletion, truncated non-functional protein"),
    _v("rs1065852",  Gene.CYP2D6, "22", 42526763, 42129014, "C", ["T"],      "*10", 0.25, _DF,   "P34S missense, unstable enzyme with reduced catalytic activity"),
    _v("rs16947",    Gene.CYP2D6, "22", 42524947, 42127198, "G", ["A"],      "*2",  1.0,  _NORM, "R296C, normal enzymatic function maintained"),
    _v("rs1135840",  Gene.CYP2D6, "22", 42524244, 42126495, "C", ["G"],      "*2",  1.0,  _NORM, "S486T, normal function variant"),
    _v("rs28371725", Gene.CYP2D6, "22", 42526006, 42128257, "C", ["T"],      "*41", 0.5,  _DF,   "Splicing defect, reduced mRNA expression and enzyme activity"),
    _v("rs28371706", Gene.CYP2D6, "22", 42522613, 42124864, "C", ["T"],      "*17", 0.5,  _DF,   "T107I, reduced substrate affinity and catalytic activity"),
    _v("rs5030862",  Gene.CYP2D6, "22", 42525772, 42128023, "G", ["A"],      "*8",  0.0,  _NF,   "G169R, complete loss of function"),
    _v("rs5030865",  Gene.CYP2D6, "22", 42524564, 42126815, "T", ["C"],      "*14", 0.0,  _NF,   "P34S + G169R, non-functional enzyme"),
    _v("rs769258",   Gene.CYP2D6, "22", 42526505, 42128756, "G", ["A"],      "*3",  0.0,  _NF,   "Frameshift (2549delA), no functional protein"),

    # ── CYP2C19 (chr10) ─────────────────────────────────────────────────────
    _v("rs4244285",  Gene.CYP2C19, "10", 96541616, 94781859, "G", ["A"], "*2",  0.0, _NF,  "Aberrant splice site, exon 5 skipping and premature stop"),
    _v("rs4986893",  Gene.CYP2C19, "10", 96540410, 94780653, "G", ["A"], "*3",  0.0, _NF,  "W212X premature stop codon, truncated non-functional protein"),
    _v("rs12248560", Gene.CYP2C19, "10", 96521657, 94761900, "C", ["T"], "*17", 1.5, _INC, "Promoter variant -806C>T, increased transcription"),
    _v("rs28399504", Gene.CYP2C19, "10", 96522463, 94762706, "A", ["G"], "*4",  0.0, _NF,  "Initiation codon variant, abolished translation"),

    # ── CYP2C9 (chr10) ──────────────────────────────────────────────────────
    _v("rs1799853",  Gene.CYP2C9, "10", 96702047, 94942290, "C", ["T"], "*2", 0.5,  _DF, "R144C missense, 30-40% reduced S-warfarin hydroxylation"),
    _v("rs1057910",  Gene.CYP2C9, "10", 96741053, 94981296, "A", ["C"], "*3", 0.25, _DF, "I359L missense, 80-90% reduced S-warfarin hydroxylation"),
    _v("rs56165452", Gene.CYP2C9, "10", 96709039, 94949282, "C", ["G"], "*5", 0.25, _DF, "D360E, significantly reduced enzyme activity"),
    _v("rs28371686", Gene.CYP2C9, "10", 96731944, 94972187, "A", ["G"], "*6", 0.0,  _NF, "Frameshift, non-functional enzyme"),

    # ── SLCO1B1 (chr12) ─────────────────────────────────────────────────────
    _v("rs4149056",  Gene.SLCO1B1, "12", 21331549, 21178615, "T", ["C"], "*5",  0.0, _DF,   "V174A, impaired OATP1B1 membrane localization, 3-4x increased statin AUC"),
    _v("rs2306283",  Gene.SLCO1B1, "12", 21329738, 21176804, "A", ["G"], "*1B", 1.0, _NORM, "N130D, normal-to-increased transport function"),

    # ── TPMT (chr6) ─────────────────────────────────────────────────────────
    _v("rs1800462",  Gene.TPMT, "6", 18130918, 18139027, "C", ["G"],      "*2",  0.0, _NF, "A80P, protein misfolding, complete loss of activity"),
    _v("rs1800460",  Gene.TPMT, "6", 18130845, 18138954, "C", ["T", "A"], "*3B", 0.0, _NF, "A154T, accelerated degradation, undetectable enzyme"),
    _v("rs1142345",  Gene.TPMT, "6", 18130687, 18138796, "A", ["G"],      "*3C", 0.0, _NF, "Y240C, protein aggregation, complete catalytic loss"),

    # ── DPYD (chr1) ─────────────────────────────────────────────────────────
    _v("rs3918290",  Gene.DPYD, "1", 97915614, 97450058, "C", ["T"], "*2A",   0.0, _NF, "IVS14+1G>A, exon 14 skipping, no DPD enzyme produced"),
    _v("rs55886062", Gene.DPYD, "1", 98039419, 97573863, "A", ["C"], "*13",   0.0, _NF, "I560S, disrupts FAD binding, abolished activity"),
    _v("rs67376798", Gene.DPYD, "1", 98205966, 97740410, "T", ["A"], "D949V", 0.5, _DF, "D949V, ~50% residual DPD activity in heterozygotes"),
    _v("rs75017182", Gene.DPYD, "1", 97573863, 97108307, "G", ["A"], "HapB3", 0.5, _DF, "c.1129-5923C>G, deep intronic partial exon skipping"),
)

# Wild-type (*1) allele activity
WILD_TYPE_ACTIVITY = 1.0
WILD_TYPE_ALLELE = "*1"


# ---------------------------------------------------------------------------
# Activity score → phenotype bands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PhenotypeBand:
    """Closed score interval; ``minimum_exclusive`` turns the lower bound into '>'."""
    phenotype: Phenotype
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    minimum_exclusive: bool = False

    def contains(self, score: float) -> bool:
        if self.minimum is not None:
            if self.minimum_exclusive and not score > self.minimum:
                return False
            if not self.minimum_exclusive and score < self.minimum:
                return False
        if self.maximum is not None and score > self.maximum:
            return False
        return True


# First matching band wins. Scores outside every band fall back to IM.
#   CYP2D6:  Caudle 2024 consensus  PM=0, IM=0.25-1.0, NM=1.25-2.25, URM>2.25
#   CYP2C19: Lee 2022               PM=0, IM=0.5-1.0,  NM=1.5-2.0,   RM>2.0
#   CYP2C9:  Johnson 2017           PM<=0.5, IM=1.0-1.5, NM=2.0
#   SLCO1B1: Cooper-DeHoff 2022     PM=0, IM<=1.0, NM>=1.5
#   TPMT:    Relling 2019           PM=0, IM<=1.0, NM>=1.5
#   DPYD:    Amstutz 2018           PM<=0.5, IM=1.0-1.5, NM=2.0
PHENOTYPE_BANDS: Mapping[Gene, Tuple[PhenotypeBand, ...]] = MappingProxyType({
    Gene.CYP2D6: (
        PhenotypeBand(Phenotype.PM, 0.0, 0.0),
        PhenotypeBand(Phenotype.IM, 0.25, 1.0),
        PhenotypeBand(Phenotype.NM, 1.25, 2.25),
        PhenotypeBand(Phenotype.URM, 2.25, None, minimum_exclusive=True),
    ),
    Gene.CYP2C19: (
        PhenotypeBand(Phenotype.PM, 0.0, 0.0),
        PhenotypeBand(Phenotype.IM, 0.5, 1.0),
        PhenotypeBand(Phenotype.NM, 1.5, 2.0),
        PhenotypeBand(Phenotype.RM, 2.0, None, minimum_exclusive=True),
    ),
    Gene.CYP2C9: (
        PhenotypeBand(Phenotype.PM, None, 0.5),
        PhenotypeBand(Phenotype.IM, 1.0, 1.5),
        PhenotypeBand(Phenotype.NM, 2.0, 2.0),
    ),
    Gene.SLCO1B1: (
        PhenotypeBand(Phenotype.PM, 0.0, 0.0),
        PhenotypeBand(Phenotype.IM, None, 1.0),
        PhenotypeBand(Phenotype.NM, 1.5, None),
    ),
    Gene.TPMT: (
        PhenotypeBand(Phenotype.PM, 0.0, 0.0),
        PhenotypeBand(Phenotype.IM, None, 1.0),
        PhenotypeBand(Phenotype.NM, 1.5, None),
    ),
    Gene.DPYD: (
        PhenotypeBand(Phenotype.PM, None, 0.5),
        PhenotypeBand(Phenotype.IM, 1.0, 1.5),
        PhenotypeBand(Phenotype.NM, 2.0, 2.0),
    ),
})

FALLBACK_PHENOTYPE = Phenotype.IM


def reachable_phenotypes(gene: Gene) -> List[Phenotype]:
    """Every phenotype the classifier can return for a gene."""
    found = [band.phenotype for band in PHENOTYPE_BANDS[gene]]
    if FALLBACK_PHENOTYPE not in found:
        found.append(FALLBACK_PHENOTYPE)
    return found


# ---------------------------------------------------------------------------
# Drug profiles
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PhenotypeRule:
    risk: RiskLabel
    severity: Severity
    clinical_action: str
    mechanism: str   # formatted with score=<activity score>


@dataclass(frozen=True)
class DrugProfile:
    drug: Drug
    gene: Gene
    guideline_reference: str
    alternatives: Tuple[str, ...]
    rules: Mapping[Phenotype, PhenotypeRule]


def _rule(risk, severity, action, mechanism) -> PhenotypeRule:
    return PhenotypeRule(risk=risk, severity=severity, clinical_action=action, mechanism=mechanism)


_S = RiskLabel.SAFE
_ADJ = RiskLabel.ADJUST_DOSAGE
_TOX = RiskLabel.TOXIC
_INE = RiskLabel.INEFFECTIVE

DRUG_PROFILES: Mapping[Drug, DrugProfile] = MappingProxyType({
    # Prodrug: CYP2D6 O-demethylates codeine to morphine (Crews 2021)
    Drug.CODEINE: DrugProfile(
        drug=Drug.CODEINE,
        gene=Gene.CYP2D6,
        guideline_reference="CPIC Guideline for CYP2D6 and Codeine (Crews et al., 2021)",
        alternatives=("Acetaminophen", "NSAIDs (ibuprofen)", "Morphine (direct)", "Hydromorphone", "Oxycodone"),
        rules=MappingProxyType({
            Phenotype.PM: _rule(_TOX, Severity.CRITICAL, "Avoid codeine use",
                "CYP2D6 activity score {score:.1f} (PM) → severely impaired codeine O-demethylation → cannot convert codeine→morphine → no analgesia + parent drug accumulation → toxicity risk"),
            Phenotype.IM: _rule(_ADJ, Severity.MODERATE, "Use with caution, consider reduced dose or alternative",
                "CYP2D6 activity score {score:.1f} (IM) → reduced codeine→morphine conversion → diminished analgesic response"),
            Phenotype.NM: _rule(_S, Severity.NONE, "Use label-recommended dose",
                "CYP2D6 activity score {score:.1f} (NM) → normal 5-10% codeine→morphine conversion → standard analgesic response"),
            Phenotype.URM: _rule(_TOX, Severity.CRITICAL, "Avoid codeine use, risk of fatal respiratory depression",
                "CYP2D6 activity score {score:.1f} (URM) → excessive morphine formation → life-threatening respiratory depression"),
        }),
    ),
    # Prodrug: CYP2C19 bioactivates clopidogrel (Lee 2022)
    Drug.CLOPIDOGREL: DrugProfile(
        drug=Drug.CLOPIDOGREL,
        gene=Gene.CYP2C19,
        guideline_reference="CPIC Guideline for CYP2C19 and Clopidogrel (Lee et al., 2022)",
        alternatives=("Prasugrel", "Ticagrelor"),
        rules=MappingProxyType({
            Phenotype.PM: _rule(_INE, Severity.CRITICAL, "Use alternative antiplatelet therapy (prasugrel, ticagrelor)",
                "CYP2C19 activity score {score:.1f} (PM) → cannot bioactivate clopidogrel → no antiplatelet effect → cardiovascular risk"),
            Phenotype.IM: _rule(_INE, Severity.HIGH, "Use alternative antiplatelet therapy",
                "CYP2C19 activity score {score:.1f} (IM) → reduced clopidogrel activation → subtherapeutic response"),
            Phenotype.NM: _rule(_S, Severity.NONE, "Use clopidogrel per standard dosing",
                "CYP2C19 activity score {score:.1f} (NM) → standard bioactivation → expected efficacy"),
            Phenotype.RM: _rule(_S, Severity.NONE, "Use clopidogrel per standard dosing",
                "CYP2C19 activity score {score:.1f} (RM) → enhanced activation → increased effect"),
        }),
    ),
    # Clearance: CYP2C9 hydroxylates S-warfarin; titratable (Johnson 2017)
    Drug.WARFARIN: DrugProfile(
        drug=Drug.WARFARIN,
        gene=Gene.CYP2C9,
        guideline_reference="CPIC Guideline for CYP2C9/VKORC1 and Warfarin (Johnson et al., 2017)",
        alternatives=("Apixaban (Eliquis)", "Rivaroxaban (Xarelto)", "Dabigatran (Pradaxa)"),
        rules=MappingProxyType({
            Phenotype.PM: _rule(_ADJ, Severity.HIGH, "Significantly reduce warfarin dose or use alternative anticoagulant",
                "CYP2C9 activity score {score:.1f} (PM) → severely impaired S-warfarin hydroxylation → over-anticoagulation → bleeding risk"),
            Phenotype.IM: _rule(_ADJ, Severity.MODERATE, "Reduce initial warfarin dose, monitor INR closely",
                "CYP2C9 activity score {score:.1f} (IM) → reduced S-warfarin clearance → lower dose needed"),
            Phenotype.NM: _rule(_S, Severity.NONE, "Use standard warfarin dosing per clinical protocol",
                "CYP2C9 activity score {score:.1f} (NM) → normal S-warfarin metabolism → standard dose-response"),
        }),
    ),
    # Transporter: SLCO1B1 (OATP1B1) hepatic uptake (Cooper-DeHoff 2022)
    Drug.SIMVASTATIN: DrugProfile(
        drug=Drug.SIMVASTATIN,
        gene=Gene.SLCO1B1,
        guideline_reference="CPIC Guideline for SLCO1B1 and Simvastatin (Cooper-DeHoff et al., 2022)",
        alternatives=("Pravastatin", "Rosuvastatin", "Fluvastatin", "Pitavastatin"),
        rules=MappingProxyType({
            Phenotype.PM: _rule(_ADJ, Severity.HIGH, "Prescribe alternative statin (pravastatin, rosuvastatin)",
                "SLCO1B1 activity score {score:.1f} (PM) → impaired hepatic uptake → 2-4x systemic exposure → myopathy/rhabdomyolysis risk"),
            Phenotype.IM: _rule(_ADJ, Severity.MODERATE, "Prescribe lower simvastatin dose (≤20 mg) or alternative statin",
                "SLCO1B1 activity score {score:.1f} (IM) → reduced hepatic uptake → ~1.5-2x exposure → myopathy risk"),
            Phenotype.NM: _rule(_S, Severity.NONE, "Prescribe simvastatin per standard guidelines",
                "SLCO1B1 activity score {score:.1f} (NM) → normal hepatic first-pass → standard pharmacokinetics"),
        }),
    ),
    # Clearance: TPMT methylates thiopurines (Relling 2019)
    Drug.AZATHIOPRINE: DrugProfile(
        drug=Drug.AZATHIOPRINE,
        gene=Gene.TPMT,
        guideline_reference="CPIC Guideline for TPMT/NUDT15 and Thiopurines (Relling et al., 2019)",
        alternatives=("Mycophenolate mofetil", "Tacrolimus", "Cyclosporine"),
        rules=MappingProxyType({
            Phenotype.PM: _rule(_TOX, Severity.CRITICAL, "Consider alternative non-thiopurine agent",
                "TPMT activity score {score:.1f} (PM) → deficient methyltransferase → TGN accumulation → severe myelosuppression"),
            Phenotype.IM: _rule(_ADJ, Severity.HIGH, "Reduce initial dose to 30–70% of standard, titrate based on tolerance",
                "TPMT activity score {score:.1f} (IM) → reduced methylation → elevated TGN → myelotoxicity risk"),
            Phenotype.NM: _rule(_S, Severity.NONE, "Use standard azathioprine dose per indication",
                "TPMT activity score {score:.1f} (NM) → adequate methylation → balanced metabolites → expected response"),
        }),
    ),
    # Clearance: DPYD catabolizes 5-FU (Amstutz 2018)
    Drug.FLUOROURACIL: DrugProfile(
        drug=Drug.FLUOROURACIL,
        gene=Gene.DPYD,
        guideline_reference="CPIC Guideline for DPYD and Fluoropyrimidines (Amstutz et al., 2018)",
        alternatives=("Non-fluoropyrimidine regimens", "Raltitrexed", "Targeted therapy"),
        rules=MappingProxyType({
            Phenotype.PM: _rule(_TOX, Severity.CRITICAL, "Avoid fluoropyrimidine use or reduce dose by ≥50%",
                "DPYD activity score {score:.1f} (PM) → complete DPD deficiency → >10x 5-FU exposure → fatal toxicity risk"),
            Phenotype.IM: _rule(_ADJ, Severity.HIGH, "Reduce starting dose by 25–50%, titrate based on toxicity",
                "DPYD activity score {score:.1f} (IM) → partial DPD deficiency → ~2x exposure → dose-dependent toxicity"),
            Phenotype.NM: _rule(_S, Severity.NONE, "Use standard fluoropyrimidine dose per protocol",
                "DPYD activity score {score:.1f} (NM) → normal DPD activity → standard 5-FU catabolism"),
        }),
    ),
})

DRUG_ALIASES: Mapping[str, Drug] = MappingProxyType({
    "5-FLUOROURACIL": Drug.FLUOROURACIL,
    "5-FU": Drug.FLUOROURACIL,
})

DRUG_GENE_MAP: Mapping[Drug, Gene] = MappingProxyType(
    {drug: profile.gene for drug, profile in DRUG_PROFILES.items()}
)

# Co-determinant genes outside this panel, surfaced in wild-type monitoring notes
UNTESTED_CO_GENES: Mapping[Drug, str] = MappingProxyType({
    Drug.WARFARIN: (
        "Note: This panel does not test VKORC1, which also significantly influences warfarin dose "
        "requirements. VKORC1 genotyping is recommended for comprehensive pharmacogenomic-guided dosing."
    ),
    Drug.AZATHIOPRINE: (
        "Note: This panel does not test NUDT15, which can also affect thiopurine toxicity risk. "
        "NUDT15 genotyping may be considered for comprehensive assessment."
    ),
})


def normalize_drug_name(name: str) -> Optional[Drug]:
    """Map free-text drug input onto the Drug enumeration (None if unsupported)."""
    key = (name or "").strip().upper()
    if not key:
        return None
    if key in DRUG_ALIASES:
        return DRUG_ALIASES[key]
    try:
        return Drug(key)
    except ValueError:
        return None


def validate_tables(
    profiles: Mapping[Drug, DrugProfile] = DRUG_PROFILES,
    variants: Sequence[ReferenceVariant] = VARIANT_DEFINITIONS,
) -> None:
    """Refuse to load incomplete tables instead of returning silent gaps."""
    problems: List[str] = []
    for drug in Drug:
        profile = profiles.get(drug)
        if profile is None:
            problems.append(f"no profile for drug {drug.value}")
            continue
        for phenotype in reachable_phenotypes(profile.gene):
            if phenotype not in profile.rules:
                problems.append(f"{drug.value}/{profile.gene.value}: no rule for phenotype {phenotype.value}")
    for gene in Gene:
        if gene not in PHENOTYPE_BANDS:
            problems.append(f"no phenotype bands for gene {gene.value}")
        if not any(v.gene is gene for v in variants):
            problems.append(f"no catalog definitions for gene {gene.value}")
    if problems:
        raise RuntimeError("Incomplete pharmacogenomic tables: " + "; ".join(problems))


validate_tables()
