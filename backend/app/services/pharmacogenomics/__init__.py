"""
Pharmacogenomics Service

CPIC-aligned pharmacogenomic decision engine for drug risk assessment.
Provides deterministic, table-driven diplotype resolution, phenotype
classification and drug risk scoring.
"""

from .models import (
    Gene,
    Drug,
    Phenotype,
    RiskLabel,
    Severity,
    FunctionalStatus,
    MatchMethod,
    ReferenceVariant,
    DetectedVariant,
    GeneProfile,
    RiskEntry,
)
from .cpic_loader import ReferenceCatalog, get_reference_catalog
from .phenotype_mapper import (
    DiplotypeResolver,
    PhenotypeCall,
    classify_phenotype,
    activity_score_to_phenotype,
    build_gene_profiles,
)
from .risk_engine import RiskEngine, compute_drug_risk, wild_type_risk, untested_risk
from .confidence import compute_confidence_score
from .config import (
    get_config,
    update_config,
    reset_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Models
    'Gene',
    'Drug',
    'Phenotype',
    'RiskLabel',
    'Severity',
    'FunctionalStatus',
    'MatchMethod',
    'ReferenceVariant',
    'DetectedVariant',
    'GeneProfile',
    'RiskEntry',

    # Catalog
    'ReferenceCatalog',
    'get_reference_catalog',

    # Phenotype Mapping
    'DiplotypeResolver',
    'PhenotypeCall',
    'classify_phenotype',
    'activity_score_to_phenotype',
    'build_gene_profiles',

    # Risk Engine
    'RiskEngine',
    'compute_drug_risk',
    'wild_type_risk',
    'untested_risk',
    'compute_confidence_score',
]
