"""
Configuration for the GenoDose analysis pipeline.
Centralizes tunable parameters for VCF quality filtering, variant matching
and confidence scoring.
"""

from pydantic import BaseModel, Field


class QualityThresholds(BaseModel):
    """Per-record quality gates applied by the VCF parser."""

    min_qual: float = Field(
        default=20.0,
        ge=0.0,
        description="Records with QUAL below this are skipped"
    )

    min_depth: int = Field(
        default=10,
        ge=0,
        description="Records whose sample DP is below this are skipped"
    )

    min_genotype_quality: int = Field(
        default=15,
        ge=0,
        description="Sample GQ below this only raises a warning"
    )


class MatcherConfig(BaseModel):
    """Configuration for catalog matching of VCF records."""

    fuzzy_window_bp: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Half-width of the fuzzy position window (0 disables fuzzy matching)"
    )

    use_gene_tag_fallback: bool = Field(
        default=True,
        description="Accept INFO GENE/GENEINFO annotations when no catalog entry matches"
    )


class ConfidenceCalibration(BaseModel):
    """Additive confidence model for drug risk calls."""

    base: float = Field(default=0.40, ge=0.0, le=1.0)

    per_variant: float = Field(
        default=0.07,
        ge=0.0,
        description="Bonus per detected variant"
    )
    per_variant_cap: float = Field(default=0.15, ge=0.0)

    extreme_phenotype_multi_null: float = Field(
        default=0.15,
        description="PM/URM backed by two or more no-function variants"
    )
    extreme_phenotype: float = Field(default=0.12, description="PM/URM otherwise")
    normal_phenotype: float = Field(default=0.10, description="NM/RM")
    intermediate_phenotype: float = Field(default=0.08, description="IM")

    extremity_strong: float = Field(
        default=0.10,
        description="Activity score of 0 or at least 2.5"
    )
    extremity_moderate: float = Field(
        default=0.06,
        description="Activity score at most 0.5 or at least 2.0"
    )
    extremity_weak: float = Field(default=0.03)

    concordance_bonus: float = Field(
        default=0.08,
        description="Two or more variants, all no-function"
    )

    ceiling: float = Field(default=0.98, ge=0.0, le=1.0)

    wild_type_base: float = Field(default=0.65, ge=0.0, le=1.0)
    wild_type_per_variant: float = Field(default=0.02, ge=0.0)
    wild_type_ceiling: float = Field(default=0.80, ge=0.0, le=1.0)


class GenoDoseConfig(BaseModel):
    """Main configuration for the analysis pipeline."""

    quality: QualityThresholds = Field(
        default_factory=QualityThresholds,
        description="VCF quality gates"
    )

    matcher: MatcherConfig = Field(
        default_factory=MatcherConfig,
        description="Variant matcher configuration"
    )

    confidence: ConfidenceCalibration = Field(
        default_factory=ConfidenceCalibration,
        description="Confidence score calibration"
    )

    max_upload_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1,
        description="Largest VCF accepted over HTTP"
    )


# Global configuration instance
_config: GenoDoseConfig = GenoDoseConfig()


def get_config() -> GenoDoseConfig:
    """Get the global configuration instance."""
    return _config


def update_config(**kwargs):
    """Update configuration parameters."""
    global _config
    current_dict = _config.model_dump()

    for key, value in kwargs.items():
        if '.' in key:
            # Nested keys like 'quality.min_qual'
            parts = key.split('.')
            current = current_dict
            for part in parts[:-1]:
                current = current[part]
            current[parts[-1]] = value
        else:
            current_dict[key] = value

    _config = GenoDoseConfig(**current_dict)
    return _config


def reset_config() -> GenoDoseConfig:
    """Restore the defaults."""
    global _config
    _config = GenoDoseConfig()
    return _config


def load_config_from_file(filepath: str):
    """Load configuration from a JSON file."""
    import json
    global _config

    with open(filepath, 'r') as f:
        config_dict = json.load(f)

    _config = GenoDoseConfig(**config_dict)
    return _config


def save_config_to_file(filepath: str):
    """Save current configuration to a JSON file."""
    import json

    with open(filepath, 'w') as f:
        json.dump(_config.model_dump(), f, indent=2)
