"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on:
event-class binnings are explicit edges and every correction step carries its
own resolved tunables.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional
from pydantic import Field, ConfigDict, model_validator
from flowcorr.schemas.base import FlowCorrBaseModel
from flowcorr.schemas.param import CorrectionKindName, NormalizationName, LogLevelName


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalEventClassVariableConfig(FlowCorrBaseModel):
    """Runtime event-class variable; ``variable_id`` indexes the variable container."""
    variable_id: int = Field(ge=0)
    label: str
    edges: list[float] = Field(min_length=2)


class InternalCorrectionConfig(FlowCorrBaseModel):
    """Runtime correction step configuration."""
    kind: CorrectionKindName
    harmonic: Optional[int]
    reference: Optional[str]
    all_harmonics: bool
    width_equalization: bool
    min_entries: int = Field(ge=1)
    significance_threshold: float = Field(gt=0)


class InternalDetectorConfigurationConfig(FlowCorrBaseModel):
    """Runtime detector configuration."""
    name: str
    harmonics: list[int] = Field(min_length=1)
    normalization: NormalizationName
    min_data_vectors: int = Field(ge=1)
    corrections: list[InternalCorrectionConfig]


class InternalDetectorConfig(FlowCorrBaseModel):
    """Runtime detector."""
    name: str
    detector_id: int
    configurations: list[InternalDetectorConfigurationConfig] = Field(min_length=1)


class InternalCorrectionsConfig(FlowCorrBaseModel):
    """Runtime pipeline-wide correction policy."""
    width_equalization: bool
    significance_threshold: float
    recentering_min_entries: int
    alignment_min_entries: int
    twist_min_entries: int
    collect_after_apply: bool


class InternalEventsConfig(FlowCorrBaseModel):
    """Runtime event table input."""
    path: Optional[str]
    format: Literal["auto", "csv", "parquet"]


class InternalCalibrationConfig(FlowCorrBaseModel):
    """Runtime calibration files."""
    input: Optional[str]
    output_filename: str
    qa_filename: str


class InternalOutputConfig(FlowCorrBaseModel):
    """Runtime output configuration."""
    filename: str
    format: Literal["parquet", "csv"]
    compression: Literal["snappy", "gzip", "lz4", "none"]
    include_steps: bool


class InternalLoggingConfig(FlowCorrBaseModel):
    """Runtime logging configuration."""
    level: LogLevelName


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(FlowCorrBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters (no None for fields that runtime depends on).

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.threshold = config.corrections.significance_threshold  # NOT .get()

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO type checking
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    base_dir: str
    event_classes: list[InternalEventClassVariableConfig] = Field(min_length=1)
    detectors: list[InternalDetectorConfig]
    corrections: InternalCorrectionsConfig
    events: InternalEventsConfig
    calibration: InternalCalibrationConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig
    output_dirs: Optional[dict[str, str]] = None
    run_id: Optional[str] = None

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )

    @model_validator(mode="after")
    def check_unique_names(self):
        """Detector and configuration names are unique across the run."""
        detector_names = [d.name for d in self.detectors]
        if len(set(detector_names)) != len(detector_names):
            raise ValueError(f"Duplicated detector names: {detector_names}")
        configuration_names = [c.name for d in self.detectors for c in d.configurations]
        if len(set(configuration_names)) != len(configuration_names):
            raise ValueError(f"Duplicated detector configuration names: {configuration_names}")
        return self

    @property
    def configuration_names(self) -> list[str]:
        return [c.name for d in self.detectors for c in d.configurations]
