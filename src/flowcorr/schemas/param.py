"""ParamConfig: Expert defaults for the flowcorr pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from flowcorr.schemas.base import FlowCorrBaseModel


CorrectionKindName = Literal["recentering", "alignment", "twist_and_rescale"]
NormalizationName = Literal["none", "QoverM", "QoverSqrtM", "QoverQlength"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

REFERENCE_KINDS = ("alignment", "twist_and_rescale")


# =============================================================================
# Topology Models (shared by ParamConfig and UserConfig)
# =============================================================================

class EventClassVariableConfig(FlowCorrBaseModel):
    """One event-class variable: explicit edges or uniform binning.

    ``label`` is also the event-table column holding the variable.
    """
    label: str
    edges: Optional[list[float]] = None
    n_bins: Optional[int] = Field(None, ge=1)
    low: Optional[float] = None
    high: Optional[float] = None

    @model_validator(mode="after")
    def check_binning(self):
        """Edges must be strictly increasing; uniform binning needs low < high."""
        if self.edges is not None:
            if len(self.edges) < 2:
                raise ValueError(f"Event class '{self.label}': at least two bin edges required")
            if any(b <= a for a, b in zip(self.edges, self.edges[1:])):
                raise ValueError(f"Event class '{self.label}': bin edges must be strictly increasing")
        else:
            if self.n_bins is None or self.low is None or self.high is None:
                raise ValueError(f"Event class '{self.label}': give edges, or n_bins, low and high")
            if self.high <= self.low:
                raise ValueError(f"Event class '{self.label}': high must be greater than low")
        return self

    def bin_edges(self) -> list[float]:
        """Explicit edges, computing uniform ones when only n_bins is given."""
        if self.edges is not None:
            return list(self.edges)
        width = (self.high - self.low) / self.n_bins
        return [self.low + i * width for i in range(self.n_bins)] + [self.high]


class CorrectionConfig(FlowCorrBaseModel):
    """One correction step of a detector configuration.

    Unset tunables (None) take the pipeline-wide value from ``corrections``.
    """
    kind: CorrectionKindName
    harmonic: Optional[int] = Field(None, ge=1, description="Alignment harmonic m")
    reference: Optional[str] = Field(None, description="Reference detector configuration")
    all_harmonics: bool = False
    width_equalization: Optional[bool] = None
    min_entries: Optional[int] = Field(None, ge=1)
    significance_threshold: Optional[float] = Field(None, gt=0)

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        """Normalize kind names to lowercase with underscores."""
        if isinstance(v, str):
            return v.lower().strip().replace("-", "_").replace(" ", "_")
        return v

    @model_validator(mode="after")
    def check_reference(self):
        """Alignment-style corrections need a harmonic and a reference."""
        if self.kind in REFERENCE_KINDS:
            if self.harmonic is None:
                raise ValueError(f"{self.kind} correction requires 'harmonic'")
            if not self.reference:
                raise ValueError(f"{self.kind} correction requires 'reference'")
        return self


class DetectorConfigurationConfig(FlowCorrBaseModel):
    """Qn vector configuration of a detector and its correction chain."""
    name: str
    harmonics: list[int] = Field(min_length=1)
    normalization: NormalizationName = "QoverM"
    min_data_vectors: int = Field(1, ge=1)
    corrections: list[CorrectionConfig] = Field(default_factory=list)

    @field_validator("harmonics")
    @classmethod
    def check_harmonics(cls, v):
        """Harmonics are >= 1 and unique."""
        if any(h < 1 for h in v):
            raise ValueError(f"Harmonics must be >= 1, got {v}")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicated harmonics in {v}")
        return sorted(v)


class DetectorConfig(FlowCorrBaseModel):
    """A detector with one or more Qn vector configurations."""
    name: str
    detector_id: int = Field(0, ge=0)
    configurations: list[DetectorConfigurationConfig] = Field(min_length=1)


# =============================================================================
# Nested Configuration Models
# =============================================================================

class CorrectionsConfig(FlowCorrBaseModel):
    """Pipeline-wide correction defaults."""
    width_equalization: bool = False
    significance_threshold: float = Field(2.0, gt=0, description="Alignment significance in sigma")
    recentering_min_entries: int = Field(1, ge=1)
    alignment_min_entries: int = Field(2, ge=1)
    twist_min_entries: int = Field(2, ge=1)
    collect_after_apply: bool = Field(True, description="Keep collecting while applying")


class EventsConfig(FlowCorrBaseModel):
    """Event table input."""
    path: Optional[str] = None
    format: Literal["auto", "csv", "parquet"] = "auto"


class CalibrationConfig(FlowCorrBaseModel):
    """Calibration input/output files."""
    input: Optional[str] = Field(None, description="calibration.nc of a previous pass")
    output_filename: str = "calibration.nc"
    qa_filename: str = "qa.nc"


class OutputConfig(FlowCorrBaseModel):
    """Corrected event table output."""
    filename: str = "corrected_events"
    format: Literal["parquet", "csv"] = "parquet"
    compression: Literal["snappy", "gzip", "lz4", "none"] = "snappy"
    include_steps: bool = Field(True, description="Also write every intermediate step output")


class LoggingConfig(FlowCorrBaseModel):
    """Logging configuration."""
    level: LogLevelName = "INFO"


def _default_event_classes() -> list[EventClassVariableConfig]:
    return [EventClassVariableConfig(label="centrality", n_bins=10, low=0.0, high=100.0)]


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(FlowCorrBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    base_dir: str = "./flowcorr_output"
    event_classes: list[EventClassVariableConfig] = Field(default_factory=_default_event_classes)
    detectors: list[DetectorConfig] = Field(default_factory=list)
    corrections: CorrectionsConfig = Field(default_factory=CorrectionsConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    calibration: CalibrationConfig = Field(default_factory=CalibrationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
