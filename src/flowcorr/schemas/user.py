"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for common naming patterns
(e.g., DETECTORS → detectors, SIGNIFICANCE_THRESHOLD → significance_threshold).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Validation is lenient to accept
both uppercase and lowercase keys, integers where floats are expected, etc.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from flowcorr.schemas.base import FlowCorrBaseModel
from flowcorr.schemas.param import DetectorConfig, EventClassVariableConfig, LogLevelName


class UserCorrectionsConfig(FlowCorrBaseModel):
    """User-facing correction defaults."""
    width_equalization: Optional[bool] = None
    significance_threshold: Optional[float] = None
    recentering_min_entries: Optional[int] = None
    alignment_min_entries: Optional[int] = None
    twist_min_entries: Optional[int] = None
    collect_after_apply: Optional[bool] = None


class UserEventsConfig(FlowCorrBaseModel):
    """User-facing event table input."""
    path: Optional[str] = None
    format: Optional[Literal["auto", "csv", "parquet"]] = None


class UserCalibrationConfig(FlowCorrBaseModel):
    """User-facing calibration files."""
    input: Optional[str] = None
    output_filename: Optional[str] = None
    qa_filename: Optional[str] = None


class UserOutputConfig(FlowCorrBaseModel):
    """User-facing output config."""
    filename: Optional[str] = None
    format: Optional[Literal["parquet", "csv"]] = None
    compression: Optional[Literal["snappy", "gzip", "lz4", "none"]] = None
    include_steps: Optional[bool] = None


class UserConfig(FlowCorrBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    This config is converted to internal overrides during resolution.

    Usage
    -----
        user_cfg = UserConfig(
            BASE_DIR="/data/flowcorr",
            EVENTS="/data/events.parquet",
            EVENT_CLASSES=[{"label": "centrality", "n_bins": 10, "low": 0, "high": 100}],
            DETECTORS=[...],
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Top-level operational settings
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    events_path: Optional[str] = Field(None, alias="EVENTS")
    calibration_input: Optional[str] = Field(None, alias="CALIBRATION_INPUT")
    log_level: Optional[LogLevelName] = Field(None, alias="LOG_LEVEL")

    # Topology
    event_classes: Optional[list[EventClassVariableConfig]] = Field(None, alias="EVENT_CLASSES")
    detectors: Optional[list[DetectorConfig]] = Field(None, alias="DETECTORS")

    # Correction settings (flat aliases)
    significance_threshold: Optional[float] = Field(None, alias="SIGNIFICANCE_THRESHOLD")
    width_equalization: Optional[bool] = Field(None, alias="WIDTH_EQUALIZATION")
    collect_after_apply: Optional[bool] = Field(None, alias="COLLECT_AFTER_APPLY")

    # Output settings (flat aliases)
    output_format: Optional[Literal["parquet", "csv"]] = Field(None, alias="OUTPUT_FORMAT")

    # Nested overrides (advanced users)
    corrections: Optional[UserCorrectionsConfig] = None
    events: Optional[UserEventsConfig] = None
    calibration: Optional[UserCalibrationConfig] = None
    output: Optional[UserOutputConfig] = None

    model_config = FlowCorrBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("significance_threshold", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if v is not None:
            return float(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept log levels in any case."""
        if isinstance(v, str):
            return v.upper().strip()
        return v

    @field_validator("output_format", mode="before")
    @classmethod
    def normalize_output_format(cls, v):
        """Normalize format names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        if self.event_classes is not None:
            overrides["event_classes"] = [ec.model_dump() for ec in self.event_classes]

        if self.detectors is not None:
            overrides["detectors"] = [d.model_dump() for d in self.detectors]

        # Corrections section
        corrections = {}
        if self.significance_threshold is not None:
            corrections["significance_threshold"] = self.significance_threshold
        if self.width_equalization is not None:
            corrections["width_equalization"] = self.width_equalization
        if self.collect_after_apply is not None:
            corrections["collect_after_apply"] = self.collect_after_apply

        # Merge with explicit corrections config
        if self.corrections is not None:
            corrections.update(self.corrections.model_dump(exclude_none=True))

        if corrections:
            overrides["corrections"] = corrections

        # Events section
        events = {}
        if self.events_path is not None:
            events["path"] = str(self.events_path)
        if self.events is not None:
            events.update(self.events.model_dump(exclude_none=True))
        if events:
            overrides["events"] = events

        # Calibration section
        calibration = {}
        if self.calibration_input is not None:
            calibration["input"] = str(self.calibration_input)
        if self.calibration is not None:
            calibration.update(self.calibration.model_dump(exclude_none=True))
        if calibration:
            overrides["calibration"] = calibration

        # Output section
        output = {}
        if self.output_format is not None:
            output["format"] = self.output_format
        if self.output is not None:
            output.update(self.output.model_dump(exclude_none=True))
        if output:
            overrides["output"] = output

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
