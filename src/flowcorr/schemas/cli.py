"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: event table, calibration input, output paths, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from flowcorr.schemas.base import FlowCorrBaseModel
from flowcorr.schemas.param import LogLevelName


class CLIConfig(FlowCorrBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(
            events="/data/run_2/events.parquet",
            calibration_input="/scratch/pass1/calibration/calibration.nc",
            base_dir="/scratch/pass2",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    base_dir: Optional[str] = None
    events: Optional[str] = None
    calibration_input: Optional[str] = None
    output_format: Optional[Literal["parquet", "csv"]] = None
    log_level: Optional[LogLevelName] = None

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        if self.events is not None:
            overrides["events"] = {"path": str(self.events)}

        if self.calibration_input is not None:
            overrides["calibration"] = {"input": str(self.calibration_input)}

        if self.output_format is not None:
            overrides["output"] = {"format": self.output_format}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
