"""Core correction pass execution logic.

This module contains the actual pass runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import json
import shutil
import logging
import argparse
import importlib.util
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

import pandas as pd

from flowcorr.setup_directories import setup_output_directories
from flowcorr.pipeline.runner import CorrectionRunner
from flowcorr.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig, InternalConfig


logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load config module from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    # Find CONFIG dict
    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def generate_run_id() -> str:
    """UTC timestamp run identifier, e.g. ``20260318T101502Z``."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def persist_runtime_config(config: InternalConfig, output_dirs: Dict[str, Path]) -> Path:
    """Save the resolved configuration next to the pass outputs.

    The file is named after the run ID for reproducibility and debugging.
    """
    config_file = Path(output_dirs["base"]) / f"runtime_config_{config.run_id}.json"
    config_dict = config.model_dump()
    config_dict["created_at"] = datetime.now(timezone.utc).isoformat()

    with open(config_file, 'w') as f:
        json.dump(config_dict, f, indent=2, default=str)

    logger.info("Runtime config saved: %s", config_file)
    return config_file


def run_corrections(
    user_config_path: str,
    cli_args: Optional[Dict[str, Any]] = None,
    rerun: bool = False,
    verbose: bool = False
) -> pd.DataFrame:
    """Execute one Qn vector correction pass.

    This is the core pass execution function. It:
    1. Loads and resolves configuration (Param < User < CLI)
    2. Optionally cleans the output directory if rerun=True
    3. Sets up output directories and persists the runtime config
    4. Runs the correction pass over the event table

    Parameters
    ----------
    user_config_path : str
        Path to user config file (Python file with CONFIG dict).

    cli_args : dict, optional
        CLI argument overrides. Keys: base_dir, events, calibration_input,
        output_format, log_level. All optional.

    rerun : bool, optional
        If True, delete the output directory before running.

    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    Returns
    -------
    pd.DataFrame
        Corrected event table.

    Raises
    ------
    FileNotFoundError
        If user_config_path, the event table or the calibration input
        does not exist.
    pydantic.ValidationError
        If configuration validation fails.
    ConfigurationError
        If the correction topology cannot be set up.

    Examples
    --------
    First pass (collect statistics only)::

        run_corrections("config/user_config.py")

    Second pass, applying the first pass calibration::

        run_corrections(
            "config/user_config.py",
            cli_args={
                "base_dir": "/scratch/pass2",
                "calibration_input": "/scratch/pass1/calibration/calibration.nc",
            },
        )
    """
    # Load configurations
    param_cfg = ParamConfig()  # Expert defaults

    # Load user config from file
    user_cfg_dict = load_user_config_dict(user_config_path)
    user_cfg = UserConfig.model_validate(user_cfg_dict)

    # Create CLI config from arguments
    cli_args = dict(cli_args or {})
    if verbose and "log_level" not in cli_args:
        cli_args["log_level"] = "DEBUG"

    # Filter None values
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    # Resolve to internal config (Param < User < CLI)
    config = resolve_config(param_cfg, user_cfg, cli_cfg)

    # Clean output directory if --rerun specified
    if rerun:
        base_dir_path = Path(config.base_dir)
        if base_dir_path.exists():
            print(f"Cleaning output directory: {base_dir_path}")
            shutil.rmtree(base_dir_path)

    # Setup output directories and freeze them into the runtime config
    output_dirs = setup_output_directories(config.base_dir)
    config = InternalConfig.model_validate({
        **config.model_dump(),
        "output_dirs": {k: str(v) for k, v in output_dirs.items()},
        "run_id": generate_run_id(),
    })

    # Print summary
    print(f"\n{'='*60}")
    print("flowcorr Qn Vector Corrections")
    print('='*60)
    print(f"Config:      {user_config_path}")
    print(f"Events:      {config.events.path}")
    print(f"Calibration: {config.calibration.input or 'none (first pass)'}")
    print(f"Output:      {config.base_dir}")
    print(f"Run ID:      {config.run_id}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2))
        print('='*60)

    runner = CorrectionRunner(config, output_dirs)
    corrected = runner.run()
    persist_runtime_config(config, output_dirs)
    return corrected


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one flowcorr Qn vector correction pass")
    parser.add_argument("config", help="Path to user config file")
    parser.add_argument("--events", help="Event table (CSV or Parquet)")
    parser.add_argument("--calibration-input", help="calibration.nc from a previous pass")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--output-format", choices=["parquet", "csv"], help="Corrected table format")
    parser.add_argument("--rerun", action="store_true", help="Delete output directory before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    run_corrections(
        args.config,
        cli_args={
            "events": args.events,
            "calibration_input": args.calibration_input,
            "base_dir": args.base_dir,
            "output_format": args.output_format,
        },
        rerun=args.rerun,
        verbose=args.verbose,
    )
