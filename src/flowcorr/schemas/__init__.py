"""Pydantic configuration schemas for the flowcorr pipeline.

This module provides strictly typed configuration models for the flowcorr
correction pipeline. All configuration validation, coercion, and
normalization happens at schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from flowcorr.schemas.resolve import resolve_config
from flowcorr.schemas.internal import InternalConfig
from flowcorr.schemas.param import ParamConfig
from flowcorr.schemas.user import UserConfig
from flowcorr.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
