"""Configuration resolution and merging logic.

This module provides the single entrypoint for configuration resolution:
resolve_config(). It merges ParamConfig, UserConfig, and CLIConfig in
the correct precedence order and returns a validated InternalConfig.

Precedence (highest to lowest):
1. CLIConfig (command-line overrides)
2. UserConfig (user file)
3. ParamConfig (expert defaults)
"""

from typing import Union, Optional
from flowcorr.schemas.param import ParamConfig, EventClassVariableConfig
from flowcorr.schemas.user import UserConfig
from flowcorr.schemas.cli import CLIConfig
from flowcorr.schemas.internal import InternalConfig


MIN_ENTRIES_KEYS = {
    "recentering": "recentering_min_entries",
    "alignment": "alignment_min_entries",
    "twist_and_rescale": "twist_min_entries",
}


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Deep merge multiple dictionaries.

    Later dictionaries override earlier ones. Nested dictionaries are
    merged recursively; other values (lists included) are replaced.

    Parameters
    ----------
    base : dict
        Base dictionary (lowest priority)
    *overrides : dict
        Override dictionaries (higher priority, left to right)

    Returns
    -------
    dict
        Merged dictionary

    Examples
    --------
    >>> base = {"a": 1, "b": {"c": 2, "d": 3}}
    >>> override = {"b": {"d": 4, "e": 5}, "f": 6}
    >>> deep_merge(base, override)
    {'a': 1, 'b': {'c': 2, 'd': 4, 'e': 5}, 'f': 6}
    """
    result = base.copy()

    for override in overrides:
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                # Recursive merge for nested dicts
                result[key] = deep_merge(result[key], value)
            else:
                # Replace value
                result[key] = value

    return result


def _resolve_event_classes(event_classes: list) -> list:
    """Explicit edges and container index for every event-class variable."""
    resolved = []
    for variable_id, ec in enumerate(event_classes):
        variable = EventClassVariableConfig.model_validate(ec)
        resolved.append({
            "variable_id": variable_id,
            "label": variable.label,
            "edges": variable.bin_edges(),
        })
    return resolved


def _resolve_corrections(detectors: list, defaults: dict) -> list:
    """Fill unset per-step tunables from the pipeline-wide correction defaults."""
    resolved = []
    for detector in detectors:
        detector = dict(detector)
        configurations = []
        for configuration in detector["configurations"]:
            configuration = dict(configuration)
            corrections = []
            for correction in configuration.get("corrections", []):
                correction = dict(correction)
                if correction.get("width_equalization") is None:
                    correction["width_equalization"] = defaults["width_equalization"]
                if correction.get("significance_threshold") is None:
                    correction["significance_threshold"] = defaults["significance_threshold"]
                if correction.get("min_entries") is None:
                    correction["min_entries"] = defaults[MIN_ENTRIES_KEYS[correction["kind"]]]
                correction.setdefault("harmonic", None)
                correction.setdefault("reference", None)
                correction.setdefault("all_harmonics", False)
                corrections.append(correction)
            configuration["corrections"] = corrections
            configurations.append(configuration)
        detector["configurations"] = configurations
        resolved.append(detector)
    return resolved


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> InternalConfig:
    """Resolve final runtime configuration from param, user, and CLI configs.

    This is the SINGLE ENTRYPOINT for configuration resolution. It validates
    and merges configs in the correct precedence order, then returns an
    immutable InternalConfig for runtime use.

    Precedence (highest to lowest):
    1. CLIConfig (command-line overrides)
    2. UserConfig (user file overrides)
    3. ParamConfig (expert defaults)

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert configuration with complete defaults. Required.
    user_cfg : dict or UserConfig, optional
        User configuration with overrides. If None or empty, uses only param defaults.
    cli_cfg : dict or CLIConfig, optional
        Command-line overrides. If None or empty, no CLI overrides applied.

    Returns
    -------
    InternalConfig
        Fully validated, immutable runtime configuration

    Raises
    ------
    ValidationError
        If any config fails Pydantic validation

    Examples
    --------
    >>> from flowcorr.schemas import resolve_config, ParamConfig, UserConfig
    >>>
    >>> param = ParamConfig()
    >>> user = UserConfig(SIGNIFICANCE_THRESHOLD=3, DETECTORS=[...])
    >>> config = resolve_config(param, user)
    >>> config.corrections.significance_threshold
    3.0
    """
    # Validate/convert inputs to Pydantic models
    if not isinstance(param_cfg, ParamConfig):
        param = ParamConfig.model_validate(param_cfg)
    else:
        param = param_cfg

    if user_cfg is None or (isinstance(user_cfg, dict) and not user_cfg):
        user = UserConfig()
    elif not isinstance(user_cfg, UserConfig):
        user = UserConfig.model_validate(user_cfg)
    else:
        user = user_cfg

    if cli_cfg is None or (isinstance(cli_cfg, dict) and not cli_cfg):
        cli = CLIConfig()
    elif not isinstance(cli_cfg, CLIConfig):
        cli = CLIConfig.model_validate(cli_cfg)
    else:
        cli = cli_cfg

    # Convert to dicts for merging
    param_dict = param.model_dump()
    user_overrides = user.to_internal_overrides()
    cli_overrides = cli.to_internal_overrides()

    # Deep merge: param < user < cli
    merged = deep_merge(param_dict, user_overrides, cli_overrides)

    # Explicit binnings and per-step tunables
    merged["event_classes"] = _resolve_event_classes(merged["event_classes"])
    merged["detectors"] = _resolve_corrections(merged["detectors"], merged["corrections"])

    # Validate and freeze as InternalConfig
    internal = InternalConfig.model_validate(merged)

    return internal
