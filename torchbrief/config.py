"""
Configuration handling for torchbrief.

Configuration is a nested dictionary. Components read their own section with
``dict.get`` and fall back to the values in ``DEFAULT_CONFIG``.
"""
import copy
import logging
import math
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "patch_size": 31,
    "descriptor_length": 256,
    "smoothing": {
        "sigma": math.sqrt(2),
        "size": None,  # min(height, width, 9), forced odd
    },
    "point_distribution": {
        "sigma": None,  # patch_size / 5
        "seed": 0,
    },
    "interpolation": "nearest",
    "allow_corners": True,
    "num_workers": 1,
    "matcher": {
        "max_distance": None,
        "cross_check": False,
        "ratio_threshold": None,
    },
}


def merge_config(base: Dict, overrides: Optional[Dict]) -> Dict:
    """
    Recursively merge two configuration dictionaries.

    Args:
        base: Base configuration
        overrides: Values taking precedence over ``base``

    Returns:
        New merged dictionary, inputs are left untouched
    """
    merged = copy.deepcopy(base)
    if not overrides:
        return merged

    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def resolve_config(config: Optional[Dict] = None) -> Dict:
    """
    Merge a user configuration over the defaults.

    Unknown top-level keys and sections that are not mappings raise
    ConfigurationError. An empty section keeps its defaults.
    """
    config = dict(config) if config is not None else {}
    unknown = set(config) - set(DEFAULT_CONFIG)
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}"
        )

    for key, default in DEFAULT_CONFIG.items():
        if not isinstance(default, dict) or key not in config:
            continue
        # An empty YAML section such as "matcher:" parses as None
        if config[key] is None:
            config[key] = {}
        elif not isinstance(config[key], dict):
            raise ConfigurationError(
                f"Configuration section '{key}' must be a mapping, "
                f"got {type(config[key]).__name__}"
            )

    return merge_config(DEFAULT_CONFIG, config)


def load_config(path: Union[str, Path]) -> Dict:
    """
    Load a YAML configuration file and merge it over the defaults.

    Args:
        path: Path to the YAML file

    Returns:
        Complete configuration dictionary
    """
    path = Path(path)
    logger.info(f"Loading configuration from {path}")

    with open(path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {path} must contain a mapping, got {type(data).__name__}"
        )

    return resolve_config(data)
