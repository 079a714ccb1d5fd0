"""Configuration utilities for mediacompose components."""

from .io import DEFAULT_CONFIG_PATH, load_config, load_default_config
from .merge import merge_configs
from .model import CompositionConfig, MixSettings
from .validate import validate_config

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "CompositionConfig",
    "MixSettings",
    "load_config",
    "load_default_config",
    "merge_configs",
    "validate_config",
]
