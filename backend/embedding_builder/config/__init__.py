"""Configuration management for embedding-builder."""

from .manager import (
    DEFAULT_CONFIG,
    load_config,
    validate_config,
    config_problems,
    cfg_fingerprint,
)

__all__ = [
    "DEFAULT_CONFIG",
    "load_config",
    "validate_config",
    "config_problems",
    "cfg_fingerprint",
]
