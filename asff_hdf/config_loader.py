"""
Configuration Loader for the ASFF mapper.

Implements a layered configuration system:
    hardcoded defaults < YAML config file < explicit overrides < report meta

Usage:
    from asff_hdf.config_loader import build_config
    config = build_config(config_file="mapper.yml", meta={"name": "Prod"})

YAML layout (every key optional)::

    profile:
      name: AWS Security Finding Format
      title: ASFF Findings
    platform:
      name: Heimdall Tools
    tags:
      key: nist
      default: [SA-11, RA-5]
    upgrade_informational: true
    mapping_file: /path/to/aws-config-nist-mapping.csv
    isolate_finding_errors: false
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .exceptions import ConfigError
from .supporting_docs import DEFAULT_MAPPING_FILE
from .version import __version__

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def get_default_config() -> Dict[str, Any]:
    """Return every configuration key with its default.

    This is the lowest-priority layer; downstream code never needs to guard
    against missing keys.
    """
    return {
        # -- Report envelope --
        "profile_name": "AWS Security Finding Format",
        "profile_title": "ASFF Findings",
        "platform_name": "Heimdall Tools",
        "platform_release": __version__,

        # -- Policy tags --
        "policy_tag_key": "nist",
        "default_nist_tags": ["SA-11", "RA-5"],
        "mapping_file": str(DEFAULT_MAPPING_FILE),

        # -- Impact --
        "upgrade_informational": True,  # INFORMATIONAL -> MEDIUM on the generic severity path

        # -- Error handling --
        "isolate_finding_errors": False,  # True = record failed findings and keep going
    }


# ---------------------------------------------------------------------------
# YAML file
# ---------------------------------------------------------------------------

_SECTION_PREFIX_MAP = {
    "profile": "profile_",
    "platform": "platform_",
}

_TAGS_KEY_MAP = {
    "key": "policy_tag_key",
    "default": "default_nist_tags",
}

_TOP_LEVEL_KEYS = (
    "upgrade_informational",
    "mapping_file",
    "isolate_finding_errors",
)


def flatten_config(nested: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert the nested YAML layout to a flat config dict.

    Mapping rules:
    - ``nested["profile"][key]``  -> ``profile_{key}``
    - ``nested["platform"][key]`` -> ``platform_{key}``
    - ``nested["tags"]["key"]``   -> ``policy_tag_key``
    - ``nested["tags"]["default"]`` -> ``default_nist_tags``
    - known top-level scalars are passed through as-is.

    Only non-None values are included.
    """
    flat: Dict[str, Any] = {}

    for section, prefix in _SECTION_PREFIX_MAP.items():
        block = nested.get(section)
        if isinstance(block, dict):
            for key, value in block.items():
                if value is not None:
                    flat[f"{prefix}{key}"] = value

    tags = nested.get("tags")
    if isinstance(tags, dict):
        for key, target in _TAGS_KEY_MAP.items():
            if tags.get(key) is not None:
                flat[target] = tags[key]

    for key in _TOP_LEVEL_KEYS:
        if nested.get(key) is not None:
            flat[key] = nested[key]

    return flat


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Load and flatten the YAML config at *path*.

    Raises
    ------
    ConfigError
        If the file is missing, is not valid YAML, or is not a mapping.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    logger.info("Loading mapper config from %s", config_path)
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(
            f"{config_path}: expected a mapping at top level, got {type(raw).__name__}"
        )
    return flatten_config(raw)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def deep_merge(base: dict, override: Mapping[str, Any]) -> dict:
    """Merge *override* into *base*.  Only non-None override values win.

    This operates on **flat** dicts (no recursive descent).
    """
    merged = dict(base)
    for key, value in override.items():
        if value is not None:
            merged[key] = value
    return merged


def meta_overrides(meta: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Translate a report ``meta`` mapping (``name``/``title``) to config keys."""
    if not meta:
        return {}
    overrides: Dict[str, Any] = {}
    if meta.get("name"):
        overrides["profile_name"] = str(meta["name"])
    if meta.get("title"):
        overrides["profile_title"] = str(meta["title"])
    return overrides


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_config(config: Mapping[str, Any]) -> List[str]:
    """Return human-readable problems with *config*; empty means valid."""
    issues: List[str] = []

    for key in ("profile_name", "profile_title", "platform_name", "policy_tag_key"):
        if not isinstance(config.get(key), str) or not config.get(key):
            issues.append(f"ERROR: {key} must be a non-empty string.")

    tags = config.get("default_nist_tags")
    if not isinstance(tags, list) or not tags or not all(isinstance(t, str) for t in tags):
        issues.append("ERROR: default_nist_tags must be a non-empty list of strings.")

    for key in ("upgrade_informational", "isolate_finding_errors"):
        if not isinstance(config.get(key), bool):
            issues.append(f"ERROR: {key} must be true or false.")

    if not Path(str(config.get("mapping_file", ""))).is_file():
        issues.append(f"ERROR: mapping_file {config.get('mapping_file')!r} does not exist.")

    return issues


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def build_config(
    config_file: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a fully-merged configuration dict.

    Layer precedence (last wins):
        1. Hard-coded defaults   (``get_default_config()``)
        2. YAML config file      (``load_config_file()``)
        3. Explicit overrides    (*overrides*, flat keys)
        4. Report meta           (``name`` / ``title``)

    Raises
    ------
    ConfigError
        If the file cannot be loaded or the merged config is invalid.
    """
    config = get_default_config()

    if config_file is not None:
        file_values = load_config_file(config_file)
        config = deep_merge(config, file_values)
        logger.info("Applied config file overrides (%d keys)", len(file_values))

    if overrides:
        unknown = sorted(set(overrides) - set(config))
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        config = deep_merge(config, overrides)
        logger.debug("Applied %d explicit overrides", len(overrides))

    config = deep_merge(config, meta_overrides(meta))

    issues = validate_config(config)
    if issues:
        raise ConfigError("; ".join(issues))
    return config


__all__ = [
    "build_config",
    "deep_merge",
    "flatten_config",
    "get_default_config",
    "load_config_file",
    "meta_overrides",
    "validate_config",
]
