"""Configuration loading and validation.

Usage:
    config = load("covers-check.yaml")                   # raises ConfigError on bad config
    config = load("covers-check.yaml", required=False)   # defaults when the file is absent
    generate_template("covers-check.yaml")               # writes example file to disk
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from covers_check.resolver import DEFAULT_INTERFACE_BASES

DEFAULT_CONFIG_PATH = "covers-check.yaml"
SOURCE_ROOTS_ENV = "COVERS_CHECK_SOURCE_ROOTS"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------

@dataclass
class Config:
    source_roots: list[str] = field(default_factory=lambda: ["src"])
    test_paths: list[str] = field(default_factory=lambda: ["tests"])
    interface_bases: list[str] = field(default_factory=lambda: list(DEFAULT_INTERFACE_BASES))
    skip_when_collecting_coverage: bool = True


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str = DEFAULT_CONFIG_PATH, required: bool = True) -> Config:
    """Load and validate configuration from a YAML file.

    The environment variable COVERS_CHECK_SOURCE_ROOTS (os.pathsep separated)
    overrides ``source_roots``.

    Raises:
        ConfigError: if the file is missing (and *required*), malformed, or
                     holds invalid values.
    """
    path = Path(config_path)

    if path.exists():
        try:
            with path.open(encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc
        # An empty file is a valid "all defaults" config.
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")
    elif required:
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `covers-check init` to generate a template."
        )
    else:
        raw = {}

    defaults = Config()
    config = Config(
        source_roots=raw.get("source_roots", defaults.source_roots),
        test_paths=raw.get("test_paths", defaults.test_paths),
        interface_bases=raw.get("interface_bases", defaults.interface_bases),
        skip_when_collecting_coverage=raw.get(
            "skip_when_collecting_coverage", defaults.skip_when_collecting_coverage
        ),
    )

    env_roots = os.environ.get(SOURCE_ROOTS_ENV)
    if env_roots:
        config.source_roots = [root for root in env_roots.split(os.pathsep) if root]

    _validate(config)
    return config


def _validate(config: Config) -> None:
    """Raise ConfigError listing every invalid setting."""
    errors: list[str] = []

    for name in ("source_roots", "test_paths", "interface_bases"):
        value = getattr(config, name)
        if not isinstance(value, list) or not value:
            errors.append(f"  - '{name}' must be a non-empty list")
        elif not all(isinstance(item, str) and item.strip() for item in value):
            errors.append(f"  - '{name}' must only contain non-empty strings")

    if not isinstance(config.skip_when_collecting_coverage, bool):
        errors.append("  - 'skip_when_collecting_coverage' must be true or false")

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
# Import roots of the code under test; `src/pkg/mod.py` is indexed as `pkg.mod`.
source_roots:
  - src

# Test files checked by `covers-check check` when no path is given.
test_paths:
  - tests

# Classes deriving directly from one of these are interfaces and can not be
# named by @covers or @coversDefaultClass.
interface_bases:
  - Protocol
  - Interface

# Leave coverage runs (pytest --cov) alone.
skip_when_collecting_coverage: true
"""


def generate_template(output_path: str = DEFAULT_CONFIG_PATH) -> None:
    """Write a template covers-check.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists.
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
