"""
Configuration file support for pinwarden.

Looks for a .pinwarden.yml file near the scanned workflows and loads settings
that control which checks run, how pins are written, where the
classification cache lives, and how the GitHub API is reached.

Example .pinwarden.yml:

    # Checks to run (default: all, in their fixed order)
    checks:
      - unstable-github-ref
      - outdated-action

    # Workflow files to skip when scanning a directory
    exclude:
      - "**/legacy-*.yml"

    # Length of the commit SHA written into pins (7 to 40)
    pin_length: 7

    # Classification cache; set to null to keep it in memory only
    cache_path: ~/.cache/pinwarden/cache.db

    # Parallel reference lookups per check
    max_workers: 4

    # GitHub Enterprise users can point this at their API
    api_url: https://api.github.com
    token_env: GITHUB_TOKEN
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from pinwarden.classifier import DEFAULT_BRANCH_NAMES, DEFAULT_PIN_LENGTH
from pinwarden.github.client import DEFAULT_API_URL

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".pinwarden.yml"
DEFAULT_CACHE_PATH = os.path.join("~", ".cache", "pinwarden", "cache.db")


@dataclass
class Config:
    """Parsed pinwarden configuration."""
    checks: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    pin_length: int = DEFAULT_PIN_LENGTH
    cache_path: Optional[str] = DEFAULT_CACHE_PATH
    max_workers: int = 4
    api_url: str = DEFAULT_API_URL
    token_env: str = "GITHUB_TOKEN"
    default_branch_names: list[str] = field(default_factory=lambda: list(DEFAULT_BRANCH_NAMES))

    @property
    def token(self) -> Optional[str]:
        return os.environ.get(self.token_env) or None

    @property
    def resolved_cache_path(self) -> Optional[str]:
        if not self.cache_path:
            return None
        return os.path.expanduser(self.cache_path)


def _as_list(raw: dict, key: str, default: list[str]) -> list[str]:
    value = raw.get(key, default)
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        logger.warning("Config key '%s' should be a list, ignoring", key)
        return list(default)
    return [str(v) for v in value]


def _as_int(raw: dict, key: str, default: int, minimum: int, maximum: int) -> int:
    value = raw.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or not minimum <= value <= maximum:
        logger.warning(
            "Config key '%s' must be an integer between %d and %d, using %d",
            key, minimum, maximum, default,
        )
        return default
    return value


def load_config(config_path: Optional[str] = None, scan_path: Optional[str] = None) -> Config:
    """
    Load configuration from a .pinwarden.yml file.

    Search order:
      1. Explicit config_path if provided
      2. .pinwarden.yml in the scan_path directory (or its parent if scan_path is a file),
         then in each directory above it
      3. .pinwarden.yml in the current working directory

    Returns a Config with defaults if no config file is found.
    """
    path = _find_config_file(config_path, scan_path)

    if path is None:
        logger.debug("No config file found, using defaults")
        return Config()

    logger.info("Loading config from %s", path)

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.warning("Config file %s is not valid YAML (%s), using defaults", path, e)
        return Config()

    if not isinstance(raw, dict):
        logger.warning("Config file is not a YAML mapping, using defaults")
        return Config()

    defaults = Config()
    return Config(
        checks=_as_list(raw, "checks", defaults.checks),
        exclude=_as_list(raw, "exclude", defaults.exclude),
        pin_length=_as_int(raw, "pin_length", defaults.pin_length, 7, 40),
        cache_path=raw.get("cache_path", defaults.cache_path),
        max_workers=_as_int(raw, "max_workers", defaults.max_workers, 1, 64),
        api_url=str(raw.get("api_url", defaults.api_url)),
        token_env=str(raw.get("token_env", defaults.token_env)),
        default_branch_names=_as_list(raw, "default_branch_names", defaults.default_branch_names),
    )


def _find_config_file(
    config_path: Optional[str] = None,
    scan_path: Optional[str] = None,
) -> Optional[str]:
    """Find the config file, returning its path or None."""
    # 1. Explicit path
    if config_path:
        p = Path(config_path)
        if p.is_file():
            return str(p)
        logger.warning("Config file not found: %s", config_path)
        return None

    # 2. Relative to scan path
    if scan_path:
        scan_p = Path(scan_path)
        if scan_p.is_file():
            scan_p = scan_p.parent
        candidate = scan_p / DEFAULT_CONFIG_FILENAME
        if candidate.is_file():
            return str(candidate)
        # Walk up to find it (e.g. scan_path is .github/workflows/)
        for parent in scan_p.parents:
            candidate = parent / DEFAULT_CONFIG_FILENAME
            if candidate.is_file():
                return str(candidate)

    # 3. Current working directory
    cwd_candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
    if cwd_candidate.is_file():
        return str(cwd_candidate)

    return None
