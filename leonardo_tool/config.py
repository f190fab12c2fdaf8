"""
Configuration handling for leonardo-tool.

Loads configuration from YAML files with sensible defaults and resolves the
API credential.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from leonardo_tool.transport import DEFAULT_TIMEOUT_SECONDS, LEONARDO_API_BASE

API_KEY_ENV = "LEONARDO_API_KEY"
CONFIG_PATH_ENV = "LEONARDO_TOOL_CONFIG"


@dataclass
class Config:
    """Configuration for leonardo-tool behavior."""

    # Leonardo API
    api_key: Optional[str] = None  # tools.leonardo.apiKey, env fallback
    base_url: str = LEONARDO_API_BASE

    # Timing
    timeout_seconds: float = 60.0  # Poll budget handed to the poller
    request_timeout: float = DEFAULT_TIMEOUT_SECONDS  # Submission call

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


def config_search_paths(path: Optional[str] = None) -> list[Path]:
    """
    Candidate config files, highest priority first.

    An explicit path is the only candidate when given. Otherwise
    $LEONARDO_TOOL_CONFIG, then ./leonardo-tool.yaml, ~/.leonardo-tool.yaml
    and ~/.config/leonardo-tool/config.yaml are tried in order.
    """
    if path:
        return [Path(path)]

    candidates = []
    from_env = os.environ.get(CONFIG_PATH_ENV, "").strip()
    if from_env:
        candidates.append(Path(from_env).expanduser())
    candidates.extend(
        [
            Path("leonardo-tool.yaml"),
            Path.home() / ".leonardo-tool.yaml",
            Path.home() / ".config" / "leonardo-tool" / "config.yaml",
        ]
    )
    return candidates


def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration and resolve the API key.

    The first existing file from `config_search_paths` is read; with none,
    defaults apply. `api_key` is then resolved against the environment, so
    a loaded Config carries the effective credential (or None).

    Args:
        path: Explicit path to config file

    Returns:
        Config object

    Raises:
        ValueError: If a timeout in the file is not a usable number
    """
    config = Config()
    for config_path in config_search_paths(path):
        if config_path.exists():
            config = _load_yaml_config(config_path)
            break

    config.api_key = resolve_api_key(config)
    return config


def _load_yaml_config(path: Path) -> Config:
    """Load config from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    tools = data.get("tools") or {}
    leonardo = tools.get("leonardo") or {}
    logging = data.get("logging") or {}

    return Config(
        api_key=_optional_str(leonardo.get("apiKey")),
        base_url=leonardo.get("baseUrl", LEONARDO_API_BASE),
        timeout_seconds=_read_seconds(leonardo, "timeoutSeconds", 60.0),
        request_timeout=_read_seconds(
            leonardo, "requestTimeoutSeconds", DEFAULT_TIMEOUT_SECONDS
        ),
        log_level=logging.get("level", "INFO"),
        log_file=logging.get("file"),
    )


def resolve_api_key(config: Optional[Config] = None) -> Optional[str]:
    """
    Resolve the Leonardo API key.

    The configured key wins; LEONARDO_API_KEY is the fallback. Blank values
    count as missing.

    Returns:
        The trimmed key, or None when no credential is available
    """
    if config is not None and config.api_key:
        key = config.api_key.strip()
        if key:
            return key
    key = os.environ.get(API_KEY_ENV, "").strip()
    return key or None


def _read_seconds(section: dict, key: str, default: float) -> float:
    """Read a duration; .inf is allowed (the poller caps it), NaN is not."""
    seconds = float(section.get(key, default))
    if math.isnan(seconds) or seconds < 0:
        raise ValueError(f"tools.leonardo.{key} must be >= 0, got {seconds}")
    return seconds


def _optional_str(value: object) -> Optional[str]:
    """YAML may hand back numbers for unquoted keys."""
    if value is None:
        return None
    return str(value)
