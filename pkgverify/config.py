"""Configuration loading for pkgverify (pkgverify.yml)."""

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org/"
CONFIG_FILENAME = "pkgverify.yml"

ENV_REGISTRY_KEY = "PKGVERIFY_REGISTRY"
ENV_TOKEN_KEY = "NODE_SECURE_TOKEN"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class VerifyConfig:
    """Settings threaded through a verification run."""

    registry_url: str = DEFAULT_REGISTRY_URL
    token: Optional[str] = None
    max_concurrency: Optional[int] = None
    request_timeout: float = 30.0
    max_extract_bytes: Optional[int] = None


def resolve_registry_url(
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> str:
    """Ask the local npm client for its registry, falling back to the public one."""
    executable = "npm.cmd" if sys.platform == "win32" else "npm"
    try:
        completed = runner(
            [executable, "config", "get", "registry"],
            check=True,
            capture_output=True,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return DEFAULT_REGISTRY_URL

    stdout = (completed.stdout or "").strip()
    if not stdout or stdout == "undefined":
        return DEFAULT_REGISTRY_URL
    return stdout


def load_config(
    config_path: Path | None = None,
    *,
    environ: Dict[str, str] | None = None,
    registry_resolver: Callable[[], str] = resolve_registry_url,
) -> VerifyConfig:
    """Load configuration from disk and the environment.

    The registry address is resolved exactly once here: an explicit
    ``registry`` key wins, then ``PKGVERIFY_REGISTRY``, then whatever the
    local npm client reports.
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    if config_path is not None:
        config_file = _resolve_config_path(config_path)
        if config_file.exists():
            data = _read_config(config_file)

    registry = _as_str(data.get("registry")) or env.get(ENV_REGISTRY_KEY) or registry_resolver()
    token = _as_str(data.get("token")) or env.get(ENV_TOKEN_KEY) or None

    max_concurrency = _as_int(data.get("max_concurrency"))
    if max_concurrency is not None and max_concurrency < 1:
        raise ConfigError("max_concurrency must be a positive integer")

    request_timeout = _as_float(data.get("request_timeout"))
    max_extract_bytes = _as_int(data.get("max_extract_bytes"))

    return VerifyConfig(
        registry_url=_normalise_registry(registry),
        token=token,
        max_concurrency=max_concurrency,
        request_timeout=request_timeout if request_timeout is not None else 30.0,
        max_extract_bytes=max_extract_bytes if max_extract_bytes and max_extract_bytes > 0 else None,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _normalise_registry(url: str) -> str:
    url = url.strip()
    return url if url.endswith("/") else f"{url}/"


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


__all__ = [
    "ConfigError",
    "DEFAULT_REGISTRY_URL",
    "VerifyConfig",
    "load_config",
    "resolve_registry_url",
]
