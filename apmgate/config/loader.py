"""Load agent config files and write starter configs."""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path
from typing import Any, Mapping

import yaml

from apmgate.config.schema import AgentConfig, parse_config
from apmgate.core.logging import get_logger


DEFAULT_CONFIG_PATH = Path(__file__).with_name("defaults.yml")
ENV_OVERRIDES = {
    "APMGATE_APP_NAME": "app_name",
    "APMGATE_LICENSE_KEY": "license",
    "APMGATE_ENABLED": "enabled",
    "APMGATE_HIGH_SECURITY": "high_security",
    "APMGATE_SECURITY_POLICIES_TOKEN": "security_policies_token",
}
_ENV_TOKEN_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")

logger = get_logger("apmgate.config.loader")


def load_config(path: Path, *, environ: Mapping[str, str] | None = None) -> AgentConfig:
    """Read a YAML config, resolve ``${VAR}`` references and parse it.

    The result is not validated; run it through the validator before use.
    """
    env = os.environ if environ is None else environ
    if not path.exists():
        raise FileNotFoundError(f"config file does not exist: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"config file must contain a mapping: {path}")
    raw = _interpolate_env(raw, env)
    raw = apply_env_overrides(raw, env)
    logger.debug(
        "loaded agent config",
        extra={"event_action": "config_loaded", "payload": {"path": str(path)}},
    )
    return parse_config(raw)


def apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of ``raw`` with top-level identity settings taken from the environment."""
    merged = dict(raw)
    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None:
            continue
        merged[key] = value
    return merged


def initialize_config(path: Path, force: bool = False) -> Path:
    if path.exists() and not force:
        raise FileExistsError(f"config already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(DEFAULT_CONFIG_PATH, path)
    return path


def _interpolate_env(value: Any, environ: Mapping[str, str]) -> Any:
    if isinstance(value, dict):
        return {key: _interpolate_env(item, environ) for key, item in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item, environ) for item in value]
    if isinstance(value, str) and "${" in value:
        return _interpolate_string(value, environ)
    return value


def _interpolate_string(value: str, environ: Mapping[str, str]) -> str:
    def _replace(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        resolved = environ.get(name)
        if resolved is not None:
            return resolved
        if default is not None:
            return default
        raise ValueError(f"missing required environment variable '{name}' referenced by '{match.group(0)}'")

    return _ENV_TOKEN_RE.sub(_replace, value)
