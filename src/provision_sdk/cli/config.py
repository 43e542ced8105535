"""Configuration helpers for the provision CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path.home() / ".provision_sdk" / "config.toml"
RPC_URL_ENV_VAR = "PROVISION_RPC_URL"
LOG_LEVEL_ENV_VAR = "PROVISION_LOG_LEVEL"
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class CLIConfig:
    rpc_url: str | None = None
    request_timeout: float = 10.0
    retries: int = 2
    log_level: str = "WARNING"


class ConfigError(ValueError):
    """Raised when CLI config is invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise ConfigError("toml parser unavailable; install tomli for Python < 3.11") from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _to_positive_float(value: Any, field_name: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number") from exc
    if parsed <= 0:
        raise ConfigError(f"{field_name} must be > 0")
    return parsed


def load_cli_config(path: str | Path | None = None) -> CLIConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    parsed: dict[str, Any] = _load_toml(config_path) if config_path.exists() else {}

    section = parsed.get("cli")
    if isinstance(section, dict):
        source = section
    elif section is None:
        source = parsed
    else:
        raise ConfigError("[cli] must be a table")

    env_rpc_url = os.getenv(RPC_URL_ENV_VAR)
    configured_rpc_url = source.get("rpc_url")
    if env_rpc_url and env_rpc_url.strip():
        rpc_url: str | None = env_rpc_url.strip()
    elif configured_rpc_url is None:
        rpc_url = None
    else:
        rpc_url = str(configured_rpc_url).strip() or None

    request_timeout = _to_positive_float(source.get("request_timeout", 10.0), "request_timeout")

    retries_raw = source.get("retries", 2)
    if isinstance(retries_raw, bool) or not isinstance(retries_raw, int) or retries_raw < 0:
        raise ConfigError("retries must be a non-negative integer")

    env_log_level = os.getenv(LOG_LEVEL_ENV_VAR)
    log_level = (env_log_level or str(source.get("log_level", "WARNING"))).strip().upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError("log_level must be one of: " + ", ".join(sorted(_LOG_LEVELS)))

    return CLIConfig(
        rpc_url=rpc_url,
        request_timeout=request_timeout,
        retries=retries_raw,
        log_level=log_level,
    )
