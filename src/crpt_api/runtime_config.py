"""Runtime configuration loader (config-first, env-overrides)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from crpt_api.errors import ConfigError
from crpt_api.time_units import TimeUnit, parse_time_unit

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "runtime.toml"
DEFAULT_LOCAL_OVERRIDE_PATH = Path(__file__).resolve().parents[2] / "config" / "runtime.local.toml"
DEFAULT_API_URL = "https://ismp.crpt.ru/api/v3/lk/documents/create"


@dataclass(frozen=True)
class RuntimeConfig:
    """Materialized runtime configuration."""

    config_path: Path
    api_url: str
    timeout_s: float
    max_connections: int
    max_keepalive_connections: int
    request_limit: int
    time_unit: TimeUnit
    log_level: str
    log_dir: Path | None


_CURRENT_RUNTIME_CONFIG: RuntimeConfig | None = None


def set_current_runtime_config(config: RuntimeConfig | None) -> None:
    global _CURRENT_RUNTIME_CONFIG
    _CURRENT_RUNTIME_CONFIG = config


def current_runtime_config() -> RuntimeConfig:
    config = _CURRENT_RUNTIME_CONFIG
    if config is not None:
        return config
    loaded = load_runtime_config()
    set_current_runtime_config(loaded)
    return loaded


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in overlay.items():
        existing = out.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            out[key] = _deep_merge(existing, value)
        else:
            out[key] = value
    return out


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"failed reading runtime config: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid runtime config TOML: {path}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"runtime config root must be a table: {path}")
    return payload


def _as_table(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"runtime config section [{key}] must be a table")
    return value


def _as_str(value: Any, *, default: str) -> str:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return default


def _as_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def _as_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def _as_positive_int(value: Any, *, default: int, name: str) -> int:
    parsed = _as_int(value, default=default)
    if parsed < 1:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return parsed


def _resolve_optional_path(raw: Any, *, base_dir: Path) -> Path | None:
    value = _as_str(raw, default="")
    if not value:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return path


def load_runtime_config(config_path: Path | None = None) -> RuntimeConfig:
    """Load runtime config from `config/runtime.toml` plus optional local override."""
    source = (config_path or DEFAULT_CONFIG_PATH).expanduser().resolve()
    if not source.exists():
        raise ConfigError(f"runtime config file not found: {source}")

    payload = _read_toml(source)
    if source == DEFAULT_CONFIG_PATH and DEFAULT_LOCAL_OVERRIDE_PATH.exists():
        payload = _deep_merge(payload, _read_toml(DEFAULT_LOCAL_OVERRIDE_PATH))

    registry = _as_table(payload, "registry")
    rate_limit = _as_table(payload, "rate_limit")
    logging_table = _as_table(payload, "logging")
    base_dir = source.parent

    try:
        time_unit = parse_time_unit(rate_limit.get("time_unit", TimeUnit.SECONDS))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    return RuntimeConfig(
        config_path=source,
        api_url=_as_str(registry.get("api_url"), default=DEFAULT_API_URL),
        timeout_s=_as_float(registry.get("timeout_s"), default=10.0),
        max_connections=_as_positive_int(
            registry.get("max_connections"), default=8, name="registry.max_connections"
        ),
        max_keepalive_connections=_as_int(registry.get("max_keepalive_connections"), default=4),
        request_limit=_as_positive_int(
            rate_limit.get("request_limit"), default=10, name="rate_limit.request_limit"
        ),
        time_unit=time_unit,
        log_level=_as_str(logging_table.get("level"), default="INFO").upper(),
        log_dir=_resolve_optional_path(logging_table.get("log_dir"), base_dir=base_dir),
    )


def runtime_env_overrides(config: RuntimeConfig) -> dict[str, str]:
    """Project runtime config onto `CRPT_API_*` environment keys."""
    return {
        "CRPT_API_API_URL": config.api_url,
        "CRPT_API_TIMEOUT_S": str(config.timeout_s),
        "CRPT_API_REQUEST_LIMIT": str(config.request_limit),
        "CRPT_API_TIME_UNIT": config.time_unit.value,
        "CRPT_API_MAX_CONNECTIONS": str(config.max_connections),
        "CRPT_API_MAX_KEEPALIVE_CONNECTIONS": str(config.max_keepalive_connections),
        "CRPT_API_LOG_LEVEL": config.log_level,
        "CRPT_API_LOG_DIR": str(config.log_dir) if config.log_dir else "",
    }
