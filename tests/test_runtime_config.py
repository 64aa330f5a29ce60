from __future__ import annotations

from pathlib import Path

import pytest

from crpt_api.errors import ConfigError
from crpt_api.runtime_config import (
    DEFAULT_CONFIG_PATH,
    load_runtime_config,
    runtime_env_overrides,
)
from crpt_api.settings import Settings
from crpt_api.time_units import TimeUnit, parse_time_unit


def _write(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_load_runtime_config_reads_tables(tmp_path: Path) -> None:
    config_path = _write(
        tmp_path / "runtime.toml",
        [
            "[registry]",
            'api_url = "https://registry.test/create"',
            "max_connections = 2",
            "",
            "[rate_limit]",
            'time_unit = "MINUTES"',
            "request_limit = 20",
            "",
            "[logging]",
            'level = "debug"',
            'log_dir = "logs"',
        ],
    )

    config = load_runtime_config(config_path)

    assert config.api_url == "https://registry.test/create"
    assert config.max_connections == 2
    assert config.max_keepalive_connections == 4
    assert config.time_unit is TimeUnit.MINUTES
    assert config.request_limit == 20
    assert config.log_level == "DEBUG"
    assert config.log_dir == (tmp_path / "logs").resolve()


def test_runtime_env_overrides_projects_fields(tmp_path: Path) -> None:
    config_path = _write(tmp_path / "runtime.toml", ["[rate_limit]", "request_limit = 7"])
    projected = runtime_env_overrides(load_runtime_config(config_path))

    assert projected["CRPT_API_REQUEST_LIMIT"] == "7"
    assert projected["CRPT_API_TIME_UNIT"] == "seconds"
    assert projected["CRPT_API_LOG_DIR"] == ""


def test_invalid_values_raise_config_error(tmp_path: Path) -> None:
    bad_limit = _write(tmp_path / "limit.toml", ["[rate_limit]", "request_limit = 0"])
    with pytest.raises(ConfigError, match="request_limit"):
        load_runtime_config(bad_limit)

    bad_unit = _write(tmp_path / "unit.toml", ["[rate_limit]", 'time_unit = "fortnights"'])
    with pytest.raises(ConfigError, match="time unit"):
        load_runtime_config(bad_unit)

    bad_toml = _write(tmp_path / "broken.toml", ["[rate_limit"])
    with pytest.raises(ConfigError, match="invalid runtime config TOML"):
        load_runtime_config(bad_toml)

    with pytest.raises(ConfigError, match="not found"):
        load_runtime_config(tmp_path / "missing.toml")


def test_default_runtime_config_loads() -> None:
    config = load_runtime_config(DEFAULT_CONFIG_PATH)
    assert config.request_limit == 10
    assert config.time_unit is TimeUnit.SECONDS


def test_parse_time_unit_aliases() -> None:
    assert parse_time_unit("ms") is TimeUnit.MILLISECONDS
    assert parse_time_unit(" Hour ") is TimeUnit.HOURS
    assert parse_time_unit(TimeUnit.DAYS).seconds == 86400.0
    with pytest.raises(ValueError):
        parse_time_unit("weeks")


def test_runtime_env_overrides_feed_settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = _write(
        tmp_path / "runtime.toml",
        ["[rate_limit]", "request_limit = 7", 'time_unit = "minutes"'],
    )
    for key, value in runtime_env_overrides(load_runtime_config(config_path)).items():
        monkeypatch.setenv(key, value)

    settings = Settings(_env_file=None)  # pyright: ignore[reportCallIssue]

    assert settings.request_limit == 7
    assert settings.time_unit == TimeUnit.MINUTES
    assert settings.window_s == 60.0
