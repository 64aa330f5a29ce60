"""Application settings for the registry client."""

import os
from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from crpt_api.runtime_config import DEFAULT_API_URL, current_runtime_config
from crpt_api.time_units import TimeUnit, parse_time_unit


class Settings(BaseSettings):
    """Runtime settings for the registry endpoint and its request quota."""

    model_config = SettingsConfigDict(
        env_prefix="CRPT_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_url: str = DEFAULT_API_URL
    timeout_s: float = 10.0
    max_connections: int = Field(default=8, gt=0)
    max_keepalive_connections: int = Field(default=4, ge=0)
    request_limit: int = Field(default=10, gt=0)
    time_unit: TimeUnit = TimeUnit.SECONDS
    signature: str = Field(
        default="",
        validation_alias=AliasChoices("CRPT_SIGNATURE", "CRPT_API_SIGNATURE", "signature"),
    )
    log_level: str = "INFO"
    log_dir: str = ""

    @field_validator("time_unit", mode="before")
    @classmethod
    def _parse_time_unit(cls, value: Any) -> TimeUnit:
        return parse_time_unit(value)

    @property
    def window_s(self) -> float:
        """Length of one quota window in seconds."""
        return self.time_unit.seconds

    def redacted(self) -> dict[str, Any]:
        """Settings as a JSON-ready dict with the signature masked."""
        payload = self.model_dump(mode="json")
        payload["signature"] = "***" if self.signature else ""
        payload["window_s"] = self.window_s
        return payload

    @classmethod
    def from_runtime(cls) -> "Settings":
        """Construct settings from runtime config + direct signature env fallback."""
        runtime = current_runtime_config()
        direct_signature = (
            os.environ.get("CRPT_SIGNATURE", "").strip()
            or os.environ.get("CRPT_API_SIGNATURE", "").strip()
        )
        return cls(
            api_url=runtime.api_url,
            timeout_s=runtime.timeout_s,
            max_connections=runtime.max_connections,
            max_keepalive_connections=runtime.max_keepalive_connections,
            request_limit=runtime.request_limit,
            time_unit=runtime.time_unit,
            signature=direct_signature,
            log_level=runtime.log_level,
            log_dir=str(runtime.log_dir) if runtime.log_dir else "",
        )
