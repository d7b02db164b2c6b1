"""
Monitoring configuration using Pydantic for validation.

Defaults match the production settings: flush every 30 seconds or every
100 records, health over the last hour, fairness over the last 30 days.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "CASEWATCH_"


class MonitorSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    buffer_size: int = Field(default=100, ge=1, description="Records buffered before a forced flush")
    flush_interval_seconds: float = Field(default=30.0, gt=0, description="Periodic flush interval")
    shutdown_timeout_seconds: float = Field(default=5.0, gt=0)
    health_window_minutes: int = Field(default=60, ge=1)
    fairness_window_days: int = Field(default=30, ge=1)
    recent_metrics_limit: int = Field(default=50, ge=1)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MonitorSettings":
        """Build settings from CASEWATCH_* variables, e.g. CASEWATCH_BUFFER_SIZE."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
