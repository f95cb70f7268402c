"""
condlog Configuration
=====================

PURPOSE:
    Pydantic-Settings based configuration for request-scoped log buffering.
    All settings can be overridden via environment variables (CONDLOG_ prefix).

    Buffer size, buffer timeout and sweep interval are clamped to a minimum
    of 1 whether they come from the environment or the constructor.
"""

import logging
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "condlog"

    # Buffering
    max_buffer_size: int = 1000       # Maximum events held per request
    buffer_timeout_s: int = 600       # Idle time before a buffer counts as abandoned (10 min)
    sweep_interval_s: int = 300       # Delay between expiry sweeps (5 min)
    stop_timeout_s: float = 30.0      # Max wait for the sweeper on shutdown

    # Logging
    # DEBUG by default: detail has to reach the buffer to be shown for failed requests
    log_level: str = "DEBUG"
    log_format: Literal["json", "console"] = "json"

    # Diagnostics
    status_history: int = 200         # Status entries kept in memory

    class Config:
        env_file = ".env"
        env_prefix = "CONDLOG_"

    @field_validator("max_buffer_size", "buffer_timeout_s", "sweep_interval_s", "status_history")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, value)

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @property
    def log_level_no(self) -> int:
        return logging.getLevelName(self.log_level)


settings = Settings()
