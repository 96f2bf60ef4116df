"""
Configuration for docmirror.

Uses pydantic-settings for environment variable loading. Every setting can also
be passed directly as a keyword to ``ClientSettings`` (or to ``DocumentClient``),
so tests build isolated instances without touching the environment.

Invariants:
    - All settings have sensible defaults for local development
    - Limits are positive; the page-size ceiling bounds the default page size
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class ClientSettings(BaseSettings):
    """Data-access layer configuration loaded from environment."""

    # Admission control
    rate_limit_max_requests: int = Field(default=50, gt=0, description="Requests per window")
    rate_limit_window_seconds: float = Field(default=60.0, gt=0, description="Window length")

    # Pagination
    default_page_size: int = Field(default=50, gt=0, description="Default items per page")
    max_page_size: int = Field(default=100, gt=0, description="Maximum items per page")

    # Sanitization ceilings
    max_string_length: int = Field(default=10000, gt=0, description="Global string cap")
    max_array_length: int = Field(default=100, gt=0, description="Global list cap")

    # Remote store
    remote_timeout_seconds: float = Field(default=10.0, gt=0, description="Per-call timeout")
    max_reconnect_attempts: int = Field(default=3, ge=0, description="Reconnects before giving up")

    # Mirror cache; None keeps every document ever seen
    cache_capacity: Optional[int] = Field(default=None, gt=0, description="LRU bound")

    # Audit trail
    audit_enabled: bool = Field(default=True)
    audit_kind: str = Field(default="audit_logs", description="Kind audit records are written to")
    audit_queue_size: int = Field(default=1000, gt=0, description="Pending audit records")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="text or json")

    model_config = {"env_prefix": "DOCMIRROR_"}

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "ClientSettings":
        if self.default_page_size <= self.max_page_size:
            return self
        if {"default_page_size", "max_page_size"} <= self.model_fields_set:
            raise ValueError(
                f"default_page_size ({self.default_page_size}) exceeds "
                f"max_page_size ({self.max_page_size})"
            )
        # The default follows the ceiling down
        self.default_page_size = self.max_page_size
        return self

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "docmirror configuration loaded",
            extra={
                "rate_limit": f"{self.rate_limit_max_requests}/{self.rate_limit_window_seconds:g}s",
                "max_page_size": self.max_page_size,
                "remote_timeout_seconds": self.remote_timeout_seconds,
                "cache_capacity": self.cache_capacity,
                "audit_enabled": self.audit_enabled,
            },
        )


def setup_logging(settings: ClientSettings) -> None:
    """Configure logging based on settings.

    Args:
        settings: Client settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = logging.Formatter(
            '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
        )
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
