"""Core module - Shared configuration."""

from platemate.core.config import (
    DEFAULT_LOG_RETENTION_SECONDS,
    DEFAULT_MAX_CASCADE_DEPTH,
    DEFAULT_REQUEST_TIMEOUT,
    PlateMateConfig,
)

__all__ = [
    "DEFAULT_LOG_RETENTION_SECONDS",
    "DEFAULT_MAX_CASCADE_DEPTH",
    "DEFAULT_REQUEST_TIMEOUT",
    "PlateMateConfig",
]
