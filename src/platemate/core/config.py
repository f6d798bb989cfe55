"""Shared configuration for platemate.

This module defines the configuration used by the server, the engine and
the CLI. Values come from environment variables with sensible defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Cascades deeper than this are treated as cyclic synchronizations.
DEFAULT_MAX_CASCADE_DEPTH = 32
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_LOG_RETENTION_SECONDS = 300


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PlateMateConfig:
    """Configuration for a PlateMate server process.

    Attributes:
        db_path: Path to the SQLite database backing concept state.
        log_path: Path to the server log file.
        base_url: URL prefix under which concept routes are exposed.
        request_timeout: Seconds a request cascade may run before 504.
        max_cascade_depth: Maximum causal depth of a synchronization cascade.
        log_retention_seconds: Age after which retained chains are pruned.
        retain_log: Keep chains in the action log after a request completes.
    """

    db_path: Path = Path("platemate.db")
    log_path: Path = Path("platemate-server.log")
    base_url: str = "/api"
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_cascade_depth: int = DEFAULT_MAX_CASCADE_DEPTH
    log_retention_seconds: int = DEFAULT_LOG_RETENTION_SECONDS
    retain_log: bool = False

    def __post_init__(self) -> None:
        """Normalize paths and the base URL."""
        self.db_path = Path(self.db_path)
        self.log_path = Path(self.log_path)
        self.base_url = "/" + self.base_url.strip("/") if self.base_url.strip("/") else ""
        if self.max_cascade_depth < 1:
            raise ValueError("max_cascade_depth must be at least 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

    @classmethod
    def from_env(cls) -> PlateMateConfig:
        """Build configuration from PLATEMATE_* environment variables."""
        return cls(
            db_path=Path(os.environ.get("PLATEMATE_DB_PATH", "platemate.db")),
            log_path=Path(os.environ.get("PLATEMATE_LOG_PATH", "platemate-server.log")),
            base_url=os.environ.get("PLATEMATE_BASE_URL", "/api"),
            request_timeout=float(
                os.environ.get("PLATEMATE_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT))
            ),
            max_cascade_depth=int(
                os.environ.get("PLATEMATE_MAX_CASCADE_DEPTH", str(DEFAULT_MAX_CASCADE_DEPTH))
            ),
            log_retention_seconds=int(
                os.environ.get(
                    "PLATEMATE_LOG_RETENTION_SECONDS", str(DEFAULT_LOG_RETENTION_SECONDS)
                )
            ),
            retain_log=_env_bool("PLATEMATE_RETAIN_LOG", False),
        )

    def route_for(self, concept: str, operation: str) -> str:
        """Get the full HTTP route of a concept operation.

        Returns:
            Route such as "/api/UserManagement/create_user".
        """
        return f"{self.base_url}/{concept}/{operation}"
