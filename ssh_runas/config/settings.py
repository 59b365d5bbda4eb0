"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings from environment.

    Handles parsing, validation, and defaults for all env vars.
    """

    # Relay timing
    poll_interval_ms: int = field(default=500)
    shutdown_timeout_ms: int = field(default=2000)

    # Session
    connect_timeout: int = field(default=30)
    connect_retries: int = field(default=1)
    known_hosts: str | None = field(default=None)
    strict_host_key_checking: bool = field(default=True)

    # Locking
    atomic_lock: bool = field(default=False)

    # Logging
    log_level: str | None = field(default=None)
    log_colors: bool = field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from SSH_RUNAS_* environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            poll_interval_ms=cls._get_int("SSH_RUNAS_POLL_INTERVAL_MS", 500, minimum=1),
            shutdown_timeout_ms=cls._get_int("SSH_RUNAS_SHUTDOWN_TIMEOUT_MS", 2000),
            connect_timeout=cls._get_int("SSH_RUNAS_CONNECT_TIMEOUT", 30, minimum=1),
            connect_retries=cls._get_int("SSH_RUNAS_CONNECT_RETRIES", 1),
            known_hosts=os.getenv("SSH_RUNAS_KNOWN_HOSTS") or None,
            strict_host_key_checking=cls._get_bool("SSH_RUNAS_STRICT_HOST_KEY_CHECKING", True),
            atomic_lock=cls._get_bool("SSH_RUNAS_ATOMIC_LOCK", False),
            log_level=cls._get_log_level(),
            log_colors=cls._get_bool("SSH_RUNAS_LOG_COLORS", True),
        )

    @property
    def poll_interval(self) -> float:
        """Relay poll interval in seconds."""
        return self.poll_interval_ms / 1000

    @property
    def shutdown_timeout(self) -> float:
        """Relay shutdown bound after cancellation, in seconds."""
        return self.shutdown_timeout_ms / 1000

    @staticmethod
    def _get_int(key: str, default: int, minimum: int = 0) -> int:
        """Get integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or invalid
            minimum: Smallest accepted value

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

        if parsed < minimum:
            logger.warning(
                "%s must be >= %d, got %d. Using default: %d",
                key,
                minimum,
                parsed,
                default,
            )
            return default
        return parsed

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _get_log_level() -> str | None:
        """Get explicit log level override.

        Returns:
            Upper-cased level name, or None to derive it from verbosity
        """
        value = os.getenv("SSH_RUNAS_LOG_LEVEL", "").strip().upper()
        if not value:
            return None
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            logger.warning("Invalid SSH_RUNAS_LOG_LEVEL: %s, ignoring", value)
            return None
        return value
