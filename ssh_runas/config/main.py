"""Run configuration.

One immutable RunConfig describes a single invocation: what to run,
where, as whom, and which lock marker guards it.
"""

import logging
import os
from dataclasses import dataclass, field

from ssh_runas.exceptions import RunAsError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 22


class ConfigInvalid(RunAsError):
    """One or more required configuration fields are missing."""

    def __init__(self, errors: list[str]):
        """Initialize validation error.

        Args:
            errors: Every violated field, one message each
        """
        self.errors = list(errors)
        details = "\n".join(f"  - {error}" for error in self.errors)
        super().__init__(f"Errors when validating RunConfig:\n{details}")


@dataclass(frozen=True)
class RunConfig:
    """Configuration for one remote command run.

    ``username`` and ``password`` hold resolved secrets, never the names
    of the environment variables they came from.
    """

    command: str
    host: str
    username: str = field(repr=False)
    password: str = field(repr=False)
    port: int = DEFAULT_PORT
    lock_file: str = ""

    @classmethod
    def from_env_names(
        cls,
        command: str,
        host: str,
        user_env: str,
        pass_env: str,
        port: int = DEFAULT_PORT,
        lock_file: str = "",
    ) -> "RunConfig":
        """Build a config whose credentials come from environment variables.

        Args:
            command: Remote command line
            host: Server host name or address
            user_env: Name of the variable holding the username
            pass_env: Name of the variable holding the password
            port: Server port
            lock_file: Lock marker path, empty to disable locking

        Returns:
            Validated RunConfig

        Raises:
            ConfigInvalid: If a variable name is blank or its value is empty
        """
        errors: list[str] = []

        username = cls._resolve_secret(user_env, "user_env", "username", errors)
        password = cls._resolve_secret(pass_env, "pass_env", "password", errors)

        config = cls(
            command=command or "",
            host=host or "",
            username=username,
            password=password,
            port=port,
            lock_file=lock_file or "",
        )
        errors.extend(config.collect_errors(check_credentials=False))
        if errors:
            raise ConfigInvalid(errors)
        return config

    @staticmethod
    def _resolve_secret(var_name: str, option: str, what: str, errors: list[str]) -> str:
        if not var_name or not var_name.strip():
            errors.append(f"{option} can not be null, empty, or whitespace.")
            return ""
        value = os.getenv(var_name, "")
        if not value:
            errors.append(f"Given {what} environment variable is empty!")
        return value

    def collect_errors(self, check_credentials: bool = True) -> list[str]:
        """List every violated field without raising.

        Args:
            check_credentials: Also check username and password

        Returns:
            Error messages, empty when the config is valid
        """
        errors: list[str] = []

        if not self.command or not self.command.strip():
            errors.append("command can not be null, empty, or whitespace.")

        if not self.host or not self.host.strip():
            errors.append("host can not be null, empty, or whitespace.")

        if not 0 < self.port < 65536:
            errors.append(f"port must be between 1 and 65535, got {self.port}.")

        if check_credentials:
            if not self.username or not self.username.strip():
                errors.append("username can not be null, empty, or whitespace.")
            if not self.password:
                errors.append("password can not be empty.")

        return errors

    def validate(self) -> None:
        """Validate the config.

        Raises:
            ConfigInvalid: Listing every violated field
        """
        errors = self.collect_errors()
        if errors:
            logger.debug("Config validation failed with %d error(s)", len(errors))
            raise ConfigInvalid(errors)

    @property
    def locking_enabled(self) -> bool:
        """Whether a lock marker guards this run."""
        return bool(self.lock_file)
