"""asyncssh-backed session layer with automatic retry."""

import logging

import asyncssh

from ssh_runas.exceptions import RunAsError

logger = logging.getLogger(__name__)


class SessionError(RunAsError):
    """Failed to establish SSH session after retry."""

    def __init__(self, host: str, original_error: Exception):
        """Initialize session error.

        Args:
            host: Host the session was opened against
            original_error: Original exception that caused the failure
        """
        self.host = host
        self.original_error = original_error
        super().__init__(f"Cannot connect to {host}: {original_error}")


class SSHCommandHandle:
    """A running remote command backed by an asyncssh process."""

    def __init__(self, process: "asyncssh.SSHClientProcess[bytes]") -> None:
        self._process = process

    @property
    def stdout(self) -> "asyncssh.SSHReader[bytes]":
        """Standard output channel."""
        return self._process.stdout

    @property
    def stderr(self) -> "asyncssh.SSHReader[bytes]":
        """Standard error channel."""
        return self._process.stderr

    @property
    def is_complete(self) -> bool:
        """Whether the channel has closed."""
        return self._process.is_closing()

    async def wait(self) -> None:
        """Wait for the remote command to exit and its channel to close."""
        await self._process.wait(check=False)

    def cancel(self) -> None:
        """Send TERM to the remote command and close the channel."""
        try:
            self._process.terminate()
        except (asyncssh.Error, OSError) as e:
            logger.debug("Terminate request not delivered: %s", e)
        self._process.close()

    def finalize(self) -> tuple[int | None, str | None]:
        """Map asyncssh's exit status to (exit code, signal name).

        asyncssh reports an exit status of -1 alongside an exit signal, so
        that status is dropped rather than reported as a real exit code.
        """
        exit_status = self._process.exit_status
        exit_signal = self._process.exit_signal

        if exit_signal:
            signal_name = exit_signal[0]
            exit_code = None if exit_status in (None, -1) else exit_status
            return (exit_code, signal_name)
        return (exit_status, None)


class SSHSession:
    """One authenticated asyncssh connection."""

    def __init__(self, host: str, connection: asyncssh.SSHClientConnection) -> None:
        self.host = host
        self._connection = connection

    async def start_command(self, command: str) -> SSHCommandHandle:
        """Start ``command`` with binary stdout/stderr."""
        logger.debug("Starting remote command on %s", self.host)
        process = await self._connection.create_process(command, encoding=None)
        return SSHCommandHandle(process)

    async def close(self) -> None:
        """Close the connection and wait for the transport to shut down."""
        logger.debug("Closing SSH session to %s", self.host)
        self._connection.close()
        await self._connection.wait_closed()


class AsyncSSHSessionFactory:
    """Opens password-authenticated asyncssh sessions."""

    def __init__(
        self,
        known_hosts: str | None = None,
        strict_host_key_checking: bool = True,
        connect_timeout: int = 30,
        retries: int = 1,
    ) -> None:
        """Initialize factory.

        Args:
            known_hosts: Path to known_hosts file, or None to disable verification
            strict_host_key_checking: Whether to reject unknown host keys
            connect_timeout: Seconds allowed for connect and authentication
            retries: Extra attempts after the first connection failure
        """
        self._known_hosts = known_hosts
        self._strict_host_key = strict_host_key_checking
        self._connect_timeout = connect_timeout
        self._retries = max(retries, 0)

        if self._known_hosts is None:
            logger.warning(
                "SSH host key verification DISABLED - vulnerable to MITM attacks. "
                "Set SSH_RUNAS_KNOWN_HOSTS to a valid known_hosts file path."
            )
        else:
            logger.debug(
                "SSH host key verification enabled (known_hosts=%s, strict=%s)",
                self._known_hosts,
                self._strict_host_key,
            )

    async def connect(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
    ) -> SSHSession:
        """Open a session, retrying after a failed attempt.

        Raises:
            SessionError: If every attempt fails
        """
        attempt = 0
        while True:
            try:
                conn = await self._open(host, port, username, password)
            except Exception as e:
                if attempt >= self._retries:
                    logger.error("Connection to %s:%d failed: %s", host, port, e)
                    raise SessionError(host, e) from e
                attempt += 1
                logger.warning(
                    "Connection to %s:%d failed: %s, retrying (%d/%d)",
                    host,
                    port,
                    e,
                    attempt,
                    self._retries,
                )
                continue

            logger.info("SSH session established to %s@%s:%d", username, host, port)
            return SSHSession(host, conn)

    async def _open(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
    ) -> asyncssh.SSHClientConnection:
        logger.info("Opening SSH connection to %s@%s:%d", username, host, port)
        try:
            return await asyncssh.connect(
                host,
                port=port,
                username=username,
                password=password,
                known_hosts=self._known_hosts,
                connect_timeout=self._connect_timeout,
            )
        except asyncssh.HostKeyNotVerifiable as e:
            if self._strict_host_key:
                logger.error(
                    "Host key verification failed for %s: %s. "
                    "Add the host key to %s or set "
                    "SSH_RUNAS_STRICT_HOST_KEY_CHECKING=false",
                    host,
                    e,
                    self._known_hosts,
                )
                raise
            logger.warning(
                "Host key not verified for %s (strict mode disabled): %s",
                host,
                e,
            )
            return await asyncssh.connect(
                host,
                port=port,
                username=username,
                password=password,
                known_hosts=None,
                connect_timeout=self._connect_timeout,
            )
