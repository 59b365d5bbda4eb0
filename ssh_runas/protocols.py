"""Protocol interfaces for the session layer.

The command runner never speaks SSH itself. It depends on these
abstractions, and the asyncssh-backed implementation lives in
``ssh_runas.services.connection``.

Usage Example:

    from ssh_runas.protocols import SessionFactory

    async def run(factory: SessionFactory) -> None:
        session = await factory.connect("host", 22, "user", "secret")
        handle = await session.start_command("uptime")
        await handle.wait()

    # Tests pass any object with the same shape
    class FakeFactory:
        async def connect(self, host, port, username, password):
            return FakeSession()
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ByteSource(Protocol):
    """One direction of remote output (stdout or stderr)."""

    async def read(self, n: int = -1) -> bytes:
        """Read up to ``n`` bytes.

        Returns:
            The bytes read, or ``b""`` once the channel reached EOF.
        """
        ...


@runtime_checkable
class ByteSink(Protocol):
    """Local destination for relayed output."""

    def write(self, data: bytes) -> object:
        """Write raw bytes."""
        ...

    def flush(self) -> None:
        """Push buffered bytes to the underlying file."""
        ...


@runtime_checkable
class CommandHandle(Protocol):
    """A remote command started through a session.

    Example implementation:
        class MyHandle:
            stdout: ByteSource
            stderr: ByteSource

            async def wait(self) -> None:
                # Block until the remote side reports termination
                ...

            def cancel(self) -> None:
                # Ask the remote side to stop
                ...

            def finalize(self) -> tuple[int | None, str | None]:
                return (0, None)
    """

    @property
    def stdout(self) -> ByteSource:
        """Standard output channel."""
        ...

    @property
    def stderr(self) -> ByteSource:
        """Standard error channel."""
        ...

    @property
    def is_complete(self) -> bool:
        """Whether the remote command has terminated."""
        ...

    async def wait(self) -> None:
        """Wait for the remote command to terminate."""
        ...

    def cancel(self) -> None:
        """Request termination of the remote command.

        Note:
            Safe to call more than once and after completion.
        """
        ...

    def finalize(self) -> tuple[int | None, str | None]:
        """Reap the terminal status of the command.

        Returns:
            Tuple of (exit code, exit signal name). Either may be None.
        """
        ...


@runtime_checkable
class Session(Protocol):
    """An authenticated connection able to start one command."""

    async def start_command(self, command: str) -> CommandHandle:
        """Start ``command`` without waiting for it to finish.

        Returns once the remote side accepted the request.
        """
        ...

    async def close(self) -> None:
        """Close the session and release the transport."""
        ...


@runtime_checkable
class SessionFactory(Protocol):
    """Opens sessions to remote hosts."""

    async def connect(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
    ) -> Session:
        """Open an authenticated session.

        Args:
            host: Host name or address
            port: TCP port
            username: Login name
            password: Login password

        Returns:
            Open session

        Raises:
            SessionError: If the session cannot be established
        """
        ...


__all__ = [
    "ByteSink",
    "ByteSource",
    "CommandHandle",
    "Session",
    "SessionFactory",
]
