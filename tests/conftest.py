"""Shared fakes for the session layer."""

import asyncio
import io
from pathlib import Path

import pytest

from ssh_runas.config import RunConfig, Settings
from ssh_runas.services.connection import SessionError


class FakeSource:
    """Byte source fed by the test, one chunk per read."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[bytes | Exception | None] = asyncio.Queue()
        self._eof = False
        self.reads = 0

    def feed(self, data: bytes) -> None:
        self._queue.put_nowait(data)

    def feed_eof(self) -> None:
        self._queue.put_nowait(None)

    def feed_error(self, error: Exception) -> None:
        self._queue.put_nowait(error)

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        if self._eof:
            return b""
        item = await self._queue.get()
        if item is None:
            self._eof = True
            return b""
        if isinstance(item, Exception):
            raise item
        return item


class FakeSink(io.BytesIO):
    """In-memory sink that counts flushes."""

    def __init__(self) -> None:
        super().__init__()
        self.flushes = 0

    def flush(self) -> None:
        self.flushes += 1
        super().flush()


class BrokenSink:
    """Sink whose writes always fail."""

    def write(self, data: bytes) -> int:
        raise BrokenPipeError("sink closed")

    def flush(self) -> None:
        pass


class FakeHandle:
    """Remote command driven from the test."""

    def __init__(
        self,
        exit_code: int | None = 0,
        exit_signal: str | None = None,
        wait_error: Exception | None = None,
        ignore_cancel: bool = False,
    ) -> None:
        self.stdout = FakeSource()
        self.stderr = FakeSource()
        self.exit_code = exit_code
        self.exit_signal = exit_signal
        self.wait_error = wait_error
        self.ignore_cancel = ignore_cancel
        self.cancel_calls = 0
        self.finalized = False
        self._done = asyncio.Event()

    @property
    def is_complete(self) -> bool:
        return self._done.is_set()

    async def wait(self) -> None:
        await self._done.wait()
        if self.wait_error is not None:
            raise self.wait_error

    def finish(self, eof: bool = True) -> None:
        if eof:
            self.stdout.feed_eof()
            self.stderr.feed_eof()
        self._done.set()

    def cancel(self) -> None:
        self.cancel_calls += 1
        if not self.ignore_cancel:
            self._done.set()

    def finalize(self) -> tuple[int | None, str | None]:
        self.finalized = True
        return (self.exit_code, self.exit_signal)


class FakeSession:
    def __init__(self, handle: FakeHandle) -> None:
        self.handle = handle
        self.commands: list[str] = []
        self.closed = False

    async def start_command(self, command: str) -> FakeHandle:
        self.commands.append(command)
        return self.handle

    async def close(self) -> None:
        self.closed = True


class FakeSessionFactory:
    """Hands out one FakeSession, or fails like an unreachable host."""

    def __init__(
        self,
        handle: FakeHandle | None = None,
        error: Exception | None = None,
        lock_file: str = "",
    ) -> None:
        self.handle = handle or FakeHandle()
        self.session = FakeSession(self.handle)
        self.error = error
        self.lock_file = lock_file
        self.calls: list[tuple[str, int, str, str]] = []
        self.lock_existed_at_connect: bool | None = None

    async def connect(self, host: str, port: int, username: str, password: str) -> FakeSession:
        self.calls.append((host, port, username, password))
        if self.lock_file:
            self.lock_existed_at_connect = Path(self.lock_file).exists()
        if self.error is not None:
            raise SessionError(host, self.error)
        return self.session


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with short poll and shutdown intervals."""
    return Settings(poll_interval_ms=20, shutdown_timeout_ms=300)


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    """Path for a lock marker that does not exist yet."""
    return tmp_path / "run.lock"


@pytest.fixture
def run_config(lock_path: Path) -> RunConfig:
    """Valid config guarded by lock_path."""
    return RunConfig(
        command="make install",
        host="build.example.com",
        username="deploy",
        password="hunter2",
        port=2222,
        lock_file=str(lock_path),
    )
