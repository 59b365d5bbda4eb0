"""Remote command orchestration.

Run lifecycle:
    Idle -> Validating -> LockAcquired -> SessionOpen -> Executing
         -> Completed | Cancelled | Failed -> LockReleased

Once the lock is acquired it is released on every exit path, including
cancellation and unexpected errors. Only a hard kill of the process can
leave the marker behind.
"""

import asyncio
import logging
import sys
from enum import Enum
from typing import Any

from ssh_runas.config import HostKeyVerifier, RunConfig, Settings
from ssh_runas.exceptions import RunAsError
from ssh_runas.models import ExecutionResult
from ssh_runas.protocols import ByteSink, CommandHandle, Session, SessionFactory
from ssh_runas.services.connection import AsyncSSHSessionFactory, SessionError
from ssh_runas.services.lock import LockGuard
from ssh_runas.services.relay import StreamRelay

logger = logging.getLogger(__name__)


class Cancelled(RunAsError):
    """The run was cancelled before the remote command finished."""

    def __init__(self, message: str = "Command was cancelled.") -> None:
        super().__init__(message)


class RunState(Enum):
    """Lifecycle state of one orchestrator run."""

    IDLE = "idle"
    VALIDATING = "validating"
    LOCK_ACQUIRED = "lock_acquired"
    SESSION_OPEN = "session_open"
    EXECUTING = "executing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    LOCK_RELEASED = "lock_released"


class CommandOrchestrator:
    """Runs one remote command and relays its output.

    Example:
        >>> orchestrator = CommandOrchestrator(AsyncSSHSessionFactory())
        >>> result = await orchestrator.run(config, cancel_event)
        >>> result.exit_code
        0
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        lock_guard: LockGuard | None = None,
        settings: Settings | None = None,
        stdout: ByteSink | None = None,
        stderr: ByteSink | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            session_factory: Opens the SSH session
            lock_guard: Lock marker manager (default: non-atomic LockGuard)
            settings: Timing settings (default: Settings())
            stdout: Sink for remote stdout (default: sys.stdout.buffer)
            stderr: Sink for remote stderr (default: sys.stderr.buffer)
        """
        self._session_factory = session_factory
        self._lock_guard = lock_guard or LockGuard()
        self._settings = settings or Settings()
        self._stdout = stdout
        self._stderr = stderr
        self.state = RunState.IDLE
        self.outcome: RunState | None = None
        self.relays: list[StreamRelay] = []

    async def run(
        self,
        config: RunConfig,
        cancel_event: asyncio.Event | None = None,
    ) -> ExecutionResult:
        """Run ``config.command`` on ``config.host``.

        Args:
            config: What to run and where
            cancel_event: Set once to cancel the run

        Returns:
            Exit code or exit signal of the remote command

        Raises:
            ConfigInvalid: Before any lock or network activity
            LockHeld: Before any network activity
            SessionError: If the session cannot be opened
            Cancelled: If cancel_event fired before the command finished
        """
        if cancel_event is None:
            cancel_event = asyncio.Event()

        self._set_state(RunState.VALIDATING)
        try:
            config.validate()
            self._lock_guard.acquire(config.lock_file)
        except RunAsError:
            self.outcome = RunState.FAILED
            raise
        self._set_state(RunState.LOCK_ACQUIRED)

        try:
            result = await self._run_session(config, cancel_event)
            self.outcome = RunState.COMPLETED
            return result
        except Cancelled:
            self.outcome = RunState.CANCELLED
            raise
        except BaseException:
            self.outcome = RunState.FAILED
            raise
        finally:
            if self.outcome is not None:
                self._set_state(self.outcome)
            self._lock_guard.release(config.lock_file)
            self._set_state(RunState.LOCK_RELEASED)

    async def _run_session(
        self,
        config: RunConfig,
        cancel_event: asyncio.Event,
    ) -> ExecutionResult:
        if cancel_event.is_set():
            raise Cancelled("Command was cancelled before the session was opened.")

        session = await self._connect(config, cancel_event)
        self._set_state(RunState.SESSION_OPEN)

        try:
            if cancel_event.is_set():
                raise Cancelled("Command was cancelled before it was started.")
            handle = await session.start_command(config.command)
            self._set_state(RunState.EXECUTING)
            return await self._execute(handle, cancel_event)
        finally:
            await self._close_session(session)

    async def _connect(self, config: RunConfig, cancel_event: asyncio.Event) -> Session:
        """Open the session unless cancellation arrives first.

        Raises:
            SessionError: If the session cannot be opened
            Cancelled: If cancel_event fired while the session was opening
        """
        connect_task = asyncio.create_task(
            self._session_factory.connect(
                config.host,
                config.port,
                config.username,
                config.password,
            )
        )
        cancel_task = asyncio.create_task(cancel_event.wait())

        try:
            done, _ = await asyncio.wait(
                {connect_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            await self._discard_tasks({t for t in (connect_task, cancel_task) if not t.done()})

        if connect_task not in done:
            logger.info("Cancelled while connecting to %s:%d", config.host, config.port)
            raise Cancelled("Command was cancelled before the session was opened.")
        return connect_task.result()

    async def _execute(
        self,
        handle: CommandHandle,
        cancel_event: asyncio.Event,
    ) -> ExecutionResult:
        completed = asyncio.Event()
        poll_interval = self._settings.poll_interval

        self.relays = [
            StreamRelay(
                handle.stdout,
                self._stdout or sys.stdout.buffer,
                "STDOUT",
                cancel_event,
                poll_interval,
            ),
            StreamRelay(
                handle.stderr,
                self._stderr or sys.stderr.buffer,
                "STDERR",
                cancel_event,
                poll_interval,
            ),
        ]

        command_task = asyncio.create_task(self._wait_command(handle, completed))
        relay_tasks = [asyncio.create_task(relay.run(completed)) for relay in self.relays]
        cancel_task = asyncio.create_task(cancel_event.wait())
        remaining: set[asyncio.Task[Any]] = {command_task, *relay_tasks}

        try:
            while remaining:
                done, _ = await asyncio.wait(
                    remaining | {cancel_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if cancel_task in done:
                    await self._cancel(handle, remaining)
                    raise Cancelled()
                for task in done:
                    task.result()
                remaining -= done
        finally:
            await self._discard_tasks(remaining | {cancel_task})

        for relay in self.relays:
            if relay.failed:
                logger.warning("%s output is incomplete", relay.label)

        exit_code, exit_signal = handle.finalize()
        result = ExecutionResult(exit_code=exit_code, exit_signal=exit_signal)
        if result.is_ambiguous:
            logger.warning("Process exited without reporting an exit code or exit signal")
        else:
            logger.info("Process exited with %s", result.describe())
        return result

    @staticmethod
    async def _wait_command(handle: CommandHandle, completed: asyncio.Event) -> None:
        try:
            await handle.wait()
        finally:
            completed.set()

    async def _cancel(self, handle: CommandHandle, tasks: set[asyncio.Task[Any]]) -> None:
        """Stop the remote command and give the relays a bounded time to exit."""
        if handle.is_complete:
            logger.info("Command already finished, stopping output relays")
        else:
            logger.info("Cancelling command... send the signal again to exit right away.")
            handle.cancel()

        if not tasks:
            return

        timeout = self._settings.shutdown_timeout
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(
                "%d task(s) did not stop within %.1fs, abandoning them",
                len(pending),
                timeout,
            )
        logger.info("Command cancelled")

    @staticmethod
    async def _discard_tasks(tasks: set[asyncio.Task[Any]]) -> None:
        for task in tasks:
            if not task.done():
                task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.debug("Background task ended with error: %s", result)

    async def _close_session(self, session: Session) -> None:
        try:
            await asyncio.wait_for(session.close(), timeout=self._settings.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning("Session did not close within %.1fs", self._settings.shutdown_timeout)
        except Exception as e:
            logger.warning("Error while closing session: %s", e)

    def _set_state(self, state: RunState) -> None:
        logger.debug("Run state: %s -> %s", self.state.value, state.value)
        self.state = state


async def run_command(
    config: RunConfig,
    cancel_event: asyncio.Event | None = None,
    settings: Settings | None = None,
) -> ExecutionResult:
    """Run a command with the asyncssh session layer.

    Args:
        config: What to run and where
        cancel_event: Set once to cancel the run
        settings: Settings (default: from environment)

    Returns:
        Exit code or exit signal of the remote command

    Raises:
        ConfigInvalid: If config is incomplete
        LockHeld: If the lock marker already exists
        SessionError: If known_hosts is unusable or the session cannot be opened
        Cancelled: If cancel_event fired before the command finished
    """
    if settings is None:
        settings = Settings.from_env()

    config.validate()

    try:
        host_keys = HostKeyVerifier(
            known_hosts_path=settings.known_hosts,
            strict_checking=settings.strict_host_key_checking,
        )
    except FileNotFoundError as e:
        raise SessionError(config.host, e) from e

    factory = AsyncSSHSessionFactory(
        known_hosts=host_keys.get_known_hosts_path(),
        strict_host_key_checking=settings.strict_host_key_checking,
        connect_timeout=settings.connect_timeout,
        retries=settings.connect_retries,
    )
    orchestrator = CommandOrchestrator(
        factory,
        lock_guard=LockGuard(atomic=settings.atomic_lock),
        settings=settings,
    )
    return await orchestrator.run(config, cancel_event)
