"""Real-time relay of one remote output channel to a local sink."""

import asyncio
import logging
from typing import Any

from ssh_runas.protocols import ByteSink, ByteSource

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024


class StreamRelay:
    """Copies bytes from one remote channel to one local sink.

    The relay polls with a bounded wait so it notices command completion
    and cancellation within one poll interval. A read still in flight when
    the wait expires is kept and resumed on the next poll, so no bytes are
    dropped between polls.
    """

    def __init__(
        self,
        source: ByteSource,
        sink: ByteSink,
        label: str,
        cancel_event: asyncio.Event,
        poll_interval: float = 0.5,
    ) -> None:
        """Initialize relay.

        Args:
            source: Remote output channel
            sink: Local destination (e.g. ``sys.stdout.buffer``)
            label: Name used in diagnostics (STDOUT, STDERR)
            cancel_event: Shared cancellation signal
            poll_interval: Seconds to wait for data before re-checking state
        """
        self.label = label
        self.bytes_relayed = 0
        self.cancelled = False
        self.failed = False
        self._source = source
        self._sink = sink
        self._cancel_event = cancel_event
        self._poll_interval = poll_interval
        self._pending: asyncio.Future[Any] | None = None
        self._eof = False

    async def run(self, completed: asyncio.Event) -> None:
        """Relay until EOF, then drain once after ``completed`` fires.

        Never raises for source or sink failures; those are logged and
        end this relay only.

        Args:
            completed: Set by the caller once the remote command terminated
        """
        try:
            while not self._eof:
                if self._cancel_event.is_set():
                    self._mark_cancelled()
                    return
                if completed.is_set():
                    break
                chunk = await self._next_chunk(self._poll_interval)
                if chunk is not None:
                    self._deliver(chunk)

            if not self._eof:
                await self._drain()
        except Exception as e:
            self.failed = True
            logger.warning(
                "%s stream failed. Output will stop, but the command is still running: %s",
                self.label,
                e,
            )
        finally:
            self._discard_pending()

        logger.debug("%s relay finished (%d bytes)", self.label, self.bytes_relayed)

    async def _drain(self) -> None:
        """Pick up output produced between the last poll and termination."""
        logger.debug("%s final drain", self.label)
        while not self._eof:
            if self._cancel_event.is_set():
                self._mark_cancelled()
                return
            chunk = await self._next_chunk(self._poll_interval)
            if chunk is None:
                logger.debug("%s drain idle for %.3fs, stopping", self.label, self._poll_interval)
                return
            self._deliver(chunk)

    async def _next_chunk(self, timeout: float) -> bytes | None:
        """Wait up to ``timeout`` for the next chunk.

        Returns:
            Chunk of bytes, ``b""`` at EOF, or None if nothing arrived
        """
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._source.read(CHUNK_SIZE))

        done, _ = await asyncio.wait({self._pending}, timeout=timeout)
        if not done:
            return None

        pending, self._pending = self._pending, None
        chunk: bytes = pending.result()
        if not chunk:
            self._eof = True
        return chunk

    def _deliver(self, chunk: bytes) -> None:
        if not chunk:
            return
        self._sink.write(chunk)
        self._sink.flush()
        self.bytes_relayed += len(chunk)

    def _mark_cancelled(self) -> None:
        self.cancelled = True
        logger.info("%s cancelled", self.label)

    def _discard_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
