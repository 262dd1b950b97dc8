"""Append-only sink for build and application output."""

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

logger = logging.getLogger(__name__)

# Pipes are read in fixed-size chunks; StreamReader.readline() gives up on
# lines longer than its 64 KiB limit.
READ_CHUNK_SIZE = 65536


class OutputSource(str, Enum):
    """Which pipe a line came from."""

    STDOUT = "stdout"
    STDERR = "stderr"
    SYSTEM = "system"  # lines written by qtreload itself


@dataclass
class OutputLine:
    """A single line of output on a channel."""

    line: str
    source: OutputSource = OutputSource.STDOUT
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    line_number: int = 0


class OutputBuffer:
    """Rolling per-channel buffer of process output.

    Channels are free-form names such as ``"build"``, ``"app"`` or
    ``"preview"``. Writers never block: subscriber queues are bounded, and
    when one is full its oldest line is dropped.
    """

    def __init__(self, max_lines: int = 2000, queue_size: int = 500):
        """Initialize the output buffer.

        Args:
            max_lines: Maximum lines to retain per channel.
            queue_size: Capacity of each subscriber queue.
        """
        self.max_lines = max_lines
        self.queue_size = queue_size
        self._buffers: dict[str, deque[OutputLine]] = {}
        self._line_counters: dict[str, int] = {}
        self._subscribers: dict[str, dict[str, asyncio.Queue]] = {}  # channel -> {sub_id: queue}
        self._overflowing: set[str] = set()
        self._lock = asyncio.Lock()

    async def write(
        self,
        channel: str,
        line: str,
        source: OutputSource = OutputSource.STDOUT,
    ) -> OutputLine:
        """Append a line to a channel and fan it out to subscribers."""
        async with self._lock:
            if channel not in self._buffers:
                self._buffers[channel] = deque(maxlen=self.max_lines)
                self._line_counters[channel] = 0

            self._line_counters[channel] += 1
            output_line = OutputLine(
                line=line,
                source=source,
                line_number=self._line_counters[channel],
            )
            self._buffers[channel].append(output_line)

            for queue in self._subscribers.get(channel, {}).values():
                try:
                    queue.put_nowait(output_line)
                    self._overflowing.discard(channel)
                except asyncio.QueueFull:
                    if channel not in self._overflowing:
                        logger.warning(f"Output queue full for channel {channel}, dropping oldest line")
                        self._overflowing.add(channel)
                    queue.get_nowait()
                    queue.put_nowait(output_line)

            return output_line

    async def get_recent(self, channel: str, limit: int = 100, since_line: int = 0) -> list[OutputLine]:
        """Get recent lines for a channel.

        Args:
            channel: The channel name.
            limit: Maximum number of lines to return.
            since_line: Only return lines after this line number.
        """
        async with self._lock:
            lines = list(self._buffers.get(channel, ()))
            if since_line > 0:
                lines = [ln for ln in lines if ln.line_number > since_line]
            return lines[-limit:]

    async def subscribe(self, channel: str, subscriber_id: str) -> asyncio.Queue:
        """Subscribe to a channel and return the queue that receives its lines."""
        async with self._lock:
            queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
            self._subscribers.setdefault(channel, {})[subscriber_id] = queue
            return queue

    async def unsubscribe(self, channel: str, subscriber_id: str) -> None:
        async with self._lock:
            subscribers = self._subscribers.get(channel)
            if subscribers is None:
                return
            subscribers.pop(subscriber_id, None)
            if not subscribers:
                del self._subscribers[channel]

    async def clear(self, channel: str) -> None:
        """Clear a channel, e.g. before a new build run."""
        async with self._lock:
            if channel in self._buffers:
                self._buffers[channel].clear()
                self._line_counters[channel] = 0


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r")


async def iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """Yield decoded lines from a process pipe until EOF.

    Lines of any length are returned whole. A trailing line without a
    newline is yielded once the pipe closes.
    """
    pending = b""
    while chunk := await stream.read(READ_CHUNK_SIZE):
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for raw in lines:
            yield _decode(raw)
    if pending:
        yield _decode(pending)
