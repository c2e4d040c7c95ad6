import asyncio
import logging
from pathlib import Path
from typing import Generic, Optional, Tuple, TypeVar

from rich.console import Console
from rich.markup import escape

from .errors import ChannelClosed, SinkError
from .models import ScanResponse
from .utils import status_colorizer

log = logging.getLogger("dirsweep.reporter")

T = TypeVar("T")

_CLOSED = object()


class Channel(Generic[T]):
    """
    Unbounded multi-producer, single-consumer queue.
    The channel closes when the last Sender handle is closed; the consumer
    sees every item sent before that and then ``None`` from recv().
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._senders = 0
        self._closed = False

    def sender(self) -> "Sender[T]":
        if self._closed:
            raise ChannelClosed("channel already closed")
        self._senders += 1
        return Sender(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def _release(self) -> None:
        self._senders -= 1
        if self._senders == 0:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def recv(self) -> Optional[T]:
        item = await self._queue.get()
        if item is _CLOSED:
            # keep returning None to anyone who asks again
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        item = await self.recv()
        if item is None:
            raise StopAsyncIteration
        return item


class Sender(Generic[T]):
    """A handle that can put items on a Channel; close() releases it."""

    def __init__(self, channel: Channel[T]):
        self._channel = channel
        self._open = True

    def send(self, item: T) -> None:
        if not self._open or self._channel.closed:
            raise ChannelClosed("send on a closed sender")
        self._channel._queue.put_nowait(item)

    def clone(self) -> "Sender[T]":
        if not self._open:
            raise ChannelClosed("clone of a closed sender")
        return self._channel.sender()

    def close(self) -> None:
        if self._open:
            self._open = False
            self._channel._release()

    @property
    def is_open(self) -> bool:
        return self._open

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self):
        return f"<Sender open={self._open} live={self._channel._senders}>"


class TerminalSink:
    def __init__(self, console: Console):
        self.console = console

    def write(self, resp: ScanResponse) -> None:
        line = (
            f"{status_colorizer(str(resp.status))} {resp.size:>10}c {escape(resp.url)}"
        )
        if resp.redirected_to:
            line += f" -> {escape(resp.redirected_to)}"
        if resp.issues:
            line += f" [dim]({escape('; '.join(resp.issues))})[/dim]"
        self.console.print(line, highlight=False)


class FileSink:
    """Appends one ``STATUS SIZE URL`` line per response, flushed per write."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fh = None

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")

    def write(self, resp: ScanResponse) -> None:
        if self._fh is None:
            self.open()
        self._fh.write(resp.as_line() + "\n")
        self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


def _write(sink, resp):
    try:
        sink.write(resp)
    except Exception as e:
        raise SinkError(f"{type(sink).__name__}: {e}") from e


async def spawn_terminal_reporter(
    rx: Channel[ScanResponse],
    sink,
    tx_file: Sender[ScanResponse],
    save_output: bool,
) -> int:
    """Render responses until the terminal channel closes; forward to the file channel."""
    log.debug("enter: spawn_terminal_reporter")
    count = 0
    try:
        async for resp in rx:
            try:
                _write(sink, resp)
            except SinkError as e:
                log.warning("%s", e)
            if save_output:
                tx_file.send(resp)
            count += 1
    finally:
        tx_file.close()
    log.debug("exit: spawn_terminal_reporter -> %d responses", count)
    return count


async def spawn_file_reporter(rx: Channel[ScanResponse], sink: FileSink) -> int:
    log.debug("enter: spawn_file_reporter(%s)", sink.path)
    count = 0
    try:
        async for resp in rx:
            try:
                _write(sink, resp)
            except SinkError as e:
                log.warning("%s", e)
                continue
            count += 1
    finally:
        sink.close()
    log.debug("exit: spawn_file_reporter -> %d responses", count)
    return count


def initialize(
    output: Optional[Path],
    save_output: bool,
    console: Console,
    terminal_sink=None,
    file_sink=None,
) -> Tuple[Sender, Sender, asyncio.Task, Optional[asyncio.Task]]:
    """
    Create both reporting channels and start their consumers.
    Returns (tx_term, tx_file, term_handle, file_handle); file_handle is None
    unless output was requested. Must be called with a running loop.
    """
    log.debug("enter: initialize(%s, %s)", output, save_output)

    term_chan: Channel[ScanResponse] = Channel()
    file_chan: Channel[ScanResponse] = Channel()
    tx_term = term_chan.sender()
    tx_file = file_chan.sender()

    term_handle = asyncio.create_task(
        spawn_terminal_reporter(
            term_chan, terminal_sink or TerminalSink(console), tx_file.clone(), save_output
        ),
        name="terminal-reporter",
    )

    file_handle = None
    if save_output:
        sink = file_sink or FileSink(output)
        file_handle = asyncio.create_task(
            spawn_file_reporter(file_chan, sink), name="file-reporter"
        )

    log.debug("exit: initialize")
    return tx_term, tx_file, term_handle, file_handle
