import asyncio
import logging
import os
import sys
import threading
import time
from concurrent.futures import Executor
from typing import Callable, Optional

from .utils import SLEEP_DURATION, stdin_is_tty

log = logging.getLogger("dirsweep.controller")

# key that toggles pause / resume
PAUSE_KEY = "\n"

KeyReader = Callable[[float], Optional[str]]


class AtomicFlag:
    """A boolean shared between the event loop and the controller thread."""

    def __init__(self, value: bool = False):
        self._event = threading.Event()
        self._lock = threading.Lock()
        if value:
            self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    def toggle(self) -> bool:
        with self._lock:
            if self._event.is_set():
                self._event.clear()
                return False
            self._event.set()
            return True

    def __bool__(self):
        return self.is_set()

    def __repr__(self):
        return f"AtomicFlag({self.is_set()})"


class PauseFlag(AtomicFlag):
    async def wait_while_paused(self, interval: float = SLEEP_DURATION) -> None:
        """Suspend the calling task for as long as the scan is paused."""
        while self.is_set():
            await asyncio.sleep(interval)


def _posix_key_reader() -> KeyReader:
    import select
    import termios
    import tty

    fd = sys.stdin.fileno()
    try:
        old = termios.tcgetattr(fd)
        tty.setcbreak(fd)
    except termios.error as e:
        log.warning("could not put terminal in cbreak mode: %s", e)
        old = None

    def read(timeout: float) -> Optional[str]:
        ready, _, _ = select.select([fd], [], [], timeout)
        if not ready:
            return None
        ch = os.read(fd, 1).decode("utf-8", "ignore")
        return "\n" if ch == "\r" else ch

    def restore():
        if old is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, old)

    read.restore = restore
    return read


def _windows_key_reader() -> KeyReader:
    import msvcrt

    def read(timeout: float) -> Optional[str]:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if msvcrt.kbhit():
                ch = msvcrt.getwch()
                return "\n" if ch == "\r" else ch
            time.sleep(0.05)
        return None

    return read


def _idle_reader(timeout: float) -> Optional[str]:
    time.sleep(timeout)
    return None


def default_key_reader() -> KeyReader:
    """Read keys from the terminal; without one (piped stdin) only tick."""
    if not stdin_is_tty():
        return _idle_reader
    if sys.platform.startswith("win"):
        return _windows_key_reader()
    return _posix_key_reader()


def terminal_input_handler(
    pause: AtomicFlag,
    complete: AtomicFlag,
    read_key: Optional[KeyReader] = None,
    interval: float = SLEEP_DURATION,
) -> None:
    """
    Blocking loop: every press of Enter toggles ``pause``; any other key is
    ignored. Each poll that times out checks ``complete``, which is the only
    way out. Run it on a worker thread, never on the event loop.
    """
    log.debug("enter: terminal_input_handler")
    if read_key is None:
        read_key = default_key_reader()

    try:
        while True:
            key = read_key(interval)
            if key is not None:
                if key == PAUSE_KEY:
                    paused = pause.toggle()
                    log.info("scan %s", "paused" if paused else "resumed")
            elif complete.is_set():
                break
    finally:
        restore = getattr(read_key, "restore", None)
        if restore is not None:
            restore()
    log.debug("exit: terminal_input_handler")


def spawn_terminal_input_handler(
    pause: AtomicFlag,
    complete: AtomicFlag,
    read_key: Optional[KeyReader] = None,
    interval: float = SLEEP_DURATION,
    executor: Optional[Executor] = None,
) -> asyncio.Future:
    loop = asyncio.get_running_loop()
    return loop.run_in_executor(
        executor, terminal_input_handler, pause, complete, read_key, interval
    )
