import asyncio
import logging
import sys
from typing import BinaryIO, Iterator, List, Optional

from .errors import InputStreamError
from .models import ScanConfig

log = logging.getLogger("dirsweep.targets")


def read_targets(stream: BinaryIO) -> Iterator[str]:
    """Lazily yield one target per line of ``stream`` until EOF, in order."""
    for lineno, raw in enumerate(stream, 1):
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InputStreamError(f"line {lineno}: {e}") from e
        target = line.rstrip("\r\n").strip()
        if target:
            yield target


async def get_targets(config: ScanConfig, stream: Optional[BinaryIO] = None) -> List[str]:
    log.debug("enter: get_targets")

    if config.stdin:
        # cat sites | dirsweep --stdin
        src = stream if stream is not None else sys.stdin.buffer
        targets = await asyncio.to_thread(lambda: list(read_targets(src)))
    else:
        targets = [config.target_url]

    log.debug("exit: get_targets -> %s", targets)
    return targets
