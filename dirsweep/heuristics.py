import asyncio
import logging
import random
import string
from typing import List, Optional
from urllib.parse import urljoin

import aiohttp
from rich.console import Console

from .utils import STDERR, cprint, module_colorizer, status_colorizer

log = logging.getLogger("dirsweep.heuristics")

REDIRECTS = (301, 302, 303, 307, 308)


def _rand_token(n=24):
    return "".join(random.choice(string.ascii_lowercase) for _ in range(n))


def is_directory_listing(status: int, body_snippet: str) -> bool:
    low = (body_snippet or "").lower()
    if status != 200:
        return False
    return "index of /" in low or ("parent directory" in low and "<title>index of" in low)


def is_directory(url: str, status: int, location: Optional[str]) -> bool:
    """
    Redirects to the same url with a trailing slash, and 2xx/403 answers for
    a url that already ends in '/', are treated as directories.
    """
    if status in REDIRECTS:
        if not location:
            return False
        try:
            return urljoin(url, location) == url + "/"
        except ValueError:
            log.debug("malformed Location %r from %s", location, url)
            return False
    if 200 <= status < 300 or status == 403:
        return url.endswith("/")
    return False


class WildcardFilter:
    """Size of the answer a server gives for a path that cannot exist."""

    def __init__(self, status: int, size: int):
        self.status = status
        self.size = size

    def matches(self, status: int, size: Optional[int]) -> bool:
        if status != self.status or size is None:
            return False
        return abs(size - self.size) <= max(25, int(0.02 * self.size))

    def __repr__(self):
        return f"WildcardFilter(status={self.status}, size={self.size})"


async def wildcard_test(
    session: aiohttp.ClientSession,
    target: str,
    status_codes: List[int],
    console: Console = STDERR,
) -> Optional[WildcardFilter]:
    """
    Request a random path below ``target``; when it answers with a status the
    user asked for, return a filter for answers of that shape.
    """
    bogus = f"{target.rstrip('/')}/{_rand_token(18)}"
    try:
        async with session.get(bogus, allow_redirects=False) as r:
            body = await r.read()
            status, size = r.status, len(body or b"")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        log.debug("wildcard probe for %s failed: %s", target, e)
        return None

    if status not in status_codes:
        return None

    cprint(
        f"{status_colorizer('WLD')} {size:>10}c Wildcard response for {target} "
        f"(status {status}); filtering responses of this size",
        console,
    )
    log.info("wildcard detected for %s: status=%d size=%d", target, status, size)
    return WildcardFilter(status, size)


async def connectivity_test(
    session: aiohttp.ClientSession,
    targets: List[str],
    console: Console = STDERR,
) -> List[str]:
    """Keep the targets that answer a GET with any HTTP status, in input order."""
    log.debug("enter: connectivity_test(%s)", targets)

    async def check(target: str) -> bool:
        try:
            async with session.get(target, allow_redirects=False):
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            cprint(
                f"{status_colorizer('ERROR')} {module_colorizer('heuristics.connectivity_test')} "
                f"Could not connect to {target}, skipping...",
                console,
            )
            log.warning("could not connect to %s: %r", target, e)
            return False

    results = await asyncio.gather(*(check(t) for t in targets))
    good = [t for t, ok in zip(targets, results) if ok]

    if targets and not good:
        log.error("could not connect to any target provided")
        cprint(
            f"{status_colorizer('ERROR')} {module_colorizer('heuristics.connectivity_test')} "
            "Could not connect to any target provided",
            console,
        )

    log.debug("exit: connectivity_test -> %s", good)
    return good
