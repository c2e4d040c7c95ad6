import asyncio
import logging
from typing import AbstractSet, List, Optional, Set, Tuple
from urllib.parse import urljoin

import aiohttp
from rich.console import Console
from rich.progress import Progress

from . import heuristics
from .controller import PauseFlag
from .errors import ChannelClosed
from .models import ScanConfig, ScanResponse
from .reporter import Sender
from .utils import STDERR, get_current_depth

log = logging.getLogger("dirsweep.scanner")

SNIPPET = 2048


def _dir_key(url):
    return url.rstrip("/") + "/"


class DirScanner:
    """
    Scans one base url with the shared wordlist and recurses into every
    directory it finds. scan_url() returns only after all of its sub-scans
    have returned.
    """

    def __init__(
        self,
        config: ScanConfig,
        session: aiohttp.ClientSession,
        pause: PauseFlag,
        progress: Optional[Progress] = None,
        console: Console = STDERR,
    ):
        self.config = config
        self.session = session
        self.pause = pause
        self.progress = progress
        self.console = console
        self.sem = asyncio.Semaphore(config.threads)
        self.scanned: Set[str] = set()
        self.errors = 0

    def create_urls(self, base: str, word: str) -> List[str]:
        base = _dir_key(base)
        word = word.lstrip("/")
        urls = [base + word]
        if self.config.add_slash and not word.endswith("/"):
            urls.append(base + word + "/")
        for ext in self.config.extensions:
            urls.append(f"{base}{word.rstrip('/')}.{ext}")
        return urls

    def reached_max_depth(self, url: str, base_depth: int) -> bool:
        if self.config.depth == 0:
            return False
        return get_current_depth(url) - base_depth >= self.config.depth

    async def make_request(self, url: str) -> Optional[Tuple[ScanResponse, Optional[str]]]:
        """Probe one url. Returns (response, Location header) or None on error."""
        async with self.sem:
            await self.pause.wait_while_paused()
            try:
                async with self.session.get(
                    url, allow_redirects=self.config.follow_redirects
                ) as r:
                    body = await r.read()
                    loc = r.headers.get("Location")
                    snippet = (body[:SNIPPET] or b"").decode(errors="ignore")
                    issues = []
                    if heuristics.is_directory_listing(r.status, snippet):
                        issues.append("Directory listing enabled")
                    resp = ScanResponse(
                        url=url,
                        status=r.status,
                        size=len(body or b""),
                        redirected_to=loc,
                        issues=issues,
                    )
                    return resp, loc
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                self.errors += 1
                log.debug("request to %s failed: %r", url, e)
                return None

    def _send(self, tx, resp):
        try:
            tx.send(resp)
        except ChannelClosed as e:
            log.error("could not report %s: %s", resp.url, e)

    def _handle(self, result, wildcard, base_depth, tx_term) -> Optional[str]:
        """Report one probe result; return a directory to recurse into, if any."""
        if result is None:
            return None
        resp, loc = result

        if wildcard is not None and wildcard.matches(resp.status, resp.size):
            log.debug("filtered wildcard response %s", resp.url)
            return None

        if resp.status in self.config.status_codes:
            self._send(tx_term, resp)

        if not heuristics.is_directory(resp.url, resp.status, loc):
            return None
        new_dir = _dir_key(urljoin(resp.url, loc) if loc else resp.url)
        if new_dir in self.scanned or self.reached_max_depth(new_dir, base_depth):
            return None
        self.scanned.add(new_dir)
        return new_dir

    async def scan_url(
        self,
        target: str,
        words: AbstractSet[str],
        base_depth: int,
        tx_term: Sender,
        tx_file: Sender,
    ) -> None:
        log.debug("enter: scan_url(%s, wordlist[%d words...], %d)", target, len(words), base_depth)
        self.scanned.add(_dir_key(target))

        wildcard = await heuristics.wildcard_test(
            self.session, target, self.config.status_codes, self.console
        )

        urls = [u for w in words for u in self.create_urls(target, w)]
        bar = None
        if self.progress is not None:
            bar = self.progress.add_task(target, total=len(urls))

        tasks = [asyncio.create_task(self.make_request(u)) for u in urls]
        recursions: List[asyncio.Task] = []
        finished = False

        try:
            for fut in asyncio.as_completed(tasks):
                try:
                    new_dir = self._handle(await fut, wildcard, base_depth, tx_term)
                except Exception:
                    # one bad response must not end the scan
                    log.exception("error handling a response under %s", target)
                    new_dir = None
                if bar is not None:
                    self.progress.advance(bar)
                if new_dir is None:
                    continue
                log.info("recursing into %s", new_dir)
                recursions.append(
                    asyncio.create_task(
                        self.scan_url(new_dir, words, base_depth, tx_term, tx_file)
                    )
                )
            finished = True
        finally:
            pending = [t for t in tasks if not t.done()]
            if not finished:
                pending += [t for t in recursions if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            if bar is not None:
                self.progress.remove_task(bar)

            # sub-scans must finish before this scan counts as done
            for res in await asyncio.gather(*recursions, return_exceptions=True):
                if isinstance(res, BaseException):
                    log.error("recursive scan under %s failed: %r", target, res)

        log.debug("exit: scan_url(%s)", target)
