import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import AbstractSet, Awaitable, BinaryIO, Callable, FrozenSet, List, Optional, Union

import aiohttp
import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from . import __version__, banner, heuristics, logger, reporter
from .controller import AtomicFlag, KeyReader, PauseFlag, spawn_terminal_input_handler
from .errors import ConfigError, InputStreamError, TaskJoinError
from .models import ScanConfig, load_config
from .reporter import Sender
from .scanner import DirScanner
from .targets import get_targets
from .utils import STDERR, get_current_depth, report_error
from .wordlists import get_unique_words_from_wordlist

log = logging.getLogger("dirsweep.main")

# scan_url(target, words, base_depth, tx_term, tx_file)
ScanFn = Callable[[str, AbstractSet[str], int, Sender, Sender], Awaitable[None]]
ConnectivityFn = Callable[[aiohttp.ClientSession, List[str]], Awaitable[List[str]]]

app = typer.Typer(
    name="dirsweep",
    help="Recursive content discovery: find hidden paths on web servers",
    add_completion=False,
)


async def load_wordlist(path: Union[str, Path]) -> FrozenSet[str]:
    """Read the wordlist off the event loop; an empty wordlist is a ConfigError."""
    words = await asyncio.to_thread(get_unique_words_from_wordlist, path)
    if not words:
        raise ConfigError(f"Did not find any words in {path}")
    return words


async def _scan_target(
    scan_fn: ScanFn,
    target: str,
    words: FrozenSet[str],
    base_depth: int,
    tx_term: Sender,
    tx_file: Sender,
) -> None:
    try:
        await scan_fn(target, words, base_depth, tx_term, tx_file)
    finally:
        tx_term.close()
        tx_file.close()


async def scan(
    targets: List[str],
    words: FrozenSet[str],
    tx_term: Sender,
    tx_file: Sender,
    scan_fn: ScanFn,
) -> int:
    """
    Spawn one task per target and wait for all of them.
    A failed task is logged and does not stop its siblings. Returns the
    number of tasks spawned.
    """
    log.debug("enter: scan(%s, %r, %r)", targets, tx_term, tx_file)

    tasks = []
    for target in targets:
        # the wordlist is shared by reference; each task gets its own sender handles
        base_depth = get_current_depth(target)
        task = asyncio.create_task(
            _scan_target(scan_fn, target, words, base_depth, tx_term.clone(), tx_file.clone()),
            name=f"scan {target}",
        )
        tasks.append(task)

    results = await asyncio.gather(*tasks, return_exceptions=True)
    for target, res in zip(targets, results):
        if isinstance(res, BaseException):
            log.error("%s", TaskJoinError(target, res))

    log.debug("exit: scan -> %d tasks", len(tasks))
    return len(tasks)


async def shutdown(
    tx_term: Sender,
    tx_file: Sender,
    term_handle: asyncio.Task,
    file_handle: Optional[asyncio.Task],
    complete: AtomicFlag,
    progress: Progress,
) -> None:
    """Close the reporting channels in order so no buffered response is lost."""
    # closing our terminal sender lets the terminal reporter's loop end
    tx_term.close()
    log.debug("closed terminal output handler's sender; awaiting its receiver")
    try:
        await term_handle
    except Exception as e:
        log.error("error awaiting terminal output handler's receiver: %s", e)
    log.debug("done awaiting terminal output handler's receiver")

    # the file sender exists whether or not -o was given
    tx_file.close()
    log.debug("closed file output handler's sender")
    if file_handle is not None:
        try:
            await file_handle
        except Exception as e:
            log.error("error awaiting file output handler's receiver: %s", e)
        log.debug("done awaiting file output handler's receiver")

    # lets the terminal input handler leave its loop
    complete.set()

    log.debug("exit: shutdown")
    # must stay last so the messages above are still visible
    progress.stop()


def _log_controller_exit(fut):
    if not fut.cancelled() and fut.exception() is not None:
        log.error("terminal input handler failed: %r", fut.exception())


def _session(config):
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=config.timeout),
        headers={"User-Agent": config.user_agent},
        connector=aiohttp.TCPConnector(ssl=not config.insecure, limit=config.threads),
    )


async def run(
    config: ScanConfig,
    *,
    scan_fn: Optional[ScanFn] = None,
    connectivity: Optional[ConnectivityFn] = None,
    console: Optional[Console] = None,
    terminal_sink=None,
    read_key: Optional[KeyReader] = None,
    stdin: Optional[BinaryIO] = None,
) -> int:
    """
    Resolve targets, scan every live one, then flush the reporting pipeline.
    Returns the process exit code.
    """
    log.debug("enter: run")
    log.debug("%r", config)
    console = console or Console()
    connectivity = connectivity or heuristics.connectivity_test

    pause = PauseFlag()
    complete = AtomicFlag()

    # Enter toggles the pause flag that running scans poll; the loop gets a
    # thread of its own so to_thread work never waits behind it
    input_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dirsweep-input")
    controller = spawn_terminal_input_handler(pause, complete, read_key, executor=input_executor)
    controller.add_done_callback(_log_controller_exit)

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    progress.start()

    tx_term, tx_file, term_handle, file_handle = reporter.initialize(
        config.output, config.save_output, progress.console, terminal_sink=terminal_sink
    )

    try:
        try:
            targets = await get_targets(config, stdin)
        except InputStreamError as e:
            log.error("%s", e)
            report_error("main.get_targets", e, progress.console)
            return 1

        if not config.quiet:
            banner.initialize(targets, config, __version__, progress.console)

        try:
            words = await load_wordlist(config.wordlist)
        except ConfigError as e:
            log.error("%s", e)
            report_error("main.scan", e, progress.console)
            return 1

        async with _session(config) as session:
            # discard targets that do not answer at all
            live_targets = await connectivity(session, targets)

            if scan_fn is None:
                scan_fn = DirScanner(config, session, pause, progress, progress.console).scan_url

            await scan(live_targets, words, tx_term, tx_file, scan_fn)
            log.info("All scans complete!")
    finally:
        await shutdown(tx_term, tx_file, term_handle, file_handle, complete, progress)
        # the input loop exits on its next tick now that complete is set
        input_executor.shutdown(wait=False)

    log.debug("exit: run")
    return 0


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dirsweep {__version__}")
        raise typer.Exit()


@app.command()
def main(
    url: Optional[str] = typer.Option(None, "--url", "-u", help="The target url"),
    stdin: bool = typer.Option(False, "--stdin", help="Read target urls from stdin"),
    wordlist: Optional[Path] = typer.Option(None, "--wordlist", "-w", help="Path to the wordlist"),
    threads: int = typer.Option(50, "--threads", "-t", help="Number of concurrent requests per scanner"),
    depth: int = typer.Option(4, "--depth", "-d", help="Maximum recursion depth, 0 for infinite"),
    timeout: float = typer.Option(7, "--timeout", "-T", help="Seconds before a request times out"),
    status_codes: Optional[List[int]] = typer.Option(
        None, "--status-codes", "-s", help="Status codes to report (repeatable)"
    ),
    extensions: Optional[List[str]] = typer.Option(
        None, "--extensions", "-x", help="File extensions to search for (repeatable)"
    ),
    add_slash: bool = typer.Option(False, "--add-slash", "-f", help="Also request each word with a trailing /"),
    redirects: bool = typer.Option(False, "--redirects", "-r", help="Follow redirects"),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Disable TLS certificate validation"),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", "-a", help="User-Agent header"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="File to write results to"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide the banner"),
    verbosity: int = typer.Option(0, "--verbosity", "-v", count=True, help="Increase verbosity (-vv, -vvv)"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Scan a target (or targets from stdin) for hidden files and directories."""
    logger.initialize(verbosity)

    options = dict(
        target_url=url,
        stdin=stdin,
        threads=threads,
        depth=depth,
        timeout=timeout,
        extensions=extensions or [],
        add_slash=add_slash,
        follow_redirects=redirects,
        insecure=insecure,
        output=output,
        quiet=quiet,
        verbosity=verbosity,
    )
    if wordlist is not None:
        options["wordlist"] = wordlist
    if status_codes:
        options["status_codes"] = status_codes
    if user_agent:
        options["user_agent"] = user_agent

    try:
        config = load_config(**options)
    except ConfigError as e:
        report_error("main.config", e, STDERR)
        raise typer.Exit(code=1)

    code = asyncio.run(run(config))
    raise typer.Exit(code=code)


if __name__ == "__main__":
    app()
