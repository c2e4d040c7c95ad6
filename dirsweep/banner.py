from typing import List

from rich.console import Console
from rich.table import Table

from .models import ScanConfig

BANNER = r"""
     _ _
  __| (_)_ __ _____      _____  ___ _ __
 / _` | | '__/ __\ \ /\ / / _ \/ _ \ '_ \
| (_| | | |  \__ \\ V  V /  __/  __/ |_) |
 \__,_|_|_|  |___/ \_/\_/ \___|\___| .__/
                                   |_|
"""


def initialize(targets: List[str], config: ScanConfig, version: str, console: Console) -> None:
    """Print the startup banner and a table of the active configuration."""
    console.print(f"[bold blue]{BANNER}[/bold blue]", highlight=False)
    console.print(f"  [bold]dirsweep[/bold] v{version}\n", highlight=False)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()

    for t in targets:
        table.add_row("Target Url", t)
    table.add_row("Threads", str(config.threads))
    table.add_row("Wordlist", str(config.wordlist))
    table.add_row("Status Codes", str(config.status_codes))
    table.add_row("Timeout (secs)", str(config.timeout))
    table.add_row("User-Agent", config.user_agent)
    if config.save_output:
        table.add_row("Output File", str(config.output))
    if config.extensions:
        table.add_row("Extensions", str(config.extensions))
    if config.insecure:
        table.add_row("Insecure", "true")
    if config.follow_redirects:
        table.add_row("Follow Redirects", "true")
    if config.add_slash:
        table.add_row("Add Slash", "true")
    table.add_row("Recursion Depth", str(config.depth) if config.depth else "INFINITE")
    table.add_row("Verbosity", str(config.verbosity))

    console.print(table)
    console.print("[dim]Press [Enter] to pause / resume the scan[/dim]\n")
