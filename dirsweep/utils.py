import sys
from urllib.parse import urlsplit

from rich.console import Console
from rich.markup import escape

# seconds between pause checks and between controller input polls
SLEEP_DURATION = 0.5

STDERR = Console(stderr=True)


def status_colorizer(status: str) -> str:
    """Wrap a status code (or ERROR / WLD / etc) in rich markup by class."""
    first = status[:1]
    if first == "1":
        style = "blue"
    elif first == "2":
        style = "green"
    elif first == "3":
        style = "yellow"
    elif first == "4":
        style = "red"
    elif first == "5":
        style = "bold red"
    elif status == "ERROR":
        style = "bold red"
    elif status == "WLD":
        style = "cyan"
    else:
        style = "magenta"
    return f"[{style}]{escape(status)}[/{style}]"


def module_colorizer(module: str) -> str:
    return f"[bold cyan]{escape(module)}[/bold cyan]"


def cprint(msg: str, console: Console = STDERR) -> None:
    console.print(msg, highlight=False)


def report_error(component: str, message, console: Console = STDERR) -> None:
    """Print the ``ERROR <component> <message>`` line used for fatal errors."""
    cprint(
        f"{status_colorizer('ERROR')} {module_colorizer(component)} {escape(str(message))}",
        console,
    )


def get_current_depth(target: str) -> int:
    """Number of non-empty path segments in ``target``."""
    path = urlsplit(target).path
    return len([p for p in path.split("/") if p])


def stdin_is_tty() -> bool:
    try:
        return sys.stdin is not None and sys.stdin.isatty()
    except ValueError:
        # stdin closed
        return False
