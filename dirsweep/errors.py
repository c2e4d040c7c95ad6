class DirsweepError(Exception):
    """Base class for every error raised by dirsweep."""


class ConfigError(DirsweepError):
    """Unusable configuration: bad options, unreadable or empty wordlist."""


class InputStreamError(DirsweepError):
    """A target line read from stdin could not be decoded."""


class TaskJoinError(DirsweepError):
    """A top-level scan task ended with an exception."""

    def __init__(self, target: str, cause: BaseException):
        super().__init__(f"scan of {target} failed: {cause!r}")
        self.target = target
        self.cause = cause


class SinkError(DirsweepError):
    """Writing a response to a terminal or file sink failed."""


class ChannelClosed(DirsweepError):
    """Send attempted on a reporting channel with no live senders."""
