from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from . import __version__
from .errors import ConfigError

DEFAULT_WORDLIST = "/usr/share/seclists/Discovery/Web-Content/raft-medium-directories.txt"
DEFAULT_STATUS_CODES = [200, 204, 301, 302, 307, 308, 401, 403, 405]
DEFAULT_USER_AGENT = f"dirsweep/{__version__}"


class ScanConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_url: Optional[str] = None
    stdin: bool = False
    wordlist: Path = Path(DEFAULT_WORDLIST)
    threads: int = Field(50, ge=1)
    depth: int = Field(4, ge=0)  # 0 means no recursion limit
    timeout: float = Field(7, gt=0)
    status_codes: List[int] = Field(default_factory=lambda: list(DEFAULT_STATUS_CODES))
    extensions: List[str] = []
    add_slash: bool = False
    follow_redirects: bool = False
    insecure: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    output: Optional[Path] = None
    quiet: bool = False
    verbosity: int = 0

    @field_validator("extensions")
    @classmethod
    def _strip_dots(cls, v: List[str]) -> List[str]:
        return [e.lstrip(".") for e in v if e.strip(".")]

    @model_validator(mode="after")
    def _one_target_source(self):
        if bool(self.target_url) == self.stdin:
            raise ValueError("exactly one of a target url or --stdin is required")
        return self

    @property
    def save_output(self) -> bool:
        return self.output is not None and str(self.output) != ""


class ScanResponse(BaseModel):
    """One probed url, routed unchanged from a scanner to the sinks."""

    model_config = ConfigDict(frozen=True)

    url: str
    status: int
    size: int = 0
    redirected_to: Optional[str] = None
    issues: List[str] = []

    def as_line(self) -> str:
        return f"{self.status} {self.size:>10}c {self.url}"


def load_config(**options) -> ScanConfig:
    """Build a ScanConfig, turning validation failures into ConfigError."""
    try:
        return ScanConfig(**options)
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(x) for x in err.get("loc", ())) or "options"
        raise ConfigError(f"{loc}: {err.get('msg')}") from e
