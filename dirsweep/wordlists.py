import logging
from pathlib import Path
from typing import FrozenSet, Union

from .errors import ConfigError

log = logging.getLogger("dirsweep.wordlists")

COMMENT = "#"


def get_unique_words_from_wordlist(path: Union[str, Path]) -> FrozenSet[str]:
    """
    Read a wordlist into a frozenset of unique words.
    Blank lines and lines starting with '#' are skipped. Raises ConfigError
    when the file cannot be opened or decoded.
    """
    log.debug("enter: get_unique_words_from_wordlist(%s)", path)
    p = Path(path)
    words = set()
    try:
        with p.open("r", encoding="utf-8", newline=None) as f:
            for line in f:
                s = line.rstrip("\r\n")
                if not s or s.startswith(COMMENT):
                    continue
                words.add(s)
    except OSError as e:
        log.error("Could not open wordlist: %s", e)
        raise ConfigError(f"could not open wordlist {p}: {e.strerror or e}") from e
    except UnicodeDecodeError as e:
        log.error("Could not read wordlist: %s", e)
        raise ConfigError(f"could not read wordlist {p}: {e}") from e

    log.debug("exit: get_unique_words_from_wordlist -> frozenset[%d words...]", len(words))
    return frozenset(words)
