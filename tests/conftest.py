import io
import time

import pytest
from rich.console import Console


class RecordingSink:
    def __init__(self, fail_on=()):
        self.items = []
        self.fail_on = set(fail_on)
        self.calls = 0

    def write(self, resp):
        self.calls += 1
        if self.calls in self.fail_on:
            raise OSError("disk full")
        self.items.append(resp)


def idle_reader(timeout):
    time.sleep(0.01)
    return None


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def write_wordlist(tmp_path):
    def _write(text, name="words.txt"):
        p = tmp_path / name
        p.write_text(text, encoding="utf-8")
        return p

    return _write
