"""
Pytest configuration and fixtures for Panicsift tests.
"""

import sys
import pytest
from pathlib import Path

# Add project root to path for all imports
project_root = str(Path(__file__).parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from panic_analysis.model import Arg, Args, Call, Func, Goroutine, Signature, Stack  # noqa: E402


SRC = "/gopath/src/github.com/maruel/panicparse/stack/stack.go"


@pytest.fixture
def home_dir(tmp_path, monkeypatch):
    """Point HOME at a temporary directory so ~/.panicsift stays isolated."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def distinct_args_dump():
    """Two goroutines differing only by a pointer argument."""
    return "\n".join([
        "panic: runtime error: index out of range",
        "",
        "goroutine 6 [chan receive]:",
        "main.func·001(0x11000000, 2)",
        f"\t{SRC}:72 +0x49",
        "",
        "goroutine 7 [chan receive]:",
        "main.func·001(0x21000000, 2)",
        f"\t{SRC}:72 +0x49",
        "",
    ])


@pytest.fixture
def identical_dump():
    """Two goroutines with the exact same signature."""
    return "\n".join([
        "panic: runtime error: index out of range",
        "",
        "goroutine 6 [chan receive]:",
        "main.func·001()",
        f"\t{SRC}:72 +0x49",
        "created by main.mainImpl",
        f"\t{SRC}:74 +0xeb",
        "",
        "goroutine 7 [chan receive]:",
        "main.func·001()",
        f"\t{SRC}:72 +0x49",
        "created by main.mainImpl",
        f"\t{SRC}:74 +0xeb",
        "",
    ])


@pytest.fixture
def sleeping_dump():
    """Three goroutines differing by idle duration and pointer argument."""
    return "\n".join([
        "panic: runtime error: index out of range",
        "",
        "goroutine 6 [chan receive, 10 minutes]:",
        "main.func·001(0x11000000, 2)",
        f"\t{SRC}:72 +0x49",
        "",
        "goroutine 7 [chan receive, 50 minutes]:",
        "main.func·001(0x21000000, 2)",
        f"\t{SRC}:72 +0x49",
        "",
        "goroutine 8 [chan receive, 100 minutes]:",
        "main.func·001(0x21000000, 2)",
        f"\t{SRC}:72 +0x49",
        "",
    ])


def make_goroutine(goroutine_id, funcs=("main.main",), state="chan receive",
                   args=(), sleep=0, locked=False, first=False, line=72):
    """Build a goroutine whose stack calls `funcs`; `args` go to the first call."""
    calls = []
    for index, raw in enumerate(funcs):
        values = [Arg(value=v) for v in args] if index == 0 else []
        calls.append(Call(src_path=SRC, line=line + index, func=Func(raw=raw), args=Args(values=values)))
    signature = Signature(
        state=state,
        sleep_min=sleep,
        sleep_max=sleep,
        stack=Stack(calls=calls),
        locked=locked,
    )
    return Goroutine(signature=signature, id=goroutine_id, first=first)


@pytest.fixture
def goroutine_factory():
    return make_goroutine
