"""
Panicsift Dump Parser

Parses the text of a goroutine dump (as printed by a panicking Go program or
by SIGQUIT) into Goroutine records.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import IO, Iterable, List, Optional

from .model import Arg, Args, Call, Func, Goroutine, Signature, Stack


logger = logging.getLogger("panicsift.parser")

ROUTINE_HEADER_RE = re.compile(r'^goroutine (\d+) \[([^\]]+)\]:$')
MINUTES_RE = re.compile(r'^(\d+) minutes$')
UNAVAILABLE_RE = re.compile(r'^(?:\t| +)goroutine running on other thread; stack unavailable')
# The tab may have been replaced with spaces by a copy-paste.
FILE_RE = re.compile(
    r'^(?:\t| +)(\?\?|<autogenerated>|.+\.(?:c|go|s)):(\d+)'
    r'(?: \+0x[0-9a-f]+)?(?: fp=0x[0-9a-f]+ sp=0x[0-9a-f]+(?: pc=0x[0-9a-f]+)?)?$'
)
CREATED_RE = re.compile(r'^created by (.+?)(?: in goroutine \d+)?$')
FUNC_RE = re.compile(r'^(.+)\((.*)\)$')
ELIDED_RE = re.compile(r'^\.\.\.additional frames elided\.\.\.$')

LOCKED_TO_THREAD = "locked to thread"
UNAVAILABLE_SRC = "<unavailable>"


class PanicParseError(Exception):
    """Raised when a goroutine block of the dump cannot be parsed."""
    pass


@dataclass
class DumpContext:
    """Result of parsing a dump."""
    goroutines: List[Goroutine] = field(default_factory=list)
    goroot: Optional[str] = None


class _GoroutineBuilder:
    """Accumulates one goroutine block before freezing it into a record."""

    def __init__(self, goroutine_id: int, state: str, first: bool):
        self.id = goroutine_id
        self.first = first
        self.state = state
        self.sleep = 0
        self.locked = False
        self.calls: List[dict] = []
        self.created_by: Optional[dict] = None
        self.elided = False
        # Which call the next file line belongs to.
        self._pending: Optional[dict] = None
        self._parse_state(state)

    def _parse_state(self, state: str):
        items = state.split(", ")
        self.state = items[0]
        for item in items[1:]:
            if item == LOCKED_TO_THREAD:
                self.locked = True
                continue
            match = MINUTES_RE.match(item)
            if match:
                self.sleep = int(match.group(1))

    def add_call(self, func: str, args: Args):
        call = {'func': func, 'args': args, 'src_path': '', 'line': 0}
        self.calls.append(call)
        self._pending = call

    def add_unavailable(self):
        self.calls.append({'func': '', 'args': Args(), 'src_path': UNAVAILABLE_SRC, 'line': 0})
        self._pending = None

    def set_created_by(self, func: str):
        self.created_by = {'func': func, 'args': Args(), 'src_path': '', 'line': 0}
        self._pending = self.created_by

    def set_location(self, src_path: str, line: int) -> bool:
        if self._pending is None:
            return False
        self._pending['src_path'] = src_path
        self._pending['line'] = line
        self._pending = None
        return True

    def build(self, goroot: Optional[str]) -> Goroutine:
        calls = [_make_call(c, goroot) for c in self.calls]
        created_by = _make_call(self.created_by, goroot) if self.created_by else Call()
        signature = Signature(
            state=self.state,
            created_by=created_by,
            sleep_min=self.sleep,
            sleep_max=self.sleep,
            stack=Stack(calls=calls, elided=self.elided),
            locked=self.locked,
        )
        return Goroutine(signature=signature, id=self.id, first=self.first)


def _make_call(data: dict, goroot: Optional[str]) -> Call:
    src_path = data['src_path']
    is_stdlib = bool(goroot) and src_path.startswith(goroot.rstrip("/") + "/src/")
    return Call(
        src_path=src_path,
        line=data['line'],
        func=Func(raw=data['func']),
        args=data['args'],
        is_stdlib=is_stdlib,
    )


def parse_args(raw: str) -> Args:
    """
    Parse the argument list of a function line.

    Struct and array groups printed as `{...}` are flattened into their
    member values, `_` becomes an unknown value and `...` sets `elided`.

    Raises:
        PanicParseError: if a value is not an integer
    """
    if not raw:
        return Args()
    values = []
    elided = False
    for item in raw.split(", "):
        item = item.strip("{}")
        if not item:
            continue
        if item == "...":
            elided = True
            continue
        if item == "_":
            values.append(Arg(unknown=True))
            continue
        try:
            # Go 1.18+ suffixes possibly inaccurate values with '?'.
            values.append(Arg(value=int(item.rstrip("?"), 0)))
        except ValueError:
            raise PanicParseError(f"Failed to parse argument '{item}' in '({raw})'")
    return Args(values=values, elided=elided)


class DumpParser:
    """
    Line-oriented goroutine dump parser.

    Lines outside goroutine blocks (the panic message, unrelated program
    output) are written to `out` when one is given.
    """

    def __init__(self, out: Optional[IO[str]] = None, goroot: Optional[str] = None):
        self.out = out
        self.goroot = goroot
        self.goroutines: List[Goroutine] = []
        self._current: Optional[_GoroutineBuilder] = None
        self._line_no = 0

    def _finish(self):
        if self._current is not None:
            self.goroutines.append(self._current.build(self.goroot))
            self._current = None

    def _passthrough(self, line: str):
        if self.out is not None:
            self.out.write(line + "\n")

    def process_line(self, line: str):
        self._line_no += 1
        line = line.rstrip("\r\n")

        if self._current is None:
            match = ROUTINE_HEADER_RE.match(line)
            if match:
                first = not self.goroutines
                self._current = _GoroutineBuilder(int(match.group(1)), match.group(2), first)
            else:
                self._passthrough(line)
            return

        if line == "":
            self._finish()
            return

        match = ROUTINE_HEADER_RE.match(line)
        if match:
            self._finish()
            self._current = _GoroutineBuilder(int(match.group(1)), match.group(2), False)
            return

        match = FILE_RE.match(line)
        if match:
            if not self._current.set_location(match.group(1), int(match.group(2))):
                raise PanicParseError(
                    f"Line {self._line_no}: source location without a function: '{line}'")
            return

        match = CREATED_RE.match(line)
        if match:
            self._current.set_created_by(match.group(1))
            return

        if ELIDED_RE.match(line):
            self._current.elided = True
            return

        if UNAVAILABLE_RE.match(line):
            self._current.add_unavailable()
            return

        match = FUNC_RE.match(line)
        if match:
            self._current.add_call(match.group(1), parse_args(match.group(2)))
            return

        # Anything else ends the block and is program output.
        self._finish()
        self._passthrough(line)

    def close(self) -> Optional[DumpContext]:
        self._finish()
        if not self.goroutines:
            return None
        logger.debug(f"Parsed {len(self.goroutines)} goroutines from {self._line_no} lines")
        return DumpContext(goroutines=self.goroutines, goroot=self.goroot)


def parse_dump(stream: Iterable[str],
               out: Optional[IO[str]] = None,
               goroot: Optional[str] = None) -> Optional[DumpContext]:
    """
    Parse a goroutine dump.

    Args:
        stream: File object or any iterable of lines
        out: Optional writer receiving lines that are not part of the dump
        goroot: Go root; calls with sources under it are marked as stdlib

    Returns:
        DumpContext, or None if no goroutine was found

    Raises:
        PanicParseError: on a malformed goroutine block
    """
    if isinstance(stream, str):
        stream = stream.splitlines()
    parser = DumpParser(out=out, goroot=goroot)
    for line in stream:
        parser.process_line(line)
    return parser.close()
