"""
Panicsift Record Model

Plain, immutable records describing a parsed goroutine dump: calls, their
arguments, stacks, signatures, goroutines and the buckets produced by
aggregation.
"""

import os
from dataclasses import dataclass, field, asdict
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote


# Pointers are assumed to live above 16Mb and to be positive int64 values.
POINTER_THRESHOLD = 16 * 1024 * 1024
MAX_INT64 = (1 << 63) - 1

PointerPredicate = Callable[[int], bool]


def make_pointer_predicate(threshold: int = POINTER_THRESHOLD) -> PointerPredicate:
    """
    Build a predicate classifying argument values as pointer-like.

    Args:
        threshold: Values strictly above this are considered pointers

    Returns:
        Callable taking an int and returning True if it looks like a pointer
    """
    def is_pointer(value: int) -> bool:
        return threshold < value < MAX_INT64
    return is_pointer


default_is_pointer = make_pointer_predicate()


@dataclass(frozen=True)
class Func:
    """A function reference as printed in the dump."""
    raw: str = ""

    def __str__(self) -> str:
        return unquote(self.raw) or self.raw

    @property
    def name(self) -> str:
        """Naked function name, without the package."""
        parts = os.path.basename(self.raw).split(".", 1)
        if len(parts) == 1:
            return parts[0]
        return parts[1]

    @property
    def pkg_name(self) -> str:
        parts = os.path.basename(self.raw).split(".", 1)
        if len(parts) == 1:
            return ""
        return unquote(parts[0])

    @property
    def pkg_dot_name(self) -> str:
        pkg, name = self.pkg_name, self.name
        if pkg or name:
            return f"{pkg}.{name}"
        return ""

    @property
    def is_exported(self) -> bool:
        name = self.name
        first_char = name.split(".")[-1][:1]
        if first_char.upper() == first_char:
            return True
        return self.pkg_name == "main" and name == "main"


@dataclass(frozen=True)
class Arg:
    """
    One call argument.

    `name` is a display label: "" for the first value seen at a call site,
    "#N" for a later distinct value and "*" once the position is wildcarded.
    `unknown` marks a value the runtime printed as "_".
    """
    value: int = 0
    name: str = ""
    unknown: bool = False

    def is_ptr(self, predicate: PointerPredicate = default_is_pointer) -> bool:
        return predicate(self.value)

    def __str__(self) -> str:
        if self.name:
            return self.name
        if self.unknown:
            return "_"
        if self.value == 0:
            return "0"
        return f"0x{self.value:x}"


@dataclass(frozen=True)
class Args:
    values: Tuple[Arg, ...] = ()
    # The dump printed "..." after the last value.
    elided: bool = False

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))

    def __len__(self) -> int:
        return len(self.values)

    def __str__(self) -> str:
        parts = [str(v) for v in self.values]
        if self.elided:
            parts.append("...")
        return ", ".join(parts)


@dataclass(frozen=True)
class Call:
    """A single stack frame."""
    src_path: str = ""
    line: int = 0
    func: Func = field(default_factory=Func)
    args: Args = field(default_factory=Args)
    # Where src_path lives on this machine, if the dump came from elsewhere.
    local_src_path: str = ""
    is_stdlib: bool = False

    @property
    def src_name(self) -> str:
        """Base file name of the source file."""
        return os.path.basename(self.src_path)

    @property
    def src_line(self) -> str:
        return f"{self.src_name}:{self.line}"

    @property
    def full_src_line(self) -> str:
        return f"{self.src_path}:{self.line}"

    @property
    def is_pkg_main(self) -> bool:
        return self.func.pkg_name == "main"


@dataclass(frozen=True)
class Stack:
    """Calls ordered innermost first."""
    calls: Tuple[Call, ...] = ()
    # The runtime truncated the tail of this stack.
    elided: bool = False

    def __post_init__(self):
        object.__setattr__(self, "calls", tuple(self.calls))

    def callstack(self) -> Tuple[str, ...]:
        """Project the stack to its raw function names."""
        return tuple(call.func.raw for call in self.calls)


@dataclass(frozen=True)
class Signature:
    """Equivalence key of a goroutine."""
    state: str = ""
    created_by: Call = field(default_factory=Call)
    # Idle duration range in minutes.
    sleep_min: int = 0
    sleep_max: int = 0
    stack: Stack = field(default_factory=Stack)
    locked: bool = False

    def sleep_string(self) -> str:
        if self.sleep_max == 0:
            return ""
        if self.sleep_min != self.sleep_max:
            return f"{self.sleep_min}~{self.sleep_max} minutes"
        return f"{self.sleep_max} minutes"

    def created_by_string(self, full_path: bool = False) -> str:
        """Short context about the origin of this goroutine, or ""."""
        created = self.created_by.func.pkg_dot_name
        if not created:
            return ""
        if full_path:
            return f"{created} @ {self.created_by.full_src_line}"
        return f"{created} @ {self.created_by.src_line}"

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class Goroutine:
    signature: Signature = field(default_factory=Signature)
    id: int = 0
    # This goroutine triggered the panic.
    first: bool = False


@dataclass
class Bucket:
    """Goroutines sharing an equivalent signature."""
    signature: Signature
    ids: List[int] = field(default_factory=list)
    first: bool = False

    def to_dict(self) -> Dict:
        return {
            'signature': self.signature.to_dict(),
            'ids': list(self.ids),
            'count': len(self.ids),
            'first': self.first,
        }


def callstack_of(goroutine: Goroutine) -> Tuple[str, ...]:
    return goroutine.signature.stack.callstack()


def find_first(goroutines: List[Goroutine]) -> Optional[Goroutine]:
    """Return the goroutine that triggered the panic, if any."""
    for goroutine in goroutines:
        if goroutine.first:
            return goroutine
    return None
