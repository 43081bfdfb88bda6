"""
Panicsift Signature Comparator

Decides whether two goroutine signatures are equivalent under a strictness
policy and builds the merged signature used to represent both.
"""

from dataclasses import replace
from enum import Enum
from typing import Optional, Tuple

from .model import (
    Arg, Args, Call, PointerPredicate, Signature, Stack, default_is_pointer,
)


WILDCARD = "*"


class Similarity(Enum):
    """Strictness policies, from strictest to most lenient"""
    EXACT_LINES = "exact"
    ANY_POINTER = "pointer"
    AGGRESSIVE = "aggressive"

    @classmethod
    def from_name(cls, name: str) -> "Similarity":
        """
        Look up a policy by its config/CLI name.

        Raises:
            ValueError: if the name is unknown
        """
        for member in cls:
            if member.value == name.lower() or member.name == name.upper():
                return member
        raise ValueError(f"Unknown similarity '{name}', expected one of: "
                         f"{', '.join(m.value for m in cls)}")


class SignatureComparator:
    """
    Compares signatures under a fixed policy.

    The first signature passed to `equivalent` is the representative: the
    merged result keeps its values and labels and only wildcards argument
    positions that differ.
    """

    def __init__(self,
                 similarity: Similarity = Similarity.ANY_POINTER,
                 is_pointer: PointerPredicate = default_is_pointer):
        self.similarity = similarity
        self.is_pointer = is_pointer

    def equivalent(self, rep: Signature, other: Signature) -> Tuple[bool, Optional[Signature]]:
        """
        Compare two signatures.

        Args:
            rep: Representative signature (e.g. a bucket's)
            other: Signature being tested against it

        Returns:
            Tuple of (is_equivalent, merged_signature). The merged signature
            is None when the signatures are not equivalent.
        """
        if rep.state != other.state:
            return False, None

        if self.similarity is Similarity.EXACT_LINES:
            if rep.sleep_min != other.sleep_min or rep.sleep_max != other.sleep_max:
                return False, None
        if self.similarity is not Similarity.AGGRESSIVE and rep.locked != other.locked:
            return False, None

        created_by = self._merge_call(rep.created_by, other.created_by)
        if created_by is None:
            return False, None

        stack = self._merge_stack(rep.stack, other.stack)
        if stack is None:
            return False, None

        merged = replace(
            rep,
            created_by=created_by,
            sleep_min=min(rep.sleep_min, other.sleep_min),
            sleep_max=max(rep.sleep_max, other.sleep_max),
            stack=stack,
            locked=rep.locked or other.locked,
        )
        return True, merged

    def _merge_stack(self, rep: Stack, other: Stack) -> Optional[Stack]:
        if rep.elided != other.elided or len(rep.calls) != len(other.calls):
            return None
        calls = []
        for rep_call, other_call in zip(rep.calls, other.calls):
            call = self._merge_call(rep_call, other_call)
            if call is None:
                return None
            calls.append(call)
        return Stack(calls=calls, elided=rep.elided)

    def _merge_call(self, rep: Call, other: Call) -> Optional[Call]:
        if (rep.src_path != other.src_path or rep.line != other.line
                or rep.func != other.func):
            return None
        args = self._merge_args(rep.args, other.args)
        if args is None:
            return None
        return replace(rep, args=args)

    def _merge_args(self, rep: Args, other: Args) -> Optional[Args]:
        if rep.elided != other.elided or len(rep.values) != len(other.values):
            return None
        values = []
        for rep_arg, other_arg in zip(rep.values, other.values):
            if (rep_arg.value, rep_arg.unknown) == (other_arg.value, other_arg.unknown):
                values.append(rep_arg)
                continue
            if not self._can_ignore(rep_arg, other_arg):
                return None
            values.append(Arg(value=rep_arg.value, name=WILDCARD))
        return Args(values=values, elided=rep.elided)

    def _can_ignore(self, rep_arg: Arg, other_arg: Arg) -> bool:
        """Whether two differing argument values may be wildcarded."""
        if self.similarity is Similarity.AGGRESSIVE:
            return True
        if self.similarity is Similarity.ANY_POINTER:
            return rep_arg.is_ptr(self.is_pointer) and other_arg.is_ptr(self.is_pointer)
        return False


def equivalent(rep: Signature,
               other: Signature,
               similarity: Similarity,
               is_pointer: PointerPredicate = default_is_pointer) -> Tuple[bool, Optional[Signature]]:
    """Convenience wrapper around SignatureComparator.equivalent()."""
    return SignatureComparator(similarity, is_pointer).equivalent(rep, other)
