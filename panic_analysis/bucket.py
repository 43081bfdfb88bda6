"""
Panicsift Bucketer

Groups goroutines with equivalent signatures into buckets, and reduces the
observed call paths to a minimal set of maximal function-name sequences.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .model import (
    Arg, Args, Bucket, Goroutine, PointerPredicate, Signature, Stack,
    callstack_of, default_is_pointer,
)
from .similarity import Similarity, SignatureComparator


logger = logging.getLogger("panicsift.bucket")

# A call path reduced to its function names, innermost first.
Callstack = Tuple[str, ...]
Callstacks = List[Callstack]

# (frame index, function, source path, line, argument index)
_SiteKey = Tuple[int, str, str, int, int]


class ArgumentLabeler:
    """
    Assigns display labels to argument values of newly opened buckets.

    The first value seen at a call site keeps an empty label. Any later,
    different pointer-like value at that site is labelled "#N", N numbering
    distinct values in order of first appearance, so one value always gets
    one label. Scalars are never labelled.
    """

    def __init__(self, is_pointer: PointerPredicate = default_is_pointer):
        self.is_pointer = is_pointer
        self._first_seen: Dict[_SiteKey, int] = {}
        self._labels: Dict[int, str] = {}

    def label(self, signature: Signature) -> Signature:
        calls = []
        changed = False
        for frame, call in enumerate(signature.stack.calls):
            values = []
            for index, arg in enumerate(call.args.values):
                key = (frame, call.func.raw, call.src_path, call.line, index)
                first = self._first_seen.setdefault(key, arg.value)
                if arg.value == first or not arg.is_ptr(self.is_pointer):
                    values.append(arg)
                    continue
                name = self._labels.get(arg.value)
                if name is None:
                    name = f"#{len(self._labels) + 1}"
                    self._labels[arg.value] = name
                values.append(Arg(value=arg.value, name=name))
                changed = True
            calls.append(replace(call, args=Args(values=values, elided=call.args.elided)))

        if not changed:
            return signature
        return replace(signature, stack=Stack(calls=calls, elided=signature.stack.elided))


def aggregate(goroutines: Iterable[Goroutine],
              similarity: Similarity,
              is_pointer: PointerPredicate = default_is_pointer) -> List[Bucket]:
    """
    Group goroutines into buckets of equivalent signatures.

    Each goroutine joins the first existing bucket (in creation order) whose
    signature is equivalent to its own; otherwise it opens a new bucket.

    Args:
        goroutines: Goroutines in dump order
        similarity: Strictness policy
        is_pointer: Predicate classifying argument values as pointers

    Returns:
        Buckets in order of their first member, member IDs in input order
    """
    comparator = SignatureComparator(similarity, is_pointer)
    labeler = ArgumentLabeler(is_pointer)
    buckets: List[Bucket] = []
    total = 0

    for goroutine in goroutines:
        total += 1
        for bucket in buckets:
            matched, merged = comparator.equivalent(bucket.signature, goroutine.signature)
            if matched:
                bucket.signature = merged
                bucket.ids.append(goroutine.id)
                bucket.first = bucket.first or goroutine.first
                break
        else:
            buckets.append(Bucket(
                signature=labeler.label(goroutine.signature),
                ids=[goroutine.id],
                first=goroutine.first,
            ))

    logger.debug(f"Aggregated {total} goroutines into {len(buckets)} buckets "
                 f"(similarity: {similarity.value})")
    return buckets


def is_subset(first: Sequence[str], second: Sequence[str]) -> bool:
    """
    Return True if `first` is a positional prefix of (or equal to) `second`.
    """
    if len(first) > len(second):
        return False
    for index, name in enumerate(first):
        if second[index] != name:
            return False
    return True


def check_subset(full_stacks: Sequence[Callstack], cur_stack: Sequence[str]) -> Callstacks:
    """
    Fold one call path into a collection of maximal call paths.

    Args:
        full_stacks: Collection where no entry is a prefix of another
        cur_stack: Candidate call path

    Returns:
        New collection: unchanged if an entry already covers the candidate,
        with the covered entry replaced by the candidate appended at the end
        if the candidate extends it, or with the candidate appended otherwise.
    """
    cur_stack = tuple(cur_stack)
    result = [tuple(stack) for stack in full_stacks]
    for index, stack in enumerate(result):
        if is_subset(cur_stack, stack):
            return result
        if is_subset(stack, cur_stack):
            del result[index]
            result.append(cur_stack)
            return result
    result.append(cur_stack)
    return result


def aggregate_subsets(goroutines: Iterable[Goroutine],
                      all_stacks: Optional[Sequence[Callstack]] = None) -> Callstacks:
    """
    Reduce the goroutines' call paths to the minimal set of maximal paths.

    Only function names are considered; state, arguments and source
    locations are ignored.

    Args:
        goroutines: Goroutines in dump order
        all_stacks: Optional seed collection to fold into

    Returns:
        Collection where no call path is a prefix of another
    """
    result: Callstacks = [tuple(stack) for stack in all_stacks or ()]
    for goroutine in goroutines:
        result = check_subset(result, callstack_of(goroutine))
    logger.debug(f"Reduced call paths to {len(result)} distinct stacks")
    return result
