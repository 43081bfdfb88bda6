"""
Panicsift Panic Analysis Module

Parses goroutine dumps, groups equivalent goroutines into buckets and
reduces their call paths to a minimal set.
"""

from .model import (
    Arg, Args, Bucket, Call, Func, Goroutine, Signature, Stack,
    default_is_pointer, make_pointer_predicate,
)
from .similarity import Similarity, SignatureComparator, equivalent
from .bucket import aggregate, aggregate_subsets, check_subset, is_subset
from .parser import DumpContext, PanicParseError, parse_dump

__all__ = [
    'Arg', 'Args', 'Bucket', 'Call', 'Func', 'Goroutine', 'Signature', 'Stack',
    'default_is_pointer', 'make_pointer_predicate',
    'Similarity', 'SignatureComparator', 'equivalent',
    'aggregate', 'aggregate_subsets', 'check_subset', 'is_subset',
    'DumpContext', 'PanicParseError', 'parse_dump',
]
