"""
Panicsift Report

Renders aggregated goroutine buckets and minimized call paths to the
terminal, and exports them as JSON.
"""

import json
import logging
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from panic_analysis.model import Bucket, Call, Func


logger = logging.getLogger("panicsift.report")

PANICSIFT_THEME = Theme({
    "routine": "bold red",
    "routine.first": "bold magenta",
    "created": "yellow",
    "state.extra": "bright_black",
    "pkg": "cyan",
    "pkg.stdlib": "green",
    "pkg.main": "bold cyan",
    "src": "bright_black",
    "func": "bold",
    "func.exported": "bold bright_white",
    "func.stdlib": "green",
    "args": "default",
})


def make_console(color: bool = True, **kwargs) -> Console:
    """Create a console using the Panicsift theme."""
    if not color:
        kwargs.setdefault("color_system", None)
    return Console(theme=PANICSIFT_THEME, highlight=False, **kwargs)


def _src(call: Call, full_path: bool) -> str:
    if not full_path:
        return call.src_line
    if call.local_src_path:
        return f"{call.local_src_path}:{call.line}"
    return call.full_src_line


def _visible_calls(bucket: Bucket, hide_stdlib: bool) -> List[Call]:
    calls = list(bucket.signature.stack.calls)
    if hide_stdlib:
        calls = [call for call in calls if not call.is_stdlib]
    return calls


def bucket_header(bucket: Bucket, full_path: bool = False) -> Text:
    """Header line: '<count>: <state> [sleep] [locked] [Created by ...]'."""
    signature = bucket.signature
    header = Text()
    header.append(f"{len(bucket.ids)}: {signature.state}",
                  style="routine.first" if bucket.first else "routine")
    sleep = signature.sleep_string()
    if sleep:
        header.append(f" [{sleep}]", style="state.extra")
    if signature.locked:
        header.append(" [locked]", style="state.extra")
    created = signature.created_by_string(full_path)
    if created:
        header.append(f" [Created by {created}]", style="created")
    return header


def _pkg_style(call: Call) -> str:
    if call.is_stdlib:
        return "pkg.stdlib"
    if call.is_pkg_main:
        return "pkg.main"
    return "pkg"


def call_line(call: Call, pkg_len: int, src_len: int, full_path: bool = False) -> Text:
    line = Text("    ")
    line.append(f"{call.func.pkg_name:<{pkg_len}} ", style=_pkg_style(call))
    line.append(f"{_src(call, full_path):<{src_len}} ", style="src")
    if call.is_stdlib:
        func_style = "func.stdlib"
    elif call.func.is_exported:
        func_style = "func.exported"
    else:
        func_style = "func"
    line.append(call.func.name, style=func_style)
    line.append(f"({call.args})", style="args")
    return line


def render_buckets(buckets: Sequence[Bucket],
                   console: Console,
                   hide_stdlib: bool = False,
                   full_path: bool = False) -> None:
    """
    Print every bucket with its stack.

    Args:
        buckets: Buckets as returned by aggregate()
        console: Rich console to print to
        hide_stdlib: Skip calls located in the Go standard library
        full_path: Print full source paths instead of base names
    """
    for bucket in buckets:
        calls = _visible_calls(bucket, hide_stdlib)
        pkg_len = max((len(c.func.pkg_name) for c in calls), default=0)
        src_len = max((len(_src(c, full_path)) for c in calls), default=0)

        console.print(bucket_header(bucket, full_path))
        for call in calls:
            console.print(call_line(call, pkg_len, src_len, full_path))
        if bucket.signature.stack.elided:
            console.print("    (...)", style="src")


def render_subsets(callstacks: Sequence[Sequence[str]], console: Console) -> None:
    for index, stack in enumerate(callstacks, 1):
        console.print(Text(f"{index}: {len(stack)} calls", style="routine"))
        for name in stack:
            console.print(Text(f"    {Func(raw=name)}", style="func"))


def bucket_statistics(buckets: Sequence[Bucket]) -> Dict:
    """
    Get aggregation statistics.

    Returns:
        Dict with statistics
    """
    sizes = [len(bucket.ids) for bucket in buckets]
    total = sum(sizes)
    return {
        'total_goroutines': total,
        'total_buckets': len(buckets),
        'max_bucket_size': max(sizes) if sizes else 0,
        'avg_bucket_size': total / max(1, len(buckets)),
        'dedup_ratio': ((total - len(buckets)) / max(1, total)) * 100,
    }


def print_summary(buckets: Sequence[Bucket],
                  console: Console,
                  callstacks: Optional[Sequence[Sequence[str]]] = None) -> None:
    """Print a summary table of the aggregation."""
    stats = bucket_statistics(buckets)

    table = Table(title="GOROUTINE SUMMARY", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total goroutines", str(stats['total_goroutines']))
    table.add_row("Buckets", str(stats['total_buckets']))
    table.add_row("Max bucket size", str(stats['max_bucket_size']))
    table.add_row("Avg bucket size", f"{stats['avg_bucket_size']:.1f}")
    table.add_row("Deduplication ratio", f"{stats['dedup_ratio']:.1f}%")
    if callstacks is not None:
        table.add_row("Distinct call paths", str(len(callstacks)))
    console.print(table)


def export_buckets(buckets: Sequence[Bucket],
                   output_file: str,
                   callstacks: Optional[Sequence[Sequence[str]]] = None) -> None:
    """
    Export buckets (and optionally minimized call paths) to a JSON file.

    Args:
        buckets: Buckets as returned by aggregate()
        output_file: Path to output JSON file
        callstacks: Minimized call paths from aggregate_subsets()
    """
    export_data = {
        'statistics': bucket_statistics(buckets),
        'buckets': [bucket.to_dict() for bucket in buckets],
    }
    if callstacks is not None:
        export_data['callstacks'] = [list(stack) for stack in callstacks]

    with open(output_file, 'w') as f:
        json.dump(export_data, f, indent=2)

    logger.info(f"Exported {len(buckets)} buckets to {output_file}")
