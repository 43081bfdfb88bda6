"""
Tests for report.py - terminal rendering and JSON export.
"""

import io
import json

from panic_analysis import Similarity, aggregate, aggregate_subsets, parse_dump
from panic_analysis.model import Bucket, Call, Func, Signature, Stack
from report import (
    bucket_header, bucket_statistics, call_line, export_buckets, make_console,
    print_summary, render_buckets, render_subsets,
)


def _console():
    buf = io.StringIO()
    return make_console(color=False, file=buf, width=200), buf


class TestRendering:

    def test_header(self, sleeping_dump):
        buckets = aggregate(parse_dump(sleeping_dump).goroutines, Similarity.ANY_POINTER)
        assert bucket_header(buckets[0]).plain == "3: chan receive [10~100 minutes]"

    def test_header_with_creator_and_lock(self):
        creator = Call(src_path="/src/main.go", line=74, func=Func("main.mainImpl"))
        bucket = Bucket(signature=Signature(state="select", created_by=creator, locked=True), ids=[1])
        assert bucket_header(bucket).plain == "1: select [locked] [Created by main.mainImpl @ main.go:74]"

    def test_render_buckets(self, sleeping_dump):
        buckets = aggregate(parse_dump(sleeping_dump).goroutines, Similarity.ANY_POINTER)
        console, buf = _console()
        render_buckets(buckets, console)
        lines = buf.getvalue().splitlines()
        assert lines[0] == "3: chan receive [10~100 minutes]"
        assert lines[1].split() == ["main", "stack.go:72", "func·001(*,", "0x2)"]

    def test_render_hides_stdlib(self):
        stack = Stack(calls=[
            Call(src_path="/go/src/runtime/proc.go", line=1, func=Func("runtime.gopark"), is_stdlib=True),
            Call(src_path="/app/main.go", line=2, func=Func("main.main")),
        ])
        bucket = Bucket(signature=Signature(state="sleep", stack=stack), ids=[1])
        console, buf = _console()
        render_buckets([bucket], console, hide_stdlib=True)
        output = buf.getvalue()
        assert "gopark" not in output
        assert "main.go:2" in output

    def test_render_full_path_and_elision(self):
        stack = Stack(calls=[Call(src_path="/app/main.go", line=2, func=Func("main.main"))], elided=True)
        bucket = Bucket(signature=Signature(state="running", stack=stack), ids=[1])
        console, buf = _console()
        render_buckets([bucket], console, full_path=True)
        output = buf.getvalue()
        assert "/app/main.go:2" in output
        assert output.rstrip().endswith("(...)")

    def test_render_subsets(self):
        console, buf = _console()
        render_subsets([("main.main", "init.init")], console)
        assert buf.getvalue().splitlines() == ["1: 2 calls", "    main.main", "    init.init"]

    def test_render_subsets_unescapes_names(self):
        console, buf = _console()
        render_subsets([("gopkg.in/yaml%2ev2.unmarshal",)], console)
        assert buf.getvalue().splitlines()[1] == "    gopkg.in/yaml.v2.unmarshal"

    def test_full_path_prefers_local_source(self):
        call = Call(src_path="/build/app/main.go", line=2, func=Func("main.main"),
                    local_src_path="/home/me/app/main.go")
        bucket = Bucket(signature=Signature(state="running", stack=Stack(calls=[call])), ids=[1])
        console, buf = _console()
        render_buckets([bucket], console, full_path=True)
        output = buf.getvalue()
        assert "/home/me/app/main.go:2" in output
        assert "/build/app" not in output

    def test_main_package_style(self):
        main_call = Call(src_path="/app/main.go", line=2, func=Func("main.main"))
        other_call = Call(src_path="/app/util/util.go", line=3, func=Func("util.Run"))
        assert call_line(main_call, 4, 9).spans[0].style == "pkg.main"
        assert call_line(other_call, 4, 9).spans[0].style == "pkg"


class TestStatistics:

    def test_statistics(self, identical_dump, distinct_args_dump):
        buckets = aggregate(parse_dump(identical_dump).goroutines, Similarity.EXACT_LINES)
        stats = bucket_statistics(buckets)
        assert stats['total_goroutines'] == 2
        assert stats['total_buckets'] == 1
        assert stats['max_bucket_size'] == 2
        assert stats['dedup_ratio'] == 50.0

    def test_statistics_empty(self):
        stats = bucket_statistics([])
        assert stats['total_goroutines'] == 0
        assert stats['max_bucket_size'] == 0
        assert stats['dedup_ratio'] == 0

    def test_print_summary(self, identical_dump):
        buckets = aggregate(parse_dump(identical_dump).goroutines, Similarity.EXACT_LINES)
        console, buf = _console()
        print_summary(buckets, console, callstacks=[("a",)])
        output = buf.getvalue()
        assert "Total goroutines" in output
        assert "Distinct call paths" in output
        assert "50.0%" in output


class TestExport:

    def test_export_buckets(self, tmp_path, sleeping_dump):
        goroutines = parse_dump(sleeping_dump).goroutines
        buckets = aggregate(goroutines, Similarity.ANY_POINTER)
        output_file = tmp_path / "buckets.json"

        export_buckets(buckets, str(output_file), aggregate_subsets(goroutines))

        data = json.loads(output_file.read_text())
        assert data['statistics']['total_buckets'] == 1
        bucket = data['buckets'][0]
        assert bucket['ids'] == [6, 7, 8]
        assert bucket['first'] is True
        assert bucket['signature']['sleep_max'] == 100
        assert bucket['signature']['stack']['calls'][0]['args']['values'][0] == {
            'value': 0x11000000, 'name': '*', 'unknown': False}
        assert data['callstacks'] == [["main.func·001"]]

    def test_export_without_callstacks(self, tmp_path, identical_dump):
        buckets = aggregate(parse_dump(identical_dump).goroutines, Similarity.EXACT_LINES)
        output_file = tmp_path / "buckets.json"
        export_buckets(buckets, str(output_file))
        assert 'callstacks' not in json.loads(output_file.read_text())
