# panicsift/main.py
import argparse
import logging
import sys

from logger import setup_panicsift_logger
from config import PanicsiftConfig, PanicsiftConfigError
from panic_analysis import (
    PanicParseError, Similarity, aggregate, aggregate_subsets,
    make_pointer_predicate, parse_dump,
)
from panic_analysis.model import find_first
from report import export_buckets, make_console, print_summary, render_buckets, render_subsets


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Panicsift: condense goroutine dumps into distinct call paths"
    )
    parser.add_argument("dump", nargs="?", default="-",
                        help="File containing the goroutine dump ('-' for stdin).")
    parser.add_argument("--config", default=None,
                        help="Optional path to an alternate config file (otherwise uses ~/.panicsift/config.json).")
    parser.add_argument("--similarity", choices=[s.value for s in Similarity], default=None,
                        help="How strictly goroutines must match to share a bucket.")
    parser.add_argument("--aggressive", action="store_true",
                        help="Shortcut for --similarity aggressive.")
    parser.add_argument("--subsets", action="store_true",
                        help="Also print the minimal set of distinct call paths.")
    parser.add_argument("--hide-stdlib", action="store_true", help="Hide calls into the Go standard library.")
    parser.add_argument("--full-path", action="store_true", help="Print full source paths.")
    parser.add_argument("--goroot", default=None, help="GOROOT used to identify standard library calls.")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output.")
    parser.add_argument("--json", dest="json_output", default=None,
                        help="Export the buckets (and call paths with --subsets) to this JSON file.")
    parser.add_argument("--max-goroutines", type=int, default=None,
                        help="Only consider the first N goroutines of the dump (0 for no limit).")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Set the logging level for Panicsift.")
    parser.add_argument("--quiet", action="store_true",
                        help="Minimize log output (overrides log-level to ERROR).")
    return parser


def apply_overrides(cfg: PanicsiftConfig, args: argparse.Namespace) -> PanicsiftConfig:
    """Override config values with CLI args if provided."""
    if args.similarity:
        cfg.similarity = args.similarity
    if args.aggressive:
        cfg.similarity = Similarity.AGGRESSIVE.value
    if args.hide_stdlib:
        cfg.hide_stdlib = True
    if args.full_path:
        cfg.full_path = True
    if args.no_color:
        cfg.color = False
    if args.goroot:
        cfg.goroot = args.goroot
    if args.max_goroutines is not None:
        cfg.max_goroutines = args.max_goroutines
    return cfg


def _read_dump(path: str, goroot):
    if path == "-":
        return parse_dump(sys.stdin, out=sys.stdout, goroot=goroot)
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return parse_dump(f, out=sys.stdout, goroot=goroot)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Configure logging
    log_level = logging._nameToLevel.get(args.log_level.upper(), logging.WARNING)
    if args.quiet:
        log_level = logging.ERROR
    logger = setup_panicsift_logger(log_level, use_color=not args.no_color)

    # Load configuration
    try:
        cfg = apply_overrides(PanicsiftConfig.load(args.config), args)
        similarity = Similarity.from_name(cfg.similarity)
    except (PanicsiftConfigError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if cfg.log_to_file:
        logger = setup_panicsift_logger(log_level, log_to_file=True, log_file=cfg.log_file,
                                        use_color=cfg.color)

    try:
        context = _read_dump(args.dump, cfg.goroot)
    except OSError as e:
        logger.error(f"Failed to read {args.dump}: {e}")
        return 1
    except PanicParseError as e:
        logger.error(f"Failed to parse {args.dump}: {e}")
        return 1

    if context is None:
        logger.warning("No goroutine found in the dump")
        return 2

    goroutines = context.goroutines
    if cfg.max_goroutines and len(goroutines) > cfg.max_goroutines:
        logger.warning(f"Dump holds {len(goroutines)} goroutines; only the first "
                       f"{cfg.max_goroutines} are analyzed")
        goroutines = goroutines[:cfg.max_goroutines]

    first = find_first(goroutines)
    if first is not None:
        logger.info(f"Goroutine {first.id} triggered the panic ({first.signature.state})")

    is_pointer = make_pointer_predicate(cfg.pointer_threshold)
    buckets = aggregate(goroutines, similarity, is_pointer)
    logger.info(f"{len(goroutines)} goroutines in {len(buckets)} buckets "
                f"(similarity: {similarity.value})")
    callstacks = aggregate_subsets(goroutines) if args.subsets else None

    console = make_console(color=cfg.color)
    render_buckets(buckets, console, hide_stdlib=cfg.hide_stdlib, full_path=cfg.full_path)
    if callstacks is not None:
        console.print()
        render_subsets(callstacks, console)
    console.print()
    print_summary(buckets, console, callstacks)

    if args.json_output:
        try:
            export_buckets(buckets, args.json_output, callstacks)
        except OSError as e:
            logger.error(f"Failed to write {args.json_output}: {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
