"""Command-line entry point for SVG Scout."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .capture import ScanOutcome, snapshot_from_html
from .config import PNG_SCALES, ScanConfig, load_export_settings
from .fetching import Fetcher
from .helper import HelperContext
from .models import ScanProgress
from .pipeline import OUTPUT_FORMATS, ExportOptions, ScanMetrics, process_outcome, run_scans
from .scanner import scan_snapshot

logger = logging.getLogger("svg_scout.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("scan", *argv)


def _add_export_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        default="output",
        type=Path,
        help="Directory where exported SVGs should be written",
    )
    parser.add_argument(
        "--format",
        dest="fmt",
        choices=OUTPUT_FORMATS,
        default="svg",
        help="Write individual SVG or PNG files, one ZIP archive, or a JSON manifest",
    )
    parser.add_argument(
        "--scale",
        type=int,
        choices=PNG_SCALES,
        default=None,
        help="PNG scale factor (defaults to the stored settings)",
    )
    parser.add_argument(
        "--background",
        default=None,
        help="PNG background color, e.g. '#ffffff' (default: transparent)",
    )
    parser.add_argument(
        "--include-png",
        action="store_true",
        default=None,
        help="Add PNG renders next to the SVGs in ZIP archives",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="JSON file with export settings",
    )
    parser.add_argument(
        "--in-process",
        action="store_true",
        help="Render in this process instead of a background worker",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_scan_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("urls", nargs="+", help="One or more URLs to scan")
    parser.add_argument(
        "--wait",
        type=float,
        default=1.0,
        help="Seconds to wait after network idle before scanning",
    )
    _add_export_arguments(parser)


def _add_html_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", type=Path, help="Saved HTML file to scan")
    parser.add_argument(
        "--base-url",
        required=True,
        help="URL the page was saved from; relative references resolve against it",
    )
    _add_export_arguments(parser)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Find every SVG on a web page and export it as SVG, PNG or ZIP.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan", help="Render pages with Playwright and export their SVGs"
    )
    _add_scan_arguments(scan_parser)

    html_parser = subparsers.add_parser(
        "html", help="Export the SVGs of a saved HTML file"
    )
    _add_html_arguments(html_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _log_progress(progress: ScanProgress) -> None:
    if progress.total is None:
        logger.debug("%s: %d SVGs", progress.phase, progress.found)
    else:
        logger.debug("Scanning %s (%d found so far)", progress.phase, progress.found)


def _export_options(args: argparse.Namespace) -> ExportOptions:
    return ExportOptions(
        fmt=args.fmt,
        scale=args.scale,
        background_color=args.background,
        include_png=args.include_png,
    )


def _helper_for(args: argparse.Namespace) -> Optional[HelperContext]:
    if args.in_process or args.fmt == "json":
        return None
    return HelperContext()


def _run_scan(args: argparse.Namespace) -> List[ScanMetrics]:
    config = ScanConfig(
        output_root=Path(args.output).resolve(),
        wait_after_load=args.wait,
        navigation_timeout=args.timeout,
    )
    settings = load_export_settings(args.settings)

    async def _scan() -> List[ScanMetrics]:
        helper = _helper_for(args)
        try:
            return await run_scans(
                args.urls,
                config,
                _export_options(args),
                settings,
                helper=helper,
                on_progress=_log_progress,
            )
        finally:
            if helper is not None:
                await helper.aclose()

    return asyncio.run(_scan())


def _run_html(args: argparse.Namespace) -> List[ScanMetrics]:
    config = ScanConfig(
        output_root=Path(args.output).resolve(),
        navigation_timeout=args.timeout,
    )
    settings = load_export_settings(args.settings)
    try:
        html = args.path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.error("Could not read %s: %s", args.path, exc)
        return []

    async def _scan() -> List[ScanMetrics]:
        start = time.perf_counter()
        snapshot = snapshot_from_html(html, args.base_url)
        fetcher = Fetcher(timeout=config.fetch_timeout, referer=args.base_url)
        assets = await scan_snapshot(snapshot, fetcher, _log_progress)
        outcome = ScanOutcome(
            snapshot=snapshot,
            assets=assets,
            elapsed_seconds=time.perf_counter() - start,
        )
        helper = _helper_for(args)
        try:
            return [
                await process_outcome(outcome, config, _export_options(args), settings, helper)
            ]
        finally:
            if helper is not None:
                await helper.aclose()

    return asyncio.run(_scan())


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    overall_start = time.perf_counter()
    if args.command == "scan":
        metrics = _run_scan(args)
        total = len(args.urls)
    else:
        metrics = _run_html(args)
        total = 1
    total_elapsed = time.perf_counter() - overall_start

    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d SVGs found)",
        total_elapsed,
        len(metrics),
        total,
        sum(metric.asset_count for metric in metrics),
    )
    if args.verbose:
        for metric in metrics:
            logger.debug(
                "%s -> %d SVGs, %d files in %.2fs",
                metric.url,
                metric.asset_count,
                len(metric.written),
                metric.total_seconds,
            )
    if not metrics:
        sys.exit(1)


if __name__ == "__main__":
    main()
