"""Scan pages and write their SVGs to disk."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional, Sequence, Set
from urllib.parse import urlparse

from .archive import unique_name
from .capture import ScanOutcome, scan_url
from .config import ExportSettings, ScanConfig
from .exporter import export_archive, export_single
from .helper import HelperContext
from .models import DiscoveredAsset, ExportResult, PageSnapshot
from .scanner import ProgressCallback
from .utils import slugify

logger = logging.getLogger("svg_scout")

OUTPUT_FORMATS = ("svg", "png", "zip", "json")
MANIFEST_NAME = "svgs.json"


@dataclass
class ExportOptions:
    """How scan results should be written."""

    fmt: str = "svg"
    scale: Optional[int] = None
    background_color: Optional[str] = None
    include_png: Optional[bool] = None


@dataclass
class ScanMetrics:
    """Summary of one processed page."""

    url: str
    asset_count: int
    written: List[Path]
    total_seconds: float


def build_output_dir(config: ScanConfig, url: str) -> Path:
    """Create ``<output_root>/<domain-slug>`` for a page."""
    parsed = urlparse(url)
    domain = slugify(parsed.netloc or "local", fallback="local")
    output_dir = config.output_root / domain
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def _write(result: ExportResult, output_dir: Path, written: List[Path]) -> None:
    if not result.ok:
        logger.warning("Could not export %s: %s", result.filename, result.error)
        return
    path = output_dir / result.filename
    path.write_bytes(result.payload)
    written.append(path)
    logger.debug("Wrote %s", path)


def write_manifest(
    snapshot: PageSnapshot, assets: Sequence[DiscoveredAsset], output_dir: Path
) -> Path:
    manifest = {
        "url": snapshot.url,
        "title": snapshot.title,
        "count": len(assets),
        "items": [asset.to_dict() for asset in assets],
    }
    path = output_dir / MANIFEST_NAME
    path.write_text(json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


async def save_assets(
    snapshot: PageSnapshot,
    assets: Sequence[DiscoveredAsset],
    output_dir: Path,
    options: ExportOptions,
    settings: ExportSettings,
    helper: Optional[HelperContext] = None,
) -> List[Path]:
    """Write assets in the requested format and return the created files."""
    written: List[Path] = []
    if options.fmt == "json":
        written.append(write_manifest(snapshot, assets, output_dir))
    elif options.fmt == "zip":
        result = await export_archive(
            assets,
            include_raster=options.include_png,
            scale=options.scale,
            page_title=snapshot.title,
            helper=helper,
            settings=settings,
        )
        _write(result, output_dir, written)
    elif options.fmt in ("svg", "png"):
        used: Set[str] = set()
        for index, asset in enumerate(assets):
            result = await export_single(
                asset,
                fmt=options.fmt,
                scale=options.scale,
                background_color=options.background_color,
                page_title=snapshot.title,
                helper=helper,
                settings=settings,
                index=index,
            )
            if result.filename:
                stem, _, suffix = result.filename.rpartition(".")
                result = replace(result, filename=f"{unique_name(stem, used)}.{suffix}")
            _write(result, output_dir, written)
    else:
        raise ValueError(f"Unsupported output format: {options.fmt}")
    return written


async def process_outcome(
    outcome: ScanOutcome,
    config: ScanConfig,
    options: ExportOptions,
    settings: ExportSettings,
    helper: Optional[HelperContext] = None,
) -> ScanMetrics:
    output_dir = build_output_dir(config, outcome.snapshot.url)
    written = await save_assets(
        outcome.snapshot, outcome.assets, output_dir, options, settings, helper
    )
    logger.info(
        "Saved %d file(s) for %s to %s", len(written), outcome.snapshot.url, output_dir
    )
    return ScanMetrics(
        url=outcome.snapshot.url,
        asset_count=len(outcome.assets),
        written=written,
        total_seconds=outcome.elapsed_seconds,
    )


async def run_scans(
    urls: Sequence[str],
    config: ScanConfig,
    options: ExportOptions,
    settings: ExportSettings,
    helper: Optional[HelperContext] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[ScanMetrics]:
    """Scan each URL sequentially; a page that fails to load is skipped."""
    metrics: List[ScanMetrics] = []
    for url in urls:
        start = time.perf_counter()
        try:
            outcome = await scan_url(url, config, on_progress)
        except RuntimeError as exc:
            logger.error("Skipping %s: %s", url, exc)
            continue
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected error scanning %s", url)
            continue
        metric = await process_outcome(outcome, config, options, settings, helper)
        metric.total_seconds = time.perf_counter() - start
        metrics.append(metric)
    return metrics
