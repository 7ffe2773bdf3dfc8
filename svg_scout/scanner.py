"""Run the detectors over a page snapshot and merge their findings."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from bs4 import BeautifulSoup

from .detectors import (
    CssDetector,
    DataAttributeDetector,
    DetectionContext,
    Detector,
    FaviconDetector,
    ImageDetector,
    InlineDetector,
    JsonScriptDetector,
    NetworkDetector,
    NoscriptDetector,
    ObjectEmbedDetector,
    ShadowDomDetector,
    SpriteDetector,
    TemplateDetector,
)
from .detectors.nested import declarative_closed_root
from .fetching import Fetcher
from .models import DiscoveredAsset, PageSnapshot, ScanProgress
from .styles import StyleResolver
from .svg_utils import deduplicate_assets

logger = logging.getLogger("svg_scout")

ProgressCallback = Callable[[ScanProgress], None]

# Execution order decides which source survives when strategies overlap.
DETECTORS: Sequence[Detector] = (
    InlineDetector(),
    ImageDetector(),
    ObjectEmbedDetector(),
    CssDetector(),
    SpriteDetector(),
    ShadowDomDetector(),
    FaviconDetector(),
    TemplateDetector(),
    NoscriptDetector(),
    DataAttributeDetector(),
    JsonScriptDetector(),
    NetworkDetector(),
)

COMPLETE_PHASE = "Complete"


def build_context(
    snapshot: PageSnapshot,
    fetcher: Optional[Fetcher] = None,
) -> DetectionContext:
    document = BeautifulSoup(snapshot.html, "html5lib")
    return DetectionContext(
        document=document,
        base_url=snapshot.url,
        styles=StyleResolver.for_tree(document, snapshot.stylesheets),
        fetcher=fetcher,
        network_resources=list(snapshot.network_resources),
        closed_shadow_root=(
            declarative_closed_root if snapshot.closed_shadow_roots_exposed else None
        ),
    )


async def run_detectors(
    context: DetectionContext,
    detectors: Sequence[Detector] = DETECTORS,
    on_progress: Optional[ProgressCallback] = None,
) -> List[DiscoveredAsset]:
    """Run each detector in turn, then keep the first asset per fingerprint."""
    all_items: List[DiscoveredAsset] = []
    for detector in detectors:
        if on_progress:
            on_progress(
                ScanProgress(
                    phase=detector.name, found=len(all_items), total=len(detectors)
                )
            )
        try:
            items = await detector.detect(context.for_detector())
        except Exception:  # pylint: disable=broad-except
            logger.exception("%s failed", detector.name)
            continue
        logger.debug("%s found %d candidates", detector.name, len(items))
        all_items.extend(items)

    deduplicated = deduplicate_assets(all_items)
    if on_progress:
        on_progress(ScanProgress(phase=COMPLETE_PHASE, found=len(deduplicated)))
    return deduplicated


async def scan_snapshot(
    snapshot: PageSnapshot,
    fetcher: Optional[Fetcher] = None,
    on_progress: Optional[ProgressCallback] = None,
    detectors: Sequence[Detector] = DETECTORS,
) -> List[DiscoveredAsset]:
    """Find every SVG in a captured page."""
    context = build_context(snapshot, fetcher)
    items = await run_detectors(context, detectors, on_progress)
    logger.info("Found %d unique SVGs on %s", len(items), snapshot.url)
    return items
