"""MCP server exposing SVG Scout scan/export tools."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from .capture import scan_url
from .config import ScanConfig, load_export_settings
from .pipeline import OUTPUT_FORMATS, ExportOptions, process_outcome

logger = logging.getLogger("svg_scout.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="svg-scout")


@mcp.tool()
async def scan(
    url: str,
) -> str:
    """Render a web page with Playwright and list every SVG found on it as JSON."""

    config = ScanConfig(output_root=Path(tempfile.gettempdir()))
    outcome = await scan_url(url, config)
    return json.dumps(
        {
            "url": outcome.snapshot.url,
            "title": outcome.snapshot.title,
            "count": len(outcome.assets),
            "items": [asset.to_dict() for asset in outcome.assets],
        },
        ensure_ascii=False,
    )


@mcp.tool()
async def export(
    url: str,
    output_dir: str,
    format: str = "svg",  # pylint: disable=redefined-builtin
) -> str:
    """Scan a web page and write its SVGs as svg, png, zip or json files."""

    if format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported format {format!r}; use one of {OUTPUT_FORMATS}")
    config = ScanConfig(output_root=Path(output_dir).expanduser().resolve())
    outcome = await scan_url(url, config)
    metrics = await process_outcome(
        outcome, config, ExportOptions(fmt=format), load_export_settings()
    )
    return "\n".join(str(path) for path in metrics.written)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
