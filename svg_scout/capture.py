"""Render pages with Playwright and capture what the detectors need."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    Response,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .config import ScanConfig
from .fetching import BrowserFetchRelay, Fetcher
from .models import CapturedStylesheet, DiscoveredAsset, NetworkResource, PageSnapshot
from .scanner import ProgressCallback, scan_snapshot

logger = logging.getLogger("svg_scout")

# Serializes shadow roots declaratively and reads every readable stylesheet.
# Closed roots are only reachable through the extension-only chrome.dom hatch.
CAPTURE_SCRIPT = """
() => {
  const roots = [];
  let closedExposed = false;
  const hatch = (typeof chrome !== 'undefined' && chrome.dom &&
                 typeof chrome.dom.openOrClosedShadowRoot === 'function')
    ? (el) => chrome.dom.openOrClosedShadowRoot(el) : null;
  const visit = (scope) => {
    for (const el of scope.querySelectorAll('*')) {
      let root = el.shadowRoot;
      if (!root && hatch) {
        try {
          root = hatch(el);
          if (root) closedExposed = true;
        } catch (e) { root = null; }
      }
      if (root) {
        roots.push(root);
        visit(root);
      }
    }
  };
  visit(document);

  let html = null;
  const docEl = document.documentElement;
  if (typeof docEl.getHTML === 'function') {
    try {
      html = '<!DOCTYPE html><html>' +
        docEl.getHTML({serializableShadowRoots: true, shadowRoots: roots}) + '</html>';
    } catch (e) { html = null; }
  }

  // Flatten each applied sheet into the style rules that match this screen,
  // following @import so every group keeps the address its URLs resolve to.
  const stylesheets = [];
  const collect = (sheet, depth) => {
    if (depth > 8 || sheet.disabled) return;
    if (sheet.media && sheet.media.mediaText &&
        !window.matchMedia(sheet.media.mediaText).matches) return;
    let rules;
    try {
      rules = sheet.cssRules;
    } catch (e) {
      return;  // cross-origin sheet without CORS headers
    }
    let texts = [];
    const flush = () => {
      if (texts.length) stylesheets.push({href: sheet.href, css: texts.join('\\n')});
      texts = [];
    };
    const walk = (list) => {
      for (const rule of list) {
        if (rule instanceof CSSImportRule) {
          if (rule.styleSheet) {
            flush();
            collect(rule.styleSheet, depth + 1);
          }
        } else if (rule instanceof CSSStyleRule) {
          texts.push(rule.cssText);
        } else if (rule instanceof CSSMediaRule) {
          if (window.matchMedia(rule.media.mediaText).matches) walk(rule.cssRules);
        } else if (rule instanceof CSSSupportsRule) {
          if (CSS.supports(rule.conditionText)) walk(rule.cssRules);
        } else if (typeof CSSGroupingRule !== 'undefined' && rule instanceof CSSGroupingRule) {
          walk(rule.cssRules);
        }
      }
    };
    walk(rules);
    flush();
  };
  for (const sheet of document.styleSheets) collect(sheet, 0);
  return {html, title: document.title, stylesheets, closedExposed};
}
"""


@dataclass
class ScanOutcome:
    """A scanned page and the SVGs found on it."""

    snapshot: PageSnapshot
    assets: List[DiscoveredAsset]
    elapsed_seconds: float


def snapshot_from_html(html: str, url: str, title: Optional[str] = None) -> PageSnapshot:
    """Snapshot for saved HTML; styles are read from its ``<style>`` blocks."""
    return PageSnapshot(html=html, url=url, title=title)


async def capture_page(page: Page) -> PageSnapshot:
    """Serialize the loaded page, its shadow roots and its stylesheets."""
    captured = await page.evaluate(CAPTURE_SCRIPT)
    html = captured.get("html") or await page.content()
    return PageSnapshot(
        html=html,
        url=page.url,
        title=(captured.get("title") or "").strip() or None,
        stylesheets=[
            CapturedStylesheet(css=sheet.get("css") or "", href=sheet.get("href"))
            for sheet in captured.get("stylesheets") or []
        ],
        closed_shadow_roots_exposed=bool(captured.get("closedExposed")),
    )


async def _read_svg_responses(responses: List[Response]) -> List[NetworkResource]:
    resources: List[NetworkResource] = []
    for response in responses:
        try:
            if not response.ok:
                continue
            body = await response.text()
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("Could not read SVG response %s: %s", response.url, exc)
            continue
        resources.append(NetworkResource(url=response.url, content=body))
    return resources


async def scan_url(
    url: str,
    config: ScanConfig,
    on_progress: Optional[ProgressCallback] = None,
) -> ScanOutcome:
    """Navigate to a URL, capture it, and scan it while the browser is still open."""
    start = time.perf_counter()
    svg_responses: List[Response] = []

    def record_response(response: Response) -> None:
        content_type = response.headers.get("content-type", "")
        if "svg" in content_type:
            svg_responses.append(response)

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True)
        try:
            context = await browser.new_context(
                viewport={
                    "width": config.viewport_width,
                    "height": config.viewport_height,
                },
                user_agent=config.user_agent,
            )
            page = await context.new_page()
            page.set_default_navigation_timeout(config.navigation_timeout * 1000)
            page.on("response", record_response)
            try:
                logger.info("Loading %s", url)
                await page.goto(url, wait_until="networkidle")
                if config.wait_after_load:
                    await page.wait_for_timeout(int(config.wait_after_load * 1000))
            except PlaywrightTimeoutError as exc:
                logger.error("Timeout while loading %s: %s", url, exc)
                raise RuntimeError(f"Timed out loading {url}") from exc
            except PlaywrightError as exc:
                logger.error("Failed to load %s: %s", url, exc)
                raise RuntimeError(f"Failed to load {url}") from exc

            snapshot = await capture_page(page)
            snapshot.network_resources = await _read_svg_responses(svg_responses)

            fetcher = Fetcher(
                relay=BrowserFetchRelay(context.request, timeout=config.fetch_timeout),
                timeout=config.fetch_timeout,
                user_agent=config.user_agent,
                referer=snapshot.url,
            )
            assets = await scan_snapshot(snapshot, fetcher, on_progress)
        finally:
            await browser.close()

    return ScanOutcome(
        snapshot=snapshot,
        assets=assets,
        elapsed_seconds=time.perf_counter() - start,
    )
