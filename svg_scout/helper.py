"""Delegate binary-producing work to a single background worker.

Rendering and archive building run in a separate process so the event loop
driving the browser stays responsive. Requests and responses are plain dicts:
``{"type": ...}`` goes in, ``{"success": bool, "data" | "error": ...}`` comes
back, and worker failures never propagate as exceptions to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, ProcessPoolExecutor
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from .archive import build_archive
from .models import ArchiveSpec, DiscoveredAsset, RenderRequest
from .render import render_png

logger = logging.getLogger("svg_scout")

PING = "PING"
CREATE_BINARY = "CREATE_BINARY"
RENDER = "RENDER"
BUILD_ARCHIVE = "BUILD_ARCHIVE"
UNKNOWN_REQUEST = "Unknown request type"

Response = Dict[str, Any]
ExecutorFactory = Callable[[], Executor]


class HelperContextError(RuntimeError):
    """Raised when the worker cannot be started or stops answering."""


def _ok(data: Any) -> Response:
    return {"success": True, "data": data}


def _error(message: str) -> Response:
    return {"success": False, "error": message}


def handle_request(message: Mapping[str, Any]) -> Response:
    """Worker-side dispatcher; every failure becomes an error response."""
    request_type = message.get("type")
    try:
        if request_type == PING:
            return _ok("PONG")
        if request_type == CREATE_BINARY:
            content = message["content"]
            if isinstance(content, str):
                content = content.encode("utf-8")
            return _ok(bytes(content))
        if request_type == RENDER:
            request = RenderRequest(
                content=message["content"],
                scale=message.get("scale", 2),
                background_color=message.get("background_color"),
            )
            return _ok(
                render_png(request.content, request.scale, request.background_color)
            )
        if request_type == BUILD_ARCHIVE:
            archive_spec = ArchiveSpec(
                items=list(message.get("items") or []),
                include_raster=bool(message.get("include_raster")),
                scale=message.get("scale", 2),
                page_title=message.get("page_title"),
            )
            return _ok(
                build_archive(
                    archive_spec.items,
                    include_raster=archive_spec.include_raster,
                    scale=archive_spec.scale,
                    page_title=archive_spec.page_title,
                )
            )
    except Exception as exc:  # pylint: disable=broad-except
        return _error(str(exc) or exc.__class__.__name__)
    return _error(UNKNOWN_REQUEST)


def _default_executor() -> Executor:
    return ProcessPoolExecutor(max_workers=1)


class HelperContext:
    """Owns the one background worker and hands requests to it."""

    def __init__(self, factory: Optional[ExecutorFactory] = None) -> None:
        self._factory = factory or _default_executor
        self._executor: Optional[Executor] = None
        self._creating: Optional[asyncio.Future] = None
        self._closed = False

    @property
    def ready(self) -> bool:
        return self._executor is not None

    async def ensure_ready(self) -> None:
        """Start the worker once; concurrent callers share the same start-up."""
        if self._closed:
            raise HelperContextError("Helper context is closed")
        if self._executor is not None:
            return
        if self._creating is None:
            self._creating = asyncio.ensure_future(self._create())
        await asyncio.shield(self._creating)

    async def _create(self) -> None:
        try:
            executor = self._factory()
        except Exception as exc:  # pylint: disable=broad-except
            raise HelperContextError(f"Failed to start helper: {exc}") from exc

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(executor, handle_request, {"type": PING})
        except Exception as exc:  # pylint: disable=broad-except
            executor.shutdown(wait=False)
            raise HelperContextError(f"Helper did not respond: {exc}") from exc
        if not response.get("success"):
            executor.shutdown(wait=False)
            raise HelperContextError(f"Helper did not respond: {response.get('error')}")

        self._executor = executor
        logger.debug("Helper context ready")

    async def request(self, message: Mapping[str, Any]) -> Response:
        try:
            await self.ensure_ready()
        except HelperContextError as exc:
            return _error(str(exc))

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, handle_request, dict(message))
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Helper request %s failed: %s", message.get("type"), exc)
            return _error(str(HelperContextError(f"Helper stopped responding: {exc}")))

    async def create_binary(self, content: str) -> Response:
        return await self.request({"type": CREATE_BINARY, "content": content})

    async def render(
        self,
        content: str,
        scale: int = 2,
        background_color: Optional[str] = None,
    ) -> Response:
        return await self.request(
            {
                "type": RENDER,
                "content": content,
                "scale": scale,
                "background_color": background_color,
            }
        )

    async def build_archive(
        self,
        items: Sequence[DiscoveredAsset],
        include_raster: bool = False,
        scale: int = 2,
        page_title: Optional[str] = None,
    ) -> Response:
        return await self.request(
            {
                "type": BUILD_ARCHIVE,
                "items": list(items),
                "include_raster": include_raster,
                "scale": scale,
                "page_title": page_title,
            }
        )

    def _detach(self) -> Optional[Executor]:
        self._closed = True
        if self._creating is not None and not self._creating.done():
            self._creating.cancel()
        executor, self._executor = self._executor, None
        return executor

    def close(self) -> None:
        executor = self._detach()
        if executor is not None:
            executor.shutdown(wait=True)

    async def aclose(self) -> None:
        """Close from inside the event loop; the worker drains on a thread."""
        executor = self._detach()
        if executor is not None:
            await asyncio.to_thread(executor.shutdown, True)

    def __enter__(self) -> "HelperContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> "HelperContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
