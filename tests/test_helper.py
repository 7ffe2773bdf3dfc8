"""
Tests for the background helper context.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from svg_scout import render
from svg_scout.helper import (
    BUILD_ARCHIVE,
    CREATE_BINARY,
    PING,
    RENDER,
    UNKNOWN_REQUEST,
    HelperContext,
    HelperContextError,
    handle_request,
)


class CountingFactory:
    """Executor factory that records how often it was called."""

    def __init__(self):
        self.calls = 0
        self.executors = []

    def __call__(self):
        self.calls += 1
        executor = ThreadPoolExecutor(max_workers=1)
        self.executors.append(executor)
        return executor


class TestHandleRequest:
    """Test cases for the worker-side dispatcher."""

    def test_ping(self):
        assert handle_request({"type": PING}) == {"success": True, "data": "PONG"}

    def test_unknown_type(self):
        assert handle_request({"type": "FORMAT_DISK"}) == {
            "success": False,
            "error": UNKNOWN_REQUEST,
        }

    def test_create_binary(self):
        response = handle_request({"type": CREATE_BINARY, "content": "<svg/>"})
        assert response == {"success": True, "data": b"<svg/>"}

    def test_render_failure_becomes_error(self):
        response = handle_request({"type": RENDER, "content": "<svg", "scale": 2})
        assert response["success"] is False
        assert response["error"]

    def test_invalid_scale(self):
        response = handle_request({"type": RENDER, "content": "<svg/>", "scale": 3})
        assert response["success"] is False
        assert "Unsupported scale" in response["error"]

    def test_build_archive(self, asset_factory):
        response = handle_request({"type": BUILD_ARCHIVE, "items": [asset_factory()]})
        assert response["success"] is True
        assert response["data"][:2] == b"PK"


class TestHelperContext:
    """Test cases for the singleton start-up and request relay."""

    def test_concurrent_ensure_ready_creates_once(self):
        """Test that callers racing before start-up share one creation."""
        factory = CountingFactory()
        helper = HelperContext(factory)

        async def scenario():
            await asyncio.gather(*(helper.ensure_ready() for _ in range(5)))
            await helper.ensure_ready()

        try:
            asyncio.run(scenario())
            assert factory.calls == 1
            assert helper.ready
        finally:
            helper.close()

    def test_requests_are_relayed(self, monkeypatch, transparent_png):
        monkeypatch.setattr(render, "_rasterize", lambda markup, w, h: transparent_png(w, h))
        factory = CountingFactory()

        async def scenario(helper):
            binary = await helper.create_binary("<svg/>")
            png = await helper.render('<svg xmlns="http://www.w3.org/2000/svg"/>', 1)
            return binary, png

        with HelperContext(factory) as helper:
            binary, png = asyncio.run(scenario(helper))
        assert binary == {"success": True, "data": b"<svg/>"}
        assert png["success"] is True
        assert png["data"].startswith(b"\x89PNG")
        assert factory.calls == 1

    def test_failed_start_is_not_retried(self):
        calls = []

        def broken_factory():
            calls.append(1)
            raise OSError("no processes left")

        helper = HelperContext(broken_factory)

        async def scenario():
            first = await helper.create_binary("<svg/>")
            second = await helper.create_binary("<svg/>")
            return first, second

        first, second = asyncio.run(scenario())
        assert first["success"] is False
        assert "Failed to start helper" in first["error"]
        assert second["success"] is False
        assert len(calls) == 1

    def test_closed_helper(self):
        helper = HelperContext(CountingFactory())
        helper.close()
        with pytest.raises(HelperContextError):
            asyncio.run(helper.ensure_ready())
        response = asyncio.run(helper.create_binary("<svg/>"))
        assert response == {"success": False, "error": "Helper context is closed"}

    def test_aclose_inside_running_loop(self):
        """Test that the async close shuts the worker down and refuses new work."""
        factory = CountingFactory()

        async def scenario():
            async with HelperContext(factory) as helper:
                first = await helper.create_binary("<svg/>")
            second = await helper.create_binary("<svg/>")
            return helper, first, second

        helper, first, second = asyncio.run(scenario())
        assert first["success"] is True
        assert second == {"success": False, "error": "Helper context is closed"}
        assert not helper.ready
        assert factory.executors[0]._shutdown
