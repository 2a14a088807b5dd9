"""Tests for the headless page fetcher lifecycle and error mapping."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.ingest.base import FetchError
from src.ingest.fetchers.headless import HeadlessPageFetcher
from src.ingest.stealth_browser import StealthBrowser

from tests.fakes import MDCOMPUTERS_HTML, MDCOMPUTERS_URL


def _mock_playwright(status=200, title="AMD Ryzen 5 7600", html=MDCOMPUTERS_HTML,
                     goto_side_effect=None, launch_side_effect=None):
    """Build a patched async_playwright() returning mocks for one browser."""
    page = MagicMock()
    page.goto = AsyncMock(return_value=MagicMock(status=status), side_effect=goto_side_effect)
    page.title = AsyncMock(return_value=title)
    page.content = AsyncMock(return_value=html)
    page.add_init_script = AsyncMock()

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_side_effect)

    manager = MagicMock()
    manager.__aenter__ = AsyncMock(return_value=playwright)
    manager.__aexit__ = AsyncMock(return_value=False)

    return MagicMock(return_value=manager), playwright, browser, page


def _fetcher(**kwargs):
    kwargs.setdefault("timeout_ms", 5000)
    kwargs.setdefault("launch_timeout_ms", 5000)
    return HeadlessPageFetcher(
        headless=True,
        stealth=StealthBrowser(enabled=True, rotate_user_agent=False),
        not_found_markers=["404", "Not Found"],
        **kwargs,
    )


@pytest.mark.asyncio
async def test_fetch_returns_snapshot_and_closes_browser():
    factory, playwright, browser, page = _mock_playwright()

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        result = await _fetcher().fetch(MDCOMPUTERS_URL)

    assert result.url == MDCOMPUTERS_URL
    assert result.html == MDCOMPUTERS_HTML
    assert result.status == 200
    browser.close.assert_awaited_once()
    page.goto.assert_awaited_once()
    assert page.goto.call_args.kwargs["wait_until"] == "domcontentloaded"
    assert page.goto.call_args.kwargs["timeout"] == 5000
    assert playwright.chromium.launch.call_args.kwargs["headless"] is True


@pytest.mark.asyncio
async def test_timeout_override_is_passed_to_navigation():
    factory, _, _, page = _mock_playwright()

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        await _fetcher().fetch(MDCOMPUTERS_URL, timeout_ms=1234)

    assert page.goto.call_args.kwargs["timeout"] == 1234


@pytest.mark.asyncio
async def test_http_error_status_raises_and_closes_browser():
    factory, _, browser, _ = _mock_playwright(status=503)

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        with pytest.raises(FetchError) as exc_info:
            await _fetcher().fetch(MDCOMPUTERS_URL)

    assert exc_info.value.reason == "HTTP 503"
    browser.close.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["404 - Page Missing", "Product not found", "NOT FOUND"])
async def test_not_found_title_raises(title):
    factory, _, browser, page = _mock_playwright(title=title)

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        with pytest.raises(FetchError):
            await _fetcher().fetch(MDCOMPUTERS_URL)

    page.content.assert_not_awaited()
    browser.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_navigation_timeout_raises_and_closes_browser():
    factory, _, browser, _ = _mock_playwright(
        goto_side_effect=PlaywrightTimeoutError("Timeout 5000ms exceeded")
    )

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        with pytest.raises(FetchError) as exc_info:
            await _fetcher().fetch(MDCOMPUTERS_URL)

    assert exc_info.value.reason == "Navigation timeout"
    browser.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_network_error_raises_and_closes_browser():
    factory, _, browser, _ = _mock_playwright(
        goto_side_effect=PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
    )

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        with pytest.raises(FetchError) as exc_info:
            await _fetcher().fetch(MDCOMPUTERS_URL)

    assert "ERR_NAME_NOT_RESOLVED" in exc_info.value.reason
    browser.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_launch_failure_raises_fetch_error():
    factory, _, browser, _ = _mock_playwright(
        launch_side_effect=PlaywrightError("Executable doesn't exist")
    )

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        with pytest.raises(FetchError) as exc_info:
            await _fetcher().fetch(MDCOMPUTERS_URL)

    assert "launch" in exc_info.value.reason.lower()
    browser.new_context.assert_not_awaited()


@pytest.mark.asyncio
async def test_hung_navigation_hits_outer_ceiling_and_closes_browser():
    async def hang(*args, **kwargs):
        await asyncio.sleep(10)

    factory, _, browser, _ = _mock_playwright(goto_side_effect=hang)

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        with pytest.raises(FetchError):
            await _fetcher(timeout_ms=20, launch_timeout_ms=20).fetch(MDCOMPUTERS_URL)

    browser.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_failure_does_not_mask_result():
    factory, _, browser, _ = _mock_playwright()
    browser.close.side_effect = PlaywrightError("Browser has been closed")

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        result = await _fetcher().fetch(MDCOMPUTERS_URL)

    assert result.status == 200


@pytest.mark.asyncio
async def test_stealth_scripts_injected_before_navigation():
    factory, _, _, page = _mock_playwright()
    order = []
    page.add_init_script.side_effect = lambda *a, **k: order.append("script")

    async def goto(*args, **kwargs):
        order.append("goto")
        return MagicMock(status=200)

    page.goto = AsyncMock(side_effect=goto)

    with patch("src.ingest.fetchers.headless.async_playwright", factory):
        await _fetcher().fetch(MDCOMPUTERS_URL)

    assert order[-1] == "goto"
    assert "script" in order
