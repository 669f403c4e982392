from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING, AsyncIterator

from playwright.async_api import Page, async_playwright

if TYPE_CHECKING:
    from .monitor import NetworkMonitor

LOGGER = logging.getLogger(__name__)

# Vendor certificates are not always valid; exploration only observes traffic.
EXPLORATION_CONTEXT_OPTIONS = {"ignore_https_errors": True}


@asynccontextmanager
async def exploration_session(
    monitor: "NetworkMonitor",
    *,
    headless: bool = False,
    slow_mo_ms: int | None = None,
) -> AsyncIterator[Page]:
    """Open a monitored Chromium page; the browser is closed on exit, whatever happened."""

    async with async_playwright() as playwright:
        LOGGER.info("Launching browser (headless=%s, slow_mo=%sms)", headless, slow_mo_ms or 0)
        browser = await playwright.chromium.launch(headless=headless, slow_mo=slow_mo_ms or None)
        try:
            context = await browser.new_context(**EXPLORATION_CONTEXT_OPTIONS)
            page = await context.new_page()
            monitor.attach(page)
            yield page
        finally:
            await browser.close()
            LOGGER.info("Browser closed")
