from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import json
import logging
import re
import time
from typing import Dict, List, Optional
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError, Page, Request, Response

from .browser import exploration_session

LOGGER = logging.getLogger(__name__)

STATIC_EXTENSIONS = (".js", ".css", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".woff", ".woff2", ".ttf")
API_PATH_PATTERNS = (
    re.compile(r"/api/", re.IGNORECASE),
    re.compile(r"/graphql", re.IGNORECASE),
    re.compile(r"/rest/", re.IGNORECASE),
    re.compile(r"/v\d+/", re.IGNORECASE),
)
API_SUBSTRINGS = ("ajax", "xhr")
DATA_SUFFIX_PATTERN = re.compile(r"\.(json|xml)$", re.IGNORECASE)

BODY_STORE_LIMIT = 500
LIVE_PREVIEW_LIMIT = 200
SUMMARY_PREVIEW_LIMIT = 100
DEFAULT_WAIT_SECONDS = 300
SUMMARY_RULE = "=" * 60
DISCOVERY_TIP = (
    "TIP: Review the network requests above to identify API endpoints.\n"
    "   You can use these endpoints to create a direct API-based booking script."
)


def is_api_request(url: str) -> bool:
    """Heuristic: does this URL look like an API call rather than a static asset?"""

    path = urlparse(url).path.lower()
    if path.endswith(STATIC_EXTENSIONS):
        return False
    if any(pattern.search(url) for pattern in API_PATH_PATTERNS):
        return True
    if any(marker in url for marker in API_SUBSTRINGS):
        return True
    return DATA_SUFFIX_PATTERN.search(path) is not None


def status_marker(status: int) -> str:
    if 200 <= status < 300:
        return "✅"
    if status >= 400:
        return "❌"
    return "⚠️"


def format_body(body: str, limit: int) -> str:
    """Pretty-print JSON bodies; cut anything else down to ``limit`` chars."""

    try:
        return json.dumps(json.loads(body), indent=2, ensure_ascii=False)
    except ValueError:
        return body[:limit] + ("..." if len(body) > limit else "")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class NetworkRequest:
    url: str
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    post_data: Optional[str] = None
    timestamp: int = field(default_factory=_now_ms)


@dataclass(slots=True)
class NetworkResponse:
    url: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    timestamp: int = field(default_factory=_now_ms)


class NetworkMonitor:
    """Records API-like traffic seen by a Playwright page."""

    def __init__(self) -> None:
        self.requests: List[NetworkRequest] = []
        self.responses: List[NetworkResponse] = []

    def attach(self, page: Page) -> None:
        page.on("request", self.on_request)
        page.on("response", self.on_response)
        LOGGER.info("Network monitoring enabled - API-like requests will be logged")

    def on_request(self, request: Request) -> None:
        url = request.url
        if not is_api_request(url):
            return
        record = NetworkRequest(
            url=url,
            method=request.method,
            headers=dict(request.headers),
            post_data=request.post_data or None,
        )
        self.requests.append(record)

        lines = [f"🔵 REQUEST [{record.method}]", f"   URL: {url}"]
        if record.post_data:
            lines.append(f"   Body: {format_body(record.post_data, LIVE_PREVIEW_LIMIT)}")
        lines.append(f"   Headers: {json.dumps(record.headers, indent=2)}")
        LOGGER.info("\n".join(lines))

    async def on_response(self, response: Response) -> None:
        url = response.url
        if not is_api_request(url):
            return
        headers = dict(response.headers)
        body: Optional[str] = None
        content_type = headers.get("content-type", "")
        if "application/json" in content_type or "text/" in content_type:
            try:
                body = await response.text()
            except PlaywrightError as exc:
                LOGGER.debug("Could not read body of %s: %s", url, exc)
        record = NetworkResponse(
            url=url,
            status=response.status,
            headers=headers,
            body=body[:BODY_STORE_LIMIT] if body else None,
        )
        self.responses.append(record)

        lines = [f"{status_marker(record.status)} RESPONSE [{record.status}]", f"   URL: {url}"]
        if record.body:
            lines.append(f"   Body: {format_body(record.body, LIVE_PREVIEW_LIMIT)}")
        LOGGER.info("\n".join(lines))

    def format_summary(self) -> str:
        lines = [
            "📊 NETWORK SUMMARY",
            SUMMARY_RULE,
            f"Total API Requests: {len(self.requests)}",
            f"Total API Responses: {len(self.responses)}",
        ]

        if self.requests:
            lines.extend(["", "🔵 API REQUESTS:"])
            for idx, request in enumerate(self.requests, start=1):
                lines.append(f"{idx}. [{request.method}] {request.url}")
                if request.post_data:
                    lines.append(f"   Payload: {_summary_preview(request.post_data)}")

        if self.responses:
            lines.extend(["", "✅ API RESPONSES:"])
            for idx, response in enumerate(self.responses, start=1):
                lines.append(f"{idx}. {status_marker(response.status)} [{response.status}] {response.url}")
                if response.body:
                    lines.append(f"   Response: {_summary_preview(response.body)}")

        lines.append(SUMMARY_RULE)
        return "\n".join(lines)


def _summary_preview(body: str) -> str:
    try:
        return json.dumps(json.loads(body), indent=2, ensure_ascii=False)
    except ValueError:
        return f"{body[:SUMMARY_PREVIEW_LIMIT]}..."


async def explore_site(page: Page, url: str) -> None:
    LOGGER.info("Navigating to %s (the browser stays open for exploration)", url)
    await page.goto(url, wait_until="networkidle")
    LOGGER.info("Page loaded; interact with it now. Press Ctrl+C to stop early and see the summary.")


async def wait_for_exploration(seconds: int = DEFAULT_WAIT_SECONDS) -> None:
    LOGGER.info("Waiting up to %s seconds for exploration...", seconds)
    await asyncio.sleep(seconds)


async def run_exploration(
    url: str,
    *,
    headless: bool = False,
    wait_seconds: int = DEFAULT_WAIT_SECONDS,
    slow_mo_ms: int | None = 500,
) -> NetworkMonitor:
    """Open ``url`` in a browser, log API traffic, then print the summary."""

    monitor = NetworkMonitor()
    try:
        async with exploration_session(monitor, headless=headless, slow_mo_ms=slow_mo_ms) as page:
            await explore_site(page, url)
            await wait_for_exploration(wait_seconds)
    except PlaywrightError as exc:
        LOGGER.error("Exploration failed: %s", exc)
    finally:
        print(monitor.format_summary())
        print(DISCOVERY_TIP)
    return monitor
