from __future__ import annotations

from dataclasses import dataclass, field
import io
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter, HTTPAdapter
from urllib3 import HTTPResponse

from barber_booker.booking import SessionedBookingClient

BASE_URL = "https://barber.test"
MOBILE = "0544458876"
LOGIN_PAGE_HTML = (
    "<form action=\"/Account/LoginMobileClient\" method=\"post\">"
    "<input name=\"__RequestVerificationToken\" type=\"hidden\" value=\"tok-123\" />"
    "<input name=\"Mobile\" type=\"tel\" /></form>"
)
PROVIDERS_HTML = (
    "<a href=\"/Clients/TimeSelect?ids=37331&id=0&Customers=&SchedulerID=6132&BranchID=0\">Saul</a>"
    "<a href=\"/Clients/TimeSelect?ids=37331&id=0&Customers=&SchedulerID=7001&BranchID=0\">Dana</a>"
    "<a href=\"/Clients/TimeSelect?ids=37331&id=0&Customers=&SchedulerID=6132&BranchID=0\">Saul again</a>"
)
TIMES_JSON = '[{"Date": "2025-11-16", "Time": "10:00"}, {"Date": "2025-11-16", "Time": "10:30"}]'


@dataclass
class Reply:
    status: int = 200
    body: str = ""
    headers: List[Tuple[str, str]] = field(default_factory=list)
    error: Optional[Exception] = None


@dataclass
class SeenRequest:
    method: str
    path: str
    query: Dict[str, List[str]]
    headers: Dict[str, str]
    body: Optional[str]

    @property
    def form(self) -> Dict[str, List[str]]:
        return parse_qs(self.body or "", keep_blank_values=True)


class ScriptedVendor(BaseAdapter):
    """Transport adapter answering from per-route reply queues.

    The last reply queued for a route is repeated; unscripted routes get 404.
    """

    def __init__(self) -> None:
        super().__init__()
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.seen: List[SeenRequest] = []
        self._builder = HTTPAdapter()

    def reply(self, method: str, path: str, *replies: Reply) -> None:
        self.routes.setdefault((method, path), []).extend(replies)

    def send(self, request, **kwargs):
        parts = urlsplit(request.url)
        body = request.body.decode() if isinstance(request.body, bytes) else request.body
        self.seen.append(
            SeenRequest(
                method=request.method,
                path=parts.path,
                query=parse_qs(parts.query, keep_blank_values=True),
                headers=dict(request.headers),
                body=body,
            )
        )

        queue = self.routes.get((request.method, parts.path))
        if not queue:
            reply = Reply(status=404, body="not scripted")
        elif len(queue) > 1:
            reply = queue.pop(0)
        else:
            reply = queue[0]
        if reply.error is not None:
            raise reply.error

        raw = HTTPResponse(
            body=io.BytesIO(reply.body.encode("utf-8")),
            headers=reply.headers,
            status=reply.status,
            preload_content=False,
            decode_content=False,
        )
        return self._builder.build_response(request, raw)

    def close(self) -> None:
        self._builder.close()

    def calls(self) -> List[str]:
        return [f"{seen.method} {seen.path}" for seen in self.seen]

    def last(self, method: str, path: str) -> SeenRequest:
        for seen in reversed(self.seen):
            if seen.method == method and seen.path == path:
                return seen
        raise AssertionError(f"{method} {path} was never requested")


def script_login(vendor: ScriptedVendor, *, submit_status: int = 302) -> None:
    vendor.reply(
        "POST",
        "/Validate/Mobile",
        Reply(200, "true", [("Set-Cookie", "ASP.NET_SessionId=abc; path=/; HttpOnly")]),
    )
    vendor.reply(
        "GET",
        "/Account/LoginClients",
        Reply(200, LOGIN_PAGE_HTML, [("Set-Cookie", "__RequestVerificationToken=cookie-tok; path=/; HttpOnly")]),
    )
    vendor.reply(
        "POST",
        "/Account/LoginMobileClient",
        Reply(
            submit_status,
            "",
            [("Location", "/Clients/MakeAppoitment"), ("Set-Cookie", ".ASPXAUTH=auth-1; path=/; HttpOnly")],
        ),
    )


def script_wizard(vendor: ScriptedVendor) -> None:
    vendor.reply("GET", "/Clients/TypeSelect/0", Reply(200, "<h1>types</h1>"))
    vendor.reply("GET", "/Clients/SchedulerSelect", Reply(200, PROVIDERS_HTML))
    vendor.reply("GET", "/Clients/TimeSelect", Reply(200, "<h1>times</h1>"))
    vendor.reply(
        "POST",
        "/Clients/TimeSelectScheduler",
        Reply(200, TIMES_JSON, [("Content-Type", "application/json; charset=utf-8")]),
    )


@pytest.fixture
def vendor() -> ScriptedVendor:
    return ScriptedVendor()


@pytest.fixture
def client(vendor: ScriptedVendor) -> SessionedBookingClient:
    http = requests.Session()
    http.mount("https://", vendor)
    return SessionedBookingClient(BASE_URL, http=http)
