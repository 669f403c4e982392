from __future__ import annotations

from enum import Enum
from http.cookiejar import DefaultCookiePolicy
import json
import logging
import re
from typing import Any, Collection, Dict, List, Mapping, Sequence
from urllib.parse import parse_qs, urlencode, urljoin, urlsplit

from bs4 import BeautifulSoup
import requests

from ..models.booking import (
    DEFAULT_BOOKING_LENGTH,
    DEFAULT_SCHEDULER_ID,
    VENDOR_BASE_URL,
    BookingConfig,
    BookingResult,
)
from .cookies import CookieStore
from .errors import (
    BookingFlowError,
    LoginRejectedError,
    MobileValidationError,
    TokenNotFoundError,
    UnexpectedStatusError,
)

LOGGER = logging.getLogger(__name__)

VALIDATE_MOBILE_PATH = "/Validate/Mobile"
LOGIN_PAGE_PATH = "/Account/LoginClients"
LOGIN_SUBMIT_PATH = "/Account/LoginMobileClient"
LOGIN_RETURN_URL = "/Clients/MakeAppoitment"
TYPE_SELECT_PATH = "/Clients/TypeSelect/0"
TYPE_LIST_PATH = "/Clients/TypeSelectList"
SCHEDULER_SELECT_PATH = "/Clients/SchedulerSelect"
TIME_SELECT_PATH = "/Clients/TimeSelect"
TIME_FETCH_PATH = "/Clients/TimeSelectScheduler"
NEXT_WEEK_PATH = "/Clients/TimeSelectScheduler2"
BOOK_PATH = "/Clients/AskAppointment"

TOKEN_PATTERN = re.compile(r"""__RequestVerificationToken[^>]*value=["']([^"']+)["']""")

SUCCESS_STATUSES = range(200, 300)
WIZARD_STATUSES = range(200, 400)
LOGIN_STATUSES = frozenset({200, 302})
BOOKED_STATUSES = frozenset({200})
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
MAX_WIZARD_REDIRECTS = 5

LOGGED_IN_MESSAGE = "Logged in successfully. Use get_available_times() to see available slots"

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,he;q=0.8",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}
AJAX_HEADERS = {**FORM_HEADERS, "X-Requested-With": "XMLHttpRequest"}


class FlowStage(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    VALIDATED = "validated"
    LOGGED_IN = "logged_in"
    TYPE_SELECTED = "type_selected"
    PROVIDER_SELECTED = "provider_selected"
    TIME_SELECTED = "time_selected"
    BOOKED = "booked"
    FAILED = "failed"


def extract_verification_token(html: str) -> str:
    """Pull the anti-forgery token out of the login page markup."""

    match = TOKEN_PATTERN.search(html or "")
    if not match:
        raise TokenNotFoundError("Could not extract verification token")
    return match.group(1)


class SessionedBookingClient:
    """Replays the vendor's booking wizard over one cookie-bound session.

    Every response feeds :attr:`cookies` and every request replays it. The
    requests cookie jar is switched off and redirects are followed here, hop
    by hop, so that no ``Set-Cookie`` is lost along the way.
    """

    def __init__(
        self,
        base_url: str = VENDOR_BASE_URL,
        *,
        http: requests.Session | None = None,
        timeout: float | None = None,
        verify: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cookies = CookieStore()
        self.stage = FlowStage.UNAUTHENTICATED
        self._timeout = timeout
        self._http = http or requests.Session()
        self._http.headers.update(DEFAULT_HEADERS)
        self._http.verify = verify
        self._http.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

    def __enter__(self) -> "SessionedBookingClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    # -- protocol steps -------------------------------------------------

    def validate_mobile(self, mobile: str) -> bool:
        try:
            response = self._send("POST", VALIDATE_MOBILE_PATH, params={"Mobile": mobile}, headers=AJAX_HEADERS)
        except requests.RequestException as exc:
            LOGGER.error("Mobile validation failed: %s", exc)
            self.stage = FlowStage.FAILED
            return False
        if response.status_code not in SUCCESS_STATUSES:
            LOGGER.error("Mobile validation answered with status %s", response.status_code)
            self.stage = FlowStage.FAILED
            return False
        self.stage = FlowStage.VALIDATED
        return True

    def login(self, mobile: str) -> bool:
        try:
            self._login(mobile)
        except (BookingFlowError, requests.RequestException) as exc:
            LOGGER.error("Login failed: %s", exc)
            self.stage = FlowStage.FAILED
            return False
        self.stage = FlowStage.LOGGED_IN
        LOGGER.info("Login successful")
        return True

    def _login(self, mobile: str) -> None:
        if not self.validate_mobile(mobile):
            raise MobileValidationError(f"Mobile number {mobile} did not pass validation")

        page = self._send(
            "GET",
            LOGIN_PAGE_PATH,
            params={"CustomerID": 0, "ReturnUrl": LOGIN_RETURN_URL},
            max_redirects=MAX_WIZARD_REDIRECTS,
        )
        self._expect(page, "login page", SUCCESS_STATUSES)
        token = extract_verification_token(page.text)

        response = self._send(
            "POST",
            LOGIN_SUBMIT_PATH,
            data={"Mobile": mobile, "__RequestVerificationToken": token},
            headers={**FORM_HEADERS, "Referer": self._url(LOGIN_PAGE_PATH)},
        )
        if response.status_code not in LOGIN_STATUSES:
            raise LoginRejectedError(f"Login submit answered with status {response.status_code}")

    def get_service_types(self) -> List[Any]:
        try:
            response = self._send("POST", TYPE_LIST_PATH, headers=AJAX_HEADERS)
            self._expect(response, "type list", SUCCESS_STATUSES)
            payload = response.json()
        except (BookingFlowError, requests.RequestException, ValueError) as exc:
            LOGGER.error("Failed to get service types: %s", exc)
            return []
        return payload if isinstance(payload, list) else []

    def get_service_providers(self, appointment_type_ids: Sequence[int], branch_id: int = 0) -> List[int]:
        """Return the scheduler ids linked from the provider-selection page."""

        query = _scheduler_select_query(_ids_param(appointment_type_ids), branch_id)
        try:
            response = self._send("GET", SCHEDULER_SELECT_PATH, params=query, max_redirects=MAX_WIZARD_REDIRECTS)
            self._expect(response, "scheduler select", SUCCESS_STATUSES)
        except (BookingFlowError, requests.RequestException) as exc:
            LOGGER.error("Failed to get service providers: %s", exc)
            return []

        soup = BeautifulSoup(response.text, "html.parser")
        providers: List[int] = []
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"]
            if not isinstance(href, str):
                continue
            scheduler_id = _scheduler_id_from_href(href)
            if scheduler_id is not None and scheduler_id not in providers:
                providers.append(scheduler_id)
        return providers

    def get_available_times(
        self,
        appointment_type_ids: Sequence[int],
        scheduler_id: int,
        branch_id: int = 0,
    ) -> Any | None:
        """Walk type, provider and time selection, then fetch the slots.

        The vendor keys its wizard state to the pages visited, so the three
        GETs must precede the fetch in exactly this order.
        """

        ids_param = _ids_param(appointment_type_ids)
        query = _time_select_query(ids_param, scheduler_id, branch_id)
        referer = f"{self._url(TIME_SELECT_PATH)}?{urlencode(query)}"
        try:
            self._walk_wizard(ids_param, scheduler_id, branch_id)
            response = self._send(
                "POST",
                TIME_FETCH_PATH,
                params=query,
                headers={**AJAX_HEADERS, "Referer": referer},
            )
            self._expect(response, "time fetch", WIZARD_STATUSES)
        except UnexpectedStatusError as exc:
            LOGGER.error("Failed to get available times: %s", exc)
            LOGGER.error("Response status: %s", exc.status_code)
            LOGGER.error("Response headers: %s", exc.headers)
            self.stage = FlowStage.FAILED
            return None
        except requests.RequestException as exc:
            LOGGER.error("Failed to get available times: %s", exc)
            self.stage = FlowStage.FAILED
            return None

        if response.status_code in REDIRECT_STATUSES:
            LOGGER.warning("Time fetch redirected (%s); continuing with its payload", response.status_code)
        else:
            LOGGER.info("Retrieved available times")
        return _decode_payload(response)

    def get_next_week_times(
        self,
        appointment_type_ids: Sequence[int],
        scheduler_id: int,
        branch_id: int = 0,
    ) -> Any | None:
        query = _time_select_query(_ids_param(appointment_type_ids), scheduler_id, branch_id)
        try:
            response = self._send("POST", NEXT_WEEK_PATH, params=query, headers=AJAX_HEADERS)
            self._expect(response, "next week fetch", SUCCESS_STATUSES)
        except (BookingFlowError, requests.RequestException) as exc:
            LOGGER.error("Failed to get next week times: %s", exc)
            return None
        return _decode_payload(response)

    def book_appointment(
        self,
        appointment_type_ids: Sequence[int],
        scheduler_id: int,
        date: str,
        time: str,
        length: int = DEFAULT_BOOKING_LENGTH,
        *,
        branch_id: int = 0,
    ) -> BookingResult:
        query = _time_select_query(_ids_param(appointment_type_ids), scheduler_id, branch_id)
        try:
            page = self._send("GET", TIME_SELECT_PATH, params=query, max_redirects=MAX_WIZARD_REDIRECTS)
            self._expect(page, "time select", WIZARD_STATUSES)
            self.stage = FlowStage.TIME_SELECTED
            response = self._send("POST", BOOK_PATH, params={"Length": length}, headers=AJAX_HEADERS)
        except (BookingFlowError, requests.RequestException) as exc:
            LOGGER.error("Booking failed: %s", exc)
            self.stage = FlowStage.FAILED
            return BookingResult(success=False, message=str(exc) or "Unknown error")

        if response.status_code in BOOKED_STATUSES:
            LOGGER.info("Booked %s at %s with scheduler %s", date, time, scheduler_id)
            self.stage = FlowStage.BOOKED
            return BookingResult(
                success=True,
                message="Appointment booked successfully",
                date=date,
                time=time,
            )

        server_message = _server_message(response)
        LOGGER.error(
            "Booking answered with status %s: %s",
            response.status_code,
            server_message or response.text[:200],
        )
        self.stage = FlowStage.FAILED
        return BookingResult(success=False, message=server_message or "Booking failed - unexpected response")

    def complete_booking(self, config: BookingConfig) -> BookingResult:
        """Log in, look at the slots and book when a date and time are given.

        Never raises; any failure comes back as an unsuccessful result.
        """

        try:
            LOGGER.info("Step 1: logging in as %s", config.mobile)
            if not self.login(config.mobile):
                return BookingResult(success=False, message="Login failed")

            appointment_type_ids = config.appointment_type_ids
            scheduler_id = config.scheduler_id or DEFAULT_SCHEDULER_ID

            LOGGER.info("Step 2: fetching available times")
            times = self.get_available_times(appointment_type_ids, scheduler_id, config.branch_id)
            LOGGER.info("Available times: %s", _preview(times))

            if config.wants_booking():
                LOGGER.info("Step 3: booking %s at %s", config.date, config.time)
                return self.book_appointment(
                    appointment_type_ids,
                    scheduler_id,
                    config.date,
                    config.time,
                    config.length,
                    branch_id=config.branch_id,
                )

            return BookingResult(success=True, message=LOGGED_IN_MESSAGE, available_times=times)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Booking flow crashed: %s", exc)
            return BookingResult(success=False, message=str(exc) or "Booking failed")

    # -- transport ------------------------------------------------------

    def _walk_wizard(self, ids_param: str, scheduler_id: int, branch_id: int) -> None:
        steps = (
            (FlowStage.TYPE_SELECTED, TYPE_SELECT_PATH, None),
            (FlowStage.PROVIDER_SELECTED, SCHEDULER_SELECT_PATH, _scheduler_select_query(ids_param, branch_id)),
            (FlowStage.TIME_SELECTED, TIME_SELECT_PATH, _time_select_query(ids_param, scheduler_id, branch_id)),
        )
        for stage, path, params in steps:
            response = self._send("GET", path, params=params, max_redirects=MAX_WIZARD_REDIRECTS)
            self._expect(response, path, WIZARD_STATUSES)
            self.stage = stage

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        max_redirects: int = 0,
    ) -> requests.Response:
        url = self._url(path)
        redirects = 0
        while True:
            request_headers: Dict[str, str] = dict(headers or {})
            cookie_header = self.cookies.header_value()
            if cookie_header:
                request_headers["Cookie"] = cookie_header

            response = self._http.request(
                method,
                url,
                params=params,
                data=data,
                headers=request_headers,
                timeout=self._timeout,
                allow_redirects=False,
            )
            self.cookies.update_from_response(response)
            LOGGER.debug("%s %s -> %s", method, response.url, response.status_code)

            location = response.headers.get("Location")
            if response.status_code not in REDIRECT_STATUSES or not location or redirects >= max_redirects:
                return response

            target = urljoin(response.url, location)
            if urlsplit(target).netloc != urlsplit(self.base_url).netloc:
                LOGGER.warning("Not following redirect off the vendor host: %s", target)
                return response

            redirects += 1
            url = target
            params = None
            if response.status_code in (301, 302, 303):
                method, data = "GET", None

    def _expect(self, response: requests.Response, step: str, accepted: Collection[int]) -> requests.Response:
        if response.status_code not in accepted:
            raise UnexpectedStatusError(step, response.status_code, response.headers)
        return response

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"


def _ids_param(appointment_type_ids: Sequence[int]) -> str:
    return ",".join(str(type_id) for type_id in appointment_type_ids)


def _scheduler_select_query(ids_param: str, branch_id: int) -> Dict[str, Any]:
    return {"ids": ids_param, "id": 0, "Customers": "", "BranchID": branch_id}


def _time_select_query(ids_param: str, scheduler_id: int, branch_id: int) -> Dict[str, Any]:
    return {
        "ids": ids_param,
        "id": 0,
        "Customers": "",
        "SchedulerID": scheduler_id,
        "BranchID": branch_id,
    }


def _scheduler_id_from_href(href: str) -> int | None:
    query = parse_qs(urlsplit(href).query)
    for key, values in query.items():
        if key.lower() == "schedulerid" and values and values[0].isdigit():
            return int(values[0])
    return None


def _decode_payload(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _server_message(response: requests.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("Message")
        if message:
            return str(message)
    return None


def _preview(payload: Any, limit: int = 200) -> str:
    if payload is None:
        return "none"
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False, default=str)
    return text if len(text) <= limit else f"{text[:limit]}..."
