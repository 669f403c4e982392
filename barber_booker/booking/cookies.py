from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List

import requests

LOGGER = logging.getLogger(__name__)


class CookieStore:
    """Session cookies captured from responses and replayed on requests.

    Only the ``name=value`` part of each ``Set-Cookie`` header is kept. A
    later occurrence of a name supersedes the stored value.
    """

    def __init__(self) -> None:
        self._values: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self._values.get(name, default)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def absorb(self, set_cookie_headers: Iterable[str]) -> None:
        for raw in set_cookie_headers:
            pair = raw.split(";", 1)[0].strip()
            name, sep, value = pair.partition("=")
            name = name.strip()
            if not name or not sep:
                continue
            self._values[name] = value

    def update_from_response(self, response: requests.Response) -> None:
        headers = set_cookie_headers(response)
        if headers:
            self.absorb(headers)
            LOGGER.debug("Cookie store now holds: %s", ", ".join(self._values))

    def header_value(self) -> str | None:
        if not self._values:
            return None
        return "; ".join(f"{name}={value}" for name, value in self._values.items())


def set_cookie_headers(response: requests.Response) -> List[str]:
    """Return every Set-Cookie header of a response, unfolded."""

    raw_headers = getattr(response.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    value = response.headers.get("Set-Cookie")
    return [value] if value else []
