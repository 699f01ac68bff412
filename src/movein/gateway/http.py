"""Shared ``requests`` plumbing for the HTTP adapters.

Maps transport failures and non-2xx responses onto
:class:`~movein.errors.UpstreamError` with stable codes
(``HTTP_<status>``, ``TIMEOUT``, ``CONNECTION_ERROR``, ``REQUEST_ERROR``,
``INVALID_RESPONSE``).
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from requests.exceptions import ConnectionError as ReqConnectionError
from requests.exceptions import RequestException, Timeout

from movein.errors import UpstreamError

logger = logging.getLogger(__name__)


class HttpClient:
    """Thin JSON client around a :class:`requests.Session`.

    Args:
        base_url: Service root, without trailing slash.
        service_name: Human-readable name used in error messages.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, service_name: str, timeout: float = 30) -> None:
        self._base_url = base_url.rstrip("/")
        self._service_name = service_name
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    @property
    def base_url(self) -> str:
        return self._base_url

    def send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        data: Any | None = None,
        files: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """Issue a request and return the raw response, whatever its status."""
        url = f"{self._base_url}{path}"
        try:
            return self._session.request(
                method,
                url,
                params=params,
                json=json,
                data=data,
                files=files,
                headers=headers,
                timeout=self._timeout,
            )
        except Timeout as exc:
            raise UpstreamError(
                f"Request to {self._service_name} timed out after {self._timeout}s",
                code="TIMEOUT",
            ) from exc
        except ReqConnectionError as exc:
            raise UpstreamError(
                f"Could not connect to {self._service_name} at {self._base_url}",
                code="CONNECTION_ERROR",
            ) from exc
        except RequestException as exc:
            raise UpstreamError(
                f"Request error for {method} {path}: {exc}",
                code="REQUEST_ERROR",
            ) from exc

    def parse(self, response: requests.Response, method: str, path: str) -> Any:
        """Return the JSON body of a 2xx *response* or raise."""
        if not response.ok:
            raise UpstreamError(
                f"{self._service_name} returned HTTP {response.status_code} for {method} {path}: {response.text[:300]}",
                code=f"HTTP_{response.status_code}",
                status=response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Invalid JSON from {self._service_name} for {method} {path}",
                code="INVALID_RESPONSE",
            ) from exc

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send and parse in one step."""
        return self.parse(self.send(method, path, **kwargs), method, path)
