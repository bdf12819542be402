"""
HTTP client for the CleanCare API.

Every call returns an ``ApiResponse`` instead of raising: connection errors,
timeouts and non-2xx answers come back with ``success=False`` so callers can
fall back to local data. The exception that caused a failure is kept on
``ApiResponse.exception`` for ``cleancare.errors`` to classify.

Usage:
    client = ApiClient("http://localhost:8000/api")
    result = client.get("/bookings/customer/user_9876543210")
    if result.success:
        bookings = result.data["bookings"]
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5


@dataclass
class ApiResponse:
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    exception: Optional[Exception] = None

    @property
    def rejected(self) -> bool:
        """The server answered and refused the request (4xx)."""
        return self.status_code is not None and 400 <= self.status_code < 500


def _error_text(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body.get("message") or body)
    return str(body)


class ApiClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.token: Optional[str] = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResponse:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
                timeout=timeout or self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            return ApiResponse(success=False, error=str(e) or type(e).__name__, exception=e)

        if not response.ok:
            message = _error_text(response)
            logger.warning("%s %s returned %s: %s", method, path, response.status_code, message)
            return ApiResponse(
                success=False,
                error=message,
                status_code=response.status_code,
                exception=requests.HTTPError(
                    f"HTTP {response.status_code}: {message}", response=response
                ),
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        return ApiResponse(success=True, data=data, status_code=response.status_code)

    def get(self, path: str, **kwargs) -> ApiResponse:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, json: Any = None, **kwargs) -> ApiResponse:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Any = None, **kwargs) -> ApiResponse:
        return self.request("PUT", path, json=json, **kwargs)

    def delete(self, path: str, json: Any = None, **kwargs) -> ApiResponse:
        return self.request("DELETE", path, json=json, **kwargs)
