"""HTTP storefront adapter backed by ``requests``.

Talks to a live shop origin. Every non-2xx response, network error, or body
that is not JSON surfaces as a StorefrontError carrying the endpoint, status,
and payload shape, so callers can log enough to diagnose without leaking
request values.
"""

import requests
import structlog

from subscriptions.storefront.port import StorefrontError, StorefrontTransport, payload_shape

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class HttpStorefront(StorefrontTransport):
    """Production storefront adapter."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get(self, path: str, params: dict | None = None) -> dict:
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: dict | None = None) -> dict:
        return self._request("POST", path, payload=payload or {})

    def _request(self, method: str, path: str, params: dict | None = None, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        shape = payload_shape(payload)
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=payload if method != "GET" else None,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Storefront request failed", method=method, endpoint=path, error=str(exc))
            raise StorefrontError(path, 0, str(exc), shape) from exc

        if not response.ok:
            logger.warning(
                "Storefront returned an error status",
                method=method,
                endpoint=path,
                status=response.status_code,
                payload_shape=shape,
            )
            raise StorefrontError(path, response.status_code, response.reason or "", shape)

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as exc:
            raise StorefrontError(path, response.status_code, "Invalid JSON response", shape) from exc
