"""HTTP client for communicating with the Aegis backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from aegis_console.errors import BadResponse, FetchError, HttpError, NetworkUnreachable

# Constants
REQUEST_TIMEOUT_SECONDS = 5.0
TRAFFIC_ENDPOINT = "/api/v1/traffic"
LOGS_ENDPOINT = "/api/v1/logs"
SCAN_ENDPOINT = "/api/v1/scan"


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a single backend request: a JSON payload or an error."""

    payload: Any = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ConsoleClient:
    """Async HTTP client wrapper for the backend API.

    Failures never escape as exceptions; they are returned inside the
    FetchResult. Requests are not retried here, that is left to the caller's
    poll schedule.
    """

    def __init__(
        self,
        base_url: str,
        logger: logging.Logger,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport
        )
        self._logger = logger

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> ConsoleClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def fetch(
        self,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
    ) -> FetchResult:
        """Issue one request and decode its JSON body.

        Args:
            endpoint: URL path relative to the base URL
            method: HTTP method
            body: Optional JSON payload

        Returns:
            FetchResult with the decoded payload, or with NetworkUnreachable,
            HttpError or BadResponse as its error
        """
        try:
            response = await self._client.request(method, endpoint, json=body)
        except httpx.RequestError as exc:
            self._logger.warning(
                "Backend not reachable for %s %s: %s", method, endpoint, type(exc).__name__
            )
            return FetchResult(error=NetworkUnreachable(f"{type(exc).__name__}: {exc}"))

        if not response.is_success:
            self._logger.warning(
                "Backend returned %s for %s %s", response.status_code, method, endpoint
            )
            return FetchResult(error=HttpError(response.status_code))

        try:
            payload = response.json()
        except ValueError as exc:
            self._logger.warning("Invalid JSON from %s %s: %s", method, endpoint, exc)
            return FetchResult(
                error=BadResponse("Response body is not valid JSON", status=response.status_code)
            )
        return FetchResult(payload=payload)

    async def get_traffic(self) -> FetchResult:
        """Get the current traffic snapshot (flows and device stats)."""
        return await self.fetch(TRAFFIC_ENDPOINT)

    async def get_logs(self) -> FetchResult:
        """Get the current window of log events."""
        return await self.fetch(LOGS_ENDPOINT)

    async def post_scan(self, target: str, start_port: int, end_port: int) -> FetchResult:
        """Request a network scan.

        Args:
            target: CIDR to scan, or "auto" to let the backend pick the local scope
            start_port: First port of the range
            end_port: Last port of the range
        """
        payload = {"target": target, "start_port": start_port, "end_port": end_port}
        return await self.fetch(SCAN_ENDPOINT, method="POST", body=payload)
