"""Network scan request workflow."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Mapping

from aegis_console.client import ConsoleClient
from aegis_console.errors import BadResponse, ConsoleError, MalformedRecord, SessionBusy
from aegis_console.models import Host, ScanResult
from aegis_console.utils import optional_str

AUTO_TARGET = "auto"
DEFAULT_TARGET = "192.168.1.0/24"
DEFAULT_START_PORT = 1
DEFAULT_END_PORT = 1000


class ScanState(str, Enum):
    """Lifecycle of a scan session."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def parse_scan_result(payload: Any, logger: logging.Logger) -> ScanResult:
    """Parse a /scan response; malformed hosts are skipped.

    Raises:
        BadResponse: If the payload lacks target, status or a hosts list
    """
    if not isinstance(payload, Mapping):
        raise BadResponse("Scan payload is not an object")
    target = optional_str(payload.get("target"))
    status = optional_str(payload.get("status"))
    raw_hosts = payload.get("hosts")
    if target is None or status is None or not isinstance(raw_hosts, list):
        raise BadResponse("Scan payload is missing target, status or hosts")

    hosts: list[Host] = []
    skipped = 0
    for raw in raw_hosts:
        try:
            hosts.append(Host.from_payload(raw))
        except MalformedRecord as exc:
            skipped += 1
            logger.warning("Skipping invalid host payload: %s", exc)
    return ScanResult(target=target, status=status, hosts=tuple(hosts), skipped=skipped)


class ScanSession:
    """Single-writer state machine for scan requests.

    IDLE -> RUNNING -> SUCCEEDED | FAILED, and any non-running state goes
    back to RUNNING on a new request. A request made while RUNNING raises
    SessionBusy instead of running concurrently.
    """

    def __init__(
        self,
        client: ConsoleClient,
        logger: logging.Logger,
        target: str = DEFAULT_TARGET,
        start_port: int = DEFAULT_START_PORT,
        end_port: int = DEFAULT_END_PORT,
    ) -> None:
        self._client = client
        self._logger = logger
        self.target = target
        self.start_port = start_port
        self.end_port = end_port
        self.state = ScanState.IDLE
        self.result: ScanResult | None = None
        self.error: ConsoleError | None = None

    @property
    def is_running(self) -> bool:
        return self.state is ScanState.RUNNING

    @property
    def hosts(self) -> tuple[Host, ...]:
        return self.result.hosts if self.result is not None else ()

    def vulnerable_hosts(self) -> tuple[Host, ...]:
        return tuple(host for host in self.hosts if host.has_vulnerabilities)

    async def request(self, target: str | None = None) -> ScanState:
        """Run a scan against target (or the displayed target) and wait for it.

        Args:
            target: CIDR to scan, "auto" for backend scope detection, or None
                to reuse the currently displayed target

        Returns:
            The terminal state (SUCCEEDED or FAILED)

        Raises:
            SessionBusy: If a scan is already running
        """
        if self.is_running:
            raise SessionBusy("A scan is already running")

        requested = target if target is not None else self.target
        auto = requested == AUTO_TARGET
        if not auto:
            self.target = requested

        self.state = ScanState.RUNNING
        self.result = None
        self.error = None
        self._logger.info(
            "Starting scan of %s (ports %s-%s)", requested, self.start_port, self.end_port
        )

        try:
            response = await self._client.post_scan(requested, self.start_port, self.end_port)
            if response.error is not None:
                return self._fail(response.error)
            try:
                result = parse_scan_result(response.payload, self._logger)
            except BadResponse as exc:
                return self._fail(exc)
        except asyncio.CancelledError:
            # Cancelled mid-request: do not leave the session stuck in RUNNING.
            self.state = ScanState.IDLE
            raise
        except Exception as exc:
            self._logger.exception("Unexpected error during scan of %s", requested)
            return self._fail(BadResponse(f"Scan request failed: {exc}"))

        self.result = result
        if auto:
            self.target = result.target
        self.state = ScanState.SUCCEEDED
        self._logger.info(
            "Scan of %s finished with status %s: %s host(s), %s vulnerable",
            result.target,
            result.status,
            len(result.hosts),
            len(self.vulnerable_hosts()),
        )
        return self.state

    def _fail(self, error: ConsoleError) -> ScanState:
        self.error = error
        self.state = ScanState.FAILED
        self._logger.warning("Scan failed: %s", error)
        return self.state
