"""Pytest configuration and fixtures for console tests."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from aegis_console.client import FetchResult
from aegis_console.errors import NetworkUnreachable
from aegis_console.models import TrafficFlow
from aegis_console.poller import Poller


@pytest.fixture()
def logger() -> logging.Logger:
    return logging.getLogger("test")


@pytest.fixture()
def poller(logger: logging.Logger) -> Poller:
    return Poller(logger)


def flow_payload(**overrides: Any) -> dict[str, Any]:
    """A valid /traffic flow record with optional overrides."""
    payload: dict[str, Any] = {
        "src_ip": "192.168.1.50",
        "dst_ip": "142.250.74.46",
        "src_port": 51234,
        "dst_port": 443,
        "protocol": "TCP",
        "service": "HTTPS",
        "application": None,
        "sni": "www.youtube.com",
        "dns_query": None,
        "http_host": None,
        "resolved_domain": None,
        "bytes": 100,
        "packet_count": 4,
        "last_seen": 1_700_000_000,
        "category": "Media",
        "insight": "Video streaming",
    }
    payload.update(overrides)
    return payload


def make_flow(**overrides: Any) -> TrafficFlow:
    return TrafficFlow.from_payload(flow_payload(**overrides))


def device_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ip": "192.168.1.50",
        "total_bytes": 1000,
        "total_packets": 20,
        "protocols": {"TCP": 900, "UDP": 100},
        "top_services": {"HTTPS": 800, "DNS": 100},
        "top_destinations": {"142.250.74.46": 800, "1.1.1.1": 100},
    }
    payload.update(overrides)
    return payload


def host_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ip": "10.0.0.5",
        "mac": "00:11:22:33:44:55",
        "hostname": "fileserver",
        "vendor": "Dell",
        "os_family": "Linux 5.x",
        "device_type": "Server",
        "open_ports": [22, 445],
        "services": [
            {"port": 22, "protocol": "tcp", "name": "ssh", "version": "OpenSSH 7.4", "cves": []},
            {
                "port": 445,
                "protocol": "tcp",
                "name": "smb",
                "version": "Samba 4.5",
                "cves": ["CVE-2017-7494|https://nvd.nist.gov/vuln/detail/CVE-2017-7494"],
            },
        ],
        "risk_score": 72,
    }
    payload.update(overrides)
    return payload


class FakeClient:
    """Stands in for ConsoleClient; results are served from per-endpoint queues.

    A queued asyncio.Future is awaited, which lets tests control when each
    response completes.
    """

    def __init__(self) -> None:
        self.traffic: list[Any] = []
        self.logs: list[Any] = []
        self.scans: list[Any] = []
        self.calls: dict[str, int] = {"traffic": 0, "logs": 0, "scan": 0}
        self.scan_requests: list[dict[str, Any]] = []

    async def _serve(self, name: str, queue: list[Any]) -> FetchResult:
        self.calls[name] += 1
        if not queue:
            return FetchResult(error=NetworkUnreachable("no response queued"))
        item = queue.pop(0)
        if isinstance(item, asyncio.Future):
            return await item
        return item

    async def get_traffic(self) -> FetchResult:
        return await self._serve("traffic", self.traffic)

    async def get_logs(self) -> FetchResult:
        return await self._serve("logs", self.logs)

    async def post_scan(self, target: str, start_port: int, end_port: int) -> FetchResult:
        self.scan_requests.append(
            {"target": target, "start_port": start_port, "end_port": end_port}
        )
        return await self._serve("scan", self.scans)


@pytest.fixture()
def fake_client() -> FakeClient:
    return FakeClient()


async def settle() -> None:
    """Let pending tasks on the loop run to their next await."""
    for _ in range(5):
        await asyncio.sleep(0)
