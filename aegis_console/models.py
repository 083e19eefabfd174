"""Data models for the console."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from aegis_console.errors import MalformedRecord
from aegis_console.utils import (
    UNKNOWN,
    category_group,
    device_group,
    non_negative,
    normalize_log_level,
    optional_str,
    os_group,
    parse_counter_map,
    parse_float,
    parse_int,
    require_port,
    require_str,
    risk_tier,
)


def _require_mapping(payload: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise MalformedRecord(f"{kind} record is not an object")
    return payload


@dataclass(frozen=True)
class TrafficFlow:
    """One observed network conversation, as a snapshot at last_seen."""

    src_ip: str
    dst_ip: str
    src_port: int
    dst_port: int
    protocol: str  # TCP, UDP, ICMP, ...
    service: str
    bytes: int  # absolute total, not a delta
    packet_count: int
    last_seen: float  # unix seconds
    category: str
    insight: str
    application: str | None = None
    sni: str | None = None
    dns_query: str | None = None
    http_host: str | None = None
    resolved_domain: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> TrafficFlow:
        data = _require_mapping(payload, "flow")
        last_seen = parse_float(data.get("last_seen"))
        return cls(
            src_ip=require_str(data, "src_ip"),
            dst_ip=require_str(data, "dst_ip"),
            src_port=require_port(data, "src_port"),
            dst_port=require_port(data, "dst_port"),
            protocol=require_str(data, "protocol"),
            service=optional_str(data.get("service")) or UNKNOWN,
            bytes=non_negative(data.get("bytes")),
            packet_count=non_negative(data.get("packet_count")),
            last_seen=last_seen if last_seen is not None else 0.0,
            category=optional_str(data.get("category")) or UNKNOWN,
            insight=optional_str(data.get("insight")) or "",
            application=optional_str(data.get("application")),
            sni=optional_str(data.get("sni")),
            dns_query=optional_str(data.get("dns_query")),
            http_host=optional_str(data.get("http_host")),
            resolved_domain=optional_str(data.get("resolved_domain")),
        )

    @property
    def key(self) -> tuple[str, str, int, int, str]:
        """The 5-tuple identifying this conversation."""
        return (self.src_ip, self.dst_ip, self.src_port, self.dst_port, self.protocol)

    @property
    def display_domain(self) -> str | None:
        """Best known hostname for the remote side, if any."""
        return self.resolved_domain or self.sni or self.dns_query or self.http_host or None

    @property
    def category_group(self) -> str:
        return category_group(self.category)


@dataclass(frozen=True)
class DeviceTraffic:
    """Per-source-IP rollup computed by the backend."""

    ip: str
    total_bytes: int
    total_packets: int
    protocols: dict[str, int] = field(default_factory=dict)
    top_services: dict[str, int] = field(default_factory=dict)
    top_destinations: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> DeviceTraffic:
        data = _require_mapping(payload, "device")
        return cls(
            ip=require_str(data, "ip"),
            total_bytes=non_negative(data.get("total_bytes")),
            total_packets=non_negative(data.get("total_packets")),
            protocols=parse_counter_map(data.get("protocols")),
            top_services=parse_counter_map(data.get("top_services")),
            top_destinations=parse_counter_map(data.get("top_destinations")),
        )


@dataclass(frozen=True)
class TrafficSnapshot:
    """A full traffic poll result; replaces the previous one wholesale."""

    flows: tuple[TrafficFlow, ...] = ()
    device_stats: tuple[DeviceTraffic, ...] = ()
    skipped: int = 0  # malformed records dropped while parsing

    @property
    def is_empty(self) -> bool:
        return not self.flows and not self.device_stats


@dataclass(frozen=True)
class CveRef:
    """A decoded "CVE-ID|URL" reference."""

    id: str
    url: str | None

    @property
    def has_link(self) -> bool:
        return self.url is not None


def parse_cve(raw: str) -> CveRef:
    """Split a CVE entry on its first "|" into identifier and URL.

    Entries without a separator keep their identifier and get no URL.
    """
    cve_id, sep, url = raw.partition("|")
    if not sep or not url:
        return CveRef(id=cve_id, url=None)
    return CveRef(id=cve_id, url=url)


@dataclass(frozen=True)
class Service:
    """A service detected on an open port."""

    port: int
    protocol: str
    name: str
    version: str
    cves: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> Service:
        data = _require_mapping(payload, "service")
        raw_cves = data.get("cves")
        cves: tuple[str, ...] = ()
        if isinstance(raw_cves, (list, tuple)):
            cves = tuple(entry for entry in (optional_str(c) for c in raw_cves) if entry)
        return cls(
            port=require_port(data, "port"),
            protocol=optional_str(data.get("protocol")) or UNKNOWN,
            name=optional_str(data.get("name")) or UNKNOWN,
            version=optional_str(data.get("version")) or "",
            cves=cves,
        )

    def cve_refs(self) -> tuple[CveRef, ...]:
        return tuple(parse_cve(raw) for raw in self.cves)


@dataclass(frozen=True)
class Host:
    """A discovered asset from a network scan."""

    ip: str
    mac: str
    hostname: str
    vendor: str
    os_family: str
    device_type: str
    open_ports: frozenset[int]
    services: tuple[Service, ...]
    risk_score: int  # 0-100, not validated

    @classmethod
    def from_payload(cls, payload: Any) -> Host:
        data = _require_mapping(payload, "host")
        raw_ports = data.get("open_ports")
        ports: set[int] = set()
        if isinstance(raw_ports, (list, tuple)):
            for raw in raw_ports:
                port = parse_int(raw)
                if port is not None:
                    ports.add(port)
        services: list[Service] = []
        raw_services = data.get("services")
        if isinstance(raw_services, (list, tuple)):
            for raw in raw_services:
                # A broken service entry must not hide the rest of the host.
                try:
                    services.append(Service.from_payload(raw))
                except MalformedRecord:
                    continue
        risk_score = parse_int(data.get("risk_score"))
        return cls(
            ip=require_str(data, "ip"),
            mac=optional_str(data.get("mac")) or "",
            hostname=optional_str(data.get("hostname")) or "",
            vendor=optional_str(data.get("vendor")) or UNKNOWN,
            os_family=optional_str(data.get("os_family")) or UNKNOWN,
            device_type=optional_str(data.get("device_type")) or UNKNOWN,
            open_ports=frozenset(ports),
            services=tuple(services),
            risk_score=risk_score if risk_score is not None else 0,
        )

    @property
    def risk_tier(self) -> str:
        return risk_tier(self.risk_score)

    @property
    def has_vulnerabilities(self) -> bool:
        return any(service.cves for service in self.services)

    def vulnerabilities(self) -> tuple[CveRef, ...]:
        """All CVE references across services, in service order."""
        return tuple(ref for service in self.services for ref in service.cve_refs())

    @property
    def os_label(self) -> str:
        return os_group(self.os_family)

    @property
    def device_label(self) -> str:
        return device_group(self.device_type)


@dataclass(frozen=True)
class ScanResult:
    """Result of a network scan request."""

    target: str
    status: str
    hosts: tuple[Host, ...]
    skipped: int = 0


@dataclass(frozen=True)
class LogEvent:
    """A security or system log event."""

    id: Any  # opaque, stable across polls
    event_time: Any  # epoch or ISO timestamp, passed through
    level: str
    source: str
    message: str

    @classmethod
    def from_payload(cls, payload: Any) -> LogEvent:
        data = _require_mapping(payload, "log")
        if "id" not in data or data["id"] is None:
            raise MalformedRecord("missing field 'id'")
        return cls(
            id=data["id"],
            event_time=data.get("event_time"),
            level=normalize_log_level(data.get("level")),
            source=optional_str(data.get("source")) or UNKNOWN,
            message=optional_str(data.get("message")) or "",
        )
