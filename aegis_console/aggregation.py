"""Traffic snapshot parsing and derived statistics."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from aegis_console.errors import BadResponse, MalformedRecord
from aegis_console.filters import filter_flows
from aegis_console.models import DeviceTraffic, TrafficFlow, TrafficSnapshot

# Display caps. They bound render cost only; totals use the full filtered set.
MAX_DISPLAY_FLOWS = 50
MAX_DISPLAY_DEVICES = 15


@dataclass(frozen=True)
class DeviceSummary:
    """A ranked talker with its dominant service and destination."""

    ip: str
    total_bytes: int
    total_packets: int
    top_service: str | None
    top_destination: str | None
    protocols: tuple[str, ...]


@dataclass(frozen=True)
class TrafficView:
    """Derived, display-ready statistics for one snapshot and filter."""

    query: str = ""
    category_totals: dict[str, int] = field(default_factory=dict)
    ranked_categories: tuple[tuple[str, int], ...] = ()
    ranked_flows: tuple[TrafficFlow, ...] = ()
    ranked_devices: tuple[DeviceSummary, ...] = ()
    total_flows: int = 0
    filtered_count: int = 0
    device_count: int = 0
    total_bytes: int = 0
    total_packets: int = 0


def parse_traffic(payload: Any, logger: logging.Logger) -> TrafficSnapshot:
    """Parse a /traffic payload into a snapshot.

    Malformed flow or device records are skipped individually; only a payload
    that is not an object at all is rejected.

    Raises:
        BadResponse: If the payload does not have the expected top-level shape
    """
    if not isinstance(payload, Mapping):
        raise BadResponse("Traffic payload is not an object")
    raw_flows = payload.get("flows") or []
    raw_devices = payload.get("device_stats") or []
    if not isinstance(raw_flows, list) or not isinstance(raw_devices, list):
        raise BadResponse("Traffic payload lists have an unexpected type")

    skipped = 0
    flows: list[TrafficFlow] = []
    for raw in raw_flows:
        try:
            flows.append(TrafficFlow.from_payload(raw))
        except MalformedRecord as exc:
            skipped += 1
            logger.warning("Skipping invalid flow payload: %s", exc)

    devices: list[DeviceTraffic] = []
    for raw in raw_devices:
        try:
            devices.append(DeviceTraffic.from_payload(raw))
        except MalformedRecord as exc:
            skipped += 1
            logger.warning("Skipping invalid device payload: %s", exc)

    return TrafficSnapshot(flows=tuple(flows), device_stats=tuple(devices), skipped=skipped)


def top_entry(mapping: Mapping[str, int]) -> str | None:
    """Return the key with the largest value; ties go to the first inserted key."""
    best_key: str | None = None
    best_value = 0
    for key, value in mapping.items():
        if best_key is None or value > best_value:
            best_key = key
            best_value = value
    return best_key


def category_totals(flows: tuple[TrafficFlow, ...]) -> dict[str, int]:
    """Sum bytes per category."""
    totals: dict[str, int] = {}
    for flow in flows:
        totals[flow.category] = totals.get(flow.category, 0) + flow.bytes
    return totals


def rank_flows(
    flows: tuple[TrafficFlow, ...], limit: int = MAX_DISPLAY_FLOWS
) -> tuple[TrafficFlow, ...]:
    """Most recently seen flows first, capped at limit."""
    return tuple(sorted(flows, key=lambda flow: flow.last_seen, reverse=True)[:limit])


def summarize_device(device: DeviceTraffic) -> DeviceSummary:
    return DeviceSummary(
        ip=device.ip,
        total_bytes=device.total_bytes,
        total_packets=device.total_packets,
        top_service=top_entry(device.top_services),
        top_destination=top_entry(device.top_destinations),
        protocols=tuple(device.protocols),
    )


def rank_devices(
    devices: tuple[DeviceTraffic, ...], limit: int = MAX_DISPLAY_DEVICES
) -> tuple[DeviceSummary, ...]:
    """Top talkers by total bytes, capped at limit."""
    ranked = sorted(devices, key=lambda device: device.total_bytes, reverse=True)[:limit]
    return tuple(summarize_device(device) for device in ranked)


def aggregate(snapshot: TrafficSnapshot, query: str = "") -> TrafficView:
    """Derive display statistics from a snapshot under a filter.

    Pure and deterministic: the same snapshot and query always give the same
    view. Nothing is carried over from earlier snapshots.
    """
    filtered = filter_flows(snapshot.flows, query)
    totals = category_totals(filtered)
    ranked_categories = tuple(sorted(totals.items(), key=lambda item: item[1], reverse=True))
    return TrafficView(
        query=query,
        category_totals=totals,
        ranked_categories=ranked_categories,
        ranked_flows=rank_flows(filtered),
        ranked_devices=rank_devices(snapshot.device_stats),
        total_flows=len(snapshot.flows),
        filtered_count=len(filtered),
        device_count=len(snapshot.device_stats),
        total_bytes=sum(device.total_bytes for device in snapshot.device_stats),
        total_packets=sum(device.total_packets for device in snapshot.device_stats),
    )


def format_bytes(num_bytes: int) -> str:
    """Human-readable byte count (B, KB, MB)."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / 1024 / 1024:.2f} MB"
