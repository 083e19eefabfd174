"""Free-text flow filtering."""

from __future__ import annotations

from typing import Iterable

from aegis_console.models import TrafficFlow


def search_text(flow: TrafficFlow) -> str:
    """Return the lowercase, space-joined projection of every searchable field.

    The space separator keeps a query from matching across two adjacent
    fields (port "44" next to an address ending in "5" never matches "445").
    """
    fields = [
        flow.src_ip,
        flow.dst_ip,
        str(flow.src_port),
        str(flow.dst_port),
        flow.protocol,
        flow.service,
        flow.application or "",
        flow.sni or "",
        flow.dns_query or "",
        flow.http_host or "",
        flow.resolved_domain or "",
        flow.category,
        flow.insight,
    ]
    return " ".join(fields).lower()


def matches(flow: TrafficFlow, query: str) -> bool:
    """Check whether a flow matches a free-text query.

    An empty query matches everything. Otherwise the query is matched as a
    case-insensitive substring of search_text(flow), so "192.168.1.50" hits
    either endpoint.
    """
    if not query:
        return True
    return query.lower() in search_text(flow)


def filter_flows(flows: Iterable[TrafficFlow], query: str) -> tuple[TrafficFlow, ...]:
    """Return the flows matching query, in input order."""
    if not query:
        return tuple(flows)
    return tuple(flow for flow in flows if matches(flow, query))
