"""Unit tests for record parsing and derived model properties.

Tests cover:
- TrafficFlow and DeviceTraffic: required fields and fallbacks
- parse_cve: id and url splitting
- Host and Service: vulnerabilities, risk tiers and label fallbacks
- LogEvent: level normalization
"""

from __future__ import annotations

import pytest

from aegis_console.errors import MalformedRecord
from aegis_console.models import (
    CveRef,
    DeviceTraffic,
    Host,
    LogEvent,
    Service,
    TrafficFlow,
    parse_cve,
)
from conftest import device_payload, flow_payload, host_payload


# =============================================================================
# TrafficFlow
# =============================================================================


class TestTrafficFlow:
    """Test cases for TrafficFlow.from_payload."""

    def test_full_record(self) -> None:
        """Test parsing of a complete flow record."""
        flow = TrafficFlow.from_payload(flow_payload(application="YouTube"))
        assert flow.key == ("192.168.1.50", "142.250.74.46", 51234, 443, "TCP")
        assert flow.bytes == 100
        assert flow.packet_count == 4
        assert flow.last_seen == 1_700_000_000.0
        assert flow.application == "YouTube"
        assert flow.dns_query is None

    def test_unknown_is_distinct_from_empty(self) -> None:
        """Test that None and "" stay distinct for optional fields."""
        flow = TrafficFlow.from_payload(flow_payload(sni="", dns_query=None))
        assert flow.sni == ""
        assert flow.dns_query is None

    def test_missing_optional_keys(self) -> None:
        """Test that missing optional keys parse as None."""
        payload = flow_payload()
        for key in ("application", "sni", "dns_query", "http_host", "resolved_domain"):
            payload.pop(key)
        flow = TrafficFlow.from_payload(payload)
        assert flow.sni is None
        assert flow.display_domain is None

    def test_fallbacks_for_descriptive_fields(self) -> None:
        """Test fallbacks for service, category and insight."""
        payload = flow_payload()
        for key in ("service", "category", "insight", "bytes", "packet_count", "last_seen"):
            payload.pop(key)
        flow = TrafficFlow.from_payload(payload)
        assert flow.service == "unknown"
        assert flow.category == "unknown"
        assert flow.insight == ""
        assert flow.bytes == 0
        assert flow.packet_count == 0
        assert flow.last_seen == 0.0

    def test_negative_counters_clamp_to_zero(self) -> None:
        """Test that negative or missing counters become 0."""
        flow = TrafficFlow.from_payload(flow_payload(bytes=-10, packet_count="x"))
        assert flow.bytes == 0
        assert flow.packet_count == 0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"src_ip": None},
            {"dst_ip": ["1.1.1.1"]},
            {"src_port": 70000},
            {"dst_port": -1},
            {"dst_port": "https"},
            {"protocol": None},
        ],
    )
    def test_required_fields(self, overrides: dict) -> None:
        """Test that missing required fields raise MalformedRecord."""
        with pytest.raises(MalformedRecord):
            TrafficFlow.from_payload(flow_payload(**overrides))

    def test_not_an_object(self) -> None:
        """Test that a non-object record raises MalformedRecord."""
        with pytest.raises(MalformedRecord, match="not an object"):
            TrafficFlow.from_payload(["192.168.1.1"])

    def test_display_domain_precedence(self) -> None:
        """Test the precedence of domain fields for display."""
        flow = TrafficFlow.from_payload(
            flow_payload(resolved_domain=None, sni="sni.example", dns_query="dns.example")
        )
        assert flow.display_domain == "sni.example"
        flow = TrafficFlow.from_payload(
            flow_payload(resolved_domain="resolved.example", sni="sni.example")
        )
        assert flow.display_domain == "resolved.example"

    def test_category_group(self) -> None:
        """Test that categories map to groups with an unknown fallback."""
        assert TrafficFlow.from_payload(flow_payload(category="System/Cloud")).category_group == "system"
        assert TrafficFlow.from_payload(flow_payload(category="Crypto")).category_group == "unknown"


# =============================================================================
# DeviceTraffic
# =============================================================================


class TestDeviceTraffic:
    """Test cases for DeviceTraffic.from_payload."""

    def test_keeps_mapping_order(self) -> None:
        """Test that counter mappings keep insertion order."""
        device = DeviceTraffic.from_payload(
            device_payload(top_services={"SSH": 1, "DNS": 9, "HTTPS": 5})
        )
        assert list(device.top_services) == ["SSH", "DNS", "HTTPS"]

    def test_bad_sub_fields_degrade(self) -> None:
        """Test that non-mapping sub-fields degrade to empty."""
        device = DeviceTraffic.from_payload(
            device_payload(protocols="TCP", top_services={"HTTPS": "lots", "DNS": 3})
        )
        assert device.protocols == {}
        assert device.top_services == {"DNS": 3}

    def test_requires_ip(self) -> None:
        """Test that a device without ip is rejected."""
        with pytest.raises(MalformedRecord):
            DeviceTraffic.from_payload(device_payload(ip=None))


# =============================================================================
# CVE decoding
# =============================================================================


class TestParseCve:
    """Test cases for parse_cve."""

    def test_id_and_url(self) -> None:
        """Test splitting an id and url pair."""
        ref = parse_cve("CVE-2021-1234|https://example.com/x")
        assert ref == CveRef(id="CVE-2021-1234", url="https://example.com/x")
        assert ref.has_link

    def test_without_separator(self) -> None:
        """Test that a value without a separator has no url."""
        ref = parse_cve("CVE-2021-1234")
        assert ref.id == "CVE-2021-1234"
        assert ref.url is None
        assert not ref.has_link

    def test_splits_on_first_separator_only(self) -> None:
        """Test that only the first separator splits."""
        ref = parse_cve("CVE-2020-0001|https://example.com/a|b")
        assert ref.id == "CVE-2020-0001"
        assert ref.url == "https://example.com/a|b"

    def test_empty_url_half(self) -> None:
        """Test that an empty url half becomes None."""
        assert parse_cve("CVE-2020-0002|") == CveRef(id="CVE-2020-0002", url=None)


# =============================================================================
# Host / Service
# =============================================================================


class TestHost:
    """Test cases for Host.from_payload and derived properties."""

    def test_full_record(self) -> None:
        """Test parsing of a complete host record."""
        host = Host.from_payload(host_payload())
        assert host.open_ports == frozenset({22, 445})
        assert [service.port for service in host.services] == [22, 445]
        assert host.risk_tier == "high"
        assert host.os_label == "linux"
        assert host.device_label == "server"

    def test_vulnerabilities(self) -> None:
        """Test that vulnerabilities are flattened across services."""
        host = Host.from_payload(host_payload())
        assert host.has_vulnerabilities
        assert host.vulnerabilities() == (
            CveRef(id="CVE-2017-7494", url="https://nvd.nist.gov/vuln/detail/CVE-2017-7494"),
        )

    def test_malformed_cve_is_kept(self) -> None:
        """Test that a CVE string without url is still listed."""
        host = Host.from_payload(
            host_payload(
                services=[{"port": 80, "protocol": "tcp", "name": "http", "version": "", "cves": ["CVE-1999-0001"]}]
            )
        )
        assert host.has_vulnerabilities
        assert host.vulnerabilities() == (CveRef(id="CVE-1999-0001", url=None),)

    def test_no_vulnerabilities(self) -> None:
        """Test a host whose services carry no CVEs."""
        host = Host.from_payload(
            host_payload(services=[{"port": 22, "protocol": "tcp", "name": "ssh", "version": "", "cves": []}])
        )
        assert not host.has_vulnerabilities
        assert host.vulnerabilities() == ()

    @pytest.mark.parametrize(
        ("score", "tier"),
        [(0, "low"), (20, "low"), (21, "medium"), (50, "medium"), (51, "high"), (100, "high")],
    )
    def test_risk_tiers(self, score: int, tier: str) -> None:
        """Test risk tier boundaries."""
        assert Host.from_payload(host_payload(risk_score=score)).risk_tier == tier

    def test_broken_service_does_not_drop_host(self) -> None:
        """Test that a malformed service does not drop its host."""
        host = Host.from_payload(
            host_payload(services=["junk", {"name": "no-port"}, {"port": 53, "name": "dns"}])
        )
        assert [service.port for service in host.services] == [53]
        assert host.services[0].cves == ()

    def test_open_enum_fallbacks(self) -> None:
        """Test unknown OS and device labels."""
        host = Host.from_payload(
            host_payload(os_family=None, device_type="Smart Fridge", vendor=None, risk_score=None)
        )
        assert host.os_family == "unknown"
        assert host.os_label == "unknown"
        assert host.device_label == "unknown"
        assert host.device_type == "Smart Fridge"
        assert host.vendor == "unknown"
        assert host.risk_score == 0

    def test_requires_ip(self) -> None:
        """Test that a host without ip is rejected."""
        with pytest.raises(MalformedRecord):
            Host.from_payload(host_payload(ip=None))


class TestService:
    """Test cases for Service.from_payload."""

    def test_non_list_cves(self) -> None:
        """Test that a non-list cves field parses as empty."""
        service = Service.from_payload({"port": 80, "cves": "CVE-2000-0001"})
        assert service.cves == ()
        assert service.name == "unknown"


# =============================================================================
# LogEvent
# =============================================================================


class TestLogEvent:
    """Test cases for LogEvent.from_payload."""

    def test_record(self) -> None:
        """Test parsing of a log event with level normalization."""
        event = LogEvent.from_payload(
            {"id": 7, "event_time": "2024-01-01T00:00:00Z", "level": "warning", "source": "ids", "message": "x"}
        )
        assert event.id == 7
        assert event.level == "WARN"
        assert event.event_time == "2024-01-01T00:00:00Z"

    def test_unknown_level_kept(self) -> None:
        """Test that unknown levels are kept upper-cased."""
        event = LogEvent.from_payload({"id": "a", "level": "debug"})
        assert event.level == "DEBUG"
        assert event.source == "unknown"
        assert event.message == ""

    def test_requires_id(self) -> None:
        """Test that an event without id is rejected."""
        with pytest.raises(MalformedRecord):
            LogEvent.from_payload({"level": "INFO", "message": "orphan"})
