"""Aegis Console - headless entry point."""

from __future__ import annotations

import asyncio
import logging

from aegis_console import __version__
from aegis_console.aggregation import TrafficView, format_bytes
from aegis_console.client import ConsoleClient
from aegis_console.config import ConsoleSettings, load_config
from aegis_console.errors import SessionBusy
from aegis_console.log_stream import LogStreamViewModel
from aegis_console.poller import Poller
from aegis_console.scan_session import ScanSession, ScanState
from aegis_console.traffic_view import TrafficViewModel
from aegis_console.utils import configure_logging


def _log_traffic_summary(traffic: TrafficViewModel, logger: logging.Logger) -> None:
    if traffic.offline:
        logger.warning("Traffic probe offline: %s", traffic.last_error)
        return
    if not traffic.loaded:
        logger.info("Initializing traffic probe...")
        return
    view: TrafficView = traffic.view()
    logger.info(
        "Traffic: %s/%s flows, %s devices, %s, %s packets",
        view.filtered_count,
        view.total_flows,
        view.device_count,
        format_bytes(view.total_bytes),
        view.total_packets,
    )
    for category, total in view.ranked_categories:
        logger.info("  %-16s %s", category, format_bytes(total))
    for device in view.ranked_devices[:5]:
        logger.info(
            "  %-15s %10s  top=%s -> %s",
            device.ip,
            format_bytes(device.total_bytes),
            device.top_service or "-",
            device.top_destination or "-",
        )


def _log_stream_summary(logs: LogStreamViewModel, logger: logging.Logger) -> None:
    counts = logs.level_counts()
    logger.info(
        "Logs: %s buffered (%s error, %s warn)%s",
        len(logs.events),
        counts.get("ERROR", 0),
        counts.get("WARN", 0),
        " [offline]" if logs.offline else "",
    )


def _log_scan_result(session: ScanSession, logger: logging.Logger) -> None:
    if session.state is not ScanState.SUCCEEDED:
        return
    for host in session.hosts:
        logger.info(
            "  %-15s %-8s risk=%s/100 (%s) os=%s ports=%s",
            host.ip,
            host.device_label,
            host.risk_score,
            host.risk_tier,
            host.os_family,
            ",".join(str(port) for port in sorted(host.open_ports)) or "-",
        )
        for cve in host.vulnerabilities():
            logger.info("    %s %s", cve.id, cve.url or "(no link)")


async def run(config: ConsoleSettings, logger: logging.Logger) -> None:
    """Run the traffic and log views until cancelled."""
    client = ConsoleClient(config.backend_url, logger, timeout=config.request_timeout)
    poller = Poller(logger)
    traffic = TrafficViewModel(client, poller, logger, config.traffic_poll_interval_ms)
    logs = LogStreamViewModel(client, poller, logger, config.log_poll_interval_ms)
    session = ScanSession(
        client,
        logger,
        target=config.scan_target,
        start_port=config.scan_start_port,
        end_port=config.scan_end_port,
    )

    try:
        traffic.start()
        logs.start()

        if config.scan_on_start:
            try:
                await session.request()
            except SessionBusy:
                logger.warning("Scan already running; skipping")
            _log_scan_result(session, logger)

        while True:
            await asyncio.sleep(config.summary_interval)
            _log_traffic_summary(traffic, logger)
            _log_stream_summary(logs, logger)
    finally:
        traffic.stop()
        logs.stop()
        await poller.shutdown()
        await client.aclose()


def main() -> None:
    """Main entry point for the console."""
    config = load_config()
    logger = configure_logging(config.log_level)

    logger.info("Aegis Console v%s starting...", __version__)
    logger.info("Backend: %s", config.backend_url)
    logger.info(
        "Polling traffic every %s ms, logs every %s ms",
        config.traffic_poll_interval_ms,
        config.log_poll_interval_ms,
    )

    try:
        asyncio.run(run(config, logger))
    except KeyboardInterrupt:
        logger.info("Aegis Console shutting down...")


if __name__ == "__main__":
    main()
