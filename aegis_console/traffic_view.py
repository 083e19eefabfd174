"""Live traffic view model."""

from __future__ import annotations

import logging
from typing import Any

from aegis_console.aggregation import TrafficView, aggregate, parse_traffic
from aegis_console.client import ConsoleClient, FetchResult
from aegis_console.models import TrafficSnapshot
from aegis_console.poller import PolledView, Poller

TRAFFIC_POLL_INTERVAL_MS = 1000


class TrafficViewModel(PolledView):
    """Polls /traffic and derives statistics for the current filter.

    Each successful poll replaces the snapshot wholesale. While the backend
    is offline the last good snapshot is kept and `offline` is set.
    `snapshot is None` means nothing has been loaded yet.
    """

    endpoint_name = "traffic"

    def __init__(
        self,
        client: ConsoleClient,
        poller: Poller,
        logger: logging.Logger,
        interval_ms: int = TRAFFIC_POLL_INTERVAL_MS,
    ) -> None:
        super().__init__(poller, logger, interval_ms)
        self._client = client
        self.snapshot: TrafficSnapshot | None = None
        self.query = ""

    @property
    def loaded(self) -> bool:
        return self.snapshot is not None

    def set_query(self, query: str) -> None:
        self.query = query

    def clear_query(self) -> None:
        self.query = ""

    def view(self) -> TrafficView:
        """Statistics for the current snapshot and query, computed on demand."""
        return aggregate(self.snapshot or TrafficSnapshot(), self.query)

    async def _fetch(self) -> FetchResult:
        return await self._client.get_traffic()

    def _apply(self, payload: Any) -> None:
        self.snapshot = parse_traffic(payload, self._logger)
