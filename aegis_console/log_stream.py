"""Log event stream view model."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from aegis_console.client import ConsoleClient, FetchResult
from aegis_console.errors import BadResponse, MalformedRecord
from aegis_console.models import LogEvent
from aegis_console.poller import PolledView, Poller
from aegis_console.utils import normalize_log_level

LOG_POLL_INTERVAL_MS = 2000


def parse_log_events(payload: Any, logger: logging.Logger) -> tuple[LogEvent, ...]:
    """Parse a /logs payload, keeping arrival order and skipping bad entries.

    Raises:
        BadResponse: If the payload is not a list
    """
    if not isinstance(payload, list):
        raise BadResponse("Log payload is not a list")
    events: list[LogEvent] = []
    for raw in payload:
        try:
            events.append(LogEvent.from_payload(raw))
        except MalformedRecord as exc:
            logger.warning("Skipping invalid log payload: %s", exc)
    return tuple(events)


class LogStreamViewModel(PolledView):
    """Polls /logs with a live/paused toggle.

    The buffer is replaced by each poll (the backend always returns its full
    current window). Pausing stops the poller but keeps the buffer as is.
    """

    endpoint_name = "logs"

    def __init__(
        self,
        client: ConsoleClient,
        poller: Poller,
        logger: logging.Logger,
        interval_ms: int = LOG_POLL_INTERVAL_MS,
    ) -> None:
        super().__init__(poller, logger, interval_ms)
        self._client = client
        self.events: tuple[LogEvent, ...] = ()
        self.is_live = False

    def start(self) -> None:
        self.is_live = True
        super().start()

    def pause(self) -> None:
        self.is_live = False
        self.stop()

    def resume(self) -> None:
        """Go live again; the poller fetches immediately, then on each tick."""
        self.start()

    def toggle(self) -> bool:
        """Flip live/paused and return the new is_live value."""
        if self.is_live:
            self.pause()
        else:
            self.resume()
        return self.is_live

    def filtered(self, level: str | None = None, text: str = "") -> tuple[LogEvent, ...]:
        """Events matching an optional level and a case-insensitive text query.

        The text is matched against source and message. The buffer itself is
        never modified.
        """
        wanted_level = normalize_log_level(level) if level else None
        needle = text.lower()
        return tuple(
            event
            for event in self.events
            if (wanted_level is None or event.level == wanted_level)
            and (not needle or needle in f"{event.source} {event.message}".lower())
        )

    def level_counts(self) -> dict[str, int]:
        """Number of buffered events per level."""
        return dict(Counter(event.level for event in self.events))

    async def _fetch(self) -> FetchResult:
        return await self._client.get_logs()

    def _apply(self, payload: Any) -> None:
        self.events = parse_log_events(payload, self._logger)
