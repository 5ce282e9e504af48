"""HTTP client for the external statistics service (view hits)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

import httpx

from .config import settings
from .utils import format_datetime

logger = logging.getLogger("uvicorn.error")

STATS_EPOCH = datetime(1900, 1, 1)


class StatsUnavailableError(Exception):
    """Raised when the statistics service cannot answer a query."""


def event_uri(event_id: int) -> str:
    return f"/api/v1/events/{event_id}"


class StatsClient:
    """Thin client over ``GET /stats`` and ``POST /hit``.

    ``get_stats`` raises :class:`StatsUnavailableError` on any transport
    failure, non-2xx status or malformed body; callers decide how to degrade.
    ``hit`` never raises.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 3.0,
        app_name: str = "main-service",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.app_name = app_name
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    def get_stats(
        self,
        *,
        start: datetime,
        end: datetime,
        uris: Sequence[str],
        unique: bool = True,
    ) -> dict[str, int]:
        """Return hits keyed by uri for the requested uris."""
        if not self.configured:
            raise StatsUnavailableError("Statistics service url is not configured")
        params: list[tuple[str, Any]] = [
            ("start", format_datetime(start)),
            ("end", format_datetime(end)),
            ("unique", "true" if unique else "false"),
        ]
        params.extend(("uris", uri) for uri in uris)
        try:
            response = self._get_client().get("/stats", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise StatsUnavailableError("Statistics service timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise StatsUnavailableError(
                f"Statistics service answered {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise StatsUnavailableError(f"Statistics service unreachable: {exc}") from exc
        except ValueError as exc:
            raise StatsUnavailableError("Statistics service sent invalid JSON") from exc

        if not isinstance(payload, list):
            raise StatsUnavailableError("Statistics service sent an unexpected body")
        hits: dict[str, int] = {}
        for entry in payload:
            try:
                hits[str(entry["uri"])] = int(entry["hits"])
            except (KeyError, TypeError, ValueError) as exc:
                raise StatsUnavailableError(
                    "Statistics service sent an unexpected body"
                ) from exc
        return hits

    def hit(self, *, uri: str, ip: str, timestamp: datetime) -> None:
        """Record one view; failures are logged and dropped."""
        if not self.configured:
            return
        body = {
            "app": self.app_name,
            "uri": uri,
            "ip": ip,
            "timestamp": format_datetime(timestamp),
        }
        try:
            response = self._get_client().post("/hit", json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to record hit for %s: %s", uri, exc)

    def close(self) -> None:
        if self._client and not self._client.is_closed:
            self._client.close()
            self._client = None


_client: StatsClient | None = None


def get_stats_client() -> StatsClient:
    """Return the process-wide client built from settings."""
    global _client
    if _client is None:
        _client = StatsClient(
            settings.stats_service_url,
            timeout=settings.stats_timeout_seconds,
            app_name=settings.stats_app_name,
        )
    return _client
