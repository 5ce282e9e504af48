"""Read-side enrichment: confirmed counts and view counts per event."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from . import crud
from .clock import Clock, system_clock
from .stats import STATS_EPOCH, StatsClient, StatsUnavailableError, event_uri

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class Occupancy:
    confirmed_requests: int = 0
    views: int = 0


def collect_views(
    event_ids: list[int], stats_client: StatsClient, *, clock: Clock
) -> dict[int, int]:
    """Unique views per event, or zeros when the statistics service fails."""
    views = {event_id: 0 for event_id in event_ids}
    if not event_ids:
        return views
    uris = {event_uri(event_id): event_id for event_id in event_ids}
    try:
        hits = stats_client.get_stats(
            start=STATS_EPOCH, end=clock.now(), uris=list(uris), unique=True
        )
    except StatsUnavailableError as exc:
        logger.warning("View counts unavailable for %d events: %s", len(event_ids), exc)
        return views
    for uri, count in hits.items():
        if uri in uris:
            views[uris[uri]] = count
    return views


def collect_occupancy(
    session: Session,
    event_ids: Iterable[int],
    stats_client: StatsClient,
    *,
    clock: Clock = system_clock,
) -> dict[int, Occupancy]:
    """Merge confirmed-request counts and view counts for ``event_ids``.

    Never raises because of the statistics service. Call it after the write
    transaction has been committed.
    """
    ids = list(dict.fromkeys(event_ids))
    confirmed = crud.confirmed_counts(session, ids)
    views = collect_views(ids, stats_client, clock=clock)
    return {
        event_id: Occupancy(
            confirmed_requests=confirmed.get(event_id, 0),
            views=views.get(event_id, 0),
        )
        for event_id in ids
    }
