"""requests sessions shared by the upstream clients.

Historical days and place names never change, so they are cached for a day;
forecasts for the configured TTL. Only successful responses are cached.
Expired entries are deleted when a session is built and then after every
`http_cache_prune_every` freshly fetched responses.
"""
from __future__ import annotations

import threading

import requests
import requests_cache

from .config import Settings, settings as default_settings
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="http_session")

ONE_DAY_SECONDS = 86400


def prune_expired(session: requests.Session) -> int:
    """Delete expired responses from a cached session; returns how many went."""
    if not isinstance(session, requests_cache.CachedSession):
        return 0
    before = len(session.cache.responses)
    session.cache.delete(expired=True)
    removed = before - len(session.cache.responses)
    if removed:
        logger.debug("Pruned expired cache entries", extra={"removed": removed})
    return removed


class ExpiredResponsePruner:
    """Response hook that prunes the cache every `every` network responses.

    Cache hits never reach requests' hooks, so only fresh fetches count.
    """

    def __init__(self, session: requests_cache.CachedSession, every: int):
        self.session = session
        self.every = every
        self._seen = 0
        self._lock = threading.Lock()

    def __call__(self, response, *args, **kwargs):
        with self._lock:
            self._seen += 1
            due = self._seen % self.every == 0
        if due:
            prune_expired(self.session)
        return response


def build_session(settings: Settings | None = None) -> requests.Session:
    """Return a cached session, or a plain one when caching is disabled."""
    cfg = settings or default_settings
    if not cfg.http_cache_enabled:
        logger.info("HTTP caching disabled")
        return requests.Session()

    session = requests_cache.CachedSession(
        cfg.http_cache_name,
        backend="sqlite",
        expire_after=cfg.http_cache_ttl_seconds,
        urls_expire_after={
            "nominatim.openstreetmap.org": ONE_DAY_SECONDS,
            "archive-api.open-meteo.com": ONE_DAY_SECONDS,
            "power.larc.nasa.gov": ONE_DAY_SECONDS,
            "api.open-meteo.com": cfg.http_cache_ttl_seconds,
        },
        allowable_codes=(200,),
    )
    prune_expired(session)
    session.hooks["response"].append(ExpiredResponsePruner(session, cfg.http_cache_prune_every))
    return session
