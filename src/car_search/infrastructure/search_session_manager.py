"""Registry of running availability searches."""

from __future__ import annotations

import logging
from collections.abc import Callable

from cachetools import TTLCache

from ..config import get_settings
from ..domain.errors import SearchNotFoundError
from ..domain.models import PollerSnapshot, QueryHandle, SearchRequest
from ..domain.ports.availability_api import AvailabilityApiProtocol
from ..domain.services.query_poller import QueryPoller

logger = logging.getLogger(__name__)


class SessionCache(TTLCache):
    """TTLCache reporting every poller dropped by size or TTL eviction."""

    def __init__(
        self,
        maxsize: int,
        ttl: float,
        on_evict: Callable[[str, QueryPoller], None],
    ) -> None:
        super().__init__(maxsize=maxsize, ttl=ttl)
        self._on_evict = on_evict

    def popitem(self) -> tuple[str, QueryPoller]:
        key, poller = super().popitem()
        self._on_evict(key, poller)
        return key, poller

    def expire(self, time: float | None = None) -> list[tuple[str, QueryPoller]]:
        expired = super().expire(time)
        for key, poller in expired or ():
            self._on_evict(key, poller)
        return expired


class SearchSessionManager:
    """
    Keeps one QueryPoller per search, addressable by query id.

    Pollers share nothing but the transport. A poller evicted from the cache
    is cancelled and kept aside until its tasks finish, so `aclose` still
    waits for it.
    """

    def __init__(
        self,
        api: AvailabilityApiProtocol,
        poller_factory: Callable[[AvailabilityApiProtocol], QueryPoller] | None = None,
        session_ttl: int | None = None,
        session_cache_size: int | None = None,
    ) -> None:
        """
        Initialize manager.

        Args:
            api: Transport shared by all pollers
            poller_factory: Builds a poller for one search (default from config)
            session_ttl: Seconds a search stays addressable (default from config)
            session_cache_size: Max number of tracked searches (default from config)
        """
        settings = get_settings()

        self._api = api
        self._poller_factory = poller_factory or _default_poller_factory
        self._evicted: set[QueryPoller] = set()
        self._sessions = SessionCache(
            maxsize=session_cache_size or settings.session_cache_size,
            ttl=session_ttl or settings.session_ttl,
            on_evict=self._evict,
        )

    async def start_search(self, request: SearchRequest) -> QueryHandle:
        """
        Submit a search and track its poller.

        Raises:
            SubmissionError: If the backend did not accept the search
        """
        poller = self._poller_factory(self._api)
        handle = await poller.start(request)
        self._sessions[handle.query_id] = poller
        self._evicted = {evicted for evicted in self._evicted if not evicted.closed}

        logger.info(
            "search session registered",
            extra={"query_id": handle.query_id, "sessions": len(self._sessions)},
        )
        return handle

    def get_poller(self, query_id: str) -> QueryPoller:
        """
        Return poller tracked for the query.

        Raises:
            SearchNotFoundError: If the query is unknown or expired
        """
        poller = self._sessions.get(query_id)
        if poller is None:
            logger.warning("search session not found", extra={"query_id": query_id})
            raise SearchNotFoundError(f"Search {query_id} not found")
        return poller

    def get_snapshot(self, query_id: str) -> PollerSnapshot:
        return self.get_poller(query_id).snapshot()

    def cancel_search(self, query_id: str) -> PollerSnapshot:
        """Cancel the search and return its state after cancellation."""
        poller = self.get_poller(query_id)
        poller.cancel()
        return poller.snapshot()

    async def aclose(self) -> None:
        """Stop all tracked and evicted pollers and close the transport."""
        pollers = set(self._sessions.values()) | self._evicted
        self._sessions.clear()
        pollers |= self._evicted
        self._evicted = set()
        for poller in pollers:
            await poller.aclose()

        close = getattr(self._api, "aclose", None)
        if close is not None:
            await close()

        logger.info("search sessions closed", extra={"closed": len(pollers)})

    def _evict(self, query_id: str, poller: QueryPoller) -> None:
        if not poller.phase.is_terminal:
            logger.warning(
                "running search evicted, cancelling",
                extra={"query_id": query_id, "phase": poller.phase.value},
            )
        poller.cancel()
        if not poller.closed:
            self._evicted.add(poller)


def _default_poller_factory(api: AvailabilityApiProtocol) -> QueryPoller:
    settings = get_settings()
    return QueryPoller(
        api,
        poll_interval_ms=settings.poll_interval_ms,
        poll_wait_ms=settings.poll_wait_ms,
        budget_ms=settings.search_budget_ms,
    )
