"""Long-running poller driving one availability search to a terminal phase."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from ..errors import PollerStateError, PollTransportError, SubmissionError
from ..models import (
    AvailabilityOffer,
    PollerPhase,
    PollerSnapshot,
    PollResult,
    QueryHandle,
    QueryStatus,
    SearchRequest,
)
from ..ports.availability_api import AvailabilityApiProtocol

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 2000
DEFAULT_POLL_WAIT_MS = 1500
DEFAULT_BUDGET_MS = 120000


@dataclass(frozen=True, slots=True)
class PollUpdate:
    """Observer payload: items appended by one poll and the resulting state."""

    new_items: tuple[AvailabilityOffer, ...]
    snapshot: PollerSnapshot

    @property
    def phase(self) -> PollerPhase:
        return self.snapshot.phase


PollObserver = Callable[[PollUpdate], None]


class QueryPoller:
    """
    Drive one availability search from submission to a terminal phase.

    After `start` the poller runs two asyncio tasks: the poll loop, which
    fetches offers emitted after the current high-water mark, and a watcher
    enforcing the overall time budget. State is published as immutable
    `PollerSnapshot` objects, so readers never observe a partial update.

    Terminal phases (COMPLETE, ERRORED, TIMED_OUT, CANCELLED) are final and
    mutually exclusive: the first transition wins, later ones are ignored.
    Cancellation and timeout are cooperative. An in-flight poll is never
    aborted; its response is discarded if a terminal phase was entered while
    it was running.

    All methods must be called from the event loop thread. `snapshot()` may
    be read from any thread.
    """

    def __init__(
        self,
        api: AvailabilityApiProtocol,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        poll_wait_ms: int = DEFAULT_POLL_WAIT_MS,
        budget_ms: int = DEFAULT_BUDGET_MS,
    ) -> None:
        """
        Initialize poller.

        Args:
            api: Transport used for submit and poll calls
            poll_interval_ms: Fixed delay between two polls
            poll_wait_ms: Long-poll wait requested from the backend
            budget_ms: Overall time budget of the search, armed at start
        """
        self._api = api
        self._poll_interval = poll_interval_ms / 1000
        self._poll_wait_ms = poll_wait_ms
        self._budget = budget_ms / 1000

        self._snapshot = PollerSnapshot()
        self._observers: list[PollObserver] = []
        self._pending_updates: deque[PollUpdate] = deque()
        self._notifying = False
        self._starting = False
        self._cancel_requested = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._started_at: float | None = None
        self._done: asyncio.Event | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._watcher_task: asyncio.Task[None] | None = None

    @property
    def query_id(self) -> str | None:
        return self._snapshot.query_id

    @property
    def phase(self) -> PollerPhase:
        return self._snapshot.phase

    @property
    def closed(self) -> bool:
        """True once no background task of this poller is pending."""
        return all(
            task is None or task.done() for task in (self._loop_task, self._watcher_task)
        )

    def snapshot(self) -> PollerSnapshot:
        """Return the latest published state."""
        return self._snapshot

    def subscribe(self, observer: PollObserver) -> Callable[[], None]:
        """
        Register an observer called after every successful poll.

        A terminal transition not caused by a poll (timeout, cancel) is
        reported with empty `new_items`. Exactly one update carries a
        terminal phase.

        Returns:
            Callable removing the observer
        """
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    async def start(self, request: SearchRequest) -> QueryHandle:
        """
        Submit the search and start polling in the background.

        Args:
            request: Search criteria

        Returns:
            Handle returned by the backend

        Raises:
            SubmissionError: If the backend did not accept the search
            PollerStateError: If this poller already runs or ran a search
        """
        if self._starting or self._snapshot.phase is not PollerPhase.NOT_STARTED:
            raise PollerStateError("QueryPoller runs a single search; create a new instance")

        self._starting = True
        self._cancel_requested = False
        try:
            handle = await self._api.submit(request)
        except SubmissionError as e:
            logger.error("search submission failed", extra={"error": str(e)})
            raise
        except Exception as e:
            logger.error("search submission failed", exc_info=True, extra={"error": str(e)})
            raise SubmissionError(str(e)) from e
        finally:
            self._starting = False

        self._loop = asyncio.get_running_loop()
        self._started_at = self._loop.time()
        self._done = asyncio.Event()
        self._publish(
            query_id=handle.query_id,
            phase=PollerPhase.RUNNING,
            server_status=handle.status,
        )
        logger.info(
            "search submitted",
            extra={
                "query_id": handle.query_id,
                "status": handle.status.value,
                "recommended_poll_ms": handle.recommended_poll_ms,
            },
        )

        # cancel() пришёл во время submit
        if self._cancel_requested:
            self._finish(PollerPhase.CANCELLED)
            return handle

        self._loop_task = asyncio.create_task(
            self._run(), name=f"query-poller:{handle.query_id}"
        )
        self._watcher_task = asyncio.create_task(
            self._watch_budget(), name=f"query-budget:{handle.query_id}"
        )
        return handle

    def cancel(self) -> None:
        """
        Stop the search at the next safe point.

        Already accumulated items stay available. No-op for a terminal poller.
        """
        if self._snapshot.phase is PollerPhase.NOT_STARTED:
            if self._starting:
                self._cancel_requested = True
            return
        if self._finish(PollerPhase.CANCELLED):
            logger.info(
                "search cancelled",
                extra={"query_id": self.query_id, "items": len(self._snapshot.items)},
            )

    async def wait(self) -> PollerSnapshot:
        """
        Wait until the search reaches a terminal phase and the loop has exited.

        Returns:
            Final snapshot

        Raises:
            PollerStateError: If the poller was never started
        """
        if self._done is None:
            raise PollerStateError("QueryPoller was not started")
        await self._done.wait()
        if self._loop_task is not None:
            await asyncio.wait({self._loop_task})
        return self._snapshot

    async def aclose(self) -> None:
        """Cancel the search and tear down background tasks."""
        self.cancel()
        tasks = [
            task
            for task in (self._loop_task, self._watcher_task)
            if task is not None and not task.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self) -> None:
        try:
            while self._snapshot.phase is PollerPhase.RUNNING:
                await self._poll_once()
                if self._snapshot.phase is not PollerPhase.RUNNING:
                    break
                await self._sleep_interval()
        except Exception as e:
            logger.error(
                "poll loop crashed",
                exc_info=True,
                extra={"query_id": self.query_id, "error": str(e)},
            )
            self._finish(PollerPhase.ERRORED, error=str(e))

        logger.debug(
            "poll loop stopped",
            extra={"query_id": self.query_id, "phase": self._snapshot.phase.value},
        )

    async def _poll_once(self) -> None:
        query_id = self._snapshot.query_id
        since_seq = self._snapshot.high_water_seq
        wait_ms = min(self._poll_wait_ms, int(self._remaining() * 1000))

        try:
            result = await self._api.poll(query_id, since_seq, wait_ms)
        except PollTransportError as e:
            if self._snapshot.phase is PollerPhase.RUNNING:
                self._publish(failed_polls=self._snapshot.failed_polls + 1)
            logger.warning(
                "poll failed, will retry",
                extra={
                    "query_id": query_id,
                    "since_seq": since_seq,
                    "status_code": e.status_code,
                    "error": str(e),
                },
            )
            return

        if self._snapshot.phase is not PollerPhase.RUNNING:
            logger.info(
                "discarding poll response received after termination",
                extra={
                    "query_id": query_id,
                    "phase": self._snapshot.phase.value,
                    "items": len(result.items),
                },
            )
            return

        if result.query_id and result.query_id != query_id:
            self._publish(failed_polls=self._snapshot.failed_polls + 1)
            logger.warning(
                "poll response belongs to another search, will retry",
                extra={
                    "query_id": query_id,
                    "response_query_id": result.query_id,
                    "items": len(result.items),
                },
            )
            return

        self._apply(result)

    def _apply(self, result: PollResult) -> None:
        current = self._snapshot
        new_items = tuple(result.items)

        # high-water mark не откатываем даже при устаревшем ответе
        if result.last_seq < current.high_water_seq:
            logger.warning(
                "stale last_seq ignored",
                extra={
                    "query_id": current.query_id,
                    "last_seq": result.last_seq,
                    "high_water_seq": current.high_water_seq,
                },
            )
        high_water_seq = max(current.high_water_seq, result.last_seq)

        phase = PollerPhase.RUNNING
        error = None
        if result.status is QueryStatus.ERROR:
            phase = PollerPhase.ERRORED
            error = result.error
        elif result.complete:
            phase = PollerPhase.COMPLETE

        self._publish(
            items=current.items + new_items,
            high_water_seq=high_water_seq,
            server_status=result.status,
            polls=current.polls + 1,
            phase=phase,
            error=error,
        )
        logger.debug(
            "poll processed",
            extra={
                "query_id": current.query_id,
                "since_seq": current.high_water_seq,
                "last_seq": result.last_seq,
                "new_items": len(new_items),
                "phase": phase.value,
            },
        )

        if phase.is_terminal:
            self._done.set()
            self._log_terminal()
        self._notify(PollUpdate(new_items=new_items, snapshot=self._snapshot))

    async def _sleep_interval(self) -> None:
        try:
            await asyncio.wait_for(self._done.wait(), timeout=self._poll_interval)
        except TimeoutError:
            pass

    async def _watch_budget(self) -> None:
        # Таймер может сработать чуть раньше, поэтому досыпаем остаток
        while True:
            remaining = self._remaining()
            if remaining <= 0:
                break
            try:
                await asyncio.wait_for(self._done.wait(), timeout=remaining)
                return
            except TimeoutError:
                continue

        self._finish(PollerPhase.TIMED_OUT)

    def _finish(self, phase: PollerPhase, error: str | None = None) -> bool:
        """Enter a terminal phase unless one was already entered."""
        if self._snapshot.phase is not PollerPhase.RUNNING:
            return False

        self._publish(phase=phase, error=error)
        self._done.set()
        self._log_terminal()
        self._notify(PollUpdate(new_items=(), snapshot=self._snapshot))
        return True

    def _log_terminal(self) -> None:
        snapshot = self._snapshot
        extra = {
            "query_id": snapshot.query_id,
            "phase": snapshot.phase.value,
            "items": len(snapshot.items),
            "polls": snapshot.polls,
            "failed_polls": snapshot.failed_polls,
            "elapsed_ms": round(snapshot.elapsed_ms),
        }
        if snapshot.phase is PollerPhase.COMPLETE:
            logger.info("search completed", extra=extra)
        elif snapshot.phase is PollerPhase.ERRORED:
            logger.error("search errored", extra={**extra, "error": snapshot.error})
        elif snapshot.phase is PollerPhase.TIMED_OUT:
            logger.warning("search timed out", extra=extra)

    def _notify(self, update: PollUpdate) -> None:
        # Observer может вызвать cancel(): обновления уходят строго по порядку
        self._pending_updates.append(update)
        if self._notifying:
            return

        self._notifying = True
        try:
            while self._pending_updates:
                queued = self._pending_updates.popleft()
                for observer in list(self._observers):
                    try:
                        observer(queued)
                    except Exception:
                        logger.exception(
                            "poll observer failed", extra={"query_id": self.query_id}
                        )
        finally:
            self._notifying = False

    def _publish(self, **changes: object) -> None:
        changes["elapsed_ms"] = self._elapsed_ms()
        self._snapshot = self._snapshot.model_copy(update=changes)

    def _elapsed_ms(self) -> float:
        if self._started_at is None:
            return 0
        return (self._loop.time() - self._started_at) * 1000

    def _remaining(self) -> float:
        """Seconds left in the budget."""
        return max(0.0, self._budget - self._elapsed_ms() / 1000)
