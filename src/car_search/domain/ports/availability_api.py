"""Contracts for the availability backend."""

from __future__ import annotations

from typing import Protocol

from ..models import PollResult, QueryHandle, SearchRequest


class AvailabilityApiProtocol(Protocol):
    """Port describing interactions with the availability backend."""

    async def submit(self, request: SearchRequest) -> QueryHandle:
        """
        Submit a search and return its handle.

        Raises:
            SubmissionError: If no query id could be obtained
        """

    async def poll(self, query_id: str, since_seq: int, wait_ms: int) -> PollResult:
        """
        Return offers emitted after `since_seq`.

        Raises:
            PollTransportError: If the call failed at transport level
        """
