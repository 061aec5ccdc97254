"""HTTP transport for the availability backend."""

from __future__ import annotations

import logging

import httpx

from ..config import get_settings
from ..domain.errors import PollTransportError, SubmissionError
from ..domain.models import PollResult, QueryHandle, SearchRequest

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/availability/submit"
POLL_PATH = "/availability/poll"


class AvailabilityHttpClient:
    """
    httpx-based implementation of AvailabilityApiProtocol.

    Every failure is translated into a domain error: SubmissionError for
    submit, PollTransportError for poll. Callers never see httpx exceptions.
    """

    def __init__(
        self,
        base_url: str | None = None,
        call_timeout_ms: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            base_url: Backend base URL (default from config)
            call_timeout_ms: Timeout of a single call (default from config)
            client: Preconfigured httpx client, not closed by `aclose`
        """
        settings = get_settings()

        self._call_timeout = (
            call_timeout_ms if call_timeout_ms is not None else settings.call_timeout_ms
        ) / 1000
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.backend_url,
            headers={"Content-Type": "application/json"},
        )

    async def submit(self, request: SearchRequest) -> QueryHandle:
        """Submit search and return its handle."""
        payload = request.model_dump(mode="json", exclude_none=True)
        try:
            response = await self._client.post(
                SUBMIT_PATH, json=payload, timeout=self._call_timeout
            )
            response.raise_for_status()
            return QueryHandle.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            raise SubmissionError(
                f"Submit rejected with HTTP {status_code}: {_error_detail(e.response)}",
                status_code=status_code,
            ) from e
        except httpx.HTTPError as e:
            raise SubmissionError(f"Submit request failed: {e!r}") from e
        except ValueError as e:
            # битый JSON или ответ без request_id
            raise SubmissionError(f"Malformed submit response: {e}") from e

    async def poll(self, query_id: str, since_seq: int, wait_ms: int) -> PollResult:
        """Fetch offers emitted after `since_seq`."""
        params = {"requestId": query_id, "sinceSeq": since_seq, "waitMs": wait_ms}
        # Long-poll: сервер может держать запрос до waitMs
        timeout = self._call_timeout + wait_ms / 1000
        try:
            response = await self._client.get(POLL_PATH, params=params, timeout=timeout)
            response.raise_for_status()
            return PollResult.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            raise PollTransportError(
                f"Poll rejected with HTTP {status_code}: {_error_detail(e.response)}",
                status_code=status_code,
            ) from e
        except httpx.HTTPError as e:
            raise PollTransportError(f"Poll request failed: {e!r}") from e
        except ValueError as e:
            raise PollTransportError(f"Malformed poll response: {e}") from e

    async def aclose(self) -> None:
        """Close the underlying httpx client if it was created here."""
        if self._owns_client:
            await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return str(body)[:200]
