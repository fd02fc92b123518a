"""HTTP client for the remote compute execution engine.

The engine answers ``POST /compute-execute`` either with a Server-Sent
Events stream (``event:`` / ``data:`` line pairs) or, for short runs, with
a single JSON body.
"""

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

import httpx

from computeflow.errors import EngineError, EngineRequestError
from computeflow.models.execution import EngineEvent

logger = logging.getLogger(__name__)

EXECUTE_PATH = "/compute-execute"
DEFAULT_TIMEOUT = httpx.Timeout(30.0, read=None)


async def parse_event_stream(lines: AsyncIterable[str]) -> AsyncIterator[EngineEvent]:
    """Turn SSE lines into engine events.

    Events without an ``event:`` line are named ``message``. Payloads that
    are not JSON objects are skipped with a warning.
    """
    current_event = ""
    async for raw_line in lines:
        line = raw_line.strip()

        if not line:
            current_event = ""
            continue

        if line.startswith("event:"):
            current_event = line[6:].strip()
            continue

        if not line.startswith("data:"):
            continue

        payload = line[5:].strip()
        if not payload:
            continue

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse SSE data: {payload[:200]}")
            continue

        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object SSE payload for event {current_event or 'message'}")
            continue

        yield EngineEvent(event=current_event or "message", data=data)


class ExecutionEngineClient:
    """Starts graph runs on the execution engine and streams their events."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._transport = transport
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def execute(self, project_id: str) -> AsyncIterator[EngineEvent]:
        """Run a project's graph, yielding engine events as they arrive.

        Raises:
            EngineRequestError: the engine answered with an error status
            EngineError: a non-streamed response carried an error
            httpx.HTTPError: the engine could not be reached
        """
        async with httpx.AsyncClient(
            base_url=self.base_url, transport=self._transport, timeout=self._timeout
        ) as client:
            async with client.stream(
                "POST",
                EXECUTE_PATH,
                json={"projectId": project_id},
                headers=self._headers(),
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise EngineRequestError(
                        f"HTTP {response.status_code}: {body}",
                        status_code=response.status_code,
                    )

                content_type = response.headers.get("content-type", "")
                if "text/event-stream" in content_type:
                    async for event in parse_event_stream(response.aiter_lines()):
                        yield event
                    return

                await response.aread()
                try:
                    data = response.json()
                except json.JSONDecodeError as e:
                    raise EngineError(f"Engine returned invalid JSON: {e}") from e

                if isinstance(data, dict) and data.get("error"):
                    raise EngineError(str(data["error"]))

                yield EngineEvent(event="result", data=data if isinstance(data, dict) else {})
