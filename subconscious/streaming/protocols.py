"""Record payload decoding for the two stream protocols.

A deployment speaks exactly one of them, so the protocol is chosen when the
stream is opened. Each protocol instance belongs to a single stream and keeps
the state needed to synthesize the final run once the stream ends.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Literal

from msgspec import DecodeError, ValidationError
from msgspec.json import Decoder, decode

from subconscious.errors import StreamProtocolError, SubconsciousConfigurationError
from subconscious.events import (
    DoneEvent,
    ErrorEvent,
    RichStreamEvent,
    RunCompletedEvent,
    RunFailedEvent,
    StreamEvent,
    TextDeltaEvent,
)
from subconscious.models import Run

from .records import SSERecord

JSONDecodeErrors = (ValidationError, DecodeError)

type ProtocolName = Literal["rich", "delta"]

DONE_SENTINEL = "[DONE]"
UNKNOWN_ERROR_MESSAGE = "Unknown error"

_rich_decoder = Decoder(RichStreamEvent)


class StreamProtocol(ABC):
    """Turns closed records into typed events for one stream."""

    name: ClassVar[ProtocolName]

    @abstractmethod
    def decode(self, record: SSERecord) -> StreamEvent | None:
        """Return the event carried by `record`, or None to drop it."""
        raise NotImplementedError

    @abstractmethod
    def finalize(self) -> Run | None:
        """Synthesize the terminal run once the stream has ended."""
        raise NotImplementedError

    @property
    @abstractmethod
    def run_id(self) -> str | None:
        """Run identifier observed so far, if any."""
        raise NotImplementedError


class RichProtocol(StreamProtocol):
    """`data` is the JSON encoding of a rich event, e.g. `{"type": "run.started", ...}`."""

    name = "rich"

    def __init__(self) -> None:
        self._outcome: RunCompletedEvent | RunFailedEvent | None = None
        self._run_id: str | None = None

    @property
    def run_id(self) -> str | None:
        return self._run_id

    def decode(self, record: SSERecord) -> RichStreamEvent | None:
        try:
            event = _rich_decoder.decode(record.data)
        except JSONDecodeErrors:
            return None
        self._run_id = event.run_id
        if isinstance(event, (RunCompletedEvent, RunFailedEvent)):
            self._outcome = event
        return event

    def finalize(self) -> Run:
        match self._outcome:
            case RunCompletedEvent(run_id=run_id, result=result, usage=usage):
                return Run(
                    run_id=run_id, status="succeeded", result=result, usage=usage
                )
            case RunFailedEvent(run_id=run_id, error=error):
                return Run(run_id=run_id, status="failed", error=error)
            case _:
                raise StreamProtocolError("Stream ended without completion event")


class DeltaProtocol(StreamProtocol):
    """OpenAI-compatible chunks.

    ```
    event: meta
    data: {"run_id": "..."}

    data: {"choices": [{"delta": {"content": "Hel"}}]}

    event: error
    data: {"error": "...", "details": "...", "code": "..."}

    data: [DONE]
    ```
    """

    name = "delta"

    def __init__(self, run_id: str | None = None) -> None:
        self._run_id = run_id or None

    @property
    def run_id(self) -> str | None:
        return self._run_id

    def decode(self, record: SSERecord) -> StreamEvent | None:
        if record.data.strip() == DONE_SENTINEL:
            return DoneEvent(run_id=self._run_id or "")

        try:
            payload = decode(record.data)
        except DecodeError:
            return None
        if not isinstance(payload, dict):
            if record.event != "error":
                return None
            message = payload if isinstance(payload, str) and payload else ""
            return ErrorEvent(
                run_id=self._run_id or "", message=message or UNKNOWN_ERROR_MESSAGE
            )

        if run_id := payload.get("run_id"):
            self._run_id = str(run_id)
            return None

        if record.event == "error" or payload.get("error"):
            return self._error_event(payload)

        content = _first_delta_content(payload)
        if isinstance(content, str) and content:
            return TextDeltaEvent(run_id=self._run_id or "", content=content)
        return None

    def _error_event(self, payload: dict[str, Any]) -> ErrorEvent:
        message = payload.get("details") or payload.get("error") or UNKNOWN_ERROR_MESSAGE
        code = payload.get("code")
        return ErrorEvent(
            run_id=self._run_id or "",
            message=message if isinstance(message, str) else str(message),
            code=None if code is None else str(code),
        )

    def finalize(self) -> Run | None:
        if self._run_id is None:
            return None
        return Run(run_id=self._run_id, status="succeeded")


def _first_delta_content(payload: dict[str, Any]) -> Any:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    return delta.get("content")


def build_protocol(name: str, *, run_id: str | None = None) -> StreamProtocol:
    """Create the per-stream state for the named protocol.

    `run_id` seeds the correlation id of the delta protocol (it usually comes
    from the `x-run-id` response header); the rich protocol ignores it since
    every rich event names its run.
    """
    match name:
        case "rich":
            return RichProtocol()
        case "delta":
            return DeltaProtocol(run_id=run_id)
        case _:
            raise SubconsciousConfigurationError(
                f"Unknown stream protocol {name!r}, expected 'rich' or 'delta'"
            )
