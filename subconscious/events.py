"""Stream event data models.

Two event schemas exist, one per stream protocol. Both are closed tagged
unions discriminated by the `type` field and every event carries the
`run_id` of the run that produced it.
"""

from typing import Any

from subconscious.interface import Record
from subconscious.models import RunError, RunResult, RunStatus, Usage


class RichEvent(Record, tag_field="type", rename="camel"):
    """Base class of events sent by the rich stream protocol."""

    run_id: str
    """Identifier of the run that produced this event."""


class RunStartedEvent(RichEvent, tag="run.started"):
    pass


class RunStatusEvent(RichEvent, tag="run.status"):
    status: RunStatus


class RunCompletedEvent(RichEvent, tag="run.completed"):
    result: RunResult
    usage: Usage | None = None


class RunFailedEvent(RichEvent, tag="run.failed"):
    error: RunError


class ReasoningStep(Record, rename="camel"):
    title: str = ""
    thought: str = ""


class ReasoningEvent(RichEvent, tag="reasoning"):
    node: ReasoningStep


class ToolCallEvent(RichEvent, tag="tool.call"):
    tool_id: str
    input: Any = None


class ToolResultEvent(RichEvent, tag="tool.result"):
    tool_id: str
    output: Any = None


RichStreamEvent = (
    RunStartedEvent
    | RunStatusEvent
    | RunCompletedEvent
    | RunFailedEvent
    | ReasoningEvent
    | ToolCallEvent
    | ToolResultEvent
)


class DeltaEvent(Record, tag_field="type", rename="camel"):
    """Base class of events synthesized from the OpenAI-compatible protocol."""

    run_id: str
    """Correlation id known when the event was emitted; empty if none yet."""


class TextDeltaEvent(DeltaEvent, tag="delta"):
    content: str


class DoneEvent(DeltaEvent, tag="done"):
    pass


class ErrorEvent(DeltaEvent, tag="error"):
    message: str
    code: str | None = None


DeltaStreamEvent = TextDeltaEvent | DoneEvent | ErrorEvent

type StreamEvent = RichStreamEvent | DeltaStreamEvent
