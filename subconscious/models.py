"""Run data models shared by the client, the poller and the stream decoder."""

from typing import Any, Literal

from msgspec import field

from subconscious.interface import Record
from subconscious.tools import Tool

type Engine = Literal["tim-small-preview", "tim-large", "timini"] | str

RunStatus = Literal["queued", "running", "succeeded", "failed", "canceled", "timed_out"]

TERMINAL_STATUSES: frozenset[RunStatus] = frozenset(
    ("succeeded", "failed", "canceled", "timed_out")
)


class ReasoningNode(Record, rename="camel"):
    """One node of the reasoning tree produced by the engine."""

    title: str = ""
    """Short label for the reasoning step."""

    thought: str = ""
    """Free-form reasoning text."""

    tooluse: list[Any] = field(default_factory=list)
    """Raw tool-use records attached to this step."""

    subtask: list["ReasoningNode"] = field(default_factory=list)
    """Child reasoning nodes, owned by this node."""

    conclusion: str = ""
    """Outcome of this step."""


class RunResult(Record, rename="camel"):
    """Final output of a run."""

    answer: str = ""
    """Answer text, or a JSON document when an answer format was requested."""

    reasoning: ReasoningNode | None = None
    """Root of the reasoning tree, when the engine reports one."""


class ModelUsage(Record, rename="camel"):
    engine: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class PlatformToolUsage(Record, rename="camel"):
    tool_id: str = ""
    calls: int = 0


class Usage(Record, rename="camel"):
    """Token and tool-call accounting for a run."""

    models: list[ModelUsage] = field(default_factory=list[ModelUsage])
    platform_tools: list[PlatformToolUsage] = field(
        default_factory=list[PlatformToolUsage]
    )

    @property
    def total_tokens(self) -> int:
        return sum(model.total_tokens for model in self.models)


class RunError(Record, rename="camel"):
    code: str = "internal_error"
    message: str = ""


class Run(Record, rename="camel"):
    """Snapshot of a remote run as observed by the client."""

    run_id: str
    """Server-assigned run identifier."""

    status: RunStatus | None = None
    """Lifecycle status; absent on the submission acknowledgement."""

    result: RunResult | None = None
    """Final result, present once the run succeeded."""

    usage: Usage | None = None
    """Usage accounting, present once the run finished."""

    error: RunError | None = None
    """Failure details reported by a failed run."""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RunInput(Record, rename="camel", omit_defaults=True):
    """Task description submitted with a run."""

    instructions: str
    tools: list[Tool] = field(default_factory=list[Tool])
    answer_format: dict[str, Any] | None = None
    """JSON schema for the answer, see `subconscious.schema.output_schema`."""
    reasoning_format: dict[str, Any] | None = None
    """JSON schema for the reasoning output."""


class RunRequest(Record):
    engine: str
    input: RunInput
