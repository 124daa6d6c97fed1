from typing import Any

from msgspec import field

from subconscious.interface import Record


class ToolBase(Record, tag_field="type", omit_defaults=True):
    """Tool definitions are discriminated by their `type` field on the wire."""


class PlatformTool(ToolBase, tag="platform", omit_defaults=False):
    """A tool hosted by the platform, e.g. `parallel_search`."""

    id: str
    options: dict[str, Any] = field(default_factory=dict)


class FunctionSpec(Record, omit_defaults=True):
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    description: str | None = None


class FunctionTool(ToolBase, tag="function"):
    """A caller-described function the engine may request."""

    function: FunctionSpec


class MCPTool(ToolBase, tag="mcp"):
    """A remote MCP server, optionally restricted to some of its tools."""

    url: str
    allow: list[str] | None = None


type Tool = PlatformTool | FunctionTool | MCPTool
