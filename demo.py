import asyncio
import os
import sys
from typing import Any, cast

from dotenv import load_dotenv
from msgspec import Struct
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind

from subconscious import (
    ClientConfig,
    PlatformTool,
    RunInput,
    StreamCancelledError,
    Subconscious,
    output_schema,
)
from subconscious.events import (
    ErrorEvent,
    ReasoningEvent,
    RunCompletedEvent,
    TextDeltaEvent,
    ToolCallEvent,
)


class NewsBrief(Struct):
    headline: str
    summary: str
    sources: list[str]


class ConsoleLogger:
    def info(self, msg: str, /, **kwargs: Any) -> None:
        print(f"[info] {msg}", file=sys.stderr)

    def success(self, msg: str, /, **kwargs: Any) -> None:
        print(f"[ok] {msg}", file=sys.stderr)

    def exception(self, msg: str, /, **kwargs: Any) -> None:
        print(f"[error] {msg}", file=sys.stderr)


def build_tracer() -> trace.Tracer:
    otel_provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": "subconscious-demo",
            }
        )
    )
    if endpoint := os.environ.get("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT"):
        exporter = OTLPSpanExporter(endpoint=endpoint)
        otel_provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(otel_provider)
    return trace.get_tracer("subconscious-demo")


async def main() -> None:
    load_dotenv(".env")
    tracer = build_tracer()
    config = ClientConfig.from_env()
    run_input = RunInput(
        instructions="Search for the latest news about AI and write a short brief.",
        tools=[PlatformTool(id="parallel_search")],
        answer_format=output_schema(NewsBrief, "NewsBrief"),
    )

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.call_later(float(os.environ.get("SUBCONSCIOUS_DEMO_DEADLINE", "300")), cancel.set)

    try:
        async with Subconscious(
            config=config, logger=ConsoleLogger(), tracer=tracer
        ) as client:
            with tracer.start_as_current_span("demo.stream", kind=SpanKind.INTERNAL):
                stream = await client.stream("tim-large", run_input, signal=cancel)
                async with stream:
                    async for event in stream:
                        match event:
                            case TextDeltaEvent(content=content):
                                print(content, end="", flush=True)
                            case ReasoningEvent(node=node):
                                print(f"\n> {node.title}: {node.thought}")
                            case ToolCallEvent(tool_id=tool_id):
                                print(f"\n> calling {tool_id}")
                            case RunCompletedEvent(result=result):
                                print(f"\n{result.answer}")
                            case ErrorEvent(message=message):
                                print(f"\nerror: {message}", file=sys.stderr)
                            case _:
                                pass
                    run = await stream.final_run()
            print()
            if run is not None:
                print(f"run {run.run_id} {run.status}")
    except StreamCancelledError:
        print("\nstream cancelled after deadline", file=sys.stderr)
    finally:
        provider = cast(TracerProvider, trace.get_tracer_provider())
        provider.force_flush()
        provider.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
