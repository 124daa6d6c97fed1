import asyncio
import os
from typing import Self
from urllib.parse import quote

import httpx
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

from subconscious.errors import SubconsciousConfigurationError
from subconscious.http import HttpTransport, LoggingHttpTransport
from subconscious.interface import ILogger, Record
from subconscious.models import Engine, Run, RunInput, RunRequest
from subconscious.poll import poll_until_complete
from subconscious.streaming import RunStream, StreamDecoder, build_protocol
from subconscious.streaming.protocols import ProtocolName

DEFAULT_BASE_URL = "https://api.subconscious.dev/v1"
RUN_ID_HEADER = "x-run-id"

API_KEY_ENV = "SUBCONSCIOUS_API_KEY"
BASE_URL_ENV = "SUBCONSCIOUS_BASE_URL"
PROTOCOL_ENV = "SUBCONSCIOUS_STREAM_PROTOCOL"


class ClientConfig(Record):
    """Connection settings for `Subconscious`."""

    api_key: str
    """Bearer token sent with every request."""

    base_url: str = DEFAULT_BASE_URL
    """API root, e.g. `https://api.subconscious.dev/v1`."""

    protocol: ProtocolName = "delta"
    """Wire format spoken by the streaming endpoint of this deployment."""

    timeout_seconds: float = 60.0
    """Per-request network timeout."""

    poll_interval_seconds: float = 1.0
    """Delay between status checks while waiting for a run."""

    def __post_init__(self) -> None:
        if not self.api_key:
            raise SubconsciousConfigurationError("api_key is required")
        if self.protocol not in ("rich", "delta"):
            raise SubconsciousConfigurationError(
                f"Unknown stream protocol {self.protocol!r}, expected 'rich' or 'delta'"
            )
        if self.timeout_seconds <= 0:
            raise SubconsciousConfigurationError("timeout_seconds must be positive")
        if self.poll_interval_seconds < 0:
            raise SubconsciousConfigurationError(
                "poll_interval_seconds must not be negative"
            )

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """Read settings from `SUBCONSCIOUS_*` environment variables."""
        values = {
            "api_key": os.environ.get(API_KEY_ENV, ""),
            "base_url": os.environ.get(BASE_URL_ENV, DEFAULT_BASE_URL),
            "protocol": os.environ.get(PROTOCOL_ENV, "delta"),
        }
        values.update(overrides)
        return cls(**values)


class Subconscious:
    """Client for the Subconscious run API.

    Usage::

        async with Subconscious(api_key=...) as client:
            run = await client.run(
                "tim-large",
                RunInput(
                    instructions="Search for the latest news about AI",
                    tools=[PlatformTool(id="parallel_search")],
                ),
                await_completion=True,
            )
            print(run.result.answer)
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        logger: ILogger | None = None,
        tracer: trace.Tracer | None = None,
    ):
        if config is None:
            config = (
                ClientConfig(api_key=api_key) if api_key else ClientConfig.from_env()
            )
        elif api_key:
            raise SubconsciousConfigurationError(
                "Pass api_key either directly or through config, not both"
            )
        self._config = config
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=config.timeout_seconds
        )
        headers = {"Authorization": f"Bearer {config.api_key}"}
        if logger is None:
            self._transport = HttpTransport(
                self._http_client, base_url=config.base_url, headers=headers
            )
        else:
            self._transport = LoggingHttpTransport(
                self._http_client,
                base_url=config.base_url,
                headers=headers,
                logger=logger,
            )
        self._tracer = tracer or trace.get_tracer("subconscious.client")

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def run(
        self,
        engine: Engine,
        run_input: RunInput,
        *,
        await_completion: bool = False,
        interval_seconds: float | None = None,
        max_attempts: int | None = None,
        signal: asyncio.Event | None = None,
    ) -> Run:
        """Submit a run.

        Returns the acknowledgement (only `run_id` set) unless
        `await_completion` is set, in which case the run is polled until it
        reaches a terminal status.
        """
        with self._tracer.start_as_current_span(
            "subconscious.run",
            kind=SpanKind.CLIENT,
            record_exception=True,
            set_status_on_exception=True,
            attributes={"run.engine": engine},
        ) as span:
            run = await self._transport.request(
                "POST",
                "/runs",
                response_type=Run,
                body=RunRequest(engine=engine, input=run_input),
            )
            span.set_attribute("run.id", run.run_id)

        if not await_completion:
            return run
        return await self.wait(
            run.run_id,
            interval_seconds=interval_seconds,
            max_attempts=max_attempts,
            signal=signal,
        )

    async def stream(
        self,
        engine: Engine,
        run_input: RunInput,
        *,
        signal: asyncio.Event | None = None,
    ) -> RunStream:
        """Submit a run and return its event stream.

        HTTP errors are raised here, before any event is read. Setting
        `signal` cancels the stream at its next wait for data.
        """
        span = self._tracer.start_span(
            "subconscious.stream",
            kind=SpanKind.CLIENT,
            attributes={"run.engine": engine, "run.protocol": self._config.protocol},
        )
        try:
            response = await self._transport.stream(
                "POST",
                "/runs/stream",
                body=RunRequest(engine=engine, input=run_input),
            )
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.end()
            raise

        protocol = build_protocol(
            self._config.protocol, run_id=response.headers.get(RUN_ID_HEADER)
        )
        return RunStream(
            response.source, StreamDecoder(protocol), signal=signal, span=span
        )

    async def get(self, run_id: str) -> Run:
        """Fetch the current snapshot of a run."""
        with self._tracer.start_as_current_span(
            "subconscious.get",
            kind=SpanKind.CLIENT,
            record_exception=True,
            set_status_on_exception=True,
            attributes={"run.id": run_id},
        ):
            return await self._transport.request(
                "GET", f"/runs/{quote(run_id, safe='')}", response_type=Run
            )

    async def wait(
        self,
        run_id: str,
        *,
        interval_seconds: float | None = None,
        max_attempts: int | None = None,
        signal: asyncio.Event | None = None,
    ) -> Run:
        """Poll a run until it succeeds, fails, is canceled or times out."""
        if interval_seconds is None:
            interval_seconds = self._config.poll_interval_seconds
        with self._tracer.start_as_current_span(
            "subconscious.wait",
            kind=SpanKind.INTERNAL,
            record_exception=True,
            set_status_on_exception=True,
            attributes={"run.id": run_id},
        ) as span:
            run = await poll_until_complete(
                lambda: self.get(run_id),
                interval_seconds=interval_seconds,
                max_attempts=max_attempts,
                signal=signal,
            )
            if run.status is not None:
                span.set_attribute("run.status", run.status)
            return run

    async def cancel(self, run_id: str) -> Run:
        """Ask the API to cancel a run and return its updated snapshot."""
        with self._tracer.start_as_current_span(
            "subconscious.cancel",
            kind=SpanKind.CLIENT,
            record_exception=True,
            set_status_on_exception=True,
            attributes={"run.id": run_id},
        ):
            return await self._transport.request(
                "POST", f"/runs/{quote(run_id, safe='')}/cancel", response_type=Run
            )
