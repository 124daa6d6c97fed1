import asyncio
from typing import AsyncGenerator, Self

from opentelemetry.trace import Span, Status, StatusCode

from subconscious.errors import StreamCancelledError, StreamError, SubconsciousError
from subconscious.events import StreamEvent
from subconscious.models import Run

from .lines import LineBuffer
from .protocols import StreamProtocol
from .records import RecordAccumulator, SSERecord
from .source import IByteSource


class StreamDecoder:
    """Incremental bytes-to-events transformation for a single stream.

    Holds everything a stream accumulates between reads: the partial line,
    the record in progress and the protocol's correlation state.
    """

    __slots__ = ("_lines", "_records", "_protocol")

    def __init__(self, protocol: StreamProtocol):
        self._lines = LineBuffer()
        self._records = RecordAccumulator()
        self._protocol = protocol

    @property
    def protocol(self) -> StreamProtocol:
        return self._protocol

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for line in self._lines.push(chunk):
            self._collect(self._records.feed(line), events)
        return events

    def finish(self) -> list[StreamEvent]:
        """Flush the trailing line and the open record once input has ended."""
        events: list[StreamEvent] = []
        if (tail := self._lines.flush()) is not None:
            self._collect(self._records.feed(tail), events)
        self._collect(self._records.finish(), events)
        return events

    def result(self) -> Run | None:
        return self._protocol.finalize()

    def _collect(self, record: SSERecord | None, events: list[StreamEvent]) -> None:
        if record is None:
            return
        if (event := self._protocol.decode(record)) is not None:
            events.append(event)


class RunStream:
    """Lazy, single-pass sequence of events read from one network stream.

    Usage::

        async with await client.stream("tim-large", run_input) as stream:
            async for event in stream:
                ...
            run = await stream.final_run()

    The byte source is released exactly once, whether the stream is drained,
    fails, is cancelled, or is closed early.
    """

    def __init__(
        self,
        source: IByteSource,
        decoder: StreamDecoder,
        *,
        signal: asyncio.Event | None = None,
        span: Span | None = None,
    ):
        self._source = source
        self._decoder = decoder
        self._signal = signal
        self._span = span
        self._events = self._iter_events()
        self._event_count = 0
        self._run: Run | None = None
        self._exhausted = False
        self._released = False
        self._failure: SubconsciousError | None = None

    @property
    def protocol(self) -> str:
        return self._decoder.protocol.name

    @property
    def run_id(self) -> str | None:
        return self._decoder.protocol.run_id

    @property
    def run(self) -> Run | None:
        """Synthesized final run; only available once the stream is drained."""
        return self._run

    @property
    def released(self) -> bool:
        return self._released

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> StreamEvent:
        return await anext(self._events)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._events.aclose()
        await self._release()

    async def final_run(self) -> Run | None:
        """Drain the remaining events and return the synthesized run.

        The rich protocol either returns a terminal run or raises
        `StreamProtocolError`; the delta protocol may return None.
        """
        async for _ in self:
            pass
        if self._failure is not None:
            raise self._failure
        if not self._exhausted:
            raise StreamError("Stream was closed before it completed")
        return self._run

    async def _iter_events(self) -> AsyncGenerator[StreamEvent, None]:
        try:
            while (chunk := await self._read()) is not None:
                for event in self._decoder.feed(chunk):
                    self._ensure_not_cancelled()
                    self._event_count += 1
                    yield event
            for event in self._decoder.finish():
                self._ensure_not_cancelled()
                self._event_count += 1
                yield event
            self._run = self._decoder.result()
            self._exhausted = True
        except SubconsciousError as exc:
            self._failure = exc
            raise
        finally:
            await self._release()

    async def _read(self) -> bytes | None:
        signal = self._signal
        if signal is None:
            return await self._source.read()

        self._ensure_not_cancelled()
        read = asyncio.ensure_future(self._source.read())
        cancelled = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait((read, cancelled), return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (read, cancelled):
                if not task.done():
                    task.cancel()

        if signal.is_set():
            await asyncio.gather(read, return_exceptions=True)
            raise StreamCancelledError("Stream cancelled")
        await asyncio.gather(cancelled, return_exceptions=True)
        return read.result()

    def _ensure_not_cancelled(self) -> None:
        if self._signal is not None and self._signal.is_set():
            raise StreamCancelledError("Stream cancelled")

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            await self._source.aclose()
        finally:
            self._end_span()

    def _end_span(self) -> None:
        span = self._span
        if span is None:
            return
        span.set_attribute("run.event_count", self._event_count)
        if run_id := self.run_id:
            span.set_attribute("run.id", run_id)
        if self._run is not None and self._run.status is not None:
            span.set_attribute("run.status", self._run.status)
        if self._failure is not None:
            span.record_exception(self._failure)
            span.set_status(Status(StatusCode.ERROR, str(self._failure)))
        if span.is_recording():
            span.end()
