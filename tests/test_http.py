import json

import httpx
import pytest

from subconscious.errors import (
    APIError,
    AuthenticationError,
    InvalidRequestError,
    InvalidResponseError,
    NotFoundError,
    RateLimitError,
    TransportError,
)
from subconscious.http import HttpTransport, LoggingHttpTransport, status_to_error_code
from subconscious.models import Run, RunInput, RunRequest

BASE_URL = "https://api.test/v1/"


class RecordingLogger:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, msg: str, /, **kwargs) -> None:
        self.messages.append(("info", msg))

    def success(self, msg: str, /, **kwargs) -> None:
        self.messages.append(("success", msg))

    def exception(self, msg: str, /, **kwargs) -> None:
        self.messages.append(("exception", msg))


def make_transport(handler, cls=HttpTransport, **kwargs) -> HttpTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return cls(client, base_url=BASE_URL, headers={"Authorization": "Bearer k"}, **kwargs)


def error_body(code: str, message: str, details: dict | None = None) -> dict:
    error: dict = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"error": error}


@pytest.mark.anyio
async def test_request_encodes_body_and_decodes_response() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"runId": "run-1"})

    transport = make_transport(handler)
    body = RunRequest(engine="tim-large", input=RunInput(instructions="hi"))

    run = await transport.request("POST", "/runs", response_type=Run, body=body)

    assert run == Run(run_id="run-1")
    request = seen[0]
    assert str(request.url) == "https://api.test/v1/runs"
    assert request.headers["Authorization"] == "Bearer k"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {
        "engine": "tim-large",
        "input": {"instructions": "hi"},
    }


@pytest.mark.anyio
async def test_request_without_body_sends_no_content_type() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"runId": "run-1", "status": "running"})

    run = await make_transport(handler).request("GET", "runs/run-1", response_type=Run)

    assert run.status == "running"
    assert "Content-Type" not in seen[0].headers
    assert seen[0].content == b""


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("status", "code", "expected"),
    [
        (401, "authentication_failed", AuthenticationError),
        (429, "rate_limited", RateLimitError),
        (404, "not_found", NotFoundError),
        (400, "invalid_request", InvalidRequestError),
    ],
)
async def test_error_codes_map_to_specific_errors(
    status: int, code: str, expected: type[APIError]
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=error_body(code, "nope"))

    with pytest.raises(expected) as excinfo:
        await make_transport(handler).request("GET", "/runs/x", response_type=Run)

    assert excinfo.value.code == code
    assert excinfo.value.message == "nope"
    assert excinfo.value.status == status


@pytest.mark.anyio
async def test_invalid_request_keeps_details() -> None:
    details = {"field": "engine"}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json=error_body("invalid_request", "bad", details))

    with pytest.raises(InvalidRequestError) as excinfo:
        await make_transport(handler).request("POST", "/runs", response_type=Run)

    assert excinfo.value.details == details


@pytest.mark.anyio
async def test_unknown_error_code_keeps_response_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json=error_body("service_unavailable", "later"))

    with pytest.raises(APIError) as excinfo:
        await make_transport(handler).request("GET", "/runs/x", response_type=Run)

    assert type(excinfo.value) is APIError
    assert excinfo.value.code == "service_unavailable"
    assert excinfo.value.status == 503


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("status", "code"),
    [(503, "service_unavailable"), (504, "timeout"), (403, "permission_denied"), (500, "internal_error")],
)
async def test_unparseable_error_body_falls_back_to_status(status: int, code: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=b"<html>gateway</html>")

    with pytest.raises(APIError) as excinfo:
        await make_transport(handler).request("GET", "/runs/x", response_type=Run)

    assert excinfo.value.code == code
    assert excinfo.value.status == status
    assert excinfo.value.message == httpx.codes.get_reason_phrase(status)


def test_status_to_error_code_defaults_to_internal_error() -> None:
    assert status_to_error_code(418) == "internal_error"
    assert status_to_error_code(401) == "authentication_failed"


@pytest.mark.anyio
async def test_unexpected_success_body_raises_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "running"})

    with pytest.raises(InvalidResponseError):
        await make_transport(handler).request("GET", "/runs/x", response_type=Run)


@pytest.mark.anyio
async def test_connection_failure_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="Failed to connect"):
        await make_transport(handler).request("GET", "/runs/x", response_type=Run)


@pytest.mark.anyio
async def test_stream_requests_event_stream_and_exposes_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            headers={"x-run-id": "run-5", "content-type": "text/event-stream"},
            content=b"data: [DONE]\n\n",
        )

    response = await make_transport(handler).stream("POST", "/runs/stream", body={"a": 1})

    assert seen[0].headers["Accept"] == "text/event-stream"
    assert response.status_code == 200
    assert response.headers["x-run-id"] == "run-5"
    body = b""
    while (chunk := await response.source.read()) is not None:
        body += chunk
    assert body == b"data: [DONE]\n\n"
    await response.source.aclose()
    await response.source.aclose()
    assert response.source.closed


@pytest.mark.anyio
async def test_stream_error_status_raises_before_any_event() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json=error_body("authentication_failed", "bad key"))

    with pytest.raises(AuthenticationError, match="bad key"):
        await make_transport(handler).stream("POST", "/runs/stream")


@pytest.mark.anyio
async def test_logging_transport_reports_success_and_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/missing"):
            return httpx.Response(404, json=error_body("not_found", "gone"))
        return httpx.Response(200, json={"runId": "run-1"})

    logger = RecordingLogger()
    ticks = iter([0.0, 0.5, 1.0, 3.0])
    transport = make_transport(
        handler, cls=LoggingHttpTransport, logger=logger, timer=lambda: next(ticks)
    )

    await transport.request("GET", "/runs/run-1", response_type=Run)
    with pytest.raises(NotFoundError):
        await transport.request("GET", "/runs/missing", response_type=Run)

    assert logger.messages == [
        ("info", "GET /runs/run-1 starting"),
        ("success", "GET /runs/run-1 finished in 0.50s"),
        ("info", "GET /runs/missing starting"),
        ("exception", "GET /runs/missing failed after 2.00s"),
    ]


@pytest.mark.anyio
async def test_logging_transport_reports_stream_opening() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    logger = RecordingLogger()
    transport = make_transport(handler, cls=LoggingHttpTransport, logger=logger)

    response = await transport.stream("POST", "/runs/stream")
    await response.source.aclose()

    assert [level for level, _ in logger.messages] == ["info", "success"]
    assert logger.messages[1][1].endswith("status: 200")
