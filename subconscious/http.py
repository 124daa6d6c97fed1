"""Thin request/response layer over `httpx.AsyncClient`.

Formats requests, decodes responses into typed records and turns non-success
responses into the `APIError` hierarchy.
"""

from typing import Any

import httpx
from msgspec import DecodeError, Struct, ValidationError
from msgspec.json import decode
from msgspec.json import encode as json_encode

from subconscious.errors import (
    APIError,
    AuthenticationError,
    ErrorCode,
    InvalidRequestError,
    InvalidResponseError,
    NotFoundError,
    RateLimitError,
    TransportError,
)
from subconscious.interface import ILogger, ITimer, Record, default_timer
from subconscious.streaming.source import HttpxByteSource

JSONDecodeErrors = (ValidationError, DecodeError)

STATUS_ERROR_CODES: dict[int, ErrorCode] = {
    400: "invalid_request",
    401: "authentication_failed",
    403: "permission_denied",
    404: "not_found",
    429: "rate_limited",
    503: "service_unavailable",
    504: "timeout",
}


class APIErrorDetail(Struct):
    code: str
    message: str = ""
    details: dict[str, Any] | None = None


class APIErrorResponse(Struct):
    """Error body returned by the API: `{"error": {"code", "message", "details"}}`."""

    error: APIErrorDetail


def status_to_error_code(status: int) -> ErrorCode:
    return STATUS_ERROR_CODES.get(status, "internal_error")


def parse_error_response(response: httpx.Response) -> APIError:
    """Map a non-success response to the most specific `APIError`.

    The response body must already be read.
    """
    status = response.status_code
    try:
        body = decode(response.content, type=APIErrorResponse)
    except JSONDecodeErrors:
        return APIError(
            status_to_error_code(status),
            response.reason_phrase or f"HTTP {status}",
            status,
        )

    code, message, details = body.error.code, body.error.message, body.error.details
    match code:
        case "authentication_failed":
            return AuthenticationError(message)
        case "rate_limited":
            return RateLimitError(message)
        case "not_found":
            return NotFoundError(message)
        case "invalid_request":
            return InvalidRequestError(message, details)
        case _:
            return APIError(code, message, status, details)


class StreamResponse(Record):
    """An accepted streaming response whose body has not been read yet."""

    status_code: int
    headers: httpx.Headers
    source: HttpxByteSource


class HttpTransport:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        headers: dict[str, str] | None = None,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._headers = dict(headers or {})

    @property
    def base_url(self) -> str:
        return self._base_url

    def url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _build_request(
        self,
        method: str,
        path: str,
        body: Any,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Request:
        headers = {**self._headers, **(extra_headers or {})}
        content = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            content = json_encode(body)
        return self._client.build_request(
            method, self.url(path), content=content, headers=headers
        )

    async def _send(self, request: httpx.Request, *, stream: bool) -> httpx.Response:
        try:
            return await self._client.send(request, stream=stream)
        except httpx.TransportError as exc:
            raise TransportError(f"Failed to connect to {request.url}: {exc}") from exc

    async def request[T](
        self,
        method: str,
        path: str,
        *,
        response_type: type[T],
        body: Any = None,
    ) -> T:
        request = self._build_request(method, path, body)
        response = await self._send(request, stream=False)
        if not response.is_success:
            raise parse_error_response(response)
        try:
            return decode(response.content, type=response_type)
        except JSONDecodeErrors as exc:
            raise InvalidResponseError(
                f"Unexpected response body from {method} {path}: {exc}"
            ) from exc

    async def stream(self, method: str, path: str, *, body: Any = None) -> StreamResponse:
        request = self._build_request(
            method, path, body, {"Accept": "text/event-stream"}
        )
        response = await self._send(request, stream=True)
        if not response.is_success:
            try:
                await response.aread()
            finally:
                await response.aclose()
            raise parse_error_response(response)
        try:
            source = HttpxByteSource(response)
        except Exception:
            await response.aclose()
            raise
        return StreamResponse(
            status_code=response.status_code,
            headers=response.headers,
            source=source,
        )


class LoggingHttpTransport(HttpTransport):
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        logger: ILogger,
        headers: dict[str, str] | None = None,
        timer: ITimer = default_timer,
    ) -> None:
        super().__init__(client, base_url=base_url, headers=headers)
        self.logger = logger
        self.timer = timer

    async def request[T](
        self,
        method: str,
        path: str,
        *,
        response_type: type[T],
        body: Any = None,
    ) -> T:
        self.logger.info(f"{method} {path} starting")
        start = self.timer()
        try:
            result = await super().request(
                method, path, response_type=response_type, body=body
            )
        except Exception:
            duration = self.timer() - start
            self.logger.exception(f"{method} {path} failed after {duration:.2f}s")
            raise
        duration = self.timer() - start
        self.logger.success(f"{method} {path} finished in {duration:.2f}s")
        return result

    async def stream(self, method: str, path: str, *, body: Any = None) -> StreamResponse:
        self.logger.info(f"{method} {path} opening stream")
        start = self.timer()
        try:
            response = await super().stream(method, path, body=body)
        except Exception:
            duration = self.timer() - start
            self.logger.exception(
                f"{method} {path} stream failed to open after {duration:.2f}s"
            )
            raise
        duration = self.timer() - start
        self.logger.success(
            f"{method} {path} stream opened in {duration:.2f}s, status: {response.status_code}"
        )
        return response
