"""Blocking HTTP request execution for the OpenAI endpoints."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from keyboard_assist.config import DEFAULT_TIMEOUT
from keyboard_assist.errors import EmptyResponseError, HttpStatusError, HttpTransportError

logger = logging.getLogger(__name__)

REDACTED = "[redacted]"


def redact_headers(headers: httpx.Headers | dict[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` with the credential masked."""
    return {
        name: (REDACTED if name.lower() == "authorization" else value)
        for name, value in headers.items()
    }


def read_body(response: httpx.Response) -> str:
    """
    Classify ``response`` and return its body text.

    Raises:
        HttpStatusError: For any non-2xx status, carrying the remote error body
        EmptyResponseError: If a successful response has an empty body
    """
    body = response.text
    if not response.is_success:
        raise HttpStatusError(response.status_code, body or "Unknown error")
    if not body:
        raise EmptyResponseError("Empty response from OpenAI")
    return body


class HttpRequestExecutor:
    """Sends one request at a time with fixed connect/read timeouts."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        debug_logging: bool = False,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Args:
            timeout: Connect and read timeout in seconds
            debug_logging: Log request/response metadata (credential redacted)
            transport: Optional httpx transport, mainly for tests
        """
        self.timeout = timeout
        self.debug_logging = debug_logging
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            event_hooks={"request": [self._log_request], "response": [self._log_response]},
        )

    def _log_request(self, request: httpx.Request) -> None:
        if self.debug_logging:
            logger.info(
                "HTTP request: %s %s headers=%s",
                request.method,
                request.url,
                redact_headers(request.headers),
            )

    def _log_response(self, response: httpx.Response) -> None:
        if self.debug_logging:
            logger.info(
                "HTTP response: %s %s -> %d headers=%s",
                response.request.method,
                response.request.url,
                response.status_code,
                dict(response.headers),
            )

    def post_json(self, url: str, api_key: str, payload: dict[str, Any]) -> str:
        """POST ``payload`` as JSON and return the successful body text."""
        return self._send(url, api_key, json=payload)

    def post_multipart(
        self,
        url: str,
        api_key: str,
        data: dict[str, str],
        files: dict[str, tuple[str, Any, str]],
    ) -> str:
        """POST a multipart form of ``data`` fields and ``files`` parts."""
        return self._send(url, api_key, data=data, files=files)

    def _send(self, url: str, api_key: str, **kwargs: Any) -> str:
        headers = {"Authorization": f"Bearer {api_key}"}
        try:
            response = self._client.post(url, headers=headers, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise HttpTransportError(f"Request to {url} failed: {e}") from e
        except UnicodeEncodeError as e:
            # Header values must be ASCII; keep the key out of the message
            raise HttpTransportError(
                f"Request to {url} failed: API key contains non-ASCII characters"
            ) from e
        return read_body(response)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpRequestExecutor:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
