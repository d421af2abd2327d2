"""Text autocorrection through the OpenAI Responses API."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from openai import OpenAI

from keyboard_assist.config import (
    AUTOCORRECT_PROMPT,
    DEFAULT_API_BASE_URL,
    CorrectionConfig,
    normalize_language,
)
from keyboard_assist.errors import CorrectionError, KeyboardAssistError
from keyboard_assist.http_client import HttpRequestExecutor
from keyboard_assist.response_parser import parse_correction_body
from keyboard_assist.results import CorrectionRequest, CorrectionResult

logger = logging.getLogger("keyboard_assist")

WEB_SEARCH_TOOL = {"type": "web_search_preview"}


def build_correction_payload(request: CorrectionRequest, config: CorrectionConfig) -> dict[str, Any]:
    """Assemble the JSON body for a Responses API call."""
    payload: dict[str, Any] = {
        "model": config.model,
        "input": request.input_text,
        "instructions": request.instructions,
    }
    if request.target_language:
        payload["language"] = request.target_language
    payload["temperature"] = config.temperature
    if request.enable_web_search:
        payload["tools"] = [dict(WEB_SEARCH_TOOL)]
        payload["tool_choice"] = "auto"
    return payload


class TextCorrectionClient:
    """Rewrites typed text and collects any web sources the model cited.

    ``correct`` blocks the calling thread; ``correct_async`` runs the same call
    on the client's worker thread and returns a ``Future``. Failures never
    escape either method: they are logged and reported as ``None``.
    """

    def __init__(self, config: CorrectionConfig, executor: HttpRequestExecutor | None = None):
        self.config = config
        self._http = executor or HttpRequestExecutor(
            timeout=config.timeout, debug_logging=config.debug_logging
        )
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="text-correction")

    def build_request(
        self,
        text: str,
        language: str | None = None,
        instructions: str | None = None,
        enable_web_search: bool | None = None,
    ) -> CorrectionRequest:
        """Fill in configured defaults for anything the caller left out."""
        return CorrectionRequest(
            input_text=text,
            instructions=instructions or self.config.instructions,
            target_language=normalize_language(language) or self.config.language,
            enable_web_search=(
                self.config.enable_web_search if enable_web_search is None else enable_web_search
            ),
        )

    def request_correction(self, request: CorrectionRequest) -> CorrectionResult:
        """
        Send ``request`` and parse the response.

        Raises:
            CorrectionError: On any transport, status, or extraction failure
        """
        payload = build_correction_payload(request, self.config)
        if self.config.debug_logging:
            logger.info("Correction payload: endpoint=%s payload=%s", self.config.endpoint, payload)

        start_time = time.perf_counter()
        try:
            body = self._http.post_json(self.config.endpoint, self.config.api_key, payload)
            result = parse_correction_body(body)
        except KeyboardAssistError as e:
            raise CorrectionError(f"Text correction failed: {e}") from e
        total_time = time.perf_counter() - start_time

        if result is None:
            raise CorrectionError("Text correction failed: response contained no text")

        logger.info(
            "Correction statistics: total_time=%.3fs chars_in=%d chars_out=%d "
            "sources=%d web_search=%s",
            total_time,
            len(request.input_text),
            len(result.corrected_text),
            len(result.sources),
            result.used_web_search,
        )
        if self.config.debug_logging:
            logger.info("Correction response: %s", result.corrected_text)
        return result

    def correct(
        self,
        text: str,
        language: str | None = None,
        instructions: str | None = None,
        enable_web_search: bool | None = None,
    ) -> CorrectionResult | None:
        """
        Correct ``text``.

        Args:
            text: Text the user typed
            language: Optional target language hint
            instructions: System instructions (default: configured instructions)
            enable_web_search: Override the configured web search setting

        Returns:
            The correction, or None on blank input or any failure
        """
        if not text.strip():
            return None

        request = self.build_request(text, language, instructions, enable_web_search)
        try:
            return self.request_correction(request)
        except CorrectionError as e:
            logger.error("%s", e)
            return None

    def correct_async(
        self,
        text: str,
        language: str | None = None,
        instructions: str | None = None,
        enable_web_search: bool | None = None,
    ) -> Future[CorrectionResult | None]:
        """Run ``correct`` on the worker thread.

        After ``close()`` the returned future is already resolved to None.
        """
        try:
            return self._worker.submit(self.correct, text, language, instructions, enable_web_search)
        except RuntimeError as e:
            # Worker already shut down
            logger.error("Correction failed: %s", e)
            skipped: Future[CorrectionResult | None] = Future()
            skipped.set_result(None)
            return skipped

    def autocorrect(self, text: str) -> str | None:
        """One-shot rewrite without web search. Returns only the corrected text."""
        result = self.correct(text, instructions=AUTOCORRECT_PROMPT, enable_web_search=False)
        return result.corrected_text if result else None

    def close(self) -> None:
        """Drop queued work and release the HTTP client.

        A request already on the wire runs until its read timeout.
        """
        self._worker.shutdown(wait=False, cancel_futures=True)
        self._http.close()

    def __enter__(self) -> TextCorrectionClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def api_base_url(endpoint: str) -> str:
    """Derive the API base URL from a full Responses endpoint."""
    suffix = "/responses"
    if endpoint.rstrip("/").endswith(suffix):
        return endpoint.rstrip("/")[: -len(suffix)]
    return DEFAULT_API_BASE_URL


def list_models(config: CorrectionConfig, timeout: float = 10.0) -> list[str]:
    """
    List the model identifiers visible to the configured API key.

    Raises:
        CorrectionError: If the listing request fails
    """
    try:
        client = OpenAI(base_url=api_base_url(config.endpoint), api_key=config.api_key or "sk-no-key")
        response = client.models.list(timeout=timeout)
        models = [m.id for m in getattr(response, "data", []) if getattr(m, "id", None)]
        return sorted(set(models))
    except Exception as e:
        raise CorrectionError(f"Could not list models: {e}") from e
