"""Decoding of Responses API payloads into ``CorrectionResult`` values.

The payload looks like::

    {
      "output": [
        {"type": "web_search_call", ...},
        {"type": "message", "content": [
            {"type": "output_text", "text": "...", "annotations": [
                {"type": "url_citation", "url": "...", "title": "...",
                 "start_index": 0, "end_index": 10}
            ]}
        ]}
      ],
      "output_text": "..."
    }

Every level is optional. Unknown item types are ignored, and anything that
does not have the expected shape is skipped rather than trusted.
"""

import json
import logging
from typing import Any

from keyboard_assist.errors import ResponseParseError
from keyboard_assist.results import CorrectionResult, WebSource

logger = logging.getLogger(__name__)

MESSAGE_ITEM = "message"
WEB_SEARCH_ITEM = "web_search_call"
OUTPUT_TEXT = "output_text"
URL_CITATION = "url_citation"


def decode_json(body: str) -> dict[str, Any]:
    """Parse ``body`` into a JSON object.

    Raises:
        ResponseParseError: If the body is not JSON or its root is not an object
    """
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as e:
        raise ResponseParseError(f"Response is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ResponseParseError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _list_of_dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def parse_citation(annotation: dict[str, Any]) -> WebSource | None:
    """Turn one ``url_citation`` annotation into a ``WebSource``."""
    if annotation.get("type") != URL_CITATION:
        return None
    start = annotation.get("start_index")
    end = annotation.get("end_index")
    url = annotation.get("url")
    # bool is an int subclass
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in (start, end)):
        logger.debug("Skipping citation without offsets: %s", annotation)
        return None
    if not isinstance(url, str) or not url:
        logger.debug("Skipping citation without url: %s", annotation)
        return None
    title = annotation.get("title")
    return WebSource(
        url=url,
        title=title if isinstance(title, str) else "",
        citation_start=start,
        citation_end=end,
    )


def _parse_message(item: dict[str, Any]) -> tuple[str, tuple[WebSource, ...]] | None:
    for entry in _list_of_dicts(item.get("content")):
        if entry.get("type") != OUTPUT_TEXT:
            continue
        text = _text(entry.get("text"))
        if text is None:
            continue
        sources = []
        for annotation in _list_of_dicts(entry.get("annotations")):
            source = parse_citation(annotation)
            if source is not None:
                sources.append(source)
        return text, tuple(sources)
    return None


def parse_correction(payload: dict[str, Any]) -> CorrectionResult | None:
    """
    Extract the corrected text and its citations from a Responses payload.

    The first ``message`` item holding non-blank ``output_text`` wins. When the
    ``output`` list yields nothing, the flat ``output_text`` field is used.

    Args:
        payload: Decoded response object

    Returns:
        The parsed result, or None if no text is present
    """
    used_web_search = False
    extracted: tuple[str, tuple[WebSource, ...]] | None = None

    for item in _list_of_dicts(payload.get("output")):
        item_type = item.get("type")
        if item_type == WEB_SEARCH_ITEM:
            used_web_search = True
        elif item_type == MESSAGE_ITEM and extracted is None:
            extracted = _parse_message(item)

    if extracted is not None:
        text, sources = extracted
        return CorrectionResult(text, sources, used_web_search)

    fallback = _text(payload.get(OUTPUT_TEXT))
    if fallback is not None:
        return CorrectionResult(fallback, (), used_web_search)

    return None


def parse_correction_body(body: str) -> CorrectionResult | None:
    """Decode ``body`` and parse it. Malformed JSON raises ``ResponseParseError``."""
    return parse_correction(decode_json(body))
