"""Helpers to parse Responses API outputs and stream events."""

from typing import Any, Dict, Optional


def extract_text(response: Any) -> str:
    """Return the concatenated output text of a Responses API result."""
    text = getattr(response, "output_text", None)
    if text:
        return text

    parts = []
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                parts.append(getattr(content, "text", "") or "")
    return "".join(parts)


def extract_delta(event: Any) -> Optional[str]:
    """Return the text delta carried by a stream event, if any.

    Raises:
        RuntimeError: If the event reports a failed or errored response.
    """
    event_type = getattr(event, "type", None)
    if event_type == "response.output_text.delta":
        return getattr(event, "delta", None)
    if event_type == "error":
        raise RuntimeError(getattr(event, "message", None) or "Stream reported an error.")
    if event_type == "response.failed":
        response = getattr(event, "response", None)
        error = getattr(response, "error", None)
        raise RuntimeError(getattr(error, "message", None) or "Response failed while streaming.")
    return None


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "output_tokens", None) if usage else None,
    }
