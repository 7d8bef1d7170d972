# src/pipeline/diagnostics.py - v1
"""User-facing failure messages."""

from __future__ import annotations

import json

from factlens.pipeline.state import StageName

QUOTA_EXCEEDED_MESSAGE = (
    "API quota exceeded. Please check your provider plan and billing details. "
    "You may need to use a different API key by updating your environment variables."
)
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred. Please check the logs for more details."

_STAGE_TEMPLATES: dict[StageName, str] = {
    StageName.CONTENT_INGESTION: (
        "Content Ingestion failed: {msg}. "
        "Please check if the URL is correct and publicly accessible."
    ),
    StageName.TEXTUAL_ANALYSIS: (
        "Textual Analysis failed. The content from the source might be malformed or empty. "
        "Details: {msg}"
    ),
    StageName.EMOTION_ANALYSIS: (
        "Emotion Analysis failed. The model could not determine the emotional tone of the "
        "content. Details: {msg}"
    ),
    StageName.VISUAL_ANALYSIS: (
        "Visual Analysis failed. The uploaded media might be corrupted or in an unsupported "
        "format. Details: {msg}"
    ),
    StageName.SOURCE_INTELLIGENCE: (
        "Source Intelligence failed. The model could not verify the source's credibility, "
        "which can happen with new or obscure domains. Details: {msg}"
    ),
    StageName.FINAL_SYNTHESIS: (
        "Final Synthesis failed. The model could not generate a brief from the collected "
        "data. Details: {msg}"
    ),
}

_UNMAPPED_TEMPLATE = "Pipeline failed: {msg}"


def friendly_error_message(error: BaseException | str | None) -> str:
    """Readable message for an error.

    Provider errors often carry a JSON payload as their message; quota
    payloads collapse to a fixed hint, other payloads to their
    ``error.message``.
    """
    if isinstance(error, str):
        return error or UNKNOWN_ERROR_MESSAGE
    if error is None:
        return UNKNOWN_ERROR_MESSAGE

    message = str(error)
    try:
        payload = json.loads(message)
    except (json.JSONDecodeError, TypeError):
        payload = None

    api_error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(api_error, dict):
        if api_error.get("code") == 429 or api_error.get("status") == "RESOURCE_EXHAUSTED":
            return QUOTA_EXCEEDED_MESSAGE
        if api_error.get("message"):
            return f"API Error: {api_error['message']}"

    return message or UNKNOWN_ERROR_MESSAGE


def stage_failure_message(stage: StageName | None, error: BaseException | str | None) -> str:
    """Stage-specific diagnostic wrapping the friendly error message."""
    template = _STAGE_TEMPLATES.get(stage, _UNMAPPED_TEMPLATE) if stage else _UNMAPPED_TEMPLATE
    return template.format(msg=friendly_error_message(error))
