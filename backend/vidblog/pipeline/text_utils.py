"""Helpers for turning LLM replies and step outputs into text."""

import json
import re
from typing import Any

from vidblog.schemas.workflow import Step3Output, TranscriptSegment
from vidblog.services.ffmpeg import format_timestamp

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_MARKDOWN_FENCE = re.compile(r"```(?:markdown|md)?\s*([\s\S]*?)```")


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the outermost ``{...}`` block of a reply, ignoring code fences and chatter.

    Raises:
        ValueError: If no JSON object can be found or parsed
    """
    match = _JSON_OBJECT.search(text)
    if not match:
        raise ValueError("No JSON found in response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in response: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError("Response JSON is not an object")
    return parsed


def strip_markdown_fence(text: str) -> str:
    """Unwrap a reply wrapped in a ```markdown fence."""
    content = text.strip()
    match = _MARKDOWN_FENCE.search(content)
    if match:
        content = match.group(1).strip()
    return content


def format_segments(segments: list[TranscriptSegment]) -> str:
    """One line per segment: ``[mm:ss.mmm - mm:ss.mmm] (seg-id): text``."""
    return "\n".join(
        f"[{format_timestamp(seg.start)} - {format_timestamp(seg.end)}] ({seg.id}): {seg.corrected_text or seg.text}"
        for seg in segments
    )


def create_summary(step3: Step3Output, max_length: int = 500) -> str:
    """Summarize an enhanced transcript by its section titles, or its opening text."""
    if step3.sections:
        section_summary = "\n".join(f"- {s.title}" for s in step3.sections)
        if len(section_summary) <= max_length:
            return section_summary

    text = step3.enhanced_transcript
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
