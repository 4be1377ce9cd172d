"""Speech-to-text providers.

Supports:
- whisper-local: the ``whisper`` CLI (pip install openai-whisper)
- openai: OpenAI audio transcriptions API (whisper-1)
- groq: Groq's OpenAI-compatible transcriptions API (whisper-large-v3)
"""

import asyncio
import json
import logging
import subprocess
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from vidblog.config import TranscriptionConfig, settings
from vidblog.schemas.workflow import Transcript, TranscriptSegment

logger = logging.getLogger(__name__)

OPENAI_TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"
GROQ_TRANSCRIPTION_URL = "https://api.groq.com/openai/v1/audio/transcriptions"

DEFAULT_MODELS = {
    "whisper-local": "base",
    "openai": "whisper-1",
    "groq": "whisper-large-v3",
}


@dataclass
class TranscriptionOptions:
    provider: str = "whisper-local"
    model: Optional[str] = None
    language: Optional[str] = None


def _whisper_local(audio_path: Path, model: str) -> list[dict]:
    output_dir = audio_path.parent
    cmd = [
        "whisper", str(audio_path),
        "--model", model,
        "--output_format", "json",
        "--output_dir", str(output_dir),
    ]
    logger.info(f"Running local Whisper with model: {model}")
    try:
        subprocess.run(cmd, capture_output=True, check=True, text=True)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        raise RuntimeError(
            f"Local Whisper transcription failed. Ensure whisper is installed: pip install openai-whisper\n{e}"
        ) from e

    json_path = output_dir / f"{audio_path.stem}.json"
    if not json_path.exists():
        raise RuntimeError("Whisper output file not found")
    return json.loads(json_path.read_text(encoding="utf-8")).get("segments", [])


async def _transcribe_http(
    url: str,
    api_key: str,
    audio_path: Path,
    model: str,
    language: Optional[str],
    label: str,
    timeout: float,
) -> list[dict]:
    data = {"model": model, "response_format": "verbose_json"}
    if language:
        data["language"] = language

    logger.info(f"Sending audio to {label} Whisper API...")
    async with httpx.AsyncClient(timeout=timeout) as client:
        with open(audio_path, "rb") as f:
            response = await client.post(
                url,
                headers={"Authorization": f"Bearer {api_key}"},
                data=data,
                files={"file": (audio_path.name, f, "audio/mpeg")},
            )

    if response.status_code >= 400:
        raise RuntimeError(f"{label} API error ({response.status_code}): {response.text}")
    return response.json().get("segments") or []


async def transcribe_audio(
    audio_path: Path,
    video_path: str,
    options: TranscriptionOptions,
    config: Optional[TranscriptionConfig] = None,
) -> Transcript:
    """Transcribe an audio file into a timed transcript.

    Args:
        audio_path: Extracted audio file
        video_path: Source video the audio came from
        options: Provider, model and language to use
        config: Transcription settings holding API keys. Defaults to settings.transcription

    Returns:
        Transcript with segment ids ``seg-<n>`` and trimmed text

    Raises:
        FileNotFoundError: If the audio file is missing
        ValueError: On an unknown provider or a missing API key
        RuntimeError: If the provider fails
    """
    config = config or settings.transcription
    audio_path = Path(audio_path)
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    model = options.model or DEFAULT_MODELS.get(options.provider)

    if options.provider == "whisper-local":
        raw_segments = await asyncio.to_thread(_whisper_local, audio_path, model)
    elif options.provider == "openai":
        if not config.openai_api_key:
            raise ValueError("OpenAI API key is not configured (transcription.openai_api_key)")
        raw_segments = await _transcribe_http(
            OPENAI_TRANSCRIPTION_URL, config.openai_api_key, audio_path,
            model, options.language, "OpenAI", config.request_timeout,
        )
    elif options.provider == "groq":
        api_key = config.groq_api_key or settings.llm.api_key
        if not api_key:
            raise ValueError("Groq API key is not configured (transcription.groq_api_key)")
        raw_segments = await _transcribe_http(
            GROQ_TRANSCRIPTION_URL, api_key, audio_path,
            model, options.language, "Groq", config.request_timeout,
        )
    else:
        raise ValueError(f"Unknown transcription provider: {options.provider}")

    segments = [
        TranscriptSegment(
            id=f"seg-{idx}",
            start=float(seg["start"]),
            end=float(seg["end"]),
            text=str(seg.get("text", "")).strip(),
        )
        for idx, seg in enumerate(raw_segments)
    ]
    logger.info(f"Transcribed {len(segments)} segments with {options.provider}")

    return Transcript(
        id=str(uuid.uuid4()),
        video_path=video_path,
        video_name=Path(video_path).stem,
        segments=segments,
    )


def save_transcript(transcript: Transcript, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(transcript.model_dump_json(indent=2), encoding="utf-8")


def load_transcript(path: Path) -> Optional[Transcript]:
    if not path.exists():
        return None
    return Transcript.model_validate_json(path.read_text(encoding="utf-8"))
