"""Step 4: capture screenshots at the key-frame timestamps.

Frames are written to ``<output>/<video>/screenshots/frame_MMmSSs.png``
along with a JSON capture report and an HTML gallery.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment

from vidblog.pipeline.base import StepHandler
from vidblog.schemas.workflow import KeyFrame, Screenshot, Step4Output, Workflow
from vidblog.services.ffmpeg import capture_frame, format_timestamp_for_filename

logger = logging.getLogger(__name__)

GALLERY_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <title>Key Frames: {{ video_name }}</title>
  <style>
    body { font-family: system-ui, sans-serif; max-width: 1200px; margin: 0 auto; padding: 20px; background: #1a1a1a; color: #fff; }
    h1 { border-bottom: 1px solid #333; padding-bottom: 10px; }
    .frame { margin: 20px 0; background: #2a2a2a; border-radius: 8px; overflow: hidden; }
    .frame img { width: 100%; display: block; }
    .frame-info { padding: 15px; }
    .timestamp { font-size: 14px; color: #888; }
    .reason { margin-top: 5px; }
  </style>
</head>
<body>
  <h1>Key Frames: {{ video_name }}</h1>
  <p>Captured {{ frames|length }} frames on {{ captured_at }}</p>
{% for frame in frames %}
  <div class="frame">
    <img src="{{ frame.src }}" alt="Frame at {{ frame.timestamp }}s">
    <div class="frame-info">
      <div class="timestamp">{{ frame.label }} ({{ '%.1f' % frame.timestamp }}s)</div>
      <div class="reason">{{ frame.reason }}</div>
    </div>
  </div>
{% endfor %}
</body>
</html>
"""

_gallery_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)


def frame_filename(timestamp: float) -> str:
    return f"frame_{format_timestamp_for_filename(timestamp)}.png"


def write_capture_report(output_dir: Path, video_name: str, shots: list[tuple[KeyFrame, Path]]) -> Path:
    """Write capture_report.json and gallery.html. Returns the gallery path."""
    captured_at = datetime.now(timezone.utc).isoformat()
    frames = [
        {
            "timestamp": kf.timestamp,
            "timestampFormatted": format_timestamp_for_filename(kf.timestamp),
            "filename": path.name,
            "reason": kf.reason,
        }
        for kf, path in shots
    ]

    report = {
        "videoName": video_name,
        "capturedAt": captured_at,
        "frameCount": len(frames),
        "frames": frames,
    }
    (output_dir / "capture_report.json").write_text(json.dumps(report, indent=2), encoding="utf-8")

    gallery_path = output_dir / "gallery.html"
    html = _gallery_env.from_string(GALLERY_TEMPLATE).render(
        video_name=video_name,
        captured_at=captured_at,
        frames=[
            {
                "src": path.relative_to(output_dir).as_posix(),
                "timestamp": kf.timestamp,
                "label": format_timestamp_for_filename(kf.timestamp),
                "reason": kf.reason,
            }
            for kf, path in shots
        ],
    )
    gallery_path.write_text(html, encoding="utf-8")
    logger.info(f"Gallery saved to: {gallery_path}")
    return gallery_path


class ScreenshotsHandler(StepHandler):
    step = 4

    async def execute(self, workflow: Workflow) -> Step4Output:
        if workflow.step3_output is None or not workflow.video_path or not workflow.video_name:
            raise ValueError("Missing prerequisites. Run steps 1-3 first.")

        files = self.context.file_manager
        output_dir = files.output_dir_for(workflow.video_name)
        key_frames = workflow.step3_output.key_frames

        if not key_frames:
            return Step4Output(screenshots=[], output_dir=str(output_dir), gallery_url="")

        capture = workflow.config.capture
        width = (capture.width if capture else None) or self.context.settings.capture.width
        height = (capture.height if capture else None) or self.context.settings.capture.height

        screenshot_dir = output_dir / "screenshots"
        screenshot_dir.mkdir(parents=True, exist_ok=True)

        shots: list[tuple[KeyFrame, Path]] = []
        for i, kf in enumerate(key_frames, start=1):
            logger.info(f"Capturing frame {i}/{len(key_frames)} at {kf.timestamp:.1f}s: {kf.reason}")
            path = screenshot_dir / frame_filename(kf.timestamp)
            await capture_frame(Path(workflow.video_path), kf.timestamp, path, width, height)
            shots.append((kf, path))

        gallery_path = write_capture_report(output_dir, workflow.video_name, shots)

        return Step4Output(
            screenshots=[
                Screenshot(
                    timestamp=kf.timestamp,
                    reason=kf.reason,
                    path=str(path),
                    public_path=files.to_public_path(path),
                )
                for kf, path in shots
            ],
            output_dir=str(output_dir),
            gallery_url=files.to_public_path(gallery_path),
        )
