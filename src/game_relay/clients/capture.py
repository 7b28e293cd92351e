"""Clip recording and artifact publishing."""

import html
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from game_relay.constants import CAPTURE_FRAMERATE, DISPLAY, SCREEN_GEOMETRY
from game_relay.errors import CaptureError

logger = logging.getLogger(__name__)

# Rendered size of the clip inside the annotation
ANNOTATION_WIDTH = 640
ANNOTATION_HEIGHT = 480


class Recorder:
    """Records a fixed-length animated PNG of the display with ffmpeg x11grab."""

    def __init__(
        self,
        output_dir: Path,
        display: str = DISPLAY,
        geometry: str = SCREEN_GEOMETRY,
        framerate: int = CAPTURE_FRAMERATE,
        binary: str = "ffmpeg",
    ):
        self.output_dir = Path(output_dir)
        self.display = display
        self.geometry = geometry
        self.framerate = framerate
        self.binary = binary

    def command_for(self, output: Path, duration: float) -> List[str]:
        return [
            self.binary,
            "-y",
            "-t", f"{duration}",
            "-video_size", self.geometry,
            "-framerate", str(self.framerate),
            "-f", "x11grab",
            "-i", self.display,
            "-plays", "0",
            str(output),
            "-loglevel", "warning",
        ]

    def capture_clip(self, turn_index: int, duration: float) -> Path:
        """Record ``duration`` seconds of the live display; returns the raw clip path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output = self.output_dir / f"{turn_index}.apng"
        logger.info(f"Capturing {duration}s clip for turn {turn_index}")
        result = subprocess.run(self.command_for(output, duration), capture_output=True, text=True)
        if result.returncode != 0 or not output.exists():
            raise CaptureError(
                f"Capture failed for turn {turn_index} (exit {result.returncode}): "
                f"{result.stderr.strip()}"
            )
        return output


def render_annotation(artifact_ref: str, caption: str) -> str:
    """HTML block showing the clip with a caption underneath."""
    return (
        f'<div class="center"><img class="block mx-auto" width="{ANNOTATION_WIDTH}" '
        f'height="{ANNOTATION_HEIGHT}" src="{html.escape(artifact_ref, quote=True)}">'
        f'<h2 class="mt2 center">{html.escape(caption)}</h2></div>'
    )


class Publisher(ABC):
    """Turns raw clips into viewable artifacts and attaches them to a visible record."""

    @abstractmethod
    def to_artifact(self, raw_clip: Path) -> str:
        pass

    def artifact_path(self, raw_clip: Path) -> Path:
        """Local file backing the artifact built from raw_clip."""
        return raw_clip.with_suffix(".png")

    @abstractmethod
    def publish(self, artifact_ref: str, caption_html: str) -> None:
        pass


def _as_png(raw_clip: Path) -> Path:
    # Animated PNG; the .png extension renders inline in more viewers
    png = raw_clip.with_suffix(".png")
    try:
        raw_clip.replace(png)
    except OSError as e:
        raise CaptureError(f"Cannot prepare artifact from {raw_clip}: {e}")
    return png


class BuildkitePublisher(Publisher):
    """Uploads clips as build artifacts and shows them in a build annotation."""

    def __init__(self, agent_binary: str = "buildkite-agent", context: str = "game"):
        self.agent_binary = agent_binary
        self.context = context

    def to_artifact(self, raw_clip: Path) -> str:
        png = _as_png(raw_clip)
        logger.info(f"Uploading {png.name}...")
        result = subprocess.run(
            [self.agent_binary, "artifact", "upload", png.name],
            cwd=png.parent,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise CaptureError(f"Artifact upload failed for {png.name}: {result.stderr.strip()}")
        return f"artifact://{png.name}"

    def publish(self, artifact_ref: str, caption_html: str) -> None:
        result = subprocess.run(
            [self.agent_binary, "annotate", "--context", self.context, "--style", "info"],
            input=caption_html,
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise CaptureError(f"Annotation failed for {artifact_ref}: {result.stderr.strip()}")


class DirectoryPublisher(Publisher):
    """Copies clips into a local directory and appends annotations to an HTML page."""

    def __init__(self, publish_dir: Path):
        self.publish_dir = Path(publish_dir)

    @property
    def page(self) -> Path:
        return self.publish_dir / "annotations.html"

    def to_artifact(self, raw_clip: Path) -> str:
        png = _as_png(raw_clip)
        try:
            self.publish_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(png, self.publish_dir / png.name)
        except OSError as e:
            raise CaptureError(f"Cannot copy {png.name} to {self.publish_dir}: {e}")
        return png.name

    def publish(self, artifact_ref: str, caption_html: str) -> None:
        try:
            self.publish_dir.mkdir(parents=True, exist_ok=True)
            with open(self.page, "a", encoding="utf-8") as f:
                f.write(caption_html + "\n")
        except OSError as e:
            raise CaptureError(f"Cannot write annotation to {self.page}: {e}")
        logger.info(f"Published {artifact_ref} to {self.page}")


class CapturePipeline:
    """Recorder plus publisher behind the capture/publish interface."""

    def __init__(self, recorder: Recorder, publisher: Publisher):
        self.recorder = recorder
        self.publisher = publisher

    def capture_clip(self, turn_index: int, duration: float) -> Path:
        return self.recorder.capture_clip(turn_index, duration)

    def to_artifact(self, raw_clip: Path) -> str:
        return self.publisher.to_artifact(raw_clip)

    def artifact_path(self, raw_clip: Path) -> Path:
        return self.publisher.artifact_path(raw_clip)

    def publish(self, artifact_ref: str, caption_html: str) -> None:
        self.publisher.publish(artifact_ref, caption_html)
