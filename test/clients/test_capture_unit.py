"""Unit tests for clip recording and publishing."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from game_relay.clients.capture import (
    BuildkitePublisher,
    CapturePipeline,
    DirectoryPublisher,
    Recorder,
    render_annotation,
)
from game_relay.errors import CaptureError


def _completed(returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)


class TestRecorder:
    def test_command(self, tmp_path):
        command = Recorder(tmp_path).command_for(tmp_path / "0.apng", 2.5)

        assert command[:3] == ["ffmpeg", "-y", "-t"]
        assert "2.5" in command
        assert command[command.index("-f") + 1] == "x11grab"
        assert command[command.index("-i") + 1] == ":1"
        assert str(tmp_path / "0.apng") in command

    @patch("game_relay.clients.capture.subprocess.run")
    def test_capture_clip(self, mock_run, tmp_path):
        def _run(cmd, **kwargs):
            (tmp_path / "3.apng").write_bytes(b"apng")
            return _completed()

        mock_run.side_effect = _run

        assert Recorder(tmp_path).capture_clip(3, 1.25) == tmp_path / "3.apng"

    @patch("game_relay.clients.capture.subprocess.run")
    def test_capture_failure(self, mock_run, tmp_path):
        mock_run.return_value = _completed(returncode=1, stderr="cannot open display")

        with pytest.raises(CaptureError, match="turn 2"):
            Recorder(tmp_path).capture_clip(2, 1.25)


class TestRenderAnnotation:
    def test_caption_and_image(self):
        html = render_annotation("artifact://4.png", "🎲 💥 Random move: fire")

        assert 'src="artifact://4.png"' in html
        assert "<h2" in html
        assert "🎲 💥 Random move: fire" in html

    def test_escapes_caption(self):
        html = render_annotation("artifact://1.png", "<script>alert(1)</script>")

        assert "<script>" not in html
        assert "&lt;script&gt;" in html


class TestBuildkitePublisher:
    @patch("game_relay.clients.capture.subprocess.run")
    def test_to_artifact_renames_and_uploads(self, mock_run, tmp_path):
        mock_run.return_value = _completed()
        raw = tmp_path / "2.apng"
        raw.write_bytes(b"apng")

        ref = BuildkitePublisher().to_artifact(raw)

        assert ref == "artifact://2.png"
        assert (tmp_path / "2.png").exists()
        assert not raw.exists()
        args, kwargs = mock_run.call_args
        assert args[0] == ["buildkite-agent", "artifact", "upload", "2.png"]
        assert kwargs["cwd"] == tmp_path

    @patch("game_relay.clients.capture.subprocess.run")
    def test_publish_annotates(self, mock_run):
        mock_run.return_value = _completed()

        BuildkitePublisher().publish("artifact://2.png", "<div/>")

        args, kwargs = mock_run.call_args
        assert args[0] == ["buildkite-agent", "annotate", "--context", "game", "--style", "info"]
        assert kwargs["input"] == "<div/>"

    @patch("game_relay.clients.capture.subprocess.run")
    def test_upload_failure(self, mock_run, tmp_path):
        mock_run.return_value = _completed(returncode=1, stderr="no job")
        raw = tmp_path / "0.apng"
        raw.write_bytes(b"apng")

        with pytest.raises(CaptureError, match="0.png"):
            BuildkitePublisher().to_artifact(raw)


class TestDirectoryPublisher:
    def test_publish_appends_annotations(self, tmp_path):
        publisher = DirectoryPublisher(tmp_path / "out")
        raw = tmp_path / "0.apng"
        raw.write_bytes(b"apng")

        ref = publisher.to_artifact(raw)
        publisher.publish(ref, render_annotation(ref, "Game started!"))
        publisher.publish(ref, render_annotation(ref, "again"))

        assert ref == "0.png"
        assert (tmp_path / "out" / "0.png").read_bytes() == b"apng"
        assert publisher.page.read_text().count("<div") == 2

    def test_missing_clip_raises_capture_error(self, tmp_path):
        publisher = DirectoryPublisher(tmp_path / "out")

        with pytest.raises(CaptureError, match="0.apng"):
            publisher.to_artifact(tmp_path / "0.apng")

    def test_unwritable_publish_dir_raises_capture_error(self, tmp_path):
        blocker = tmp_path / "out"
        blocker.write_text("not a directory")
        publisher = DirectoryPublisher(blocker)

        with pytest.raises(CaptureError, match="annotation"):
            publisher.publish("0.png", "<div>caption</div>")


class TestCapturePipeline:
    def test_delegates(self, tmp_path):
        recorder, publisher = MagicMock(), MagicMock()
        publisher.artifact_path.return_value = tmp_path / "1.png"
        pipeline = CapturePipeline(recorder, publisher)

        pipeline.capture_clip(1, 1.25)
        pipeline.to_artifact(Path("1.apng"))
        pipeline.publish("artifact://1.png", "<div/>")

        recorder.capture_clip.assert_called_once_with(1, 1.25)
        publisher.to_artifact.assert_called_once_with(Path("1.apng"))
        publisher.publish.assert_called_once_with("artifact://1.png", "<div/>")
        assert pipeline.artifact_path(Path("1.apng")) == tmp_path / "1.png"
