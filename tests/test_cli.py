"""Tests for the audiocat command line."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from typer.testing import CliRunner

from audiocat import __version__
from audiocat.buffer import SampleBuffer
from audiocat.cli import _sparkline, app
from audiocat.errors import ConversionError
from audiocat.models import AnalysisResult, AudioMetadata, ExportArtifact, KeyEstimate, TempoEstimate
from audiocat.processor import ProcessResult

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point config and data dirs at a temporary location."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("AUDIOCAT_FFMPEG", raising=False)


@pytest.fixture(autouse=True)
def ffmpeg_available():
    """Pretend ffmpeg is installed unless a test says otherwise."""
    with patch("audiocat.converter.check_ffmpeg", return_value=True) as check:
        yield check


@pytest.fixture
def media_file(tmp_path):
    path = tmp_path / "song.mov"
    path.write_bytes(b"not really a movie")
    return path


def make_result(source: Path) -> ProcessResult:
    return ProcessResult(
        source=source,
        metadata=AudioMetadata(duration=2.0, sample_rate=48000, channels=2, bit_depth=24, codec="aac"),
        wav_path=Path("/tmp/extracted.wav"),
        buffer=SampleBuffer(np.zeros(16), 48000),
        analysis=AnalysisResult(
            tempo=TempoEstimate(bpm=124.0, confidence=0.7),
            key=KeyEstimate(pitch_class=9, mode="minor", score=0.65, camelot="8A"),
        ),
        waveform=[0.1, 0.5, 1.0],
    )


def mock_processor(result=None, error=None, artifact=None):
    """A patched AudioProcessor class whose instance returns canned results."""
    processor = MagicMock()
    processor.__enter__.return_value = processor
    if error:
        processor.process_file.side_effect = error
    else:
        processor.process_file.side_effect = lambda path: result or make_result(path)
    processor.convert.return_value = artifact
    return patch("audiocat.processor.AudioProcessor", return_value=processor), processor


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInfo:
    """Tests for the info command."""

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["info", str(tmp_path / "nope.mov")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_prints_stream(self, media_file):
        metadata = AudioMetadata(duration=62.5, sample_rate=44100, channels=2, bit_depth=32, codec="aac", bitrate=128)
        with patch("audiocat.converter.probe_media", return_value=metadata):
            result = runner.invoke(app, ["info", str(media_file)])
        assert result.exit_code == 0
        assert "44100 Hz" in result.output
        assert "aac" in result.output

    def test_probe_error(self, media_file):
        with patch("audiocat.converter.probe_media", side_effect=ConversionError("No audio stream found")):
            result = runner.invoke(app, ["info", str(media_file)])
        assert result.exit_code == 1
        assert "No audio stream found" in result.output


class TestAnalyze:
    """Tests for the analyze command."""

    def test_prints_tempo_and_key(self, media_file):
        patcher, _ = mock_processor()
        with patcher:
            result = runner.invoke(app, ["analyze", str(media_file)])
        assert result.exit_code == 0
        assert "124.0" in result.output
        assert "A minor" in result.output
        assert "8A" in result.output

    def test_timeout_passed_to_processor(self, media_file):
        patcher, _ = mock_processor()
        with patcher as cls:
            runner.invoke(app, ["analyze", str(media_file), "--timeout", "2.5"])
        assert cls.call_args[1]["timeout"] == 2.5

    def test_json_report(self, media_file, tmp_path):
        patcher, _ = mock_processor()
        with patcher:
            result = runner.invoke(app, ["analyze", str(media_file), "--report", str(tmp_path / "reports")])
        assert result.exit_code == 0
        assert (tmp_path / "reports" / "song.json").exists()

    def test_unknown_report_format_fails_before_processing(self, media_file, tmp_path):
        patcher, processor = mock_processor()
        with patcher:
            result = runner.invoke(
                app, ["analyze", str(media_file), "--report", str(tmp_path), "--report-format", "xml"]
            )
        assert result.exit_code == 1
        assert "Unknown report format" in result.output
        processor.process_file.assert_not_called()

    def test_csv_report(self, media_file, tmp_path):
        patcher, _ = mock_processor()
        with patcher:
            result = runner.invoke(
                app, ["analyze", str(media_file), "--report", str(tmp_path / "r.csv"), "--report-format", "csv"]
            )
        assert result.exit_code == 0
        assert (tmp_path / "r.csv").exists()

    def test_missing_ffmpeg(self, media_file, ffmpeg_available):
        """Without ffmpeg the command stops with an install hint."""
        ffmpeg_available.return_value = False
        patcher, processor = mock_processor()
        with patcher:
            result = runner.invoke(app, ["analyze", str(media_file)])
        assert result.exit_code == 1
        assert "ffmpeg not found" in result.output
        processor.process_file.assert_not_called()

    def test_error_exit_code(self, media_file):
        patcher, _ = mock_processor(error=ConversionError("ffmpeg failed"))
        with patcher:
            result = runner.invoke(app, ["analyze", str(media_file)])
        assert result.exit_code == 1
        assert "ffmpeg failed" in result.output


class TestConvert:
    """Tests for the convert command."""

    def test_convert_default_format(self, media_file, tmp_path):
        artifact = ExportArtifact(path=tmp_path / "song.flac", format="flac", mime_type="audio/flac")
        patcher, processor = mock_processor(artifact=artifact)
        with patcher:
            result = runner.invoke(app, ["convert", str(media_file), "-o", str(tmp_path)])
        assert result.exit_code == 0
        processor.convert.assert_called_once_with("flac", tmp_path)
        assert "audio/flac" in result.output

    def test_missing_ffmpeg(self, media_file, ffmpeg_available):
        ffmpeg_available.return_value = False
        result = runner.invoke(app, ["convert", str(media_file)])
        assert result.exit_code == 1
        assert "Install with" in result.output

    def test_unsupported_format(self, media_file):
        result = runner.invoke(app, ["convert", str(media_file), "--format", "ogg"])
        assert result.exit_code == 1
        assert "Unsupported format" in result.output


class TestConfig:
    """Tests for the config command."""

    def test_shows_defaults(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "ffmpeg: ffmpeg" in result.output
        assert "default format: flac" in result.output

    def test_updates_values(self):
        result = runner.invoke(app, ["config", "--default-format", "mp3", "--timeout", "30"])
        assert result.exit_code == 0
        assert "default format: mp3" in result.output
        assert "analysis timeout: 30s" in result.output

    def test_rejects_unknown_format(self):
        result = runner.invoke(app, ["config", "--default-format", "ogg"])
        assert result.exit_code == 1


def test_sparkline():
    line = _sparkline([0.0, 0.5, 1.0])
    assert len(line) == 3
    assert line[-1] == "█"
    assert line[0] == " "
