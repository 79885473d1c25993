"""Tests for the processing pipeline with ffmpeg mocked out."""

from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

from audiocat.buffer import SampleBuffer
from audiocat.errors import AnalysisSkipped, AudiocatError, ConversionError
from audiocat.models import AnalysisResult, AudioMetadata, ExportArtifact, KeyEstimate, TempoEstimate
from audiocat.processor import AudioProcessor


class RecordingObserver:
    """Collects stage and progress callbacks."""

    def __init__(self):
        self.stages = []
        self.progress = []

    def on_stage(self, stage):
        self.stages.append(stage)

    def on_progress(self, percent):
        self.progress.append(percent)


ANALYSIS = AnalysisResult(
    tempo=TempoEstimate(bpm=120.0, confidence=0.5),
    key=KeyEstimate(pitch_class=9, mode="minor", score=0.6, camelot="8A"),
)


@pytest.fixture
def pipeline():
    """Patch every external step of the pipeline."""
    buffer = SampleBuffer(np.ones((2, 48000)) * 0.5, 48000)
    with patch("audiocat.processor.probe_media") as probe, \
            patch("audiocat.processor.extract_audio") as extract, \
            patch("audiocat.processor.decode_wav") as decode, \
            patch("audiocat.processor.analyze_buffer") as analyze, \
            patch("audiocat.processor.convert_to_format") as convert:
        probe.return_value = AudioMetadata(duration=1.02, sample_rate=96000, channels=6, bit_depth=32, codec="ac3")
        extract.side_effect = lambda source, output, rate, ffmpeg: output
        decode.return_value = buffer
        analyze.return_value = ANALYSIS
        convert.side_effect = lambda wav, output, format, ffmpeg: ExportArtifact(
            path=output, format=format, mime_type="audio/flac"
        )
        yield {
            "probe": probe,
            "extract": extract,
            "decode": decode,
            "analyze": analyze,
            "convert": convert,
        }


class TestProcessFile:
    """Tests for AudioProcessor.process_file."""

    def test_metadata_reflects_extracted_audio(self, pipeline):
        with AudioProcessor(ffmpeg="ffmpeg") as processor:
            result = processor.process_file(Path("show.mkv"))

        assert result.metadata.sample_rate == 48000
        assert result.metadata.channels == 2
        assert result.metadata.bit_depth == 24
        assert result.metadata.codec == "ac3"
        assert result.metadata.duration == pytest.approx(1.0)
        assert result.analysis == ANALYSIS
        assert len(result.waveform) == 200

    def test_extract_uses_probed_rate(self, pipeline):
        with AudioProcessor(ffmpeg="/opt/ffmpeg") as processor:
            processor.process_file(Path("show.mkv"))
            args = pipeline["extract"].call_args[0]
            assert args[0] == Path("show.mkv")
            assert args[1].parent == processor.work_dir
            assert args[2] == 96000
            assert args[3] == "/opt/ffmpeg"

    def test_stages_reported_in_order(self, pipeline):
        observer = RecordingObserver()
        with AudioProcessor(ffmpeg="ffmpeg", observer=observer) as processor:
            processor.process_file(Path("show.mkv"))

        assert observer.stages == [
            "Detecting audio streams...",
            "Extracting audio...",
            "Decoding audio...",
            "Detecting tempo & key...",
            "Analysis complete",
        ]
        assert observer.progress == sorted(observer.progress)
        assert observer.progress[-1] == 100

    def test_timeout_marks_result_skipped(self, pipeline):
        pipeline["analyze"].side_effect = AnalysisSkipped("Analysis exceeded 1s budget")
        with AudioProcessor(ffmpeg="ffmpeg", timeout=1.0) as processor:
            result = processor.process_file(Path("long.mov"))

        assert result.analysis.skipped
        assert result.analysis.tempo is None
        assert pipeline["analyze"].call_args[1]["timeout"] == 1.0

    def test_probe_failure_propagates(self, pipeline):
        pipeline["probe"].side_effect = ConversionError("No audio stream found")
        with AudioProcessor(ffmpeg="ffmpeg") as processor:
            with pytest.raises(ConversionError):
                processor.process_file(Path("slides.mov"))
            assert processor.current is None


class TestConvert:
    """Tests for AudioProcessor.convert."""

    def test_convert_before_process(self):
        with AudioProcessor(ffmpeg="ffmpeg") as processor:
            with pytest.raises(AudiocatError):
                processor.convert("flac", Path("/tmp"))

    def test_convert_names_output_after_source(self, pipeline, tmp_path):
        observer = RecordingObserver()
        with AudioProcessor(ffmpeg="ffmpeg", observer=observer) as processor:
            processor.process_file(Path("show.mkv"))
            artifact = processor.convert("flac", tmp_path)

        assert artifact.path == tmp_path / "show.flac"
        assert observer.stages[-2:] == ["Converting to FLAC...", "Conversion complete"]

    def test_convert_explicit_name(self, pipeline, tmp_path):
        with AudioProcessor(ffmpeg="ffmpeg") as processor:
            processor.process_file(Path("show.mkv"))
            artifact = processor.convert("flac", tmp_path, output_name="master.flac")
        assert artifact.path == tmp_path / "master.flac"


def test_close_removes_work_dir():
    processor = AudioProcessor(ffmpeg="ffmpeg")
    work_dir = processor.work_dir
    assert work_dir.exists()
    processor.close()
    assert not work_dir.exists()
