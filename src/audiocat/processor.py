"""End-to-end processing: probe, extract, decode, analyze, convert."""

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import structlog

from audiocat.analyzer import analyze_buffer
from audiocat.analyzer.transform import TransformEngine
from audiocat.buffer import SampleBuffer
from audiocat.config import get_ffmpeg_path
from audiocat.converter import (
    EXTRACT_BIT_DEPTH,
    EXTRACT_CHANNELS,
    convert_to_format,
    extract_audio,
    output_filename,
    probe_media,
    target_sample_rate,
)
from audiocat.decoder import decode_wav
from audiocat.errors import AnalysisSkipped, AudiocatError
from audiocat.models import AnalysisResult, AudioMetadata, ExportArtifact
from audiocat.waveform import waveform_peaks

logger = structlog.get_logger()


class ProgressObserver(Protocol):
    """Receives stage names and percentages while a file is processed."""

    def on_stage(self, stage: str) -> None: ...

    def on_progress(self, percent: int) -> None: ...


@dataclass
class ProcessResult:
    """Everything produced by processing one media file."""

    source: Path
    metadata: AudioMetadata
    wav_path: Path
    buffer: SampleBuffer
    analysis: AnalysisResult
    waveform: list[float] = field(default_factory=list)


class AudioProcessor:
    """Runs media files through extraction and analysis.

    The processor owns a temporary work directory for the extracted WAV and
    one transform engine whose plan cache lives as long as the processor.
    Use it as a context manager, or call :meth:`close`, to remove the work
    directory.
    """

    def __init__(
        self,
        ffmpeg: Optional[str] = None,
        observer: Optional[ProgressObserver] = None,
        engine: Optional[TransformEngine] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the processor.

        Args:
            ffmpeg: ffmpeg executable (defaults to the configured one).
            observer: Optional progress observer.
            engine: Transform engine to analyze with.
            timeout: Analysis wall-clock budget in seconds.
        """
        self.ffmpeg = ffmpeg or get_ffmpeg_path()
        self.observer = observer
        self.engine = engine or TransformEngine()
        self.timeout = timeout
        self.current: Optional[ProcessResult] = None
        self._tempdir: Optional[tempfile.TemporaryDirectory] = None

    @property
    def work_dir(self) -> Path:
        if self._tempdir is None:
            self._tempdir = tempfile.TemporaryDirectory(prefix="audiocat-")
        return Path(self._tempdir.name)

    def _stage(self, stage: str) -> None:
        logger.debug("processor.stage", stage=stage)
        if self.observer:
            self.observer.on_stage(stage)

    def _progress(self, percent: int) -> None:
        if self.observer:
            self.observer.on_progress(percent)

    def process_file(self, path: Path) -> ProcessResult:
        """Extract and analyze the audio of a media file.

        Args:
            path: Audio or video file.

        Returns:
            ProcessResult. When analysis runs out of time the result's
            ``analysis.skipped`` is True and tempo/key are None.

        Raises:
            FFmpegNotFoundError: If ffmpeg cannot be run.
            ConversionError: If probing or extraction fails.
            DecodeError: If the extracted WAV cannot be read.
        """
        self._stage("Detecting audio streams...")
        self._progress(5)
        metadata = probe_media(path, self.ffmpeg)
        self._progress(25)

        self._stage("Extracting audio...")
        wav_path = extract_audio(path, self.work_dir / "extracted.wav", metadata.sample_rate, self.ffmpeg)
        metadata.sample_rate = target_sample_rate(metadata.sample_rate)
        metadata.bit_depth = EXTRACT_BIT_DEPTH
        metadata.channels = EXTRACT_CHANNELS
        self._progress(60)

        self._stage("Decoding audio...")
        buffer = decode_wav(wav_path)
        metadata.duration = buffer.duration
        self._progress(75)

        self._stage("Detecting tempo & key...")
        try:
            analysis = analyze_buffer(buffer, engine=self.engine, timeout=self.timeout)
        except AnalysisSkipped as e:
            logger.warning("processor.analysis_skipped", path=str(path), reason=str(e))
            analysis = AnalysisResult(skipped=True)

        result = ProcessResult(
            source=path,
            metadata=metadata,
            wav_path=wav_path,
            buffer=buffer,
            analysis=analysis,
            waveform=waveform_peaks(buffer),
        )
        self.current = result

        self._progress(100)
        self._stage("Analysis complete")
        return result

    def convert(
        self,
        format: str,
        output_dir: Path,
        output_name: Optional[str] = None,
    ) -> ExportArtifact:
        """Encode the most recently extracted audio into an export format.

        Args:
            format: One of flac, wav, mp3, aac.
            output_dir: Directory to write to.
            output_name: File name; derived from the source name when omitted.

        Returns:
            ExportArtifact for the written file.

        Raises:
            AudiocatError: If no file has been processed yet.
        """
        if self.current is None:
            raise AudiocatError("No audio extracted. Process a file first.")

        name = output_name or output_filename(self.current.source.name, format)
        self._stage(f"Converting to {format.upper()}...")
        self._progress(10)

        artifact = convert_to_format(self.current.wav_path, output_dir / name, format, self.ffmpeg)

        self._progress(100)
        self._stage("Conversion complete")
        return artifact

    def close(self) -> None:
        """Remove the work directory and forget the current file."""
        self.current = None
        if self._tempdir is not None:
            self._tempdir.cleanup()
            self._tempdir = None

    def __enter__(self) -> "AudioProcessor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
