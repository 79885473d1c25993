"""Probe, extract and convert audio with ffmpeg."""

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog

from audiocat.config import DEFAULT_FFMPEG
from audiocat.errors import ConversionError, FFmpegNotFoundError, UnsupportedFormatError
from audiocat.models import AudioMetadata, ExportArtifact

logger = structlog.get_logger()

DURATION_PATTERN = re.compile(r"Duration: (\d{2}):(\d{2}):(\d{2})\.(\d{2})")
AUDIO_STREAM_PATTERN = re.compile(
    r"Audio: (\w+).*, (\d+) Hz, ([^,]+)(?:, (\w+))?"
)
BITRATE_PATTERN = re.compile(r"bitrate: (\d+) kb/s")

CHANNEL_LAYOUTS = {
    "mono": 1,
    "stereo": 2,
    "downmix": 2,
    "2.1": 3,
    "3.0": 3,
    "3.1": 4,
    "4.0": 4,
    "quad": 4,
    "4.1": 5,
    "5.0": 5,
    "5.1": 6,
    "6.0": 6,
    "hexagonal": 6,
    "6.1": 7,
    "7.0": 7,
    "7.1": 8,
    "octagonal": 8,
}
CHANNEL_COUNT_PATTERN = re.compile(r"(\d+) channels")

# Extracted intermediate WAV: 24-bit stereo PCM
EXTRACT_CODEC = "pcm_s24le"
EXTRACT_BIT_DEPTH = 24
EXTRACT_CHANNELS = 2


@dataclass(frozen=True)
class ExportFormat:
    """Encoder settings for one export format."""

    name: str
    extension: str
    mime_type: str
    codec_args: tuple[str, ...]


EXPORT_FORMATS = {
    "flac": ExportFormat(
        name="flac",
        extension="flac",
        mime_type="audio/flac",
        codec_args=("-acodec", "flac", "-compression_level", "8", "-sample_fmt", "s32"),
    ),
    "wav": ExportFormat(
        name="wav",
        extension="wav",
        mime_type="audio/wav",
        codec_args=("-acodec", "pcm_s24le"),
    ),
    "mp3": ExportFormat(
        name="mp3",
        extension="mp3",
        mime_type="audio/mpeg",
        codec_args=("-acodec", "libmp3lame", "-b:a", "320k", "-q:a", "0"),
    ),
    "aac": ExportFormat(
        name="aac",
        extension="m4a",
        mime_type="audio/mp4",
        codec_args=("-acodec", "aac", "-b:a", "256k", "-movflags", "+faststart"),
    ),
}


def get_export_format(name: str) -> ExportFormat:
    """Look up an export format by name (case-insensitive).

    Raises:
        UnsupportedFormatError: If the format is unknown.
    """
    try:
        return EXPORT_FORMATS[name.lower()]
    except KeyError:
        supported = ", ".join(EXPORT_FORMATS)
        raise UnsupportedFormatError(f"Unsupported format: {name} (supported: {supported})") from None


def check_ffmpeg(ffmpeg: str = DEFAULT_FFMPEG) -> bool:
    """Check if ffmpeg is available."""
    try:
        subprocess.run(
            [ffmpeg, "-version"],
            capture_output=True,
            check=True,
        )
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def _run_ffmpeg(args: list[str]) -> subprocess.CompletedProcess:
    logger.debug("converter.ffmpeg.run", args=args)
    try:
        return subprocess.run(args, check=True, capture_output=True)
    except FileNotFoundError as e:
        raise FFmpegNotFoundError(f"ffmpeg not found: {args[0]}") from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else ""
        raise ConversionError(f"ffmpeg failed with exit code {e.returncode}", stderr=stderr) from e


def parse_ffmpeg_log(text: str, metadata: Optional[AudioMetadata] = None) -> AudioMetadata:
    """Update stream metadata from ffmpeg log output.

    Recognizes the container duration, the first audio stream's codec,
    sample rate, channel layout and sample format, and the overall bitrate.
    Unknown channel layouts leave ``channels`` at 0. Lines that match
    nothing are ignored.

    Args:
        text: One or more log lines.
        metadata: Metadata to update in place; a new one is created if omitted.

    Returns:
        The updated metadata.
    """
    metadata = metadata or AudioMetadata()

    for line in text.splitlines():
        duration_match = DURATION_PATTERN.search(line)
        if duration_match:
            hours, minutes, seconds, hundredths = (int(g) for g in duration_match.groups())
            metadata.duration = hours * 3600 + minutes * 60 + seconds + hundredths / 100

        audio_match = AUDIO_STREAM_PATTERN.search(line)
        if audio_match and not metadata.codec:
            codec, sample_rate, layout, sample_format = audio_match.groups()
            metadata.codec = codec
            metadata.sample_rate = int(sample_rate)
            metadata.channels = _channel_count(layout)
            metadata.bit_depth = _bit_depth(sample_format or "")

        bitrate_match = BITRATE_PATTERN.search(line)
        if bitrate_match:
            metadata.bitrate = int(bitrate_match.group(1))

    return metadata


def _channel_count(layout: str) -> int:
    """Channels for an ffmpeg layout name such as "5.1(side)" or "4 channels", 0 if unknown."""
    layout = layout.split("(")[0].strip()
    count_match = CHANNEL_COUNT_PATTERN.fullmatch(layout)
    if count_match:
        return int(count_match.group(1))
    return CHANNEL_LAYOUTS.get(layout, 0)


def _bit_depth(sample_format: str) -> int:
    if "16" in sample_format:
        return 16
    if "24" in sample_format:
        return 24
    if "32" in sample_format or "flt" in sample_format:
        return 32
    return 16


def probe_media(input_path: Path, ffmpeg: str = DEFAULT_FFMPEG) -> AudioMetadata:
    """Read stream information from a media file.

    ffmpeg exits non-zero when given an input and no output, so the exit
    status is ignored and only the log is inspected.

    Raises:
        FFmpegNotFoundError: If ffmpeg cannot be run.
        ConversionError: If the file has no audio stream.
    """
    try:
        result = subprocess.run(
            [ffmpeg, "-hide_banner", "-i", str(input_path)],
            capture_output=True,
        )
    except FileNotFoundError as e:
        raise FFmpegNotFoundError(f"ffmpeg not found: {ffmpeg}") from e

    log = result.stderr.decode(errors="replace")
    metadata = parse_ffmpeg_log(log)
    if not metadata.sample_rate:
        raise ConversionError(f"No audio stream found in {input_path}", stderr=log)

    logger.info(
        "converter.probe",
        path=str(input_path),
        codec=metadata.codec,
        sample_rate=metadata.sample_rate,
        channels=metadata.channels,
    )
    return metadata


def target_sample_rate(source_sample_rate: int) -> int:
    """44.1 kHz sources keep their rate; everything else becomes 48 kHz."""
    return 44100 if source_sample_rate == 44100 else 48000


def extract_audio(
    input_path: Path,
    output_path: Path,
    source_sample_rate: int,
    ffmpeg: str = DEFAULT_FFMPEG,
) -> Path:
    """Extract the audio track of a media file to 24-bit stereo WAV.

    Args:
        input_path: Path to the media file (audio or video).
        output_path: Path for the output WAV file.
        source_sample_rate: Sample rate reported by :func:`probe_media`.
        ffmpeg: ffmpeg executable.

    Returns:
        Path to the created WAV file.

    Raises:
        ConversionError: If ffmpeg fails.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    sample_rate = target_sample_rate(source_sample_rate)

    _run_ffmpeg(
        [
            ffmpeg,
            "-i", str(input_path),
            "-vn",  # Drop any video stream
            "-acodec", EXTRACT_CODEC,
            "-ar", str(sample_rate),
            "-ac", str(EXTRACT_CHANNELS),
            "-y",  # Overwrite output file
            "-loglevel", "error",
            str(output_path),
        ]
    )

    logger.info("converter.extract", path=str(output_path), sample_rate=sample_rate)
    return output_path


def output_filename(source_name: Optional[str], format: str) -> str:
    """Name for an exported file: the source stem plus the format extension.

    ``song.mov`` exported as aac becomes ``song.m4a``; without a source
    name the stem is ``audio``.
    """
    export_format = get_export_format(format)
    stem = re.sub(r"\.[^/.]+$", "", source_name) if source_name else ""
    return f"{stem or 'audio'}.{export_format.extension}"


def convert_to_format(
    wav_path: Path,
    output_path: Path,
    format: str,
    ffmpeg: str = DEFAULT_FFMPEG,
) -> ExportArtifact:
    """Encode an extracted WAV file into an export format.

    Args:
        wav_path: Path to the extracted WAV file.
        output_path: Path for the encoded file.
        format: One of flac, wav, mp3, aac.
        ffmpeg: ffmpeg executable.

    Returns:
        ExportArtifact describing the written file.

    Raises:
        UnsupportedFormatError: If the format is unknown.
        ConversionError: If ffmpeg fails.
    """
    export_format = get_export_format(format)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    _run_ffmpeg(
        [
            ffmpeg,
            "-i", str(wav_path),
            *export_format.codec_args,
            "-y",
            "-loglevel", "error",
            str(output_path),
        ]
    )

    logger.info("converter.convert", format=export_format.name, path=str(output_path))
    return ExportArtifact(
        path=output_path,
        format=export_format.name,
        mime_type=export_format.mime_type,
    )
