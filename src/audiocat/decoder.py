"""Decode WAV files into sample buffers."""

from pathlib import Path

import numpy as np
import soundfile as sf
import structlog

from audiocat.buffer import SampleBuffer
from audiocat.errors import DecodeError

logger = structlog.get_logger()


def decode_wav(path: Path) -> SampleBuffer:
    """Read a WAV (or any libsndfile-supported) file as float samples.

    Args:
        path: Path to the audio file.

    Returns:
        SampleBuffer shaped (channels, frames).

    Raises:
        DecodeError: If the file cannot be read.
    """
    try:
        data, sample_rate = sf.read(path, dtype="float64", always_2d=True)
    except (RuntimeError, OSError) as e:
        raise DecodeError(f"Could not decode {path}: {e}") from e

    buffer = SampleBuffer.from_interleaved(np.asarray(data), sample_rate)
    logger.debug(
        "decoder.decoded",
        path=str(path),
        sample_rate=buffer.sample_rate,
        channels=buffer.channel_count,
        duration=round(buffer.duration, 2),
    )
    return buffer
