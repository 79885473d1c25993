"""Shared numeric helpers: windows, bin mapping, pitch-class folding, framing."""

from functools import lru_cache
from typing import Iterator, Optional, Union

import numpy as np

from audiocat.analyzer.constants import (
    FRAME_BATCH,
    REFERENCE_FREQUENCY,
    REFERENCE_PITCH_CLASS,
)
from audiocat.errors import ConfigurationError

ArrayLike = Union[int, float, np.ndarray]


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def next_power_of_two(n: int) -> int:
    """Smallest power of two greater than or equal to ``n`` (1 for n <= 1)."""
    if n <= 1:
        return 1
    return 1 << (int(n) - 1).bit_length()


def _cosine_window(index: ArrayLike, size: int, a0: float) -> ArrayLike:
    if size < 1:
        raise ConfigurationError(f"Window size must be positive, got {size}")
    if size == 1:
        return np.ones(np.shape(index)) if np.ndim(index) else 1.0
    value = a0 - (1.0 - a0) * np.cos(2.0 * np.pi * np.asarray(index, dtype=np.float64) / (size - 1))
    if np.ndim(index) == 0:
        return float(value)
    return value


def hanning(index: ArrayLike, size: int) -> ArrayLike:
    """Hann window multiplier for ``index`` in a block of ``size`` samples.

    Accepts a scalar index or an index array. Values lie in [0, 1] and are
    zero at both block edges.
    """
    return _cosine_window(index, size, 0.5)


def hamming(index: ArrayLike, size: int) -> ArrayLike:
    """Hamming window multiplier; lies in [0.08, 1]."""
    return _cosine_window(index, size, 0.54)


WINDOWS = {
    "hanning": hanning,
    "hamming": hamming,
}


@lru_cache(maxsize=16)
def make_window(kind: str, size: int) -> np.ndarray:
    """Full window of ``size`` multipliers as a read-only array."""
    try:
        func = WINDOWS[kind]
    except KeyError:
        raise ConfigurationError(f"Unknown window: {kind}") from None
    window = np.asarray(func(np.arange(size), size), dtype=np.float64)
    window.setflags(write=False)
    return window


def bin_frequency(k: ArrayLike, n: int, sample_rate: int) -> ArrayLike:
    """Centre frequency in Hz of transform bin ``k`` for block size ``n``."""
    if np.ndim(k):
        return np.asarray(k, dtype=np.float64) * sample_rate / n
    return k * sample_rate / n


def pitch_class(frequency: ArrayLike, reference: float = REFERENCE_FREQUENCY) -> ArrayLike:
    """Fold a frequency (or array of frequencies) into a pitch class 0..11.

    Uses ``round(12 * log2(f / reference))`` semitones from the reference,
    which itself sits on pitch class ``REFERENCE_PITCH_CLASS``. Frequencies
    must be positive.
    """
    semitones = np.round(12.0 * np.log2(np.asarray(frequency, dtype=np.float64) / reference))
    classes = (semitones.astype(np.int64) + REFERENCE_PITCH_CLASS) % 12
    if np.ndim(frequency) == 0:
        return int(classes)
    return classes


def frame_count(sample_count: int, frame_size: int, hop_size: int) -> int:
    """Number of full frames: ``floor((samples - frame) / hop) + 1``, or 0."""
    if sample_count < frame_size:
        return 0
    return (sample_count - frame_size) // hop_size + 1


def iter_frame_batches(
    samples: np.ndarray,
    frame_size: int,
    hop_size: int,
    window: Optional[np.ndarray] = None,
    batch: int = FRAME_BATCH,
) -> Iterator[np.ndarray]:
    """Yield windowed frames in ``(batch, frame_size)`` blocks.

    Frames are views into ``samples`` until the window is applied, so only
    one batch is materialized at a time.
    """
    if frame_count(len(samples), frame_size, hop_size) == 0:
        return
    frames = np.lib.stride_tricks.sliding_window_view(samples, frame_size)[::hop_size]
    for start in range(0, len(frames), batch):
        block = frames[start:start + batch]
        if window is not None:
            block = block * window
        else:
            block = np.array(block)
        yield block


def pearson(a: np.ndarray, b: np.ndarray) -> float:
    """Pearson correlation, 0.0 when either side has no variance."""
    a = np.asarray(a, dtype=np.float64) - np.mean(a)
    b = np.asarray(b, dtype=np.float64) - np.mean(b)
    denom = np.sqrt(np.dot(a, a) * np.dot(b, b))
    if denom == 0.0 or not np.isfinite(denom):
        return 0.0
    return float(np.dot(a, b) / denom)
