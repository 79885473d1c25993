"""Musical key estimation (Krumhansl-Schmuckler) with Camelot notation."""

import threading
from dataclasses import dataclass
from typing import Literal, Optional

import numpy as np
import structlog

from audiocat.analyzer.constants import (
    KEY_FRAME_SIZE,
    KEY_HOP_SIZE,
    KEY_MAX_FREQUENCY,
    KEY_MIN_FREQUENCY,
)
from audiocat.analyzer.numeric import (
    bin_frequency,
    iter_frame_batches,
    make_window,
    pearson,
    pitch_class,
)
from audiocat.analyzer.transform import TransformEngine
from audiocat.buffer import SampleBuffer
from audiocat.errors import AnalysisCancelled
from audiocat.models import KeyEstimate

logger = structlog.get_logger()

# Krumhansl-Schmuckler key profiles (major / natural minor), tonic first
MAJOR_PROFILE = np.array(
    [6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88]
)
MINOR_PROFILE = np.array(
    [6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17]
)

# Camelot wheel position per tonic pitch class (C, C#, D ... B)
CAMELOT_WHEEL = {
    "major": ["8B", "3B", "10B", "5B", "12B", "7B", "2B", "9B", "4B", "11B", "6B", "1B"],
    "minor": ["5A", "12A", "7A", "2A", "9A", "4A", "11A", "6A", "1A", "8A", "3A", "10A"],
}

MODES: tuple[Literal["major", "minor"], ...] = ("major", "minor")

UNKNOWN_KEY = KeyEstimate(pitch_class=0, mode="major", score=0.0, camelot="8B")


def camelot_code(pitch_class: int, mode: str) -> str:
    """Camelot wheel code for a tonic pitch class and mode, e.g. (9, "minor") -> "8A"."""
    return CAMELOT_WHEEL[mode][pitch_class % 12]


@dataclass(frozen=True)
class Chromagram:
    """Twelve pitch-class energies (C..B) summing to 1, or all zeros."""

    values: np.ndarray

    @property
    def is_silent(self) -> bool:
        return not np.any(self.values > 0.0)

    @property
    def dominant_pitch_class(self) -> int:
        return int(np.argmax(self.values))


def normalize_chroma(energy: np.ndarray) -> np.ndarray:
    total = float(np.sum(energy))
    if total <= 0.0:
        return np.zeros(12)
    return np.asarray(energy, dtype=np.float64) / total


def chromagram(
    buffer: SampleBuffer,
    engine: Optional[TransformEngine] = None,
    cancel: Optional[threading.Event] = None,
) -> Chromagram:
    """Fold the magnitude spectrum of every frame into 12 pitch classes.

    Frames are ``KEY_FRAME_SIZE`` samples, Hann-windowed. Bins below
    ``KEY_MIN_FREQUENCY`` or above ``KEY_MAX_FREQUENCY`` are skipped. Since
    folding is linear, magnitudes are summed over frames first and folded
    once.

    Args:
        buffer: Decoded samples.
        engine: Transform engine; a private one is created when omitted.
        cancel: Optional event checked between frame batches.

    Returns:
        Normalized Chromagram.
    """
    engine = engine or TransformEngine()
    samples = buffer.mono()
    n_bins = KEY_FRAME_SIZE // 2 + 1

    frequencies = bin_frequency(np.arange(n_bins), KEY_FRAME_SIZE, buffer.sample_rate)
    in_range = (frequencies >= KEY_MIN_FREQUENCY) & (frequencies <= KEY_MAX_FREQUENCY)
    classes = pitch_class(frequencies[in_range])

    window = make_window("hanning", KEY_FRAME_SIZE)
    totals = np.zeros(n_bins)
    for block in iter_frame_batches(samples, KEY_FRAME_SIZE, KEY_HOP_SIZE, window):
        if cancel is not None and cancel.is_set():
            raise AnalysisCancelled("Key detection cancelled")
        totals += np.abs(engine.transform_frames(block)[:, :n_bins]).sum(axis=0)

    energy = np.bincount(classes, weights=totals[in_range], minlength=12)
    return Chromagram(values=normalize_chroma(energy))


def key_scores(chroma: np.ndarray) -> np.ndarray:
    """Correlation with all 24 key profiles.

    Index ``t`` (0..11) is the major key on tonic ``t``; index ``12 + t`` is
    the minor key on tonic ``t``.
    """
    scores = np.zeros(24)
    for tonic in range(12):
        scores[tonic] = pearson(chroma, np.roll(MAJOR_PROFILE, tonic))
        scores[12 + tonic] = pearson(chroma, np.roll(MINOR_PROFILE, tonic))
    return scores


def estimate_key(chroma: Chromagram) -> KeyEstimate:
    """Best-matching key profile for a chromagram.

    The first of several equal maxima wins (majors before minors, C upward).
    Relative major/minor pairs often score within a hair of each other; the
    higher score is reported as is.
    """
    if chroma.is_silent:
        return UNKNOWN_KEY

    scores = key_scores(chroma.values)
    best = int(np.argmax(scores))
    score = float(scores[best])
    if score <= 0.0:
        return UNKNOWN_KEY

    tonic = best % 12
    mode = MODES[best // 12]
    return KeyEstimate(
        pitch_class=tonic,
        mode=mode,
        score=score,
        camelot=camelot_code(tonic, mode),
    )


def detect_key(
    buffer: SampleBuffer,
    engine: Optional[TransformEngine] = None,
    cancel: Optional[threading.Event] = None,
) -> KeyEstimate:
    """Estimate the musical key of a sample buffer.

    Returns:
        KeyEstimate; ``score == 0`` (reported as C major / 8B) when the
        buffer is too short or carries no pitched energy.
    """
    engine = engine or TransformEngine()
    estimate = estimate_key(chromagram(buffer, engine, cancel))
    logger.debug(
        "key.detected",
        key=estimate.name,
        camelot=estimate.camelot,
        score=round(estimate.score, 3),
    )
    return estimate
