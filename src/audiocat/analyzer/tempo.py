"""Tempo estimation from spectral flux and autocorrelation."""

import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from audiocat.analyzer.constants import (
    MAX_BPM,
    MIN_BPM,
    NOVELTY_FLOOR,
    TEMPO_FRAME_SIZE,
    TEMPO_HOP_SIZE,
)
from audiocat.analyzer.numeric import frame_count, iter_frame_batches, make_window
from audiocat.analyzer.transform import TransformEngine
from audiocat.buffer import SampleBuffer
from audiocat.errors import AnalysisCancelled
from audiocat.models import TempoEstimate

logger = structlog.get_logger()

# Autocorrelation values this close to the peak (relative to lag 0) are ties
TIE_TOLERANCE = 1e-9

UNKNOWN_TEMPO = TempoEstimate(bpm=0.0, confidence=0.0)


@dataclass(frozen=True)
class OnsetEnvelope:
    """Per-frame novelty values sampled at ``frame_rate`` frames per second."""

    values: np.ndarray
    frame_rate: float

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_degenerate(self) -> bool:
        """True when there is no onset at all (silence, DC, steady tones)."""
        return len(self.values) == 0 or not np.any(self.values > 0.0)


def _check_cancelled(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise AnalysisCancelled("Tempo detection cancelled")


def onset_envelope(
    buffer: SampleBuffer,
    engine: Optional[TransformEngine] = None,
    cancel: Optional[threading.Event] = None,
) -> OnsetEnvelope:
    """Half-wave rectified spectral flux of the mono mixdown.

    Each value is the summed magnitude increase of a Hann-windowed frame over
    the previous frame. The first frame has no predecessor and scores 0.
    Flux below ``NOVELTY_FLOOR`` of the frame's total magnitude is zeroed.

    Args:
        buffer: Decoded samples.
        engine: Transform engine; a private one is created when omitted.
        cancel: Optional event checked between frame batches.

    Returns:
        OnsetEnvelope with one value per full frame.
    """
    engine = engine or TransformEngine()
    samples = buffer.mono()
    window = make_window("hanning", TEMPO_FRAME_SIZE)
    n_bins = TEMPO_FRAME_SIZE // 2 + 1

    values = np.zeros(frame_count(len(samples), TEMPO_FRAME_SIZE, TEMPO_HOP_SIZE))
    previous: Optional[np.ndarray] = None
    position = 0

    for block in iter_frame_batches(samples, TEMPO_FRAME_SIZE, TEMPO_HOP_SIZE, window):
        _check_cancelled(cancel)

        magnitudes = np.abs(engine.transform_frames(block)[:, :n_bins])
        head = magnitudes[:1] if previous is None else previous[np.newaxis, :]
        before = np.vstack([head, magnitudes[:-1]])

        flux = np.clip(magnitudes - before, 0.0, None).sum(axis=1)
        totals = magnitudes.sum(axis=1)
        flux[flux < NOVELTY_FLOOR * totals] = 0.0

        values[position:position + len(flux)] = flux
        position += len(flux)
        previous = magnitudes[-1]

    return OnsetEnvelope(values=values, frame_rate=buffer.sample_rate / TEMPO_HOP_SIZE)


def octave_correct(bpm: float, low: float = MIN_BPM, high: float = MAX_BPM) -> float:
    """Halve or double ``bpm`` until it lies within [low, high]."""
    if bpm <= 0.0:
        return 0.0
    while bpm > high:
        bpm /= 2.0
    while bpm < low:
        bpm *= 2.0
    return bpm


def lag_range(frame_rate: float, n_frames: int) -> tuple[int, int]:
    """Inclusive autocorrelation lag bounds (in frames) for the BPM range.

    The upper bound is capped by the envelope length, so the range may be
    empty (``low > high``) for very short buffers.
    """
    low = max(1, int(np.floor(60.0 * frame_rate / MAX_BPM)))
    high = min(n_frames - 1, int(np.ceil(60.0 * frame_rate / MIN_BPM)))
    return low, high


def estimate_tempo(
    envelope: OnsetEnvelope,
    engine: Optional[TransformEngine] = None,
) -> TempoEstimate:
    """Pick the dominant onset period and convert it to BPM.

    The envelope mean is removed first, so only periodic structure
    correlates: flux that is merely always present (noise, dense textures)
    scores near zero. The lag with the largest autocorrelation wins; among
    equal peaks the smaller lag (faster tempo) is kept. Confidence is the
    peak height relative to the centered envelope energy (lag 0).
    """
    if envelope.is_degenerate:
        return UNKNOWN_TEMPO

    low, high = lag_range(envelope.frame_rate, len(envelope))
    if high < low:
        return UNKNOWN_TEMPO

    engine = engine or TransformEngine()
    centered = envelope.values - envelope.values.mean()
    autocorr = engine.autocorrelate(centered)
    energy = float(autocorr[0])
    if energy <= 0.0:
        return UNKNOWN_TEMPO

    candidates = autocorr[low:high + 1]
    peak = float(candidates.max())
    tolerance = TIE_TOLERANCE * energy
    if peak <= tolerance:
        return UNKNOWN_TEMPO

    lag = low + int(np.flatnonzero(candidates >= peak - tolerance)[0])
    raw_bpm = 60.0 * envelope.frame_rate / lag
    confidence = float(np.clip(autocorr[lag] / energy, 0.0, 1.0))

    return TempoEstimate(bpm=octave_correct(raw_bpm), confidence=confidence)


def detect_tempo(
    buffer: SampleBuffer,
    engine: Optional[TransformEngine] = None,
    cancel: Optional[threading.Event] = None,
) -> TempoEstimate:
    """Estimate the tempo of a sample buffer.

    Args:
        buffer: Decoded samples.
        engine: Transform engine to share plans with other detectors.
        cancel: Optional event; when set, raises AnalysisCancelled.

    Returns:
        TempoEstimate; ``bpm == 0`` and ``confidence == 0`` when the buffer is
        too short, silent, or has no periodic onsets.
    """
    engine = engine or TransformEngine()
    envelope = onset_envelope(buffer, engine, cancel)
    estimate = estimate_tempo(envelope, engine)
    logger.debug(
        "tempo.detected",
        bpm=round(estimate.bpm, 2),
        confidence=round(estimate.confidence, 3),
        frames=len(envelope),
    )
    return estimate
