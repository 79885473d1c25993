"""Waveform peaks for display."""

import numpy as np

from audiocat.buffer import SampleBuffer

DEFAULT_POINTS = 200


def waveform_peaks(buffer: SampleBuffer, points: int = DEFAULT_POINTS) -> list[float]:
    """Peak absolute amplitude of the first channel in ``points`` equal blocks.

    Each block holds ``sample_count // points`` samples; any remainder at the
    end is ignored. Buffers shorter than ``points`` samples give all zeros.

    Args:
        buffer: Decoded samples.
        points: Number of peaks to return.

    Returns:
        List of ``points`` non-negative floats.
    """
    if points <= 0:
        return []

    samples = buffer.channel(0)
    block_size = len(samples) // points
    if block_size == 0:
        return [0.0] * points

    blocks = np.abs(samples[: block_size * points]).reshape(points, block_size)
    return blocks.max(axis=1).tolist()
