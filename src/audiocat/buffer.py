"""Decoded PCM sample buffers."""

from dataclasses import dataclass

import numpy as np

from audiocat.errors import InvalidBufferError


@dataclass(frozen=True)
class SampleBuffer:
    """Float samples per channel at a fixed sample rate.

    ``samples`` is shaped ``(channels, frames)`` and is made read-only on
    construction, so detectors can share one buffer without copying it.
    """

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        if int(self.sample_rate) != self.sample_rate or self.sample_rate <= 0:
            raise InvalidBufferError(f"Sample rate must be a positive integer, got {self.sample_rate!r}")

        data = np.asarray(self.samples, dtype=np.float64)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        elif data.ndim != 2:
            raise InvalidBufferError(f"Samples must be 1-D or 2-D, got {data.ndim} dimensions")
        if data.shape[0] == 0:
            raise InvalidBufferError("Sample buffer has no channels")

        data = np.array(data, copy=True)
        data.setflags(write=False)
        object.__setattr__(self, "samples", data)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @classmethod
    def from_interleaved(cls, frames: np.ndarray, sample_rate: int) -> "SampleBuffer":
        """Build a buffer from a ``(frames, channels)`` array as returned by soundfile."""
        frames = np.asarray(frames)
        if frames.ndim == 1:
            return cls(frames, sample_rate)
        return cls(frames.T, sample_rate)

    @property
    def channel_count(self) -> int:
        return self.samples.shape[0]

    @property
    def sample_count(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.sample_count / self.sample_rate

    def channel(self, index: int) -> np.ndarray:
        return self.samples[index]

    def mono(self) -> np.ndarray:
        """Mixdown to a single channel by averaging."""
        if self.channel_count == 1:
            return self.samples[0]
        return self.samples.mean(axis=0)
