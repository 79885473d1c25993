"""Radix-2 fast Fourier transform with cached per-size plans.

The engine computes the DFT of a block whose length is a power of two using
iterative decimation-in-time: inputs are permuted into bit-reversed order,
then log2(N) butterfly stages combine pairs of half-size transforms. Each
stage is one vectorized numpy operation over all butterflies of that stage.

Twiddle factors and the bit-reversal permutation depend only on N, so they
are built once per size and kept in a :class:`PlanCache`. Plans are
read-only after construction. The cache only ever grows, and its lock is
taken solely to insert a size that is not present yet; lookups of an
existing plan never block.
"""

import threading
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import structlog

from audiocat.analyzer.numeric import is_power_of_two, next_power_of_two
from audiocat.errors import ConfigurationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class TransformPlan:
    """Precomputed twiddles and bit-reversal order for one block size."""

    size: int
    twiddles: np.ndarray      # (size // 2,) exp(-2πik/size)
    bit_reversal: np.ndarray  # (size,) permutation indices

    @classmethod
    def build(cls, size: int) -> "TransformPlan":
        """Build a plan for ``size`` points.

        Raises:
            ConfigurationError: If ``size`` is not a power of two.
        """
        if not isinstance(size, (int, np.integer)) or not is_power_of_two(int(size)):
            raise ConfigurationError(f"Transform size must be a power of two, got {size!r}")
        size = int(size)

        twiddles = np.exp(-2j * np.pi * np.arange(size // 2) / size)

        bits = size.bit_length() - 1
        indices = np.arange(size)
        bit_reversal = np.zeros(size, dtype=np.int64)
        for b in range(bits):
            bit_reversal |= ((indices >> b) & 1) << (bits - 1 - b)

        twiddles.setflags(write=False)
        bit_reversal.setflags(write=False)
        return cls(size=size, twiddles=twiddles, bit_reversal=bit_reversal)


class PlanCache:
    """Append-only map from block size to :class:`TransformPlan`."""

    def __init__(self):
        self._plans: dict[int, TransformPlan] = {}
        self._lock = threading.Lock()

    def get(self, size: int) -> TransformPlan:
        """Return the plan for ``size``, building it on first request."""
        plan = self._plans.get(size)
        if plan is not None:
            return plan

        with self._lock:
            # Another thread may have inserted it while we waited
            plan = self._plans.get(size)
            if plan is None:
                plan = TransformPlan.build(size)
                self._plans[plan.size] = plan
                logger.debug("transform.plan.created", size=plan.size)
        return plan

    def sizes(self) -> list[int]:
        return sorted(self._plans)

    def __contains__(self, size: int) -> bool:
        return size in self._plans

    def __len__(self) -> int:
        return len(self._plans)


@dataclass(frozen=True)
class SpectralFrame:
    """Complex output of one block transform.

    Magnitude and phase are derived on demand.
    """

    bins: np.ndarray

    @property
    def size(self) -> int:
        return self.bins.shape[-1]

    @property
    def real(self) -> np.ndarray:
        return self.bins.real

    @property
    def imag(self) -> np.ndarray:
        return self.bins.imag

    def magnitudes(self) -> np.ndarray:
        return np.abs(self.bins)

    def phases(self) -> np.ndarray:
        return np.angle(self.bins)

    def positive_magnitudes(self) -> np.ndarray:
        """Magnitudes of bins 0..N/2 (the non-redundant half for real input)."""
        return np.abs(self.bins[: self.size // 2 + 1])


def pad_to_power_of_two(samples: np.ndarray) -> np.ndarray:
    """Zero-pad ``samples`` on the right up to the next power of two.

    Returns the input unchanged when its length already is one.
    """
    samples = np.asarray(samples)
    target = next_power_of_two(len(samples))
    if target == len(samples):
        return samples
    return np.concatenate([samples, np.zeros(target - len(samples), dtype=samples.dtype)])


class TransformEngine:
    """Fast Fourier transforms backed by a plan cache.

    Engines are cheap; pass a shared :class:`PlanCache` to reuse plans across
    engines, or let each engine own a private one.
    """

    def __init__(self, cache: Optional[PlanCache] = None):
        self.cache = cache if cache is not None else PlanCache()

    def plan(self, size: int) -> TransformPlan:
        return self.cache.get(size)

    def transform(self, samples: np.ndarray) -> SpectralFrame:
        """Forward transform of one block of real or complex samples.

        Args:
            samples: 1-D block whose length is a power of two. Use
                :func:`pad_to_power_of_two` first for other lengths.

        Returns:
            SpectralFrame with one complex bin per input sample.

        Raises:
            ConfigurationError: If the block length is not a power of two.
        """
        data = np.asarray(samples)
        if data.ndim != 1:
            raise ConfigurationError(f"Expected a 1-D block, got shape {data.shape}")
        return SpectralFrame(self._fft(data))

    def transform_frames(self, frames: np.ndarray) -> np.ndarray:
        """Forward transform of every row of a ``(n_frames, N)`` array."""
        data = np.asarray(frames)
        if data.ndim != 2:
            raise ConfigurationError(f"Expected a 2-D frame block, got shape {data.shape}")
        return self._fft(data)

    def inverse(self, bins: Union[SpectralFrame, np.ndarray]) -> np.ndarray:
        """Inverse transform, normalized so ``inverse(transform(x)) == x``."""
        if isinstance(bins, SpectralFrame):
            bins = bins.bins
        data = np.asarray(bins, dtype=np.complex128)
        n = data.shape[-1]
        return np.conj(self._fft(np.conj(data))) / n

    def autocorrelate(self, values: np.ndarray) -> np.ndarray:
        """Linear autocorrelation ``ac[lag] = sum(values[i] * values[i + lag])``.

        The input is zero-padded to at least twice its length before the
        transform so the result has no circular wrap-around.

        Returns:
            Real array of ``len(values)`` lags, starting at lag 0.
        """
        values = np.asarray(values, dtype=np.float64)
        n = len(values)
        if n == 0:
            return np.zeros(0)
        padded = np.zeros(next_power_of_two(2 * n), dtype=np.float64)
        padded[:n] = values
        spectrum = self._fft(padded)
        power = spectrum.real ** 2 + spectrum.imag ** 2
        return self.inverse(power).real[:n]

    def _fft(self, data: np.ndarray) -> np.ndarray:
        n = data.shape[-1]
        plan = self.plan(n)

        x = np.asarray(data, dtype=np.complex128)[..., plan.bit_reversal]
        lead = x.shape[:-1]

        size = 2
        while size <= n:
            half = size // 2
            twiddles = plan.twiddles[:: n // size]
            blocks = x.reshape(lead + (n // size, size))
            even = blocks[..., :half]
            odd = blocks[..., half:] * twiddles
            x = np.concatenate((even + odd, even - odd), axis=-1).reshape(lead + (n,))
            size *= 2

        return x
