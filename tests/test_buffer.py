"""Tests for sample buffers and waveform peaks."""

import numpy as np
import pytest

from audiocat.buffer import SampleBuffer
from audiocat.errors import InvalidBufferError
from audiocat.waveform import waveform_peaks


class TestSampleBuffer:
    """Tests for SampleBuffer construction and accessors."""

    def test_mono_from_1d(self):
        buffer = SampleBuffer(np.zeros(480), 48000)
        assert buffer.channel_count == 1
        assert buffer.sample_count == 480
        assert buffer.duration == pytest.approx(0.01)

    def test_from_interleaved(self):
        """soundfile's (frames, channels) layout is transposed."""
        frames = np.array([[0.1, -0.1], [0.2, -0.2], [0.3, -0.3]])
        buffer = SampleBuffer.from_interleaved(frames, 44100)
        assert buffer.channel_count == 2
        assert buffer.channel(1).tolist() == [-0.1, -0.2, -0.3]

    def test_mono_mixdown(self):
        buffer = SampleBuffer(np.array([[1.0, 0.0], [0.0, 1.0]]), 8000)
        assert buffer.mono().tolist() == [0.5, 0.5]

    def test_samples_are_read_only_copy(self):
        source = np.ones(16)
        buffer = SampleBuffer(source, 8000)
        source[0] = 5.0
        assert buffer.samples[0, 0] == 1.0
        with pytest.raises(ValueError):
            buffer.samples[0, 0] = 2.0

    def test_invalid_sample_rate(self):
        with pytest.raises(InvalidBufferError):
            SampleBuffer(np.zeros(10), 0)
        with pytest.raises(InvalidBufferError):
            SampleBuffer(np.zeros(10), 44100.5)

    def test_invalid_shape(self):
        with pytest.raises(InvalidBufferError):
            SampleBuffer(np.zeros((2, 2, 2)), 44100)
        with pytest.raises(InvalidBufferError):
            SampleBuffer(np.zeros((0, 10)), 44100)


class TestWaveformPeaks:
    """Tests for display peaks."""

    def test_peak_per_block(self):
        samples = np.zeros(1000)
        samples[5] = -0.9
        samples[995] = 0.4
        peaks = waveform_peaks(SampleBuffer(samples, 8000), points=10)
        assert len(peaks) == 10
        assert peaks[0] == pytest.approx(0.9)
        assert peaks[9] == pytest.approx(0.4)
        assert peaks[1:9] == [0.0] * 8

    def test_default_point_count(self):
        peaks = waveform_peaks(SampleBuffer(np.ones(48000), 48000))
        assert len(peaks) == 200
        assert all(p == 1.0 for p in peaks)

    def test_uses_first_channel(self):
        buffer = SampleBuffer(np.vstack([np.zeros(400), np.ones(400)]), 8000)
        assert waveform_peaks(buffer, points=4) == [0.0] * 4

    def test_short_buffer(self):
        assert waveform_peaks(SampleBuffer(np.ones(5), 8000), points=10) == [0.0] * 10

    def test_zero_points(self):
        assert waveform_peaks(SampleBuffer(np.ones(5), 8000), points=0) == []
