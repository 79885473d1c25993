"""Tempo and key analysis of decoded audio."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

import structlog

from audiocat.analyzer.key import detect_key
from audiocat.analyzer.tempo import detect_tempo
from audiocat.analyzer.transform import PlanCache, TransformEngine
from audiocat.buffer import SampleBuffer
from audiocat.errors import AnalysisSkipped
from audiocat.models import AnalysisResult

logger = structlog.get_logger()

__all__ = [
    "PlanCache",
    "TransformEngine",
    "analyze_buffer",
    "detect_key",
    "detect_tempo",
]


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def analyze_buffer(
    buffer: SampleBuffer,
    engine: Optional[TransformEngine] = None,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> AnalysisResult:
    """Run tempo and key detection concurrently and join the results.

    Both detectors read the same immutable buffer and share one transform
    engine, so plans built by one are reused by the other.

    Args:
        buffer: Decoded samples.
        engine: Transform engine (and plan cache) to use.
        timeout: Wall-clock budget in seconds for both detectors together.
        cancel: Event that aborts both detectors when set.

    Returns:
        AnalysisResult with tempo and key estimates.

    Raises:
        AnalysisSkipped: If the budget runs out. Running detectors are told
            to stop and their results are discarded.
        AnalysisCancelled: If ``cancel`` is set while the detectors run.
    """
    engine = engine or TransformEngine()
    cancel = cancel or threading.Event()
    deadline = None if timeout is None else time.monotonic() + timeout

    logger.debug(
        "analysis.start",
        duration=round(buffer.duration, 2),
        sample_rate=buffer.sample_rate,
        channels=buffer.channel_count,
    )

    executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="audiocat-analysis")
    try:
        tempo_future = executor.submit(detect_tempo, buffer, engine, cancel)
        key_future = executor.submit(detect_key, buffer, engine, cancel)
        try:
            tempo = tempo_future.result(timeout=_remaining(deadline))
            key = key_future.result(timeout=_remaining(deadline))
        except FutureTimeoutError:
            cancel.set()
            logger.warning("analysis.timeout", timeout=timeout)
            raise AnalysisSkipped(f"Analysis exceeded {timeout}s budget") from None
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return AnalysisResult(tempo=tempo, key=key)
