"""Exception types raised by audiocat."""


class AudiocatError(Exception):
    """Base class for all audiocat errors."""


class ConfigurationError(AudiocatError, ValueError):
    """An internal invariant was violated (e.g. a non power-of-two transform size)."""


class InvalidBufferError(AudiocatError, ValueError):
    """A sample buffer could not be constructed from the given data."""


class FFmpegNotFoundError(AudiocatError):
    """The ffmpeg binary is not available."""


class ConversionError(AudiocatError):
    """ffmpeg exited with an error while extracting or converting audio."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class UnsupportedFormatError(AudiocatError, ValueError):
    """The requested export format is not supported."""


class DecodeError(AudiocatError):
    """A WAV file could not be decoded into samples."""


class AnalysisSkipped(AudiocatError):
    """Analysis did not finish within its wall-clock budget."""


class AnalysisCancelled(AudiocatError):
    """Analysis was cancelled by the caller."""
