"""Pydantic models for audiocat."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

PITCH_CLASS_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


class AudioMetadata(BaseModel):
    """Stream information reported by ffmpeg, updated as the pipeline runs."""

    duration: float = 0.0  # Seconds
    sample_rate: int = 0
    channels: int = 0
    bit_depth: int = 0
    codec: str = ""
    bitrate: int = 0  # kb/s


class TempoEstimate(BaseModel):
    """Tempo detector result. ``bpm == 0`` means no confident estimate."""

    bpm: float = Field(ge=0.0)
    confidence: float = Field(ge=0.0, le=1.0)

    @property
    def detected(self) -> bool:
        return self.bpm > 0.0


class KeyEstimate(BaseModel):
    """Key detector result. ``score == 0`` means no confident estimate."""

    pitch_class: int = Field(ge=0, le=11, serialization_alias="pitchClass")
    mode: Literal["major", "minor"]
    score: float
    camelot: str  # e.g. "8B"

    @property
    def tonic(self) -> str:
        return PITCH_CLASS_NAMES[self.pitch_class]

    @property
    def name(self) -> str:
        """Human-readable key, e.g. "A minor"."""
        return f"{self.tonic} {self.mode}"

    @property
    def detected(self) -> bool:
        return self.score > 0.0


class AnalysisResult(BaseModel):
    """Combined detector output handed to the orchestration layer."""

    tempo: Optional[TempoEstimate] = None
    key: Optional[KeyEstimate] = None
    skipped: bool = False  # True when analysis ran out of time

    def to_dict(self) -> dict:
        """Display payload: ``{"tempo": {...}, "key": {"pitchClass": ...}}``."""
        return {
            "tempo": self.tempo.model_dump() if self.tempo else None,
            "key": self.key.model_dump(by_alias=True) if self.key else None,
        }


class ExportArtifact(BaseModel):
    """A converted audio file written to disk."""

    path: Path
    format: str  # flac, wav, mp3, aac
    mime_type: str
