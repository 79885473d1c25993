"""Audio extraction, conversion and tempo/key analysis."""

__version__ = "0.1.0"
