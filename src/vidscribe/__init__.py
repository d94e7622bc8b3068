"""Upload videos, transcribe them and store derived caption artifacts."""

__version__ = "0.1.0"
