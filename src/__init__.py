# src/__init__.py - v1
"""imagecomposer: reference-aware request composer for Gemini image generation."""

from imagecomposer.version import __version__

__all__ = ["__version__"]
