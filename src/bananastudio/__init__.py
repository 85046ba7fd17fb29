"""Banana Studio - image uploads and Gemini image generation behind one small API."""

__version__ = "0.1.0"

from bananastudio.core.config import StudioConfig, config

__all__ = [
    "StudioConfig",
    "config",
]
