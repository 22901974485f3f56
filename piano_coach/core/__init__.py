"""Core components for the Piano Coach application."""

# Import interfaces for easier access
from .interfaces import (
    IAudioSource,
    IPresenter,
    Intent,
)

__all__ = ["IAudioSource", "IPresenter", "Intent"]
