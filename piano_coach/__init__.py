"""Piano Coach - guided piano tuning from a live microphone."""

__version__ = "0.1.0"
