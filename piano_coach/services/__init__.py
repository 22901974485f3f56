"""Audio sources and session persistence."""
