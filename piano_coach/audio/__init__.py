"""Audio capture, pitch detection and reference tones."""
