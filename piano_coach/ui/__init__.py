"""Presentation of coordinator snapshots."""
