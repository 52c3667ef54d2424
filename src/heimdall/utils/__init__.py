"""Text and time helpers."""
