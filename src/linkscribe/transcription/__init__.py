"""Transcript lookup, caching and media transcription."""
