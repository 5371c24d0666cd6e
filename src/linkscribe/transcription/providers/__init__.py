"""Transcript providers, one per family of links."""
