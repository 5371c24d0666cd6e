"""Fetching, extraction and assembly of page content."""
