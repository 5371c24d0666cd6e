"""Podcast transcripts: RSS ``<podcast:transcript>`` tags, Apple Podcasts and Spotify."""
