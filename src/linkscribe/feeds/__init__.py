"""Podcast feed parsing for linkscribe."""

from linkscribe.feeds.models import Enclosure, FeedItem, PodcastFeed, TranscriptLink
from linkscribe.feeds.parser import (
    RSSParser,
    has_transcript_hint,
    looks_like_feed,
    match_item_by_title,
    select_transcript_link,
)
from linkscribe.feeds.transcripts import FeedTranscript, transcript_from_body

__all__ = [
    "Enclosure",
    "FeedItem",
    "FeedTranscript",
    "PodcastFeed",
    "RSSParser",
    "TranscriptLink",
    "has_transcript_hint",
    "looks_like_feed",
    "match_item_by_title",
    "select_transcript_link",
    "transcript_from_body",
]
