"""Transcript lookup through an Apify YouTube transcript actor."""

import logging
from typing import Any

import httpx

from linkscribe.utils.http import post_json
from linkscribe.utils.json_access import get_list, log_schema_drift

logger = logging.getLogger(__name__)

APIFY_TRANSCRIPT_ACTOR = "faVsWy9VTSNVIhWpR"
APIFY_BASE_URL = "https://api.apify.com/v2"
APIFY_TIMEOUT_SECONDS = 45.0


def normalize_apify_item(item: Any) -> str | None:
    """Join ``data[].text`` of one dataset item."""
    lines = [
        entry["text"].strip()
        for entry in get_list(item, ["data"])
        if isinstance(entry, dict) and isinstance(entry.get("text"), str) and entry["text"].strip()
    ]
    return "\n".join(lines) if lines else None


async def fetch_apify_transcript(
    client: httpx.AsyncClient,
    api_token: str,
    video_url: str,
    *,
    timeout: float = APIFY_TIMEOUT_SECONDS,
) -> str | None:
    """Run the actor synchronously and return the first usable transcript.

    Request failures propagate as classified request errors.
    """
    url = (
        f"{APIFY_BASE_URL}/acts/{APIFY_TRANSCRIPT_ACTOR}/run-sync-get-dataset-items"
        f"?token={api_token}"
    )
    items = await post_json(client, url, {"videoUrl": video_url}, timeout=timeout)
    if not isinstance(items, list):
        log_schema_drift("apify dataset", "expected a list of items")
        return None

    for item in items:
        transcript = normalize_apify_item(item)
        if transcript:
            return transcript
    logger.debug(f"Apify returned {len(items)} items without transcript text for {video_url}")
    return None
