"""YouTube's internal ``youtubei`` transcript endpoint.

The watch page bootstraps its client through ``ytcfg.set({...})`` calls; the
API key, client context and the ``getTranscriptEndpoint`` params found there
are enough to ask for the transcript panel directly.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from linkscribe.transcription.models import TranscriptSegment
from linkscribe.utils.http import BROWSER_USER_AGENT, post_json
from linkscribe.utils.json_access import (
    extract_balanced_json,
    get_dict,
    get_int,
    get_list,
    get_str,
    log_schema_drift,
)

logger = logging.getLogger(__name__)

YOUTUBEI_BASE_URL = "https://www.youtube.com/youtubei/v1"
_TRANSCRIPT_PARAMS = re.compile(r'"getTranscriptEndpoint":\{"params":"([^"]+)"\}')
_YTCFG_SET = "ytcfg.set("
_INNERTUBE_API_KEY = re.compile(r'"INNERTUBE_API_KEY":"([^"]+)"|INNERTUBE_API_KEY\\":\\"([^\\"]+)\\"')


@dataclass
class YoutubeBootstrap:
    """Client settings scraped from a watch page."""

    api_key: str | None
    context: dict[str, Any]
    client_name: str | None = None
    client_version: str | None = None
    visitor_data: str | None = None
    page_cl: int | None = None
    page_label: str | None = None
    xsrf_token: str | None = None
    transcript_params: str | None = None


@dataclass
class TimedTranscript:
    text: str
    segments: list[TranscriptSegment] | None


def extract_bootstrap_config(html: str) -> dict[str, Any] | None:
    """Merge every ``ytcfg.set({...})`` object on the page."""
    merged: dict[str, Any] = {}
    index = html.find(_YTCFG_SET)
    while index >= 0:
        raw = extract_balanced_json(html, index + len(_YTCFG_SET))
        if raw:
            try:
                value = json.loads(raw)
            except ValueError:
                value = None
            if isinstance(value, dict):
                merged.update(value)
        index = html.find(_YTCFG_SET, index + len(_YTCFG_SET))
    return merged or None


def extract_innertube_api_key(html: str) -> str | None:
    """API key from the raw page, for pages whose ytcfg blocks do not parse."""
    match = _INNERTUBE_API_KEY.search(html)
    if not match:
        return None
    key = (match.group(1) or match.group(2) or "").strip()
    return key or None


def extract_bootstrap(html: str) -> YoutubeBootstrap | None:
    """Parse the bootstrap config; None when the page carries no client context."""
    config = extract_bootstrap_config(html)
    if config is None:
        return None

    context = get_dict(config, ["INNERTUBE_CONTEXT"])
    if context is None:
        log_schema_drift("youtube bootstrap", "INNERTUBE_CONTEXT missing")
        return None

    client_name_raw = config.get("INNERTUBE_CONTEXT_CLIENT_NAME")
    client_name = str(client_name_raw) if isinstance(client_name_raw, (int, str)) else None
    params_match = _TRANSCRIPT_PARAMS.search(html)

    return YoutubeBootstrap(
        api_key=get_str(config, ["INNERTUBE_API_KEY"]),
        context=context,
        client_name=client_name,
        client_version=get_str(config, ["INNERTUBE_CONTEXT_CLIENT_VERSION"])
        or get_str(config, ["INNERTUBE_CLIENT_VERSION"]),
        visitor_data=get_str(config, ["VISITOR_DATA"])
        or get_str(context, ["client", "visitorData"]),
        page_cl=get_int(config, ["PAGE_CL"]),
        page_label=get_str(config, ["PAGE_BUILD_LABEL"]),
        xsrf_token=get_str(config, ["XSRF_TOKEN"]),
        transcript_params=params_match.group(1) if params_match else None,
    )


def client_headers(bootstrap: YoutubeBootstrap, original_url: str) -> dict[str, str]:
    """Headers a logged-out web client sends with youtubei requests."""
    headers = {
        "Content-Type": "application/json",
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": "application/json",
        "Origin": "https://www.youtube.com",
        "Referer": original_url,
        "X-Goog-AuthUser": "0",
        "X-Youtube-Bootstrap-Logged-In": "false",
    }
    if bootstrap.client_name:
        headers["X-Youtube-Client-Name"] = bootstrap.client_name
    if bootstrap.client_version:
        headers["X-Youtube-Client-Version"] = bootstrap.client_version
    if bootstrap.visitor_data:
        headers["X-Goog-Visitor-Id"] = bootstrap.visitor_data
    if bootstrap.page_cl is not None:
        headers["X-Youtube-Page-CL"] = str(bootstrap.page_cl)
    if bootstrap.page_label:
        headers["X-Youtube-Page-Label"] = bootstrap.page_label
    return headers


def context_with_url(context: dict[str, Any], original_url: str) -> dict[str, Any]:
    client = context.get("client")
    client = dict(client) if isinstance(client, dict) else {}
    client["originalUrl"] = original_url
    return {**context, "client": client}


def parse_timestamp_ms(value: Any) -> int | None:
    """Millisecond offsets arrive as strings or numbers."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value >= 0 else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return int(parsed) if parsed >= 0 else None
    return None


def parse_transcript_panel(data: Any) -> TimedTranscript | None:
    """Pull segments out of a ``get_transcript`` response."""
    panel_path: list[str | int] = [
        "actions",
        0,
        "updateEngagementPanelAction",
        "content",
        "transcriptRenderer",
        "content",
        "transcriptSearchPanelRenderer",
        "body",
        "transcriptSegmentListRenderer",
        "initialSegments",
    ]
    segment_list = get_list(data, panel_path)
    if not segment_list:
        log_schema_drift("youtubei get_transcript", "initialSegments not found")
        return None

    lines: list[str] = []
    segments: list[TranscriptSegment] = []
    for item in segment_list:
        renderer = get_dict(item, ["transcriptSegmentRenderer"])
        if renderer is None:
            continue
        runs = get_list(renderer, ["snippet", "runs"])
        text = "".join(
            run["text"] for run in runs if isinstance(run, dict) and isinstance(run.get("text"), str)
        ).strip()
        if not text:
            continue
        lines.append(text)
        start_ms = parse_timestamp_ms(renderer.get("startMs"))
        if start_ms is not None:
            segments.append(
                TranscriptSegment(
                    start_ms=start_ms,
                    duration_ms=parse_timestamp_ms(renderer.get("durationMs")),
                    text=" ".join(text.split()),
                )
            )

    if not lines:
        return None
    return TimedTranscript(text="\n".join(lines), segments=segments or None)


async def fetch_youtubei_transcript(
    client: httpx.AsyncClient,
    bootstrap: YoutubeBootstrap,
    original_url: str,
    *,
    timeout: float,
) -> TimedTranscript | None:
    """POST the transcript params back to ``get_transcript``.

    Returns None when the page did not expose the required bootstrap values.
    Request failures propagate as classified request errors.
    """
    if not bootstrap.api_key or not bootstrap.transcript_params:
        logger.debug(f"No youtubei transcript params on {original_url}")
        return None

    body = {
        "context": context_with_url(bootstrap.context, original_url),
        "params": bootstrap.transcript_params,
    }
    data = await post_json(
        client,
        f"{YOUTUBEI_BASE_URL}/get_transcript?key={bootstrap.api_key}",
        body,
        timeout=timeout,
        headers=client_headers(bootstrap, original_url),
    )
    return parse_transcript_panel(data)
