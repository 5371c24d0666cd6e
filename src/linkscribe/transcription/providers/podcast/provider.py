"""Podcast transcript provider.

Creator-published transcripts (``<podcast:transcript>``) always win over
transcribing audio. Entry paths, in order:

1. Spotify episode URLs: embed page, embed audio, then the show's RSS feed
   found through iTunes search, then iTunes episode search.
2. Apple Podcasts URLs without page HTML: iTunes lookup.
3. Pages embedding ``feedUrl``/``streamUrl`` JSON values.
4. The page (or URL) being an RSS/Atom feed itself.
5. An ``og:audio`` URL.
"""

import logging
from typing import Any

from linkscribe.content.diagnostics import TranscriptSource
from linkscribe.content.html import extract_og_audio
from linkscribe.content.platforms import (
    extract_apple_podcast_ids,
    extract_spotify_episode_id,
    is_podcast_platform_url,
    looks_like_feed_url,
)
from linkscribe.feeds import (
    FeedTranscript,
    RSSParser,
    TranscriptLink,
    has_transcript_hint,
    looks_like_feed,
    match_item_by_title,
    select_transcript_link,
    transcript_from_body,
)
from linkscribe.transcription.media import MediaTranscription, transcribe_media_url
from linkscribe.transcription.models import ProviderResult
from linkscribe.transcription.providers.base import (
    ProviderContext,
    TranscriptProvider,
    unavailable_result,
)
from linkscribe.transcription.providers.podcast.apple import (
    extract_apple_episode_title,
    extract_embedded_json_url,
)
from linkscribe.transcription.providers.podcast.itunes import (
    lookup_apple_episode,
    search_episode,
    search_feed_url,
)
from linkscribe.transcription.providers.podcast.spotify import (
    extract_spotify_embed_data,
    fetch_spotify_embed_html,
    is_preview_clip,
)
from linkscribe.utils.errors import (
    LinkscribeError,
    MissingCredentialsError,
    ProviderExhaustedError,
)
from linkscribe.utils.http import REQUEST_ERRORS, describe_error, send_request
from linkscribe.utils.text import normalize_loose_title, normalize_transcript_text

logger = logging.getLogger(__name__)

TRANSCRIPT_ACCEPT = "text/vtt,text/plain,application/json;q=0.9,*/*;q=0.8"
MISSING_TRANSCRIBER = (
    "Missing transcription provider (set GROQ_API_KEY, OPENAI_API_KEY or FAL_KEY)"
)

# Failure steps named in exhaustion errors
LOOKUP = "lookup"
FEED_FETCH = "feed fetch"
TRANSCRIPT_PARSE = "transcript parse"
ENCLOSURE_TRANSCRIPTION = "enclosure transcription"

LOOKUP_ERRORS = (*REQUEST_ERRORS, ValueError)


class PodcastFlow:
    """Bookkeeping for one podcast resolve: attempts, failures and notes."""

    def __init__(self, context: ProviderContext):
        self.context = context
        self.attempted: list[TranscriptSource] = []
        self.failures: list[str] = []
        self.audio_attempts = 0
        self.missing_transcriber = False

    def push_once(self, source: TranscriptSource) -> None:
        if source not in self.attempted:
            self.attempted.append(source)

    def note(self, message: str) -> None:
        self.context.note("podcast", message)

    def fail(self, step: str, message: str) -> None:
        logger.warning(f"Podcast {step} failed for {self.context.url}: {message}")
        self.context.note(step, message, "soft_fail")
        self.failures.append(f"{step}: {message}")

    def _metadata(self, kind: str, extra: dict[str, Any]) -> dict[str, Any]:
        metadata = {"provider": "podcast", "kind": kind}
        metadata.update({key: value for key, value in extra.items() if value is not None})
        return metadata

    def transcript_result(
        self, transcript: FeedTranscript, link: TranscriptLink, kind: str, **extra: Any
    ) -> ProviderResult:
        metadata = self._metadata(
            kind, {**extra, "transcript_url": link.url, "transcript_type": link.type}
        )
        if self.context.options.transcript_timestamps and not transcript.segments:
            metadata["timestamps"] = False
        return ProviderResult(
            text=normalize_transcript_text(transcript.text),
            source="podcastTranscript",
            metadata=metadata,
            segments=transcript.segments,
            attempted_providers=list(self.attempted),
            notes=list(self.context.notes),
        )

    def whisper_result(self, media: MediaTranscription, kind: str, **extra: Any) -> ProviderResult:
        metadata = self._metadata(kind, {**extra, "transcription_provider": media.provider_id})
        if self.context.options.transcript_timestamps:
            metadata["timestamps"] = False
        return ProviderResult(
            text=normalize_transcript_text(media.text or ""),
            source="whisper",
            metadata=metadata,
            attempted_providers=list(self.attempted),
            notes=list(self.context.notes),
        )


class PodcastProvider(TranscriptProvider):
    """RSS transcripts first, then transcription of the episode audio."""

    NAME = "podcast"

    def __init__(self, parser: RSSParser | None = None):
        self.parser = parser or RSSParser()

    def can_handle(self, url: str, html: str | None) -> bool:
        return (
            is_podcast_platform_url(url)
            or looks_like_feed_url(url)
            or (html is not None and looks_like_feed(html))
        )

    def resource_key(self, url: str) -> str:
        spotify_id = extract_spotify_episode_id(url)
        if spotify_id:
            return f"spotify:{spotify_id}"
        apple = extract_apple_podcast_ids(url)
        if apple:
            return f"apple:{apple.show_id}:{apple.episode_id or 'latest'}"
        return url

    async def fetch(self, context: ProviderContext) -> ProviderResult:
        flow = PodcastFlow(context)
        platform = False
        result: ProviderResult | None = None

        spotify_id = extract_spotify_episode_id(context.url)
        apple_ids = extract_apple_podcast_ids(context.url)
        html = context.html

        if spotify_id:
            platform = True
            result = await self._spotify(flow, spotify_id)
        else:
            if apple_ids and html is None:
                platform = True
                result = await self._apple_lookup(flow, apple_ids.show_id, apple_ids.episode_id)
            if result is None and html is not None:
                result = await self._embedded_page(flow, html)
            if result is None and not platform:
                result = await self._feed_document(flow, html)
            if result is None and html is not None:
                result = await self._og_audio(flow, html)

        if result is not None:
            return result

        if flow.missing_transcriber and platform:
            raise MissingCredentialsError(f"{MISSING_TRANSCRIBER} for podcast audio")

        if flow.failures:
            if platform:
                raise ProviderExhaustedError(
                    f"Podcast transcript unavailable ({'; '.join(flow.failures)})"
                )
            return unavailable_result(
                context,
                flow.attempted,
                {"provider": "podcast", "reason": "podcast_steps_failed"},
            )

        reason = "missing_transcription_provider" if flow.missing_transcriber else "no_podcast_source"
        return ProviderResult(
            source=None,
            metadata={"provider": "podcast", "reason": reason},
            attempted_providers=flow.attempted,
            notes=list(context.notes),
        )

    async def _fetch_feed(self, flow: PodcastFlow, feed_url: str) -> str:
        response = await send_request(
            flow.context.deps.http, "GET", feed_url, timeout=flow.context.timeout
        )
        return response.text

    async def _feed_transcript(
        self, flow: PodcastFlow, feed_xml: str, episode_title: str | None
    ) -> tuple[FeedTranscript, TranscriptLink] | None:
        """Fetch the episode's ``<podcast:transcript>``.

        With a target title only that item is considered and its failure
        ends the search; without one, items are tried until one decodes.
        """
        if not has_transcript_hint(feed_xml):
            return None
        flow.push_once("podcastTranscript")

        feed = self.parser.parse(feed_xml)
        items = feed.items
        if episode_title:
            target = normalize_loose_title(episode_title)
            items = [item for item in feed.items if item.loose_title == target][:1]

        for item in items:
            link = select_transcript_link(item.transcripts)
            if link is None:
                if episode_title:
                    return None
                continue
            try:
                response = await send_request(
                    flow.context.deps.http,
                    "GET",
                    link.url,
                    timeout=flow.context.timeout,
                    headers={"Accept": TRANSCRIPT_ACCEPT},
                )
            except REQUEST_ERRORS as e:
                message = f"RSS <podcast:transcript> fetch failed: {describe_error(e)}"
                if episode_title:
                    flow.fail(TRANSCRIPT_PARSE, message)
                    return None
                flow.note(message)
                continue

            content_type = response.headers.get("content-type")
            media_type = content_type.split(";")[0].strip().lower() if content_type else None
            transcript = transcript_from_body(response.text, link, media_type)
            if transcript is None:
                if episode_title:
                    flow.fail(TRANSCRIPT_PARSE, "RSS <podcast:transcript> was empty or unparseable")
                    return None
                continue

            flow.note("Used RSS <podcast:transcript> (skipped Whisper)")
            return transcript, link
        return None

    async def _transcribe(
        self, flow: PodcastFlow, media_url: str, duration: float | None
    ) -> MediaTranscription:
        """Transcribe one audio URL; check ``.text`` for success."""
        deps = flow.context.deps
        if not deps.can_transcribe:
            flow.missing_transcriber = True
            flow.context.note("transcription", MISSING_TRANSCRIBER, "skipped")
            return MediaTranscription(error=MISSING_TRANSCRIBER)

        flow.push_once("whisper")
        flow.audio_attempts += 1
        media = await transcribe_media_url(
            deps,
            media_url,
            page_url=flow.context.url,
            service=self.NAME,
            duration_hint=duration,
        )
        flow.context.notes.extend(media.notes)
        if not media.text:
            flow.failures.append(f"{ENCLOSURE_TRANSCRIPTION}: {media.error or 'no text'}")
        return media

    async def _from_feed(
        self,
        flow: PodcastFlow,
        feed_xml: str,
        episode_title: str | None,
        kind: str,
        **extra: Any,
    ) -> ProviderResult | None:
        """Transcript tag first, then the matched enclosure."""
        found = await self._feed_transcript(flow, feed_xml, episode_title)
        if found is not None:
            transcript, link = found
            return flow.transcript_result(
                transcript, link, f"{kind}_transcript", episode_title=episode_title, **extra
            )

        item = match_item_by_title(self.parser.parse(feed_xml), episode_title)
        if item is None or item.enclosure is None:
            target = f' for "{episode_title}"' if episode_title else ""
            flow.fail(ENCLOSURE_TRANSCRIPTION, f"Episode enclosure not found in RSS feed{target}")
            return None

        media = await self._transcribe(flow, item.enclosure.url, item.duration_seconds)
        if not media.text:
            return None
        return flow.whisper_result(
            media,
            f"{kind}_enclosure",
            episode_title=item.title or episode_title,
            enclosure_url=item.enclosure.url,
            duration_seconds=item.duration_seconds,
            **extra,
        )

    async def _spotify(self, flow: PodcastFlow, episode_id: str) -> ProviderResult | None:
        context = flow.context
        try:
            embed_html, via = await fetch_spotify_embed_html(
                context.deps, episode_id, timeout=context.timeout
            )
        except LinkscribeError as e:
            flow.fail(LOOKUP, f"Spotify episode fetch failed: {e}")
            return None

        embed = extract_spotify_embed_data(embed_html)
        if embed is None:
            flow.fail(LOOKUP, "Spotify embed data not found (missing __NEXT_DATA__)")
            return None

        base = {
            "episode_id": episode_id,
            "show_title": embed.show_title,
            "episode_title": embed.episode_title,
        }

        if embed.audio_url:
            media = await self._transcribe(flow, embed.audio_url, embed.duration_seconds)
            if media.text:
                characters = len(media.text.strip())
                if not is_preview_clip(characters, embed.duration_seconds):
                    flow.note(
                        "Resolved Spotify embed audio via Firecrawl"
                        if via == "firecrawl"
                        else "Resolved Spotify embed audio"
                    )
                    return flow.whisper_result(
                        media,
                        "spotify_embed_audio",
                        audio_url=embed.audio_url,
                        duration_seconds=embed.duration_seconds,
                        drm_format=embed.drm_format,
                        **base,
                    )
                flow.note(
                    f"Spotify embed audio looked like a short clip ({characters} chars); "
                    "falling back to iTunes RSS"
                )
            else:
                flow.note(
                    "Spotify embed audio transcription failed; falling back to iTunes RSS: "
                    f"{media.error or 'unknown error'}"
                )

        try:
            feed_url = await search_feed_url(
                context.deps.http, embed.show_title, timeout=context.timeout
            )
        except LOOKUP_ERRORS as e:
            flow.fail(LOOKUP, f"iTunes search failed: {describe_error(e)}")
            feed_url = None

        if feed_url:
            audio_attempts = flow.audio_attempts
            try:
                feed_xml = await self._fetch_feed(flow, feed_url)
            except REQUEST_ERRORS as e:
                flow.fail(FEED_FETCH, f"Podcast feed fetch failed: {describe_error(e)}")
            else:
                result = await self._from_feed(
                    flow,
                    feed_xml,
                    embed.episode_title,
                    "spotify_itunes_rss",
                    feed_url=feed_url,
                    episode_id=episode_id,
                    show_title=embed.show_title,
                )
                if result is not None:
                    if result.source == "whisper":
                        flow.note(
                            "Resolved Spotify episode via Firecrawl embed + iTunes RSS"
                            if via == "firecrawl"
                            else "Resolved Spotify episode via iTunes RSS"
                        )
                        result.notes = list(context.notes)
                    return result
                # The feed's enclosure was found but could not be transcribed
                if flow.audio_attempts > audio_attempts:
                    return None

        try:
            episode = await search_episode(
                context.deps.http, embed.show_title, embed.episode_title, timeout=context.timeout
            )
        except LOOKUP_ERRORS as e:
            flow.fail(LOOKUP, f"iTunes episode search failed: {describe_error(e)}")
            return None
        if episode is None:
            if feed_url:
                flow.fail(
                    LOOKUP, f'iTunes episode search found nothing for "{embed.episode_title}"'
                )
            else:
                flow.fail(
                    LOOKUP,
                    "Spotify episode audio appears DRM-protected; could not resolve RSS feed "
                    f'via iTunes Search API for show "{embed.show_title}"',
                )
            return None

        media = await self._transcribe(flow, episode.episode_url, episode.duration_seconds)
        if not media.text:
            return None
        flow.note("Resolved Spotify episode via iTunes episode search")
        return flow.whisper_result(
            media,
            "spotify_itunes_search_episode",
            episode_url=episode.episode_url,
            duration_seconds=episode.duration_seconds,
            **{**base, "episode_title": episode.episode_title},
        )

    async def _apple_lookup(
        self, flow: PodcastFlow, show_id: str, episode_id: str | None
    ) -> ProviderResult | None:
        context = flow.context
        try:
            episode = await lookup_apple_episode(
                context.deps.http, show_id, episode_id, timeout=context.timeout
            )
        except LOOKUP_ERRORS as e:
            flow.fail(LOOKUP, f"Apple Podcasts iTunes lookup failed: {describe_error(e)}")
            return None
        if episode is None:
            flow.fail(LOOKUP, "iTunes lookup did not return an episode URL")
            return None

        base = {"show_id": show_id, "episode_id": episode_id, "feed_url": episode.feed_url}

        if episode.feed_url and episode.episode_title:
            try:
                feed_xml = await self._fetch_feed(flow, episode.feed_url)
            except REQUEST_ERRORS as e:
                flow.fail(FEED_FETCH, f"Podcast feed fetch failed: {describe_error(e)}")
            else:
                found = await self._feed_transcript(flow, feed_xml, episode.episode_title)
                if found is not None:
                    flow.note("Resolved Apple Podcasts episode via RSS <podcast:transcript>")
                    transcript, link = found
                    return flow.transcript_result(
                        transcript,
                        link,
                        "apple_itunes_rss_transcript",
                        episode_title=episode.episode_title,
                        **base,
                    )

        media = await self._transcribe(flow, episode.episode_url, episode.duration_seconds)
        if not media.text:
            return None
        flow.note("Resolved Apple Podcasts episode via iTunes lookup")
        return flow.whisper_result(
            media,
            "apple_itunes_episode",
            episode_url=episode.episode_url,
            episode_title=episode.episode_title,
            duration_seconds=episode.duration_seconds,
            **base,
        )

    async def _embedded_page(self, flow: PodcastFlow, html: str) -> ProviderResult | None:
        feed_url = extract_embedded_json_url(html, "feedUrl")
        stream_url = extract_embedded_json_url(html, "streamUrl")
        if not feed_url and not stream_url:
            return None

        episode_title = extract_apple_episode_title(html)
        audio_attempts = flow.audio_attempts

        if feed_url:
            try:
                feed_xml = await self._fetch_feed(flow, feed_url)
            except REQUEST_ERRORS as e:
                # The stream URL is usually present as well
                flow.fail(FEED_FETCH, f"Podcast feed fetch failed: {describe_error(e)}")
            else:
                result = await self._from_feed(
                    flow, feed_xml, episode_title, "apple_feed", feed_url=feed_url
                )
                if result is not None:
                    return result

        if stream_url and flow.audio_attempts == audio_attempts:
            media = await self._transcribe(flow, stream_url, None)
            if media.text:
                return flow.whisper_result(media, "apple_stream_url", stream_url=stream_url)
        return None

    async def _feed_document(self, flow: PodcastFlow, html: str | None) -> ProviderResult | None:
        url = flow.context.url
        feed_xml = html if html is not None and looks_like_feed(html) else None
        if feed_xml is None and html is None and looks_like_feed_url(url):
            try:
                fetched = await self._fetch_feed(flow, url)
            except REQUEST_ERRORS as e:
                flow.fail(FEED_FETCH, f"Podcast feed fetch failed: {describe_error(e)}")
                return None
            feed_xml = fetched if looks_like_feed(fetched) else None
        if feed_xml is None:
            return None
        return await self._from_feed(flow, feed_xml, None, "rss_feed", feed_url=url)

    async def _og_audio(self, flow: PodcastFlow, html: str) -> ProviderResult | None:
        audio_url = extract_og_audio(html, flow.context.url)
        if not audio_url:
            return None
        media = await self._transcribe(flow, audio_url, None)
        if not media.text:
            return None
        return flow.whisper_result(media, "og_audio", audio_url=audio_url)
