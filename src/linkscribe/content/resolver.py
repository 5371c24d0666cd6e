"""Link resolution orchestrator.

Decides which path produces the text for a link: podcast platform
short-circuit, bird/Nitter for tweets, then Firecrawl or the direct HTML
fetch for everything that is left.
"""

import asyncio
import logging

from linkscribe.content.blocking import is_anubis_html, is_blocked_twitter_content
from linkscribe.content.builder import (
    MIN_READABILITY_CHARACTERS,
    attach_transcript_diagnostics,
    build_result_from_firecrawl,
    build_result_from_html,
    run_readability,
)
from linkscribe.content.diagnostics import ContentFetchDiagnostics, initial_cache_status
from linkscribe.content.fetcher import fetch_html_document
from linkscribe.content.finalizer import ContentMetadata, finalize
from linkscribe.content.firecrawl import fetch_with_firecrawl, should_fallback
from linkscribe.content.html import extract_article_content, safe_hostname
from linkscribe.content.models import ResolvedContent, ResolveOptions
from linkscribe.content.platforms import (
    extract_apple_podcast_ids,
    extract_spotify_episode_id,
    extract_youtube_video_id,
    is_twitter_status_url,
    is_youtube_video_url,
    to_nitter_urls,
)
from linkscribe.deps import LinkResolverDeps, ProgressKind
from linkscribe.transcription.dispatcher import TranscriptDispatcher
from linkscribe.utils.errors import (
    BlockedContentError,
    ContentEmptyError,
    FetchError,
    LinkscribeError,
    MissingCredentialsError,
    NetworkError,
    ProviderExhaustedError,
)
from linkscribe.utils.http import BROWSER_HEADERS, REQUEST_ERRORS, describe_error, get_text
from linkscribe.utils.json_access import get_str
from linkscribe.utils.text import normalize_for_prompt

logger = logging.getLogger(__name__)

TRANSCRIBER_ENV_HINT = "set GROQ_API_KEY, OPENAI_API_KEY or FAL_KEY"


class LinkContentResolver:
    """Resolves a URL to the best available text plus diagnostics.

    Example:
        >>> resolver = LinkContentResolver(deps)
        >>> result = await resolver.resolve("https://example.com")
        >>> result.diagnostics.strategy
        'html'
    """

    def __init__(
        self,
        deps: LinkResolverDeps,
        dispatcher: TranscriptDispatcher | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            deps: Collaborators for this resolver
            dispatcher: Transcript dispatcher (defaults to the built-in provider table)
        """
        self.deps = deps
        self.dispatcher = dispatcher or TranscriptDispatcher(deps)

    async def resolve(self, url: str, options: ResolveOptions | None = None) -> ResolvedContent:
        """Resolve ``url`` to text.

        Args:
            url: Absolute http(s) URL
            options: Per-call options (defaults apply when omitted)

        Returns:
            Resolved content with diagnostics

        Raises:
            FetchError: If every strategy failed or the overall timeout expired
            BlockedContentError: If every tweet source returned X's blocked page
            MissingCredentialsError: If a podcast platform needs a transcriber that is not configured
            ProviderExhaustedError: If a podcast platform transcript could not be produced
            ContentEmptyError: For YouTube video URLs without a valid video id
        """
        options = options or ResolveOptions()
        diagnostics = self._new_diagnostics(options)

        if options.overall_timeout_seconds is None:
            return await self._resolve(url, options, diagnostics)

        try:
            return await asyncio.wait_for(
                self._resolve(url, options, diagnostics),
                timeout=options.overall_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Resolving {url} exceeded {options.overall_timeout_seconds}s")
            raise FetchError(
                f"Resolving link timed out after {options.overall_timeout_seconds:g}s",
                diagnostics,
            ) from e

    @staticmethod
    def _new_diagnostics(options: ResolveOptions) -> ContentFetchDiagnostics:
        diagnostics = ContentFetchDiagnostics()
        diagnostics.firecrawl.cache_mode = options.cache_mode
        diagnostics.firecrawl.cache_status = initial_cache_status(options.cache_mode)
        diagnostics.transcript.cache_mode = options.cache_mode
        diagnostics.transcript.cache_status = initial_cache_status(options.cache_mode)
        diagnostics.markdown.requested = options.markdown_requested
        return diagnostics

    async def _resolve(
        self, url: str, options: ResolveOptions, diagnostics: ContentFetchDiagnostics
    ) -> ResolvedContent:
        if is_youtube_video_url(url) and extract_youtube_video_id(url) is None:
            raise ContentEmptyError("Invalid YouTube video id in URL")

        if extract_spotify_episode_id(url):
            return await self._podcast_short_circuit(url, options, diagnostics, "Spotify")
        if extract_apple_podcast_ids(url):
            return await self._podcast_short_circuit(url, options, diagnostics, "Apple Podcasts")

        tweet_failure: str | None = None
        if is_twitter_status_url(url):
            result, tweet_failure = await self._resolve_tweet(url, options, diagnostics)
            if result is not None:
                return result

        firecrawl_tried = False
        if options.firecrawl == "always":
            diagnostics.firecrawl.add_note("firecrawl", "Firecrawl forced via options")
            firecrawl_tried = True
            result = await self._attempt_firecrawl(url, options, diagnostics, "forced")
            if result is not None:
                return result

        try:
            html = await fetch_html_document(self.deps, url, timeout=options.timeout_seconds)
        except (NetworkError, ContentEmptyError) as e:
            if firecrawl_tried or options.firecrawl == "off" or self.deps.firecrawl is None:
                raise
            logger.info(f"HTML fetch failed for {url}; trying Firecrawl: {e}")
            diagnostics.firecrawl.add_note(
                "html", "HTML fetch failed; falling back to Firecrawl", "soft_fail"
            )
            result = await self._attempt_firecrawl(url, options, diagnostics, "html-error")
            if result is not None:
                return result
            raise FetchError(
                "Failed to fetch HTML document; "
                f"Firecrawl notes: {diagnostics.firecrawl.notes_text or 'none'}; "
                f"HTML error: {describe_error(e)}",
                diagnostics,
            ) from e

        if (
            options.firecrawl == "auto"
            and not firecrawl_tried
            and self.deps.firecrawl is not None
            and should_fallback(html)
        ):
            readability = await run_readability(self.deps, html, url)
            readability_text = normalize_for_prompt(
                (readability.text or "") if readability else ""
            )
            if len(readability_text) < MIN_READABILITY_CHARACTERS:
                diagnostics.firecrawl.add_note(
                    "html", "HTML content looked blocked/thin; falling back to Firecrawl"
                )
                result = await self._attempt_firecrawl(url, options, diagnostics, "thin-html")
                if result is not None:
                    return result

        result = await build_result_from_html(
            self.deps, self.dispatcher, url, html, options, diagnostics
        )
        if tweet_failure is not None and is_blocked_twitter_content(result.content):
            raise BlockedContentError(tweet_failure)
        return result

    async def _attempt_firecrawl(
        self,
        url: str,
        options: ResolveOptions,
        diagnostics: ContentFetchDiagnostics,
        reason: str,
    ) -> ResolvedContent | None:
        attempt = await fetch_with_firecrawl(
            self.deps,
            url,
            timeout=options.timeout_seconds,
            cache_mode=options.cache_mode,
            reason=reason,
        )
        attempt.diagnostics.notes[:0] = diagnostics.firecrawl.notes
        diagnostics.firecrawl = attempt.diagnostics
        if attempt.payload is None:
            return None

        result = await build_result_from_firecrawl(
            self.deps, self.dispatcher, url, attempt.payload, options, diagnostics
        )
        if result is None:
            diagnostics.firecrawl.add_note(
                "firecrawl", "Firecrawl returned empty content", "soft_fail"
            )
        return result

    async def _podcast_short_circuit(
        self,
        url: str,
        options: ResolveOptions,
        diagnostics: ContentFetchDiagnostics,
        site_name: str,
    ) -> ResolvedContent:
        """Transcript-only path for Spotify and Apple Podcasts episodes.

        Their pages are captcha walls or app shells, so HTML and Firecrawl
        are never attempted.
        """
        if not self.deps.has_transcription_credentials:
            raise MissingCredentialsError(
                f"{site_name} episodes need a transcription provider; {TRANSCRIBER_ENV_HINT}"
            )

        if site_name == "Spotify":
            diagnostics.firecrawl.add_note(
                "firecrawl", "Spotify short-circuit skipped HTML/Firecrawl", "skipped"
            )
            diagnostics.markdown.add_note(
                "markdown", "Spotify short-circuit uses transcript content", "skipped"
            )
            skip_note = "Spotify episode: skipped HTML fetch to avoid captcha pages"
        else:
            skip_note = "Apple Podcasts: skipped HTML fetch (prefer iTunes lookup / enclosures)"

        transcript = await self.dispatcher.resolve(url, None, options)
        attach_transcript_diagnostics(diagnostics, transcript)
        diagnostics.transcript.add_note("podcast", skip_note, "skipped")

        if not (transcript.text and transcript.text.strip()):
            notes = diagnostics.transcript.notes_text or "no transcript notes"
            raise ProviderExhaustedError(f"{site_name} transcript unavailable ({notes})")

        diagnostics.strategy = "html"
        return finalize(
            "",
            transcript,
            options.max_characters,
            ContentMetadata(
                url=url,
                diagnostics=diagnostics,
                title=get_str(transcript.metadata, ["episode_title"]),
                site_name=site_name,
            ),
        )

    async def _resolve_tweet(
        self, url: str, options: ResolveOptions, diagnostics: ContentFetchDiagnostics
    ) -> tuple[ResolvedContent | None, str]:
        """Read a tweet through bird, then Nitter mirrors.

        Returns:
            The result, or None plus the failure message used if the
            ordinary HTML path also yields X's blocked page
        """
        result, bird_note = await self._try_bird(url, options, diagnostics)
        if result is not None:
            return result, bird_note

        result, nitter_note = await self._try_nitter(url, options, diagnostics)
        if result is not None:
            return result, nitter_note

        logger.info(f"Bird and Nitter failed for {url}; trying the page itself")
        return None, f"Unable to fetch tweet content from X. {bird_note}. {nitter_note}."

    async def _try_bird(
        self, url: str, options: ResolveOptions, diagnostics: ContentFetchDiagnostics
    ) -> tuple[ResolvedContent | None, str]:
        bird = self.deps.bird
        if bird is None:
            return None, "Bird not available"

        self.deps.emit(ProgressKind.BIRD_START, url)
        try:
            tweet = await bird.read_tweet(url, timeout=options.timeout_seconds)
        except (LinkscribeError, OSError, ValueError) as e:
            logger.warning(f"Bird failed for {url}: {e}")
            self.deps.emit(ProgressKind.BIRD_DONE, url, ok=False)
            return None, f"Bird failed: {describe_error(e)}"

        text = normalize_for_prompt(tweet.text) if tweet else ""
        self.deps.emit(ProgressKind.BIRD_DONE, url, ok=bool(text), characters=len(text))
        if not text:
            return None, "Bird returned no text"

        transcript = None
        if options.media_transcript == "prefer":
            transcript = await self.dispatcher.resolve(url, None, options)
            attach_transcript_diagnostics(diagnostics, transcript)

        if options.markdown_requested:
            diagnostics.markdown.add_note(
                "markdown", "Bird tweet fetch provides plain text", "skipped"
            )
        diagnostics.strategy = "bird"
        username = tweet.author_username if tweet else None
        return (
            finalize(
                text,
                transcript,
                options.max_characters,
                ContentMetadata(
                    url=url,
                    diagnostics=diagnostics,
                    title=f"@{username}" if username else None,
                    site_name="X",
                    strip_title=False,
                ),
            ),
            "Bird returned text",
        )

    async def _try_nitter(
        self, url: str, options: ResolveOptions, diagnostics: ContentFetchDiagnostics
    ) -> tuple[ResolvedContent | None, str]:
        mirrors = to_nitter_urls(url)
        if not mirrors:
            return None, "Nitter not available"

        last_note = "Nitter returned no text"
        for mirror in mirrors:
            host = safe_hostname(mirror)
            self.deps.emit(ProgressKind.NITTER_START, url, mirror=mirror)
            try:
                html = await get_text(
                    self.deps.http,
                    mirror,
                    timeout=options.timeout_seconds,
                    headers=BROWSER_HEADERS,
                )
            except REQUEST_ERRORS as e:
                logger.debug(f"Nitter mirror {host} failed for {url}: {e}")
                self.deps.emit(ProgressKind.NITTER_DONE, url, mirror=mirror, ok=False)
                last_note = f"Nitter failed: {describe_error(e)}"
                continue

            if not html.strip():
                last_note = f"Nitter returned empty body from {host}"
            elif is_anubis_html(html):
                last_note = f"Nitter returned Anubis challenge from {host}"
            elif is_blocked_twitter_content(extract_article_content(html)):
                # Checked before build_result_from_html so the dispatcher never sees it
                last_note = "Nitter returned blocked or empty content"
            else:
                result = await build_result_from_html(
                    self.deps, self.dispatcher, url, html, options, diagnostics
                )
                if result.content and not is_blocked_twitter_content(result.content):
                    self.deps.emit(ProgressKind.NITTER_DONE, url, mirror=mirror, ok=True)
                    diagnostics.strategy = "nitter"
                    logger.info(f"Resolved tweet {url} through {host}")
                    return result, "Nitter returned text"
                last_note = "Nitter returned blocked or empty content"

            self.deps.emit(ProgressKind.NITTER_DONE, url, mirror=mirror, ok=False)
            logger.debug(f"Nitter mirror {host} unusable for {url}: {last_note}")

        return None, last_note
