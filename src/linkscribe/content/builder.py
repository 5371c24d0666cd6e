"""Turn fetched HTML or a Firecrawl payload into a finalized result.

Both builders choose the base text for the page, consult the transcript
dispatcher and hand everything to the finalizer.
"""

import logging

from linkscribe.content.diagnostics import ContentFetchDiagnostics
from linkscribe.content.finalizer import ContentMetadata, finalize
from linkscribe.content.html import (
    JsonLdContent,
    collect_segments,
    detect_primary_video,
    extract_firecrawl_metadata,
    extract_jsonld,
    extract_metadata,
    extract_youtube_short_description,
    is_podcast_like_jsonld_type,
    safe_hostname,
)
from linkscribe.content.models import ResolvedContent, ResolveOptions
from linkscribe.content.platforms import is_podcast_host, is_youtube_url
from linkscribe.deps import FirecrawlPayload, LinkResolverDeps, ReadabilityResult
from linkscribe.transcription.dispatcher import TranscriptDispatcher
from linkscribe.transcription.models import TranscriptResolution
from linkscribe.utils.errors import LinkscribeError
from linkscribe.utils.text import normalize_for_prompt, pick_first_text

logger = logging.getLogger(__name__)

MIN_READABILITY_CHARACTERS = 200
READABILITY_MIN_RATIO = 0.6
MIN_DESCRIPTION_CHARACTERS = 120
DESCRIPTION_MIN_RATIO = 0.6
VIDEO_ONLY_MAX_CHARACTERS = 200


def _prefer_candidate(candidate: str, segments: str) -> bool:
    """Readability output wins when it is substantial and not much shorter than the raw segments."""
    if len(candidate) < MIN_READABILITY_CHARACTERS:
        return False
    return (
        len(segments) < MIN_READABILITY_CHARACTERS
        or len(candidate) >= READABILITY_MIN_RATIO * len(segments)
    )


def _prefer_description(
    description: str | None,
    content: str,
    *,
    url: str,
    jsonld: JsonLdContent | None,
    thin_check: bool = True,
) -> bool:
    if not description or len(description) < MIN_DESCRIPTION_CHARACTERS:
        return False
    if is_podcast_like_jsonld_type(jsonld.type if jsonld else None) or is_podcast_host(url):
        return True
    if not thin_check:
        return False
    return (
        len(content) < MIN_READABILITY_CHARACTERS
        or len(description) >= DESCRIPTION_MIN_RATIO * len(content)
    )


def attach_transcript_diagnostics(
    diagnostics: ContentFetchDiagnostics, resolution: TranscriptResolution
) -> None:
    """Adopt the dispatcher's transcript diagnostics, keeping notes already recorded."""
    if resolution.diagnostics is None:
        return
    earlier = diagnostics.transcript.notes
    diagnostics.transcript = resolution.diagnostics
    diagnostics.transcript.notes[:0] = earlier


async def run_readability(
    deps: LinkResolverDeps, html: str, url: str
) -> ReadabilityResult | None:
    if deps.readability is None:
        return None
    try:
        return await deps.readability.extract(html, url)
    except (LinkscribeError, ValueError) as e:
        logger.debug(f"Readability extractor failed for {url}: {e}")
        return None


async def _convert_markdown(
    deps: LinkResolverDeps,
    url: str,
    html: str,
    readability: ReadabilityResult | None,
    *,
    title: str | None,
    site_name: str | None,
    options: ResolveOptions,
    diagnostics: ContentFetchDiagnostics,
) -> str | None:
    """Markdown for ``format=markdown``; None leaves the plain-text base in place."""
    markdown = diagnostics.markdown
    markdown.requested = True

    if is_youtube_url(url):
        markdown.add_note("markdown", "Skipping Markdown conversion for YouTube URLs", "skipped")
        return None
    if options.markdown_mode == "off":
        markdown.add_note("markdown", "Markdown conversion disabled", "skipped")
        return None
    if deps.markdown_converter is None:
        markdown.add_note("markdown", "No HTML→Markdown converter configured", "skipped")
        return None

    source_html = html
    if options.markdown_mode == "readability" and readability and readability.html:
        source_html = readability.html
        markdown.add_note("markdown", "Readability HTML used for markdown input")

    try:
        converted = await deps.markdown_converter.convert(
            url=url,
            html=source_html,
            title=title,
            site_name=site_name,
            timeout=options.timeout_seconds,
        )
    except (LinkscribeError, ValueError) as e:
        logger.warning(f"Markdown conversion failed for {url}: {e}")
        markdown.add_note("markdown", f"HTML→Markdown conversion failed: {e}", "error")
        return None

    normalized = normalize_for_prompt(converted or "")
    if not normalized:
        markdown.add_note(
            "markdown", "HTML→Markdown conversion returned empty content", "soft_fail"
        )
        return None

    markdown.used = True
    markdown.provider = "llm"
    return normalized


async def build_result_from_html(
    deps: LinkResolverDeps,
    dispatcher: TranscriptDispatcher,
    url: str,
    html: str,
    options: ResolveOptions,
    diagnostics: ContentFetchDiagnostics,
) -> ResolvedContent:
    """Build the result for a directly fetched page."""
    page = extract_metadata(html, url)
    jsonld = extract_jsonld(html)
    title = pick_first_text([jsonld.title if jsonld else None, page.title])
    description = pick_first_text([jsonld.description if jsonld else None, page.description])

    segments_text = normalize_for_prompt("\n".join(collect_segments(html)))
    readability = await run_readability(deps, html, url)
    readability_html_text = (
        normalize_for_prompt("\n".join(collect_segments(readability.html)))
        if readability and readability.html
        else ""
    )
    readability_text = normalize_for_prompt(readability.text or "") if readability else ""

    used_readability = True
    if _prefer_candidate(readability_html_text, segments_text):
        effective = readability_html_text
    elif _prefer_candidate(readability_text, segments_text):
        effective = readability_text
    else:
        effective = segments_text
        used_readability = False

    base_content = effective
    if _prefer_description(
        description, effective, url=url, jsonld=jsonld, thin_check=not used_readability
    ):
        base_content = description or effective

    transcript = await dispatcher.resolve(url, html, options)
    attach_transcript_diagnostics(diagnostics, transcript)
    has_transcript = bool(transcript.text and transcript.text.strip())

    if is_youtube_url(url) and not has_transcript:
        short_description = extract_youtube_short_description(html)
        if short_description:
            base_content = normalize_for_prompt(short_description)

    if options.markdown_requested and not has_transcript:
        markdown = await _convert_markdown(
            deps,
            url,
            html,
            readability,
            title=title,
            site_name=page.site_name,
            options=options,
            diagnostics=diagnostics,
        )
        if markdown:
            base_content = markdown
    elif options.markdown_requested:
        diagnostics.markdown.requested = True
        diagnostics.markdown.add_note(
            "markdown", "Transcript replaces page content; Markdown skipped", "skipped"
        )

    video = detect_primary_video(html, url)
    diagnostics.strategy = "html"
    return finalize(
        base_content,
        transcript,
        options.max_characters,
        ContentMetadata(
            url=url,
            diagnostics=diagnostics,
            title=title,
            description=description,
            site_name=page.site_name,
            video=video,
            is_video_only=(
                not has_transcript
                and len(base_content) < VIDEO_ONLY_MAX_CHARACTERS
                and video is not None
            ),
            strip_title=base_content == segments_text,
        ),
    )


async def build_result_from_firecrawl(
    deps: LinkResolverDeps,
    dispatcher: TranscriptDispatcher,
    url: str,
    payload: FirecrawlPayload,
    options: ResolveOptions,
    diagnostics: ContentFetchDiagnostics,
) -> ResolvedContent | None:
    """Build the result from a Firecrawl scrape; None when it has no usable text."""
    firecrawl = diagnostics.firecrawl
    markdown_text = normalize_for_prompt(payload.markdown or "")
    if not markdown_text:
        firecrawl.add_note(
            "firecrawl", "Firecrawl markdown normalization yielded empty text", "soft_fail"
        )
        return None

    html = payload.html
    page = extract_metadata(html, url) if html else None
    jsonld = extract_jsonld(html) if html else None
    scraped = extract_firecrawl_metadata(payload.metadata)

    title = pick_first_text(
        [jsonld.title if jsonld else None, scraped.title, page.title if page else None]
    )
    description = pick_first_text(
        [
            jsonld.description if jsonld else None,
            scraped.description,
            page.description if page else None,
        ]
    )
    site_name = pick_first_text(
        [scraped.site_name, page.site_name if page else None, safe_hostname(url)]
    )

    base_content = markdown_text
    if _prefer_description(description, markdown_text, url=url, jsonld=jsonld):
        base_content = normalize_for_prompt(description or "")
    if not base_content:
        firecrawl.add_note(
            "firecrawl",
            "Firecrawl produced content that normalized to an empty string",
            "soft_fail",
        )
        return None

    transcript = await dispatcher.resolve(url, html, options)
    attach_transcript_diagnostics(diagnostics, transcript)
    has_transcript = bool(transcript.text and transcript.text.strip())

    firecrawl.used = True
    diagnostics.strategy = "firecrawl"
    diagnostics.markdown.requested = options.markdown_requested
    diagnostics.markdown.used = True
    diagnostics.markdown.provider = "firecrawl"

    video = detect_primary_video(html, url) if html else None
    logger.info(f"Using Firecrawl content for {url}")
    return finalize(
        base_content,
        transcript,
        options.max_characters,
        ContentMetadata(
            url=url,
            diagnostics=diagnostics,
            title=title,
            description=description,
            site_name=site_name,
            video=video,
            is_video_only=(
                not has_transcript
                and len(base_content) < VIDEO_ONLY_MAX_CHARACTERS
                and video is not None
            ),
        ),
    )
