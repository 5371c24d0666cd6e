"""Detection of anti-bot pages, challenge walls and blocked tweet shells."""

import re

BLOCKED_HTML_HINT_PATTERN = re.compile(
    r"access denied|attention required|captcha|cloudflare|enable javascript|forbidden"
    r"|please turn javascript on|verify you are human",
    re.IGNORECASE,
)

TWITTER_BLOCKED_TEXT_PATTERN = re.compile(
    r"something went wrong|try again|privacy related extensions|please disable them and try again",
    re.IGNORECASE,
)

ANUBIS_TOKENS = ("anubis", "proof-of-work", "proof of work", "hashcash", "jshelter")


def looks_blocked(text: str) -> bool:
    """True when page text carries a captcha/Cloudflare/access-denied marker."""
    return bool(BLOCKED_HTML_HINT_PATTERN.search(text))


def is_blocked_twitter_content(content: str) -> bool:
    return bool(content) and bool(TWITTER_BLOCKED_TEXT_PATTERN.search(content))


def is_anubis_html(html: str) -> bool:
    """True for an Anubis proof-of-work interstitial (used by Nitter mirrors)."""
    if not html:
        return False
    lower = html.lower()
    if "anubis" not in lower:
        return False
    return any(token in lower for token in ANUBIS_TOKENS)
