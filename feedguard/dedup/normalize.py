"""URL normalization for dedup keys."""

from typing import Iterable, Optional
from urllib.parse import unquote_plus, urlsplit, urlunsplit

DEFAULT_TRACKING_PARAMS = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
    "igshid",
    "ref",
    "campaign_id",
})


def _lower_host(netloc: str) -> str:
    """Lower-case the host part of a netloc, leaving userinfo alone."""
    userinfo, sep, hostport = netloc.rpartition("@")
    return f"{userinfo}{sep}{hostport.lower()}"


def _strip_params(query: str, denylist: frozenset) -> str:
    """Drop denylisted parameters, keeping the rest in order and as written."""
    kept = []
    for part in query.split("&"):
        if not part:
            continue
        name = unquote_plus(part.split("=", 1)[0])
        if name in denylist:
            continue
        kept.append(part)
    return "&".join(kept)


def normalize_url(raw: str, tracking_params: Optional[Iterable[str]] = None) -> str:
    """
    Canonicalize an article URL for comparison.

    - Remove fragment
    - Lowercase hostname (scheme, userinfo and path untouched)
    - Strip trailing slashes from the path
    - Remove tracking query parameters
    - Keep remaining query parameters in their original order

    Best effort: input without scheme/host, or that urllib refuses to parse,
    comes back unchanged.

    Examples:
        "https://Example.com/a/?utm_source=x&id=5#top" -> "https://example.com/a?id=5"
        "not a url" -> "not a url"
    """
    if not raw:
        return raw

    denylist = frozenset(tracking_params) if tracking_params is not None else DEFAULT_TRACKING_PARAMS

    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw

    if not parts.scheme or not parts.netloc:
        return raw

    netloc = _lower_host(parts.netloc)
    path = parts.path.rstrip("/")
    query = _strip_params(parts.query, denylist)

    return urlunsplit((parts.scheme, netloc, path, query, ""))
