"""Dedup key derivation."""

import hashlib
from typing import Iterable, Optional, Union

from ..models import Article
from .normalize import normalize_url

URL_PREFIX = "u:"
GUID_PREFIX = "g:"
HASH_PREFIX = "h:"


def hash_identity(title: str, published: str, source: str) -> str:
    """SHA-1 of "title::published::source" as hex."""
    raw = f"{title}::{published}::{source}"
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def derive_key(
    article: Union[Article, dict],
    tracking_params: Optional[Iterable[str]] = None,
) -> tuple[str, bool]:
    """
    Get the dedup key for an article.

    Priority:
        1. Link -> "u:<normalized url>"
        2. GUID -> "g:<guid>"
        3. Hash of title + published date + source -> "h:<sha1>"

    Returns:
        (key, ok). ok is False when the article carries no identity at all;
        the key is then empty and the article must be skipped.
    """
    if isinstance(article, dict):
        article = Article.model_validate(article)

    if article.has_link():
        return URL_PREFIX + normalize_url(article.link.strip(), tracking_params), True

    if article.has_guid():
        return GUID_PREFIX + article.guid.strip(), True

    title = article.title or ""
    published = article.published_text()
    source = article.source or ""
    if not (title or published or source):
        return "", False

    return HASH_PREFIX + hash_identity(title, published, source), True
