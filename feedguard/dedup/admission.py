"""Admission: decide which articles go downstream."""

import logging
from collections import Counter
from datetime import datetime
from typing import Iterable, Optional, Union

from pydantic import ValidationError

from ..models import AdmissionResult, Article, RejectReason
from .keys import derive_key
from .store import StateStore

logger = logging.getLogger(__name__)


def admit(
    store: StateStore,
    article: Union[Article, dict],
    now: Optional[datetime] = None,
    tracking_params: Optional[Iterable[str]] = None,
) -> AdmissionResult:
    """
    Admit one article, reserving its key on success.

    The posted check, pending check and reservation run as one locked unit,
    so two pollers racing on the same new key cannot both win.

    Args:
        store: Shared state store
        article: Article model or raw dict
        now: Decision time, defaults to the store clock
        tracking_params: Override for the URL normalization denylist

    Returns:
        AdmissionResult; on acceptance its article carries dedupe_key.
        Input that is not a valid article is rejected as invalid and
        reserves nothing.
    """
    if not isinstance(article, Article):
        try:
            article = Article.model_validate(article)
        except ValidationError as e:
            logger.warning(f"Skip invalid article {article!r}: {e.error_count()} validation errors")
            return AdmissionResult(None, "", False, RejectReason.INVALID)

    key, ok = derive_key(article, tracking_params)
    if not ok:
        logger.info(f"Skip unidentifiable article (no link/guid/title): {article.to_dict()}")
        return AdmissionResult(article, "", False, RejectReason.UNIDENTIFIABLE)

    with store.transaction():
        now = now or store.now()

        if store.is_posted_live(key, now):
            logger.info(f"Skip {key}: duplicate-posted")
            return AdmissionResult(article, key, False, RejectReason.DUPLICATE_POSTED)

        if store.is_pending_live(key, now):
            logger.info(f"Skip {key}: in-flight")
            return AdmissionResult(article, key, False, RejectReason.IN_FLIGHT)

        store.reserve(key, now)

    logger.debug(f"Admitted {key}")
    return AdmissionResult(article.model_copy(update={"dedupe_key": key}), key, True)


def admit_batch(
    store: StateStore,
    articles: Iterable[Union[Article, dict]],
    now: Optional[datetime] = None,
    tracking_params: Optional[Iterable[str]] = None,
) -> tuple[list[Article], list[AdmissionResult]]:
    """
    Admit a batch in arrival order.

    Near-duplicates inside one batch resolve to whichever comes first: its
    reservation makes the later ones in-flight.

    Returns:
        Tuple of (accepted_articles, results)
        - accepted_articles: Articles to forward, each with dedupe_key set
        - results: One AdmissionResult per input, same order
    """
    now = now or store.now()
    results = [admit(store, article, now, tracking_params) for article in articles]
    accepted = [r.article for r in results if r.accepted]

    reasons = Counter(r.reason.value for r in results if not r.accepted)
    logger.info(
        f"Admission batch: {len(results)} in, {len(accepted)} accepted"
        + "".join(f", {n} {reason}" for reason, n in sorted(reasons.items()))
    )
    return accepted, results
