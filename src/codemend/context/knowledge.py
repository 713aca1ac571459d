"""Relevance ranking of stored knowledge entries against a request."""

import re
from dataclasses import dataclass

from codemend.models import KnowledgeEntry, KnowledgeScope, TAG_MARKER

MAX_SURFACED_ENTRIES = 8
EXPLICIT_TAG_WEIGHT = 10.0
KEYWORD_WEIGHT = 5.0
CONTENT_OVERLAP_WEIGHT = 3.0
GLOBAL_SCOPE_WEIGHT = 1.0
USAGE_WEIGHT = 0.1
MIN_OVERLAP_WORD_LENGTH = 4

_WORD = re.compile(r"[a-z0-9_]+")


@dataclass
class RankedKnowledge:
    entry: KnowledgeEntry
    score: float


def _bare_keyword(tag: str) -> str:
    return tag.lstrip(TAG_MARKER)


def _has_explicit_tag(tag: str, text: str) -> bool:
    # "#auth" must not match inside "#authentication"
    return re.search(re.escape(tag) + r"(?![a-z0-9_-])", text) is not None


def score_entry(entry: KnowledgeEntry, request: str) -> float:
    """Score one entry against the request text.

    Per tag, an explicit marker (e.g. "#auth") present verbatim in the
    request scores the explicit weight; otherwise the bare keyword
    ("auth") as a whole word scores the keyword weight. Content overlap
    adds a flat bonus once and global scope adds a small amount, so global
    entries always surface. Past usage only raises entries that already
    score.
    """
    text = request.lower()
    words = set(_WORD.findall(text))
    score = 0.0
    for tag in entry.tags:
        keyword = _bare_keyword(tag)
        if _has_explicit_tag(tag, text):
            score += EXPLICIT_TAG_WEIGHT
        elif keyword and keyword in words:
            score += KEYWORD_WEIGHT

    content_words = {
        word for word in _WORD.findall(entry.content.lower()) if len(word) >= MIN_OVERLAP_WORD_LENGTH
    }
    if content_words & words:
        score += CONTENT_OVERLAP_WEIGHT

    if entry.scope == KnowledgeScope.GLOBAL:
        score += GLOBAL_SCOPE_WEIGHT
    if score <= 0:
        return 0.0
    return score + USAGE_WEIGHT * entry.usage_count


def rank_knowledge(
    entries: list[KnowledgeEntry],
    request: str,
    limit: int = MAX_SURFACED_ENTRIES,
) -> list[RankedKnowledge]:
    """Return the top ``limit`` relevant entries, highest score first.

    Project-scoped entries with no tag or content relevance are never
    surfaced. Sorting is stable, so equal scores keep their store order.
    Pure: usage counts are not touched here.
    """
    scored = [RankedKnowledge(entry, score_entry(entry, request)) for entry in entries]
    relevant = [item for item in scored if item.score > 0]
    relevant.sort(key=lambda item: item.score, reverse=True)
    return relevant[:limit]
