from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable

from .facets import Facet

POST_GRAPHEME_LIMIT = 300


@lru_cache(maxsize=1)
def _grapheme_pattern() -> Any:
    try:
        import regex
    except ImportError:
        logging.getLogger(__name__).warning(
            "regex is not installed; grapheme_length counts code points instead, "
            "which undercounts emoji with modifiers, ZWJ sequences and "
            "combining marks"
        )
        return None
    return regex.compile(r"\X")


def grapheme_length(text: str) -> int:
    """
    Count user-perceived characters (extended grapheme clusters) in ``text``.

    Post length limits are defined on graphemes, not bytes or code points.
    Without the ``regex`` package this degrades to ``len(text)``, so
    ``"👍🏽"`` counts as 2 instead of 1.
    """
    pattern = _grapheme_pattern()
    if pattern is None:
        return len(text)
    return len(pattern.findall(text))


@dataclass(frozen=True)
class TextSegment:
    text: str
    kind: str = "text"
    value: str | None = None


def segment_text(text: str, facets: Iterable[Facet] | None) -> list[TextSegment]:
    """
    Split ``text`` at facet byte ranges.

    The first feature of each facet decides the segment kind. Facets that
    start inside an earlier facet, or fall outside the text, are skipped.
    """
    sorted_facets = sorted(facets or (), key=lambda facet: facet.byte_start)
    if not sorted_facets:
        return [TextSegment(text)] if text else []

    text_bytes = text.encode("utf-8")
    segments: list[TextSegment] = []
    cursor = 0
    for facet in sorted_facets:
        start = facet.byte_start
        end = min(facet.byte_end, len(text_bytes))
        if start < cursor or start >= end:
            continue
        if start > cursor:
            segments.append(
                TextSegment(text_bytes[cursor:start].decode("utf-8", errors="ignore"))
            )
        snippet = text_bytes[start:end].decode("utf-8", errors="ignore")
        feature = facet.features[0]
        segments.append(TextSegment(snippet, feature.kind, feature.value))
        cursor = end

    if cursor < len(text_bytes):
        segments.append(
            TextSegment(text_bytes[cursor:].decode("utf-8", errors="ignore"))
        )
    return segments


def _render_segment(segment: TextSegment) -> str:
    if segment.kind == "link" and segment.value:
        return f"[{segment.text}]({segment.value})"
    if segment.kind == "mention" and segment.value:
        return f"[{segment.text}](https://bsky.app/profile/{segment.value})"
    if segment.kind == "tag" and segment.value:
        return f"[#{segment.value}](https://bsky.app/hashtag/{segment.value})"
    return segment.text


def render_rich_text(text: str, facets: Iterable[Facet] | None) -> str:
    """Render ``text`` as Markdown, turning facets into links."""
    return "".join(_render_segment(segment) for segment in segment_text(text, facets))
