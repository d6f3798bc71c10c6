from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
from typing import Any

from .runtime import verbose_log
from .validators import is_valid_did

MENTION_FEATURE = "app.bsky.richtext.facet#mention"
LINK_FEATURE = "app.bsky.richtext.facet#link"
TAG_FEATURE = "app.bsky.richtext.facet#tag"

_FEATURE_TYPES = {
    "mention": MENTION_FEATURE,
    "link": LINK_FEATURE,
    "tag": TAG_FEATURE,
}
_FEATURE_FIELDS = {
    "mention": "did",
    "link": "uri",
    "tag": "tag",
}
_TYPE_TO_KIND = {ftype: kind for kind, ftype in _FEATURE_TYPES.items()}

_MENTION_RE = re.compile(
    r"@(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+"
    r"[a-zA-Z](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
)
_LINK_RE = re.compile(
    r"https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
    r"(?:[-a-zA-Z0-9()@:%_+.~#?&/=]*)",
    flags=re.ASCII,
)
_HASHTAG_RE = re.compile(r"#[a-zA-Z][a-zA-Z0-9_]*")


def _log(message: str) -> None:
    verbose_log(f"[facets] {message}")


@dataclass(frozen=True)
class FacetFeature:
    kind: str
    value: str = ""

    def __post_init__(self) -> None:
        if self.kind not in _FEATURE_TYPES:
            raise ValueError(f"Unknown facet feature kind: {self.kind!r}")

    @property
    def type(self) -> str:
        return _FEATURE_TYPES[self.kind]

    def to_dict(self) -> dict[str, str]:
        return {"$type": self.type, _FEATURE_FIELDS[self.kind]: self.value}

    @classmethod
    def from_dict(cls, payload: Any) -> FacetFeature | None:
        if not isinstance(payload, Mapping):
            return None
        kind = _TYPE_TO_KIND.get(str(payload.get("$type") or ""))
        if kind is None:
            return None
        value = payload.get(_FEATURE_FIELDS[kind])
        if value is None:
            value = ""
        if not isinstance(value, str):
            return None
        return cls(kind=kind, value=value)


@dataclass(frozen=True)
class Facet:
    """
    A half-open ``[byte_start, byte_end)`` range over the UTF-8 encoding of a
    post's text, annotated with one or more features.

    ``unresolved_handle`` is set on mentions found by ``extract_facets`` until
    a DID has been filled in for them.
    """

    byte_start: int
    byte_end: int
    features: tuple[FacetFeature, ...]
    unresolved_handle: str | None = None

    def __post_init__(self) -> None:
        if self.byte_start < 0 or self.byte_end < self.byte_start:
            raise ValueError(
                f"Invalid facet range [{self.byte_start}, {self.byte_end})"
            )
        if not isinstance(self.features, tuple):
            object.__setattr__(self, "features", tuple(self.features))

    @property
    def has_unresolved_mention(self) -> bool:
        return any(
            feature.kind == "mention" and not feature.value
            for feature in self.features
        )

    def with_did(self, did: str) -> Facet:
        features = tuple(
            FacetFeature("mention", did) if feature.kind == "mention" else feature
            for feature in self.features
        )
        return replace(self, features=features, unresolved_handle=None)

    def to_dict(self, *, include_unresolved: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "index": {"byteStart": self.byte_start, "byteEnd": self.byte_end},
            "features": [feature.to_dict() for feature in self.features],
        }
        if include_unresolved and self.unresolved_handle is not None:
            payload["_unresolvedHandle"] = self.unresolved_handle
        return payload

    @classmethod
    def from_dict(cls, payload: Any) -> Facet | None:
        if not isinstance(payload, Mapping):
            return None
        index = payload.get("index")
        if not isinstance(index, Mapping):
            return None
        start = index.get("byteStart")
        end = index.get("byteEnd")
        if not isinstance(start, int) or not isinstance(end, int):
            return None
        if isinstance(start, bool) or isinstance(end, bool):
            return None
        if start < 0 or end < start:
            return None
        raw_features = payload.get("features")
        if not isinstance(raw_features, list):
            return None
        features = tuple(
            feature
            for feature in (FacetFeature.from_dict(item) for item in raw_features)
            if feature is not None
        )
        if not features:
            return None
        handle = payload.get("_unresolvedHandle")
        return cls(
            byte_start=start,
            byte_end=end,
            features=features,
            unresolved_handle=handle if isinstance(handle, str) else None,
        )


@dataclass(frozen=True)
class FacetExtraction:
    text: str
    facets: list[Facet]


def _next_match(
    pattern: re.Pattern[str], text: str, position: int
) -> tuple[re.Match[str], int] | None:
    match = pattern.search(text, position)
    if match is None:
        return None
    return match, match.end()


def _scan(pattern: re.Pattern[str], text: str) -> Iterator[re.Match[str]]:
    position = 0
    while True:
        found = _next_match(pattern, text, position)
        if found is None:
            return
        match, position = found
        yield match


def _byte_range(text: str, match: re.Match[str]) -> tuple[int, int]:
    byte_start = len(text[: match.start()].encode("utf-8"))
    return byte_start, byte_start + len(match.group(0).encode("utf-8"))


def _mention_facets(text: str) -> list[Facet]:
    facets = []
    for match in _scan(_MENTION_RE, text):
        start, end = _byte_range(text, match)
        facets.append(
            Facet(
                byte_start=start,
                byte_end=end,
                features=(FacetFeature("mention", ""),),
                unresolved_handle=match.group(0)[1:],
            )
        )
    return facets


def _link_facets(text: str) -> list[Facet]:
    facets = []
    for match in _scan(_LINK_RE, text):
        start, end = _byte_range(text, match)
        facets.append(Facet(start, end, (FacetFeature("link", match.group(0)),)))
    return facets


def _hashtag_facets(text: str) -> list[Facet]:
    facets = []
    for match in _scan(_HASHTAG_RE, text):
        start, end = _byte_range(text, match)
        facets.append(Facet(start, end, (FacetFeature("tag", match.group(0)[1:]),)))
    return facets


def extract_facets(text: str) -> FacetExtraction:
    """
    Find mentions, links and hashtags in ``text``.

    Each category is scanned independently, so a hashtag inside a URL
    fragment yields both a link and a tag facet. The combined list is sorted
    by ``byte_start``; equal starts keep the mention, link, hashtag order.
    Mentions carry an empty DID until resolved.
    """
    facets = _mention_facets(text) + _link_facets(text) + _hashtag_facets(text)
    facets.sort(key=lambda facet: facet.byte_start)
    _log(f"extracted {len(facets)} facet(s) from {len(text)} characters")
    return FacetExtraction(text=text, facets=facets)


def resolve_mentions(
    facets: Iterable[Facet], resolver: Callable[[str], str | None]
) -> list[Facet]:
    """
    Fill in mention DIDs using ``resolver(handle)``.

    Results that are not valid DIDs leave the facet unresolved, which makes
    ``build_post_record`` drop it.
    """
    resolved: list[Facet] = []
    for facet in facets:
        handle = facet.unresolved_handle
        if handle is None or not facet.has_unresolved_mention:
            resolved.append(facet)
            continue
        did = resolver(handle)
        if did and is_valid_did(did):
            resolved.append(facet.with_did(did))
        else:
            _log(f"could not resolve @{handle}")
            resolved.append(facet)
    return resolved
