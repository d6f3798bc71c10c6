from __future__ import annotations

import re
from dataclasses import dataclass

_AT_URI_RE = re.compile(
    r"at://(?P<authority>[^/]+)/(?P<collection>[^/]+)/(?P<rkey>[^/]+)"
)

POST_COLLECTION = "app.bsky.feed.post"
LIKE_COLLECTION = "app.bsky.feed.like"
REPOST_COLLECTION = "app.bsky.feed.repost"
FOLLOW_COLLECTION = "app.bsky.graph.follow"
BLOCK_COLLECTION = "app.bsky.graph.block"
PROFILE_COLLECTION = "app.bsky.actor.profile"

AT_COLLECTIONS = {
    "post": POST_COLLECTION,
    "like": LIKE_COLLECTION,
    "repost": REPOST_COLLECTION,
    "follow": FOLLOW_COLLECTION,
    "block": BLOCK_COLLECTION,
    "profile": PROFILE_COLLECTION,
}
_COLLECTION_TO_KIND = {
    collection: kind for kind, collection in AT_COLLECTIONS.items()
}
_BSKY_APP_BASE = "https://bsky.app"


@dataclass(frozen=True)
class AtUri:
    authority: str
    collection: str
    rkey: str

    @property
    def kind(self) -> str:
        return _COLLECTION_TO_KIND.get(self.collection, "record")

    def __str__(self) -> str:
        return compose_at_uri(self.authority, self.collection, self.rkey)


def compose_at_uri(authority: str, collection: str, rkey: str) -> str:
    """Join the three parts into ``at://authority/collection/rkey`` as given."""
    return f"at://{authority}/{collection}/{rkey}"


def parse_at_uri(uri: str) -> AtUri | None:
    """
    Split an ``at://authority/collection/rkey`` string into its parts.

    Anything other than exactly three non-empty, slash-free segments after
    the scheme returns None. The input is not trimmed or normalized.
    """
    if not isinstance(uri, str):
        return None
    match = _AT_URI_RE.fullmatch(uri)
    if not match:
        return None
    return AtUri(
        authority=match.group("authority"),
        collection=match.group("collection"),
        rkey=match.group("rkey"),
    )


def to_bsky_url(uri: str, handle: str | None = None) -> str | None:
    parsed = parse_at_uri(uri)
    if parsed is None:
        return None
    actor = handle or parsed.authority
    if parsed.collection == POST_COLLECTION:
        return f"{_BSKY_APP_BASE}/profile/{actor}/post/{parsed.rkey}"
    if parsed.collection == PROFILE_COLLECTION:
        return f"{_BSKY_APP_BASE}/profile/{actor}"
    return None
