from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .facets import Facet
from .runtime import verbose_log
from .uri import (
    BLOCK_COLLECTION,
    FOLLOW_COLLECTION,
    LIKE_COLLECTION,
    POST_COLLECTION,
    REPOST_COLLECTION,
)

DEFAULT_LANGS = ("en",)
RECORD_EMBED = "app.bsky.embed.record"
RECORD_WITH_MEDIA_EMBED = "app.bsky.embed.recordWithMedia"


def _log(message: str) -> None:
    verbose_log(f"[records] {message}")


def format_timestamp(value: datetime | None = None) -> str:
    """
    Format ``value`` (default: now) as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive datetimes are taken to be UTC already.
    """
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    millis = value.microsecond // 1000
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{millis:03d}Z"


@dataclass(frozen=True)
class StrongRef:
    uri: str
    cid: str

    def to_dict(self) -> dict[str, str]:
        return {"uri": self.uri, "cid": self.cid}

    @classmethod
    def from_dict(cls, payload: Any) -> StrongRef | None:
        if not isinstance(payload, Mapping):
            return None
        uri = payload.get("uri")
        cid = payload.get("cid")
        if not isinstance(uri, str) or not isinstance(cid, str):
            return None
        return cls(uri=uri, cid=cid)


@dataclass(frozen=True)
class ReplyRef:
    root: StrongRef
    parent: StrongRef

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"root": self.root.to_dict(), "parent": self.parent.to_dict()}

    @classmethod
    def from_dict(cls, payload: Any) -> ReplyRef | None:
        if not isinstance(payload, Mapping):
            return None
        root = StrongRef.from_dict(payload.get("root"))
        parent = StrongRef.from_dict(payload.get("parent"))
        if root is None or parent is None:
            return None
        return cls(root=root, parent=parent)


@dataclass(frozen=True)
class PostRecord:
    text: str
    created_at: str
    langs: tuple[str, ...] = DEFAULT_LANGS
    facets: tuple[Facet, ...] | None = None
    reply: ReplyRef | None = None
    embed: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "$type": POST_COLLECTION,
            "text": self.text,
            "createdAt": self.created_at,
            "langs": list(self.langs),
        }
        if self.facets:
            record["facets"] = [facet.to_dict() for facet in self.facets]
        if self.reply is not None:
            record["reply"] = self.reply.to_dict()
        if self.embed is not None:
            record["embed"] = dict(self.embed)
        return record


def build_post_record(
    text: str,
    *,
    facets: Iterable[Facet] | None = None,
    created_at: datetime | None = None,
    langs: Iterable[str] | None = None,
    reply: ReplyRef | None = None,
    embed: Mapping[str, Any] | None = None,
) -> PostRecord:
    """
    Assemble an ``app.bsky.feed.post`` record.

    Facets whose mention feature still has an empty DID are dropped one by
    one; the remaining facets keep their order. When nothing is left, the
    record has no facets at all. Reply and embed are passed through as given.
    """
    kept: tuple[Facet, ...] | None = None
    if facets is not None:
        candidates = list(facets)
        kept = tuple(
            facet for facet in candidates if not facet.has_unresolved_mention
        )
        dropped = len(candidates) - len(kept)
        if dropped:
            _log(f"dropped {dropped} unresolved mention facet(s)")
        if not kept:
            kept = None

    resolved_langs = tuple(langs) if langs is not None else DEFAULT_LANGS
    return PostRecord(
        text=text,
        created_at=format_timestamp(created_at),
        langs=resolved_langs,
        facets=kept,
        reply=reply,
        embed=dict(embed) if embed is not None else None,
    )


def _subject_record(
    record_type: str, subject: Any, created_at: datetime | None
) -> dict[str, Any]:
    return {
        "$type": record_type,
        "subject": subject,
        "createdAt": format_timestamp(created_at),
    }


def build_like_record(
    subject: StrongRef, *, created_at: datetime | None = None
) -> dict[str, Any]:
    return _subject_record(LIKE_COLLECTION, subject.to_dict(), created_at)


def build_repost_record(
    subject: StrongRef, *, created_at: datetime | None = None
) -> dict[str, Any]:
    return _subject_record(REPOST_COLLECTION, subject.to_dict(), created_at)


def build_follow_record(
    did: str, *, created_at: datetime | None = None
) -> dict[str, Any]:
    return _subject_record(FOLLOW_COLLECTION, did, created_at)


def build_block_record(
    did: str, *, created_at: datetime | None = None
) -> dict[str, Any]:
    return _subject_record(BLOCK_COLLECTION, did, created_at)


def build_record_embed(subject: StrongRef) -> dict[str, Any]:
    """Embed that quotes another record, e.g. a quote post."""
    return {"$type": RECORD_EMBED, "record": subject.to_dict()}


def build_record_with_media_embed(
    subject: StrongRef, media: Mapping[str, Any]
) -> dict[str, Any]:
    """
    Quote ``subject`` alongside a media embed such as ``app.bsky.embed.images``.
    """
    return {
        "$type": RECORD_WITH_MEDIA_EMBED,
        "record": build_record_embed(subject),
        "media": dict(media),
    }
