from .facets import (
    Facet,
    FacetExtraction,
    FacetFeature,
    extract_facets,
    resolve_mentions,
)
from .records import (
    PostRecord,
    ReplyRef,
    StrongRef,
    build_block_record,
    build_follow_record,
    build_like_record,
    build_post_record,
    build_record_embed,
    build_record_with_media_embed,
    build_repost_record,
    format_timestamp,
)
from .richtext import (
    POST_GRAPHEME_LIMIT,
    TextSegment,
    grapheme_length,
    render_rich_text,
    segment_text,
)
from .tid import encode_tid, generate_tid
from .uri import AT_COLLECTIONS, AtUri, compose_at_uri, parse_at_uri, to_bsky_url
from .validators import is_valid_did, is_valid_handle, is_valid_tid

__all__ = [
    "AT_COLLECTIONS",
    "POST_GRAPHEME_LIMIT",
    "AtUri",
    "Facet",
    "FacetExtraction",
    "FacetFeature",
    "PostRecord",
    "ReplyRef",
    "StrongRef",
    "TextSegment",
    "build_block_record",
    "build_follow_record",
    "build_like_record",
    "build_post_record",
    "build_record_embed",
    "build_record_with_media_embed",
    "build_repost_record",
    "compose_at_uri",
    "encode_tid",
    "extract_facets",
    "format_timestamp",
    "generate_tid",
    "grapheme_length",
    "is_valid_did",
    "is_valid_handle",
    "is_valid_tid",
    "parse_at_uri",
    "render_rich_text",
    "resolve_mentions",
    "segment_text",
    "to_bsky_url",
]
