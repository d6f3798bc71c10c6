from __future__ import annotations

import re
from typing import Any

TID_ALPHABET = "234567abcdefghijklmnopqrstuvwxyz"

_DID_RE = re.compile(r"did:[a-z]+:[a-zA-Z0-9._:%-]+")
_HANDLE_RE = re.compile(
    r"(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{1,63}"
)
# The first symbol carries the top bit of the 64-bit value, which stays clear.
_TID_RE = re.compile(r"[234567abcdefghij][234567abcdefghijklmnopqrstuvwxyz]{12}")


def _matches(pattern: re.Pattern[str], value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return pattern.fullmatch(value) is not None


def is_valid_did(value: Any) -> bool:
    """Return True for ``did:<method>:<identifier>`` strings."""
    return _matches(_DID_RE, value)


def is_valid_handle(value: Any) -> bool:
    """
    Return True for domain-shaped handles such as ``alice.bsky.social``.

    Every label starts and ends with an alphanumeric character, may contain
    hyphens in between and is at most 63 characters long. The top-level label
    is letters only, so a bare name without a dot never validates.
    """
    return _matches(_HANDLE_RE, value)


def is_valid_tid(value: Any) -> bool:
    return _matches(_TID_RE, value)
