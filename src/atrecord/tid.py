from __future__ import annotations

import random
import time

from .validators import TID_ALPHABET

TID_LENGTH = 13
CLOCK_ID_BITS = 10
_CLOCK_ID_MASK = (1 << CLOCK_ID_BITS) - 1
_SYMBOL_MASK = 0x1F


def encode_tid(timestamp_us: int, clock_id: int) -> str:
    """
    Encode a microsecond timestamp and clock id as a 13-symbol TID.

    The timestamp occupies the high 54 bits and the clock id the low 10 bits.
    Symbols are emitted most significant first so that string order follows
    numeric order.
    """
    remaining = (timestamp_us << CLOCK_ID_BITS) | (clock_id & _CLOCK_ID_MASK)
    encoded = ""
    for _ in range(TID_LENGTH):
        encoded = TID_ALPHABET[remaining & _SYMBOL_MASK] + encoded
        remaining >>= 5
    return encoded


def generate_tid() -> str:
    """
    Return a fresh TID for the current time.

    The clock id is random, so TIDs created within the same microsecond may
    sort in either order and can collide with probability 1/1024. Callers
    that need a strict total order have to coordinate around this function.
    """
    timestamp_us = time.time_ns() // 1_000
    return encode_tid(timestamp_us, random.getrandbits(CLOCK_ID_BITS))
