from __future__ import annotations

from typing import Iterable, List

from ..core.exceptions import InvalidTimeLabel
from ..domain.time_grid import SLOTS_PER_DAY, format_slot, parse_label

# 30-min resolution → 48 slots/day
BYTES_PER_DAY = 6


def new_empty_bits() -> bytes:
    return bytes(BYTES_PER_DAY)


def pack_indexes(indexes: Iterable[int]) -> bytes:
    b = bytearray(BYTES_PER_DAY)
    for idx in indexes:
        if not (0 <= idx < SLOTS_PER_DAY):
            raise ValueError(f"index out of range: {idx}")
        byte_i = idx // 8
        bit_i = idx % 8
        b[byte_i] |= 1 << bit_i
    return bytes(b)


def unpack_indexes(bits: bytes) -> List[int]:
    if len(bits) != BYTES_PER_DAY:
        raise ValueError("bits length must be 6 for 30-min resolution")
    out: List[int] = []
    for byte_i, val in enumerate(bits):
        for bit_i in range(8):
            idx = byte_i * 8 + bit_i
            if idx >= SLOTS_PER_DAY:
                break
            if (val >> bit_i) & 1:
                out.append(idx)
    return out


def bits_from_labels(labels: Iterable[str]) -> bytes:
    """Pack 'HH:MM AM' labels into the 6-byte half-hour-of-day bitmap."""
    indexes: List[int] = []
    invalid: List[str] = []
    for label in labels:
        slot = parse_label(label)
        if slot is None:
            invalid.append(label)
        else:
            indexes.append(slot)
    if invalid:
        raise InvalidTimeLabel(invalid)
    return pack_indexes(indexes)


def labels_from_bits(bits: bytes) -> List[str]:
    """Inverse of bits_from_labels, in clock order."""
    return [format_slot(idx) for idx in unpack_indexes(bits)]


def is_empty(bits: bytes) -> bool:
    return not any(bits)
