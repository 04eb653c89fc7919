"""Deterministic experiment-arm assignment.

The hash below is part of the external contract. Changing it would silently
move subjects between arms, so it must stay byte-for-byte identical:

    h = 0
    for each UTF-16 code unit u of (subject_id + experiment_id):
        h = int32(h * 31 + u)
    index = abs(h) % len(variants)

This is the same function as Java's ``String.hashCode``. The mapping depends
on the order of ``variants``: reordering keeps every subject on exactly one
arm, but which arm may change.
"""

from __future__ import annotations

from collections.abc import Sequence

FALLBACK_VARIANT = "control"

_MASK_32 = 0xFFFFFFFF
_SIGN_32 = 0x80000000


def stable_hash(text: str) -> int:
    """Signed 32-bit rolling hash over UTF-16 code units."""
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & _MASK_32
    return h - (1 << 32) if h & _SIGN_32 else h


def select_variant(subject_id: str, experiment_id: str, variants: Sequence[str]) -> str:
    if not variants:
        return FALLBACK_VARIANT
    index = abs(stable_hash(subject_id + experiment_id)) % len(variants)
    return variants[index]
