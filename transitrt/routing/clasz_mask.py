"""Bit masks of allowed transport classes."""

from __future__ import annotations

CLASZ_MASK_BITS = 16


def is_allowed(mask: int, clasz: int) -> bool:
    """Tell whether ``clasz`` is enabled in ``mask``."""
    return bool(mask >> int(clasz) & 1)


def all_clasz_allowed() -> int:
    """A mask that allows every class."""
    return (1 << CLASZ_MASK_BITS) - 1


def to_str(mask: int) -> str:
    """Bits of the mask, highest class first, followed by its numeric value."""
    bits = "".join(
        "1" if is_allowed(mask, i) else "0" for i in reversed(range(CLASZ_MASK_BITS))
    )
    return f"{bits}, x={mask}"