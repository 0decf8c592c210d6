"""Packed stop entries: a location index plus boarding/alighting flags."""

from __future__ import annotations

from dataclasses import dataclass

LOCATION_BITS = 30
_LOCATION_MASK = (1 << LOCATION_BITS) - 1
_IN_ALLOWED_BIT = 1 << LOCATION_BITS
_OUT_ALLOWED_BIT = 1 << (LOCATION_BITS + 1)
_VALUE_LIMIT = 1 << 32


@dataclass(frozen=True, order=True)
class Stop:
    """A stop of a route: location, whether boarding and alighting are allowed.

    Ordering compares the location first, then the two flags.
    """

    location_idx: int
    in_allowed: bool
    out_allowed: bool

    def __post_init__(self) -> None:
        if not 0 <= self.location_idx <= _LOCATION_MASK:
            raise ValueError(
                f"location index {self.location_idx} does not fit in "
                f"{LOCATION_BITS} bits"
            )
        object.__setattr__(self, "in_allowed", bool(self.in_allowed))
        object.__setattr__(self, "out_allowed", bool(self.out_allowed))

    @classmethod
    def from_value(cls, value: int) -> Stop:
        """Decode a stop from its packed 32 bit representation."""
        if not 0 <= value < _VALUE_LIMIT:
            raise ValueError(f"stop value {value} is not a 32 bit unsigned integer")
        return cls(
            value & _LOCATION_MASK,
            bool(value & _IN_ALLOWED_BIT),
            bool(value & _OUT_ALLOWED_BIT),
        )

    def value(self) -> int:
        """Return the packed 32 bit representation of this stop."""
        return (
            self.location_idx
            | (_IN_ALLOWED_BIT if self.in_allowed else 0)
            | (_OUT_ALLOWED_BIT if self.out_allowed else 0)
        )