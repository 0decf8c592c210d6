import pytest

from transitrt.routing.clasz_mask import (
    CLASZ_MASK_BITS,
    all_clasz_allowed,
    is_allowed,
    to_str,
)


def test_all_allowed_enables_every_class():
    mask = all_clasz_allowed()
    assert all(is_allowed(mask, c) for c in range(CLASZ_MASK_BITS))


@pytest.mark.parametrize("clasz", [0, 3, 15])
def test_single_bit(clasz):
    mask = 1 << clasz
    assert is_allowed(mask, clasz)
    assert [c for c in range(CLASZ_MASK_BITS) if is_allowed(mask, c)] == [clasz]


def test_to_str_zero():
    assert to_str(0) == "0" * CLASZ_MASK_BITS + ", x=0"


def test_to_str_lowest_bit_is_last():
    s = to_str(1)
    assert s == "0" * (CLASZ_MASK_BITS - 1) + "1, x=1"


def test_to_str_all_bits():
    mask = all_clasz_allowed()
    bits, value = to_str(mask).split(", x=")
    assert bits == "1" * CLASZ_MASK_BITS
    assert int(value) == mask