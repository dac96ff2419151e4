"""
Unit tests for tracking number generation.
"""

import re

import pytest

from backend.app.core.config import settings
from backend.app.domain.parcels.tracking_number import (
    BASE36_ALPHABET,
    SUFFIX_LENGTH,
    generate_tracking_number,
    to_base36,
)


@pytest.mark.parametrize("value,expected", [
    (0, "0"),
    (35, "Z"),
    (36, "10"),
    (1295, "ZZ"),
    (1700000000000, "LOYW3V28"),
])
def test_to_base36(value, expected):
    assert to_base36(value) == expected


def test_to_base36_rejects_negative():
    with pytest.raises(ValueError):
        to_base36(-1)


def test_format_uses_configured_prefix():
    tracking = generate_tracking_number(now_ms=1700000000000)

    prefix, stamp, suffix = tracking.split("-")
    assert prefix == settings.tracking_prefix.upper()
    assert stamp == "LOYW3V28"
    assert len(suffix) == SUFFIX_LENGTH
    assert all(ch in BASE36_ALPHABET for ch in suffix)


def test_output_is_upper_case():
    tracking = generate_tracking_number(prefix="cpm")
    assert tracking == tracking.upper()
    assert re.fullmatch(r"CPM-[0-9A-Z]+-[0-9A-Z]{6}", tracking)


def test_same_millisecond_numbers_differ_by_suffix():
    numbers = {generate_tracking_number(now_ms=1) for _ in range(50)}
    assert len(numbers) > 1
