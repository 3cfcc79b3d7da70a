"""Tests for the message type table."""

from ubx_bridge.messages import (
    lookup_expected_length,
    make_length_lookup,
    message_name,
)


def test_known_fixed_length():
    assert lookup_expected_length(0x01, 0x07) == 92  # NAV-PVT
    assert lookup_expected_length(0x05, 0x01) == 2  # ACK-ACK


def test_variable_length_is_unconstrained():
    """Known messages without a fixed length return None."""
    assert lookup_expected_length(0x01, 0x35) is None  # NAV-SAT


def test_unknown_message_is_unconstrained():
    assert lookup_expected_length(0xF1, 0x01) is None


def test_overrides_take_precedence():
    lookup = make_length_lookup({(0x01, 0x07): 100, (0xF1, 0x01): 8})
    assert lookup(0x01, 0x07) == 100
    assert lookup(0xF1, 0x01) == 8
    # Falls back to the built-in table
    assert lookup(0x01, 0x02) == 28
    assert lookup(0xF1, 0x02) is None


def test_no_overrides_uses_table():
    assert make_length_lookup({}) is lookup_expected_length


def test_message_names():
    assert message_name(0x01, 0x07) == "NAV-PVT"
    assert message_name(0x01, 0xFE) == "NAV-0xFE"
    assert message_name(0xF1, 0x02) == "0xF1-0x02"
