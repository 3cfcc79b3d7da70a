"""Tests for UBX framing and checksum."""

import random

from ubx_bridge.protocol import (
    FRAME_SYNC,
    encode_frame,
    encode_header,
    frame_checksum,
    ubx_checksum,
)


def reference_fletcher8(data: bytes) -> tuple[int, int]:
    a = b = 0
    for v in data:
        a = (a + v) % 256
        b = (b + a) % 256
    return a, b


def test_checksum_empty():
    """Checksum of no data is zero."""
    assert ubx_checksum(b"") == 0


def test_checksum_mon_ver_poll():
    """MON-VER poll as sent by u-center: B5 62 0A 04 00 00 0E 34."""
    assert ubx_checksum(bytes([0x0A, 0x04, 0x00, 0x00])) == 0x340E


def test_checksum_ack_ack():
    """ACK-ACK for CFG-PRT: B5 62 05 01 02 00 06 00 0E 37."""
    assert frame_checksum(0x05, 0x01, b"\x06\x00") == 0x370E


def test_checksum_matches_reference():
    """Checksum agrees with a reference Fletcher-8 for arbitrary payloads."""
    rng = random.Random(7)
    for size in (0, 1, 2, 17, 255, 300, 1000):
        payload = bytes(rng.getrandbits(8) for _ in range(size))
        body = encode_header(0x01, 0x07, size) + payload
        a, b = reference_fletcher8(body)
        assert frame_checksum(0x01, 0x07, payload) == (b << 8) | a


def test_encode_header_little_endian():
    """Length is encoded low byte first."""
    assert encode_header(0x01, 0x07, 0x1234) == b"\x01\x07\x34\x12"


def test_encode_frame_layout():
    """Sync, header, payload, then ck_a and ck_b."""
    frame = encode_frame(0x05, 0x01, b"\x06\x00")
    assert frame == bytes.fromhex("b5 62 05 01 02 00 06 00 0e 37")
    assert frame[:2] == FRAME_SYNC


def test_encode_frame_checksum_override():
    """An explicit checksum replaces the computed one."""
    frame = encode_frame(0x0A, 0x04, checksum=0xBEEF)
    assert frame == bytes.fromhex("b5 62 0a 04 00 00 ef be")
