"""UBX protocol framing and checksum.

Frame format:
    [0xB5][0x62][class][id][len_low][len_high][payload...][ck_a][ck_b]

- Sync: 0xB5 0x62
- Class / ID: one byte each
- Length: 2 bytes, little-endian - length of payload only
- Checksum: 8-bit Fletcher over class, id, length and payload,
  ck_a first
"""

SYNC_CHAR_1 = 0xB5
SYNC_CHAR_2 = 0x62
FRAME_SYNC = bytes([SYNC_CHAR_1, SYNC_CHAR_2])
HEADER_SIZE = 4  # class (1) + id (1) + length (2)
CHECKSUM_SIZE = 2

# Some messages have variable length, raise this if larger ones are enabled
DEFAULT_MAX_PAYLOAD_LENGTH = 300


def ubx_checksum(data: bytes) -> int:
    """Calculate the UBX checksum over data, returned as (ck_b << 8) | ck_a."""
    ck_a, ck_b = 0, 0
    for b in data:
        ck_a = (ck_a + b) & 0xFF
        ck_b = (ck_b + ck_a) & 0xFF
    return (ck_b << 8) | ck_a


def encode_header(message_class: int, message_id: int, length: int) -> bytes:
    """Encode the class, id and little-endian length fields."""
    return bytes([message_class, message_id]) + length.to_bytes(2, "little")


def frame_checksum(message_class: int, message_id: int, payload: bytes) -> int:
    """Checksum of a frame body, as carried little-endian on the wire."""
    return ubx_checksum(encode_header(message_class, message_id, len(payload)) + payload)


def encode_frame(
    message_class: int,
    message_id: int,
    payload: bytes = b"",
    checksum: int | None = None,
) -> bytes:
    """Encode a payload into a framed packet.

    Passing ``checksum`` replaces the computed value, which is how corrupt
    frames are produced for captures and tests.
    """
    if checksum is None:
        checksum = frame_checksum(message_class, message_id, payload)
    return (
        FRAME_SYNC
        + encode_header(message_class, message_id, len(payload))
        + payload
        + checksum.to_bytes(2, "little")
    )
