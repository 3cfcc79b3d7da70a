"""Stateful UBX frame decoder.

Bytes are fed in chunks of any size and are walked one at a time through a
small state machine. Every call to :meth:`FrameDecoder.feed` returns the
packets and diagnostics for the frames that completed within that chunk, in
stream order, so the output does not depend on how the stream was split.

A frame whose checksum fails is not thrown away whole. Its length already
passed validation, so its body is plausible data that may hold the sync of
the next real frame. The body bytes are pushed back in front of the unread
input and scanning restarts just after the failed frame's sync trailer.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from .messages import lookup_expected_length
from .protocol import (
    CHECKSUM_SIZE,
    DEFAULT_MAX_PAYLOAD_LENGTH,
    HEADER_SIZE,
    SYNC_CHAR_1,
    SYNC_CHAR_2,
    encode_header,
    frame_checksum,
)

logger = logging.getLogger(__name__)


class DecoderState(Enum):
    """Position of the decoder within a frame."""

    SCANNING_FOR_SYNC = auto()
    EXPECT_SYNC_TRAILER = auto()
    EXPECT_CLASS = auto()
    EXPECT_ID = auto()
    EXPECT_LENGTH_LOW = auto()
    EXPECT_LENGTH_HIGH = auto()
    ACCUMULATING_PAYLOAD = auto()
    EXPECT_CHECKSUM_LOW = auto()
    EXPECT_CHECKSUM_HIGH = auto()


@dataclass(frozen=True)
class Frame:
    """Snapshot of a frame as received, attached to diagnostics."""

    message_class: int
    message_id: int
    length: int
    payload: bytes = b""
    checksum: int | None = None

    def __repr__(self) -> str:
        return (
            f"Frame(class=0x{self.message_class:02X}, id=0x{self.message_id:02X}, "
            f"length={self.length}, payload={self.payload.hex(' ') or '(empty)'}, "
            f"checksum={'None' if self.checksum is None else f'0x{self.checksum:04X}'})"
        )


@dataclass(frozen=True)
class Packet:
    """A decoded frame with a valid checksum and a non-empty payload."""

    message_class: int
    message_id: int
    payload: bytes

    def __repr__(self) -> str:
        return (
            f"Packet(class=0x{self.message_class:02X}, id=0x{self.message_id:02X}, "
            f"payload={self.payload.hex(' ')})"
        )


@dataclass(frozen=True)
class PayloadTooLarge:
    frame: Frame
    max_payload_length: int


@dataclass(frozen=True)
class WrongPayloadLength:
    frame: Frame
    expected_length: int


@dataclass(frozen=True)
class FailedChecksum:
    frame: Frame
    computed_checksum: int


@dataclass(frozen=True)
class PollingMessage:
    """A valid zero-length frame, i.e. a poll request."""

    frame: Frame


DecodeResult = Packet | PayloadTooLarge | WrongPayloadLength | FailedChecksum | PollingMessage


@dataclass
class _Header:
    message_class: int = 0
    message_id: int = 0
    length_low: int = 0


@dataclass
class _Body:
    """Frame whose length passed validation; payload is sized to it."""

    message_class: int
    message_id: int
    payload: bytearray
    position: int = 0
    checksum_low: int = 0


class _Cursor:
    """Read position over one chunk, preceded by any bytes pushed back."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self._pushed = b""
        self._pushed_pos = 0

    def next_byte(self) -> int | None:
        if self._pushed_pos < len(self._pushed):
            byte = self._pushed[self._pushed_pos]
            self._pushed_pos += 1
            return byte
        if self._pos < len(self._data):
            byte = self._data[self._pos]
            self._pos += 1
            return byte
        return None

    def push_back(self, consumed: bytes) -> None:
        """Make consumed bytes the next ones read, ahead of the rest."""
        self._pushed = consumed + self._pushed[self._pushed_pos :]
        self._pushed_pos = 0


class FrameDecoder:
    """Stateful decoder for extracting UBX frames from a byte stream.

    Args:
        max_payload_length: Largest payload accepted, 0 disables the check.
        expected_length: Lookup of the fixed payload length for a class/id
            pair, returning None when the length is unconstrained.
    """

    def __init__(
        self,
        max_payload_length: int = DEFAULT_MAX_PAYLOAD_LENGTH,
        expected_length: Callable[[int, int], int | None] = lookup_expected_length,
    ) -> None:
        if isinstance(max_payload_length, bool) or not isinstance(max_payload_length, int):
            raise ValueError(
                f"max_payload_length must be an integer, got {max_payload_length!r}"
            )
        if max_payload_length < 0:
            raise ValueError(
                f"max_payload_length must not be negative, got {max_payload_length}"
            )
        self._max_payload_length = max_payload_length
        self._expected_length = expected_length
        self._state = DecoderState.SCANNING_FOR_SYNC
        self._frame: _Header | _Body | None = None
        self._position = 0

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def position(self) -> int:
        """Number of stream bytes consumed so far."""
        return self._position

    @property
    def max_payload_length(self) -> int:
        return self._max_payload_length

    def feed(self, data: bytes) -> list[DecodeResult]:
        """Feed bytes into decoder, return packets and diagnostics in stream order."""
        results: list[DecodeResult] = []
        cursor = _Cursor(data)
        while True:
            byte = cursor.next_byte()
            if byte is None:
                break
            self._position += 1
            result = self._step(byte, cursor)
            if result is not None:
                results.append(result)
        return results

    def flush(self) -> None:
        """End of stream: drop any partial frame without emitting it."""
        if self._state is not DecoderState.SCANNING_FOR_SYNC:
            logger.debug(
                "Discarding partial frame in state %s at stream position %d",
                self._state.name,
                self._position,
            )
        self._reset()

    def _reset(self) -> None:
        self._state = DecoderState.SCANNING_FOR_SYNC
        self._frame = None

    def _step(self, byte: int, cursor: _Cursor) -> DecodeResult | None:
        state = self._state
        frame = self._frame

        if state is DecoderState.SCANNING_FOR_SYNC:
            if byte == SYNC_CHAR_1:
                self._state = DecoderState.EXPECT_SYNC_TRAILER
            else:
                logger.debug(
                    "Unknown byte 0x%02X at stream position %d", byte, self._position - 1
                )

        elif state is DecoderState.EXPECT_SYNC_TRAILER:
            if byte == SYNC_CHAR_2:
                self._frame = _Header()
                self._state = DecoderState.EXPECT_CLASS
            elif byte != SYNC_CHAR_1:  # repeated 0xB5 keeps waiting for 0x62
                logger.debug(
                    "Unknown byte 0x%02X after sync at stream position %d",
                    byte,
                    self._position - 1,
                )
                self._reset()

        elif state is DecoderState.EXPECT_CLASS:
            frame.message_class = byte
            self._state = DecoderState.EXPECT_ID

        elif state is DecoderState.EXPECT_ID:
            frame.message_id = byte
            self._state = DecoderState.EXPECT_LENGTH_LOW

        elif state is DecoderState.EXPECT_LENGTH_LOW:
            frame.length_low = byte
            self._state = DecoderState.EXPECT_LENGTH_HIGH

        elif state is DecoderState.EXPECT_LENGTH_HIGH:
            return self._accept_length(frame, frame.length_low | (byte << 8))

        elif state is DecoderState.ACCUMULATING_PAYLOAD:
            frame.payload[frame.position] = byte
            frame.position += 1
            if frame.position == len(frame.payload):
                self._state = DecoderState.EXPECT_CHECKSUM_LOW

        elif state is DecoderState.EXPECT_CHECKSUM_LOW:
            frame.checksum_low = byte
            self._state = DecoderState.EXPECT_CHECKSUM_HIGH

        elif state is DecoderState.EXPECT_CHECKSUM_HIGH:
            return self._check_frame(frame, byte, cursor)

        return None

    def _accept_length(self, header: _Header, length: int) -> DecodeResult | None:
        """Validate the declared length before any payload byte is read."""
        max_length = self._max_payload_length
        if max_length and length > max_length:
            logger.debug(
                "Payload length %d larger than allowed max length %d", length, max_length
            )
            self._reset()
            return PayloadTooLarge(
                Frame(header.message_class, header.message_id, length), max_length
            )

        if length == 0:
            # Poll request, straight to the checksum
            self._frame = _Body(header.message_class, header.message_id, bytearray())
            self._state = DecoderState.EXPECT_CHECKSUM_LOW
            return None

        expected = self._expected_length(header.message_class, header.message_id)
        if expected is not None and length != expected:
            logger.debug(
                "Payload length %d wrong for class 0x%02X id 0x%02X, expected %d",
                length,
                header.message_class,
                header.message_id,
                expected,
            )
            self._reset()
            return WrongPayloadLength(
                Frame(header.message_class, header.message_id, length), expected
            )

        self._frame = _Body(header.message_class, header.message_id, bytearray(length))
        self._state = DecoderState.ACCUMULATING_PAYLOAD
        return None

    def _check_frame(self, body: _Body, checksum_high: int, cursor: _Cursor) -> DecodeResult:
        payload = bytes(body.payload)
        received = body.checksum_low | (checksum_high << 8)
        computed = frame_checksum(body.message_class, body.message_id, payload)
        self._reset()

        frame = Frame(body.message_class, body.message_id, len(payload), payload, received)
        if computed == received:
            if payload:
                return Packet(body.message_class, body.message_id, payload)
            return PollingMessage(frame)

        logger.debug(
            "Checksum 0x%04X doesn't match received checksum 0x%04X", computed, received
        )
        # Rescan from just after the sync trailer; the header may have come
        # from an earlier chunk so it is rebuilt from the fields.
        consumed = (
            encode_header(body.message_class, body.message_id, len(payload))
            + payload
            + bytes([body.checksum_low, checksum_high])
        )
        cursor.push_back(consumed)
        self._position -= HEADER_SIZE + len(payload) + CHECKSUM_SIZE
        return FailedChecksum(frame, computed)
