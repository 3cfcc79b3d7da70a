"""Serial port handler feeding a GNSS receiver's byte stream to the decoder."""

import logging
import time

import serial

from .config import DecoderConfig, SerialConfig
from .decoder import DecodeResult, FrameDecoder
from .messages import make_length_lookup

logger = logging.getLogger(__name__)

# Reconnection settings
RECONNECT_DELAY_MIN = 1  # seconds
RECONNECT_DELAY_MAX = 60  # seconds


def build_decoder(config: DecoderConfig) -> FrameDecoder:
    """Create a FrameDecoder from decoder configuration."""
    return FrameDecoder(
        max_payload_length=config.max_payload_length,
        expected_length=make_length_lookup(config.payload_lengths),
    )


class SerialHandler:
    """Reads UBX frames from a serial GNSS receiver."""

    def __init__(self, config: SerialConfig, decoder: FrameDecoder) -> None:
        self._config = config
        self._port: serial.Serial | None = None
        self._decoder = decoder
        self._reconnect_delay = RECONNECT_DELAY_MIN

    @property
    def connected(self) -> bool:
        """Return True if serial port is open."""
        return self._port is not None and self._port.is_open

    def open(self) -> None:
        """Open the serial port."""
        self._port = serial.Serial(
            port=self._config.port,
            baudrate=self._config.baud,
            timeout=0.1,  # 100ms read timeout for polling
        )
        self._reconnect_delay = RECONNECT_DELAY_MIN  # Reset backoff on success
        logger.info(
            "Opened serial port %s at %d baud",
            self._config.port,
            self._config.baud,
        )

    def close(self) -> None:
        """Close the serial port, ending the decoder's stream."""
        if self._port is None:
            return
        if self._port.is_open:
            self._port.close()
            logger.info("Closed serial port")
        self._port = None
        self._decoder.flush()

    def try_reconnect(self) -> bool:
        """
        Attempt to reconnect to the serial port.

        Returns True if reconnection successful, False otherwise.
        Uses exponential backoff between attempts.
        """
        self.close()

        logger.info(
            "Attempting serial reconnection in %d seconds...",
            self._reconnect_delay,
        )
        time.sleep(self._reconnect_delay)

        try:
            self.open()
            return True
        except serial.SerialException as e:
            logger.warning("Serial reconnection failed: %s", e)
            # Exponential backoff
            self._reconnect_delay = min(
                self._reconnect_delay * 2,
                RECONNECT_DELAY_MAX,
            )
            return False

    def read_results(self) -> list[DecodeResult]:
        """
        Read available bytes and decode them.

        Returns packets and diagnostics in stream order, or an empty list if
        no data arrived. Raises SerialDisconnected if the port is no longer
        available.
        """
        if not self.connected:
            return []

        try:
            data = self._port.read(self._port.in_waiting or 1)
        except serial.SerialException as e:
            logger.error("Serial read error: %s", e)
            self.close()
            raise SerialDisconnected() from e

        if not data:
            return []

        return self._decoder.feed(data)


class SerialDisconnected(Exception):
    """Raised when serial port becomes unavailable."""

    pass
