"""Main entry point for the UBX bridge."""

import argparse
import logging
import signal
import sys
import time
from collections import Counter
from pathlib import Path

import serial

from .config import Config, load_config
from .decoder import (
    DecodeResult,
    FailedChecksum,
    Packet,
    PayloadTooLarge,
    PollingMessage,
    WrongPayloadLength,
)
from .messages import message_name
from .mqtt_handler import MqttHandler
from .serial_handler import SerialDisconnected, SerialHandler, build_decoder

logger = logging.getLogger(__name__)

# Initial connection retry settings
INITIAL_RETRY_DELAY = 5  # seconds
DEFAULT_CHUNK_SIZE = 4096

# Replay waits for the broker before publishing and before disconnecting
MQTT_CONNECT_TIMEOUT = 10  # seconds
MQTT_PUBLISH_TIMEOUT = 10  # seconds


class ResultDispatcher:
    """Logs and counts decoder results, forwarding packets to MQTT."""

    def __init__(self, mqtt_handler: MqttHandler | None = None) -> None:
        self._mqtt = mqtt_handler
        self.counts: Counter[str] = Counter()

    def handle(self, result: DecodeResult) -> None:
        self.counts[type(result).__name__] += 1

        if isinstance(result, Packet):
            logger.debug(
                "Received %s: %d bytes",
                message_name(result.message_class, result.message_id),
                len(result.payload),
            )
            if self._mqtt is not None:
                self._mqtt.publish_packet(result)
        elif isinstance(result, PollingMessage):
            logger.debug(
                "Polling message for %s",
                message_name(result.frame.message_class, result.frame.message_id),
            )
        elif isinstance(result, PayloadTooLarge):
            logger.warning(
                "Dropped %s: payload length %d exceeds max %d",
                message_name(result.frame.message_class, result.frame.message_id),
                result.frame.length,
                result.max_payload_length,
            )
        elif isinstance(result, WrongPayloadLength):
            logger.warning(
                "Dropped %s: payload length %d, expected %d",
                message_name(result.frame.message_class, result.frame.message_id),
                result.frame.length,
                result.expected_length,
            )
        elif isinstance(result, FailedChecksum):
            logger.warning(
                "Checksum failed for %s: computed 0x%04X, received 0x%04X",
                message_name(result.frame.message_class, result.frame.message_id),
                result.computed_checksum,
                result.frame.checksum,
            )

    def log_summary(self) -> None:
        if not self.counts:
            logger.info("No frames decoded")
            return
        logger.info(
            "Decoded: %s",
            ", ".join(f"{name}={count}" for name, count in sorted(self.counts.items())),
        )


def main(argv=None) -> None:
    """Entry point for ubx-bridge command."""
    parser = argparse.ArgumentParser(
        description="Decode UBX frames from a serial GNSS receiver and publish them to MQTT"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--replay",
        type=Path,
        default=None,
        help="Decode a binary capture file instead of reading the serial port",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help=f"Read size when replaying a capture (default: {DEFAULT_CHUNK_SIZE})",
    )
    args = parser.parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.chunk_size < 1:
        logger.error("--chunk-size must be positive")
        sys.exit(1)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        if args.replay is None:
            logger.error("Configuration file not found: %s", args.config)
            sys.exit(1)
        config = Config()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    if args.replay is not None:
        replay(config, args.replay, args.chunk_size)
        return

    if config.serial is None:
        logger.error("Configuration error: serial section is required unless replaying")
        sys.exit(1)

    run(config)


def replay(config: Config, path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Counter:
    """Decode a capture file and return the count of each result kind."""
    decoder = build_decoder(config.decoder)
    mqtt_handler = MqttHandler(config.mqtt) if config.mqtt else None
    dispatcher = ResultDispatcher(mqtt_handler)

    try:
        f = open(path, "rb")
    except OSError as e:
        logger.error("Cannot open capture %s: %s", path, e)
        sys.exit(1)

    if mqtt_handler is not None:
        mqtt_handler.connect()
        if not mqtt_handler.wait_connected(MQTT_CONNECT_TIMEOUT):
            logger.warning(
                "MQTT broker did not accept the connection within %ds, packets will not be published",
                MQTT_CONNECT_TIMEOUT,
            )
    try:
        with f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                for result in decoder.feed(chunk):
                    dispatcher.handle(result)
        decoder.flush()
    finally:
        if mqtt_handler is not None:
            unsent = mqtt_handler.wait_for_publish(MQTT_PUBLISH_TIMEOUT)
            if unsent:
                logger.warning("%d packets were not published before disconnecting", unsent)
            mqtt_handler.disconnect()
        dispatcher.log_summary()

    return dispatcher.counts


def run(config: Config) -> None:
    """Run the bridge with loaded configuration."""
    serial_handler = SerialHandler(config.serial, build_decoder(config.decoder))
    mqtt_handler = MqttHandler(config.mqtt) if config.mqtt else None
    dispatcher = ResultDispatcher(mqtt_handler)

    # Graceful shutdown
    shutdown_requested = False

    def handle_signal(signum, frame):
        nonlocal shutdown_requested
        logger.info("Shutdown requested")
        shutdown_requested = True

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        # Initial serial connection with retry
        while not shutdown_requested:
            try:
                serial_handler.open()
                break
            except serial.SerialException as e:
                logger.error(
                    "Failed to open serial port: %s (retrying in %ds)",
                    e,
                    INITIAL_RETRY_DELAY,
                )
                time.sleep(INITIAL_RETRY_DELAY)

        if shutdown_requested:
            return

        if mqtt_handler is not None:
            mqtt_handler.connect()

        logger.info("Bridge running on %s", config.serial.port)

        # Main loop: poll serial, dispatch decoded results
        while not shutdown_requested:
            if not serial_handler.connected:
                # Attempt reconnection
                if serial_handler.try_reconnect():
                    logger.info("Serial reconnected")
                continue

            try:
                for result in serial_handler.read_results():
                    dispatcher.handle(result)
            except SerialDisconnected:
                logger.warning("Serial connection lost, will attempt reconnection")
                # Loop will handle reconnection on next iteration

    except Exception as e:
        logger.error("Unexpected error: %s", e)
        sys.exit(1)
    finally:
        if mqtt_handler is not None:
            mqtt_handler.disconnect()
        serial_handler.close()
        dispatcher.log_summary()
        logger.info("Bridge stopped")


if __name__ == "__main__":
    main()
