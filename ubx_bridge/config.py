"""Configuration loading and validation."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .protocol import DEFAULT_MAX_PAYLOAD_LENGTH


@dataclass
class MqttConfig:
    broker: str
    port: int = 1883
    username: str | None = None
    password: str | None = None
    root_topic: str = "ubx"


@dataclass
class SerialConfig:
    port: str
    baud: int = 38400


@dataclass
class DecoderConfig:
    max_payload_length: int = DEFAULT_MAX_PAYLOAD_LENGTH
    # (class, id) -> fixed payload length, overriding the built-in table
    payload_lengths: dict[tuple[int, int], int] = field(default_factory=dict)


@dataclass
class Config:
    serial: SerialConfig | None = None
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    mqtt: MqttConfig | None = None


def _is_int(value: object, low: int, high: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high


def _parse_payload_lengths(raw, errors: list[str]) -> dict[tuple[int, int], int]:
    if not isinstance(raw, list):
        errors.append("decoder.payload_lengths must be a list")
        return {}

    lengths = {}
    for index, entry in enumerate(raw):
        where = f"decoder.payload_lengths[{index}]"
        if not isinstance(entry, dict):
            errors.append(f"{where} must be a mapping with class, id and length")
            continue
        message_class = entry.get("class")
        message_id = entry.get("id")
        length = entry.get("length")
        if not _is_int(message_class, 0, 0xFF):
            errors.append(f"{where}.class must be an integer 0-255")
        elif not _is_int(message_id, 0, 0xFF):
            errors.append(f"{where}.id must be an integer 0-255")
        elif not _is_int(length, 0, 0xFFFF):
            errors.append(f"{where}.length must be an integer 0-65535")
        else:
            lengths[(message_class, message_id)] = length
    return lengths


def parse_config(raw) -> Config:
    """Validate a parsed YAML document and build a Config from it."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("configuration validation failed: document must be a mapping")

    errors = []

    serial_raw = raw.get("serial")
    if serial_raw is not None and (
        not isinstance(serial_raw, dict) or "port" not in serial_raw
    ):
        errors.append("serial.port is required")

    mqtt_raw = raw.get("mqtt")
    if mqtt_raw is not None and (
        not isinstance(mqtt_raw, dict) or "broker" not in mqtt_raw
    ):
        errors.append("mqtt.broker is required")

    decoder_raw = raw.get("decoder") or {}
    if not isinstance(decoder_raw, dict):
        errors.append("decoder must be a mapping")
        decoder_raw = {}
    max_payload_length = decoder_raw.get("max_payload_length", DEFAULT_MAX_PAYLOAD_LENGTH)
    if not _is_int(max_payload_length, 0, 0xFFFF):
        errors.append("decoder.max_payload_length must be an integer 0-65535 (0 disables)")
    payload_lengths = _parse_payload_lengths(decoder_raw.get("payload_lengths", []), errors)

    if errors:
        raise ValueError(f"configuration validation failed: {'; '.join(errors)}")

    serial = None
    if serial_raw is not None:
        serial = SerialConfig(
            port=serial_raw["port"],
            baud=serial_raw.get("baud", 38400),
        )

    mqtt = None
    if mqtt_raw is not None:
        mqtt = MqttConfig(
            broker=mqtt_raw["broker"],
            port=mqtt_raw.get("port", 1883),
            username=mqtt_raw.get("username"),
            password=mqtt_raw.get("password"),
            root_topic=mqtt_raw.get("root_topic", "ubx"),
        )

    decoder = DecoderConfig(
        max_payload_length=max_payload_length,
        payload_lengths=payload_lengths,
    )

    return Config(serial=serial, decoder=decoder, mqtt=mqtt)


def load_config(path: Path) -> Config:
    """Load and validate configuration from YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f)
    return parse_config(raw)
