"""Tests for the command line entry point and result dispatch."""

import logging
import threading
from unittest.mock import MagicMock, patch

import pytest

from ubx_bridge.config import Config, DecoderConfig, MqttConfig
from ubx_bridge.decoder import FailedChecksum, Frame, Packet, PollingMessage
from ubx_bridge.main import ResultDispatcher, main, replay
from ubx_bridge.protocol import encode_frame


def capture() -> bytes:
    return b"".join(
        [
            encode_frame(0x05, 0x01, b"\x06\x00"),
            encode_frame(0x0A, 0x04),
            encode_frame(0xF1, 0x01, b"\x10\x20", checksum=0x0000),
            encode_frame(0x01, 0x07, bytes(92)),
        ]
    )


def test_replay_counts_results(tmp_path):
    path = tmp_path / "capture.ubx"
    path.write_bytes(capture())

    counts = replay(Config(), path, chunk_size=7)

    assert counts == {"Packet": 2, "PollingMessage": 1, "FailedChecksum": 1}


def test_replay_uses_decoder_config(tmp_path):
    path = tmp_path / "capture.ubx"
    path.write_bytes(capture())

    counts = replay(Config(decoder=DecoderConfig(max_payload_length=50)), path)

    assert counts["PayloadTooLarge"] == 1
    assert counts["Packet"] == 1


def test_main_replay_without_config(tmp_path):
    """Replaying works with defaults when there is no config file."""
    path = tmp_path / "capture.ubx"
    path.write_bytes(capture())

    main(["--replay", str(path), "-c", str(tmp_path / "missing.yaml")])


def test_main_missing_config_exits(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["-c", str(tmp_path / "missing.yaml")])
    assert exc.value.code == 1


def test_main_requires_serial_section(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("decoder:\n  max_payload_length: 100\n")

    with pytest.raises(SystemExit) as exc:
        main(["-c", str(path)])
    assert exc.value.code == 1


def test_main_invalid_config_exits(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("serial:\n  baud: 9600\n")

    with pytest.raises(SystemExit) as exc:
        main(["-c", str(path)])
    assert exc.value.code == 1


def test_main_missing_capture_exits(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["--replay", str(tmp_path / "none.ubx"), "-c", str(tmp_path / "missing.yaml")])
    assert exc.value.code == 1


def test_dispatcher_publishes_packets_only():
    mqtt_handler = MagicMock()
    dispatcher = ResultDispatcher(mqtt_handler)
    packet = Packet(0x01, 0x07, b"\x01")

    dispatcher.handle(packet)
    dispatcher.handle(PollingMessage(Frame(0x0A, 0x04, 0, b"", 0x340E)))

    mqtt_handler.publish_packet.assert_called_once_with(packet)
    assert dispatcher.counts == {"Packet": 1, "PollingMessage": 1}


def test_dispatcher_warns_on_checksum_failure(caplog):
    dispatcher = ResultDispatcher()
    with caplog.at_level(logging.WARNING, logger="ubx_bridge.main"):
        dispatcher.handle(FailedChecksum(Frame(0x01, 0x07, 2, b"\x00\x00", 0x1234), 0x0B09))

    assert "Checksum failed for NAV-PVT" in caplog.text
    assert "0x0B09" in caplog.text


def test_replay_publishes_every_packet(tmp_path):
    """Replay waits for the broker before publishing, as paho connects on its own thread."""
    path = tmp_path / "capture.ubx"
    path.write_bytes(capture())

    with patch("ubx_bridge.mqtt_handler.mqtt.Client") as client_cls:
        client = client_cls.return_value

        def start_loop():
            threading.Timer(0.05, client.on_connect, (client, None, None, 0, None)).start()

        client.loop_start.side_effect = start_loop
        counts = replay(Config(mqtt=MqttConfig(broker="localhost")), path)

    assert counts["Packet"] == 2
    assert client.publish.call_count == 2
    topics = [c.args[0] for c in client.publish.call_args_list]
    assert topics == ["ubx/ACK-ACK", "ubx/NAV-PVT"]
    client.publish.return_value.wait_for_publish.assert_called()
    client.disconnect.assert_called_once()
