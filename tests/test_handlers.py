import json
from unittest import mock

import paho.mqtt.client as mqtt
import pytest
import serial

from p1_bridge.config import MqttConfig, SerialConfig
from p1_bridge.mqtt_handler import MqttHandler
from p1_bridge.serial_handler import SerialDisconnected, SerialHandler
from p1_bridge.telegram import FrameState, Reading


class FakePort:
    """Stands in for serial.Serial, serving queued chunks."""

    def __init__(self, chunks=(), error=None):
        self._chunks = list(chunks)
        self._error = error
        self.is_open = True

    @property
    def in_waiting(self):
        return len(self._chunks[0]) if self._chunks else 0

    def read(self, size):
        if self._error:
            raise self._error
        if not self._chunks:
            return b""
        return self._chunks.pop(0)

    def close(self):
        self.is_open = False


@pytest.fixture
def serial_handler():
    return SerialHandler(SerialConfig(port="/dev/null"))


class TestSerialHandler:
    def test_not_connected(self, serial_handler):
        assert not serial_handler.connected
        assert serial_handler.read_readings() == []

    def test_reads_telegram_in_chunks(self, serial_handler, canonical_telegram):
        data = b"".join(canonical_telegram)
        chunks = [data[i : i + 64] for i in range(0, len(data), 64)]
        serial_handler._port = FakePort(chunks)

        readings = []
        for _ in chunks:
            readings.extend(serial_handler.read_readings())

        assert len(readings) == 1
        assert readings[0].gas_total == 4890857
        assert serial_handler.decoder.valid_frames == 1

    def test_no_data(self, serial_handler):
        serial_handler._port = FakePort()
        assert serial_handler.read_readings() == []

    def test_read_error_raises_disconnected(self, serial_handler):
        serial_handler._port = FakePort(error=serial.SerialException("gone"))
        with pytest.raises(SerialDisconnected):
            serial_handler.read_readings()

    def test_close(self, serial_handler):
        port = FakePort()
        serial_handler._port = port
        serial_handler.close()
        assert not port.is_open
        assert not serial_handler.connected

    def test_reconnect_backoff(self, serial_handler):
        with mock.patch("p1_bridge.serial_handler.time.sleep") as sleep, mock.patch(
            "p1_bridge.serial_handler.serial.Serial",
            side_effect=serial.SerialException("busy"),
        ):
            assert serial_handler.try_reconnect() is False
            assert serial_handler.try_reconnect() is False

        assert [call.args[0] for call in sleep.call_args_list] == [1, 2]

    def test_reconnect_drops_partial_telegram_keeps_reading(
        self, serial_handler, make_telegram
    ):
        lines = make_telegram([b"0-0:96.14.0(0002)"])
        serial_handler._port = FakePort([b"".join(lines[:-1]) + b"1-0:1.7.0(00.4"])
        serial_handler.read_readings()
        assert serial_handler.decoder.state is FrameState.IN_FRAME

        with mock.patch("p1_bridge.serial_handler.time.sleep"), mock.patch(
            "p1_bridge.serial_handler.serial.Serial", return_value=FakePort()
        ):
            assert serial_handler.try_reconnect() is True

        decoder = serial_handler.decoder
        assert decoder.state is FrameState.IDLE
        assert decoder.crc == 0
        assert decoder.snapshot().tariff == 2

        # The partial line and the old frame are gone: a bare end line is invalid
        serial_handler._port = FakePort([lines[-1]])
        assert serial_handler.read_readings() == []
        assert decoder.invalid_frames == 1


@pytest.fixture
def mqtt_handler():
    handler = MqttHandler(MqttConfig(broker="localhost", topic="sensor/dsmr"))
    handler._client = mock.Mock()
    handler._client.publish.return_value = mock.Mock(rc=mqtt.MQTT_ERR_SUCCESS)
    return handler


class TestMqttHandler:
    def test_publish_requires_connection(self, mqtt_handler):
        assert mqtt_handler.publish_reading(Reading()) is False
        mqtt_handler._client.publish.assert_not_called()

    def test_publish_reading(self, mqtt_handler):
        mqtt_handler._handle_connect(mqtt_handler._client, None, None, 0, None)
        reading = Reading(tariff=2, gas_total=4890857)

        assert mqtt_handler.publish_reading(reading) is True

        topic, payload = mqtt_handler._client.publish.call_args.args
        assert topic == "sensor/dsmr"
        assert json.loads(payload) == reading.as_dict()
        assert mqtt_handler._client.publish.call_args.kwargs == {"retain": True}

    def test_publish_failure(self, mqtt_handler):
        mqtt_handler._handle_connect(mqtt_handler._client, None, None, 0, None)
        mqtt_handler._client.publish.return_value = mock.Mock(rc=mqtt.MQTT_ERR_NO_CONN)

        assert mqtt_handler.publish_reading(Reading()) is False

    def test_disconnect_clears_connected(self, mqtt_handler):
        mqtt_handler._handle_connect(mqtt_handler._client, None, None, 0, None)
        assert mqtt_handler.connected

        mqtt_handler._handle_disconnect(mqtt_handler._client, None, None, 7, None)

        assert not mqtt_handler.connected
