"""Configuration loading and validation."""

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass
class MqttConfig:
    broker: str
    port: int = 1883
    username: str | None = None
    password: str | None = None
    topic: str = "sensor/dsmr"
    client_id: str = "dsmr-p1"
    retain: bool = True


@dataclass
class SerialConfig:
    port: str
    baud: int = 115200


@dataclass
class Config:
    mqtt: MqttConfig
    serial: SerialConfig


def load_config(path: Path) -> Config:
    """Load and validate configuration from YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f)

    if not raw:
        raise ValueError("configuration file is empty")
    if not isinstance(raw, dict):
        raise ValueError("configuration must be a mapping of sections")

    errors = []

    # Validate required sections
    if "mqtt" not in raw:
        errors.append("missing 'mqtt' section")
    elif not isinstance(raw["mqtt"], dict) or "broker" not in raw["mqtt"]:
        errors.append("mqtt.broker is required")

    if "serial" not in raw:
        errors.append("missing 'serial' section")
    elif not isinstance(raw["serial"], dict) or "port" not in raw["serial"]:
        errors.append("serial.port is required")

    if errors:
        raise ValueError(f"configuration validation failed: {'; '.join(errors)}")

    mqtt_raw = raw["mqtt"]
    mqtt = MqttConfig(
        broker=mqtt_raw["broker"],
        port=mqtt_raw.get("port", 1883),
        username=mqtt_raw.get("username"),
        password=mqtt_raw.get("password"),
        topic=mqtt_raw.get("topic", "sensor/dsmr"),
        client_id=mqtt_raw.get("client_id", "dsmr-p1"),
        retain=mqtt_raw.get("retain", True),
    )

    serial_raw = raw["serial"]
    serial = SerialConfig(
        port=serial_raw["port"],
        baud=serial_raw.get("baud", 115200),
    )

    return Config(mqtt=mqtt, serial=serial)
