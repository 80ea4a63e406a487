"""Main entry point for the P1 MQTT bridge."""

import argparse
import logging
import signal
import sys
import time
from pathlib import Path

import serial

from .config import Config, load_config
from .mqtt_handler import MqttHandler
from .serial_handler import SerialDisconnected, SerialHandler

logger = logging.getLogger(__name__)

# Initial connection retry settings
INITIAL_RETRY_DELAY = 5  # seconds


def main() -> None:
    """Entry point for p1-bridge command."""
    parser = argparse.ArgumentParser(
        description="MQTT bridge for DSMR smart meter P1 telegrams"
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
    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        logger.error("Configuration file not found: %s", args.config)
        sys.exit(1)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    run(config)


def run(config: Config) -> None:
    """Run the bridge with loaded configuration."""
    serial_handler = SerialHandler(config.serial)
    mqtt_handler = MqttHandler(config.mqtt)

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

        # Initial broker connection with retry; paho reconnects after this
        while not shutdown_requested:
            try:
                mqtt_handler.connect()
                break
            except OSError as e:
                logger.error(
                    "Failed to connect to MQTT broker: %s (retrying in %ds)",
                    e,
                    INITIAL_RETRY_DELAY,
                )
                time.sleep(INITIAL_RETRY_DELAY)

        if shutdown_requested:
            return

        logger.info("Bridge running: publishing readings to '%s'", config.mqtt.topic)

        # Main loop: poll serial, publish completed readings
        while not shutdown_requested:
            if not serial_handler.connected:
                # Attempt reconnection
                if serial_handler.try_reconnect():
                    logger.info("Serial reconnected")
                continue

            try:
                for reading in serial_handler.read_readings():
                    mqtt_handler.publish_reading(reading)
            except SerialDisconnected:
                logger.warning("Serial connection lost, will attempt reconnection")
                serial_handler.close()

    except Exception as e:
        logger.error("Unexpected error: %s", e)
        sys.exit(1)
    finally:
        decoder = serial_handler.decoder
        logger.info(
            "Telegrams: %d valid, %d invalid, %d lines dropped",
            decoder.valid_frames,
            decoder.invalid_frames,
            decoder.dropped_lines,
        )
        mqtt_handler.disconnect()
        serial_handler.close()
        logger.info("Bridge stopped")


if __name__ == "__main__":
    main()
