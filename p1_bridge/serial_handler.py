"""Serial port handler for the P1 port."""

import logging
import time

import serial

from .config import SerialConfig
from .telegram import Reading, TelegramDecoder

logger = logging.getLogger(__name__)

# Reconnection settings
RECONNECT_DELAY_MIN = 1  # seconds
RECONNECT_DELAY_MAX = 60  # seconds


class SerialHandler:
    """Reads telegrams from the meter's P1 port."""

    def __init__(self, config: SerialConfig) -> None:
        self._config = config
        self._port: serial.Serial | None = None
        self._decoder = TelegramDecoder()
        self._reconnect_delay = RECONNECT_DELAY_MIN

    @property
    def connected(self) -> bool:
        """Return True if serial port is open."""
        return self._port is not None and self._port.is_open

    @property
    def decoder(self) -> TelegramDecoder:
        return self._decoder

    def open(self) -> None:
        """Open the serial port."""
        # DSMR 4+ meters send 8N1 (DSMR 2.2 used 9600 7E1)
        self._port = serial.Serial(
            port=self._config.port,
            baudrate=self._config.baud,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=0.1,  # 100ms read timeout for polling
        )
        self._reconnect_delay = RECONNECT_DELAY_MIN  # Reset backoff on success
        logger.info(
            "Opened serial port %s at %d baud",
            self._config.port,
            self._config.baud,
        )

    def close(self) -> None:
        """Close the serial port."""
        if self._port and self._port.is_open:
            self._port.close()
            logger.info("Closed serial port")
        self._port = None

    def try_reconnect(self) -> bool:
        """
        Attempt to reconnect to the serial port.

        Returns True if reconnection successful, False otherwise.
        Uses exponential backoff between attempts.
        """
        self.close()
        self._decoder.reset()  # Drop the partial telegram, keep the reading

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

    def read_readings(self) -> list[Reading]:
        """
        Read and decode any available telegram data.

        Returns a reading for every valid telegram completed, or an empty list.
        Raises SerialDisconnected if the port is no longer available.
        """
        if not self.connected:
            return []

        try:
            data = self._port.read(self._port.in_waiting or 1)
        except serial.SerialException as e:
            logger.error("Serial read error: %s", e)
            raise SerialDisconnected() from e

        if not data:
            return []

        readings = self._decoder.feed(data)
        for reading in readings:
            logger.debug("Received telegram from %s", reading.power_time or "meter")
        return readings


class SerialDisconnected(Exception):
    """Raised when serial port becomes unavailable."""

    pass
