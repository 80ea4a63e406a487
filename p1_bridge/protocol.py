"""DSMR P1 telegram framing and checksum.

Telegram format:
    /XXX5<identification>\\r\\n
    \\r\\n
    <OBIS code>(<value>)...\\r\\n
    ...
    !<CRC>\\r\\n

- Start marker: '/' on the header line
- End marker: '!' followed by the CRC as 4 hex digits
- Checksum: CRC-16/ARC over every byte from '/' through '!', inclusive
"""

import logging

logger = logging.getLogger(__name__)

START_MARKER = b"/"
END_MARKER = b"!"
CRC_INIT = 0x0000
CRC_POLY = 0xA001  # reflected 0x8005
CRC_LENGTH = 4  # hex digits after '!'

# Longest line in a real telegram is 178 bytes plus "\r\n"
MAX_LINE_LENGTH = 250


def crc16(data: bytes, crc: int = CRC_INIT) -> int:
    """Continue a CRC-16/ARC calculation over data, starting from crc."""
    for b in data:
        crc ^= b
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ CRC_POLY
            else:
                crc >>= 1
    return crc


class LineTokenizer:
    """Stateful splitter for extracting telegram lines from a byte stream."""

    def __init__(self, max_length: int = MAX_LINE_LENGTH) -> None:
        self._max_length = max_length
        self._buffer = bytearray()
        self._discarding = False
        self.dropped_lines = 0

    def feed(self, data: bytes) -> list[bytes]:
        """Feed bytes into tokenizer, return list of complete lines.

        Each line is returned with its trailing newline. Lines longer than
        max_length are dropped whole.
        """
        lines = []

        while data:
            chunk, newline, data = data.partition(b"\n")
            complete = bool(newline)

            if self._discarding:
                # Skip the remainder of an overlong line
                self._discarding = not complete
                continue

            if len(self._buffer) + len(chunk) + len(newline) > self._max_length:
                self.dropped_lines += 1
                logger.warning(
                    "Dropping telegram line longer than %d bytes", self._max_length
                )
                self._buffer.clear()
                self._discarding = not complete
                continue

            self._buffer.extend(chunk + newline)
            if complete:
                lines.append(bytes(self._buffer))
                self._buffer.clear()

        return lines

    def reset(self) -> None:
        """Discard any partial line."""
        self._buffer.clear()
        self._discarding = False
