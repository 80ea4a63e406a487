"""Telegram decoding: field registry, reading snapshot and frame state machine."""

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import partial

from .extract import extract_numeric, extract_text
from .protocol import (
    CRC_INIT,
    CRC_LENGTH,
    END_MARKER,
    START_MARKER,
    LineTokenizer,
    crc16,
)

logger = logging.getLogger(__name__)

HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


@dataclass
class Reading:
    """Latest meter values. Energy in Wh, power in W, gas in dm3."""

    dsmr: int = 0
    power_time: str = ""
    tariff: int = 0
    use_t1: int = 0
    use_t2: int = 0
    return_t1: int = 0
    return_t2: int = 0
    use_actual: int = 0
    use_l1: int = 0
    use_l2: int = 0
    use_l3: int = 0
    return_actual: int = 0
    return_l1: int = 0
    return_l2: int = 0
    return_l3: int = 0
    gas_time: str = ""
    gas_total: int = 0

    def as_dict(self) -> dict:
        """Render the reading in the published message layout."""
        return {
            "dsmr": str(self.dsmr),
            "power": {
                "time": self.power_time,
                "tariff": str(self.tariff),
                "use": {
                    "total": {"T1": str(self.use_t1), "T2": str(self.use_t2)},
                    "actual": {
                        "total": str(self.use_actual),
                        "L1": str(self.use_l1),
                        "L2": str(self.use_l2),
                        "L3": str(self.use_l3),
                    },
                },
                "return": {
                    "total": {"T1": str(self.return_t1), "T2": str(self.return_t2)},
                    "actual": {
                        "total": str(self.return_actual),
                        "L1": str(self.return_l1),
                        "L2": str(self.return_l2),
                        "L3": str(self.return_l3),
                    },
                },
            },
            "gas": {"time": self.gas_time, "total": str(self.gas_total)},
        }


@dataclass(frozen=True)
class Field:
    attr: str
    extract: Callable[[str], int | str | None]


_number = partial(extract_numeric, scale=False)
_scaled = partial(extract_numeric, scale=True)
_text = partial(extract_text, from_start=False)
_first_text = partial(extract_text, from_start=True)

# OBIS code -> Reading fields it updates
FIELDS: dict[str, tuple[Field, ...]] = {
    "1-3:0.2.8": (Field("dsmr", _number),),
    "0-0:1.0.0": (Field("power_time", _text),),
    "1-0:1.8.1": (Field("use_t1", _scaled),),
    "1-0:1.8.2": (Field("use_t2", _scaled),),
    "1-0:2.8.1": (Field("return_t1", _scaled),),
    "1-0:2.8.2": (Field("return_t2", _scaled),),
    "0-0:96.14.0": (Field("tariff", _number),),
    "1-0:1.7.0": (Field("use_actual", _scaled),),
    "1-0:21.7.0": (Field("use_l1", _scaled),),
    "1-0:41.7.0": (Field("use_l2", _scaled),),
    "1-0:61.7.0": (Field("use_l3", _scaled),),
    "1-0:2.7.0": (Field("return_actual", _scaled),),
    "1-0:22.7.0": (Field("return_l1", _scaled),),
    "1-0:42.7.0": (Field("return_l2", _scaled),),
    "1-0:62.7.0": (Field("return_l3", _scaled),),
    # 0-1:24.2.1(170108160000W)(04890.857*m3): timestamp, then volume
    "0-1:24.2.1": (Field("gas_total", _scaled), Field("gas_time", _first_text)),
}


class FrameState(Enum):
    IDLE = "idle"
    IN_FRAME = "in_frame"


class FrameStatus(Enum):
    """Outcome of decoding one line."""

    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


class TelegramDecoder:
    """Stateful decoder for telegram lines.

    Owns the reading snapshot and the running CRC. Lines are fed one at a
    time with decode_line(), or as raw bytes with feed().
    """

    def __init__(self, reading: Reading | None = None) -> None:
        self._reading = reading if reading is not None else Reading()
        self._tokenizer = LineTokenizer()
        self._crc = CRC_INIT
        self._state = FrameState.IDLE

        # Statistics
        self.valid_frames = 0
        self.invalid_frames = 0

    @property
    def state(self) -> FrameState:
        return self._state

    @property
    def crc(self) -> int:
        """Running CRC over the current frame."""
        return self._crc

    @property
    def dropped_lines(self) -> int:
        return self._tokenizer.dropped_lines

    def snapshot(self) -> Reading:
        """Return a copy of the current reading."""
        return dataclasses.replace(self._reading)

    def feed(self, data: bytes) -> list[Reading]:
        """Feed raw bytes, return a snapshot for every valid telegram completed."""
        readings = []
        for line in self._tokenizer.feed(data):
            if self.decode_line(line) is FrameStatus.VALID:
                readings.append(self.snapshot())
        return readings

    def decode_line(self, line: bytes) -> FrameStatus:
        """Decode one telegram line, including its line terminator."""
        logger.debug("Telegram line: %r", line)

        start = line.rfind(START_MARKER)
        if start >= 0:
            # Start of telegram; a start in mid-frame drops the partial frame
            if self._state is FrameState.IN_FRAME:
                logger.debug("Telegram restarted before end marker")
            self._crc = crc16(line[start:])
            self._state = FrameState.IN_FRAME
            return FrameStatus.PENDING

        end = line.rfind(END_MARKER)
        if end >= 0:
            return self._finish_frame(line, end)

        self._crc = crc16(line, self._crc)
        self._update_fields(line.decode("ascii", errors="replace"))
        return FrameStatus.PENDING

    def reset(self) -> None:
        """Abandon the current frame and any partial line. The reading is kept."""
        self._tokenizer.reset()
        self._crc = CRC_INIT
        self._state = FrameState.IDLE

    def _finish_frame(self, line: bytes, end: int) -> FrameStatus:
        crc = crc16(line[end : end + 1], self._crc)
        literal = line[end + 1 : end + 1 + CRC_LENGTH].decode("ascii", errors="replace")
        in_frame = self._state is FrameState.IN_FRAME

        self._crc = CRC_INIT
        self._state = FrameState.IDLE

        if not in_frame:
            logger.warning("Telegram end marker without start marker")
        elif len(literal) != CRC_LENGTH or not HEX_DIGITS.issuperset(literal):
            logger.warning("Malformed telegram CRC: %r", literal)
        elif int(literal, 16) != crc:
            logger.warning(
                "Invalid telegram CRC: received %s, calculated %04X", literal, crc
            )
        else:
            self.valid_frames += 1
            logger.debug("Valid telegram CRC %04X", crc)
            return FrameStatus.VALID

        self.invalid_frames += 1
        return FrameStatus.INVALID

    def _update_fields(self, text: str) -> None:
        code, bracket, _ = text.partition("(")
        if not bracket:
            return

        for field in FIELDS.get(code, ()):
            value = field.extract(text)
            if value is None:
                logger.debug("No valid value for %s in %r", code, text)
                continue
            setattr(self._reading, field.attr, value)
