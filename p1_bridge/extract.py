"""Value extraction from the bracketed fields of a telegram line.

Lines look like:
    1-0:1.8.1(011522.839*kWh)
    0-0:96.14.0(0002)
    0-1:24.2.1(170108160000W)(04890.857*m3)

These are positional heuristics tuned to the fixed line layouts of the
protocol, not a general parser. Anything outside the expected layout yields
None and the caller keeps its previous value.
"""

from decimal import Decimal

# The OBIS code before the first bracket is at least 8 characters ("0-0:1.0.0"
# is 9), and no field of interest opens its value bracket past column 32 (the
# gas line's second bracket sits at column 25).
MIN_VALUE_COLUMN = 8
MAX_VALUE_COLUMN = 32

# Longest numeric value is 12 characters, e.g. "123456789.123"
MAX_NUMBER_LENGTH = 12

# Timestamps are 13 characters ("YYMMDDhhmmssX"); leave room for other text
MAX_TEXT_LENGTH = 31

SCALE = 1000


def _in_window(column: int) -> bool:
    return MIN_VALUE_COLUMN <= column <= MAX_VALUE_COLUMN


def _is_number(text: str) -> bool:
    """Return True if text is digits with at most one decimal point."""
    digits = text.replace(".", "", 1)
    return digits.isascii() and digits.isdigit()


def extract_numeric(line: str, scale: bool) -> int | None:
    """
    Extract the number from the last bracketed value of a line.

    The value ends at the last '*' (separating value from unit) or, without
    a unit, at the last ')'. When scale is set the value is multiplied by
    1000 before truncating, so "011522.839" becomes 11522839.

    Returns None if no plausible number is found.
    """
    end = line.rfind("*")
    if end < 0:
        end = line.rfind(")")
    if end < 0:
        return None

    start = line.rfind("(", 0, end)
    if start < 0 or not _in_window(start):
        return None

    text = line[start + 1 : end]
    if not 1 <= len(text) <= MAX_NUMBER_LENGTH or not _is_number(text):
        return None

    value = Decimal(text)
    if scale:
        value *= SCALE
    return int(value)


def extract_text(line: str, from_start: bool) -> str | None:
    """Extract the contents of the first or last bracketed span of a line."""
    start = line.find("(") if from_start else line.rfind("(")
    if start < 0 or not _in_window(start):
        return None

    end = line.find(")", start + 1)
    if end < 0:
        return None

    text = line[start + 1 : end]
    if not text:
        return None
    return text[:MAX_TEXT_LENGTH]
