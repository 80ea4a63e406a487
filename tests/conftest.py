import pytest

from p1_bridge.protocol import crc16

HEADER = b"/ISk5\\2MT382-1000\r\n"

# DSMR 5.0 telegram as documented, with a shortened text message
CANONICAL_BODY = [
    b"1-3:0.2.8(50)",
    b"0-0:1.0.0(170108161107W)",
    b"0-0:96.1.1(4530303331303033303031363939353135)",
    b"1-0:1.8.1(001581.123*kWh)",
    b"1-0:1.8.2(001435.706*kWh)",
    b"1-0:2.8.1(000000.000*kWh)",
    b"1-0:2.8.2(000000.000*kWh)",
    b"0-0:96.14.0(0002)",
    b"1-0:1.7.0(02.027*kW)",
    b"1-0:2.7.0(00.000*kW)",
    b"0-0:96.7.21(00015)",
    b"0-0:96.7.9(00007)",
    b"1-0:99.97.0(3)(0-0:96.7.19)(000104180320W)(0000237126*s)(000101000001W)"
    b"(2147583646*s)(000102000003W)(2317482647*s)",
    b"1-0:32.32.0(00000)",
    b"1-0:32.36.0(00000)",
    b"0-0:96.13.0(4D65746572206D657373616765)",
    b"1-0:32.7.0(229.0*V)",
    b"1-0:31.7.0(009*A)",
    b"1-0:21.7.0(00.168*kW)",
    b"1-0:41.7.0(01.027*kW)",
    b"1-0:61.7.0(00.832*kW)",
    b"1-0:22.7.0(00.000*kW)",
    b"1-0:42.7.0(00.000*kW)",
    b"1-0:62.7.0(00.000*kW)",
    b"0-1:24.1.0(003)",
    b"0-1:96.1.0(4730303339303031363532303530323136)",
    b"0-1:24.2.1(170108160000W)(04890.857*m3)",
]


def build_telegram(body: list[bytes], header: bytes = HEADER) -> list[bytes]:
    """Frame body lines into a telegram with a correct CRC, one entry per line."""
    lines = [header, b"\r\n"] + [line + b"\r\n" for line in body]
    crc = crc16(b"".join(lines) + b"!")
    lines.append(b"!%04X\r\n" % crc)
    return lines


@pytest.fixture
def make_telegram():
    return build_telegram


@pytest.fixture
def canonical_telegram() -> list[bytes]:
    return build_telegram(CANONICAL_BODY)
