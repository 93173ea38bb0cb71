"""Current/power measurement frames: AA AA, two floats, eight zero bytes, FF FF."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Optional

from uartlink.protocol import FrameError, Protocol

FRAME_SIZE = 20
HEADER = b"\xaa\xaa"
TRAILER = b"\xff\xff"
_HEADER_TIMEOUT = 0.01

CurrentPowerCallback = Callable[[float, float], None]


@dataclass(frozen=True)
class CurrentPowerReading:
    """Values decoded from one current/power frame."""

    current: float
    power: float
    padding_is_zero: bool
    raw: bytes


def _is_valid(frame: bytes) -> bool:
    return (
        len(frame) == FRAME_SIZE
        and frame[:2] == HEADER
        and frame[FRAME_SIZE - 2:] == TRAILER
    )


def decode_frame(frame: bytes) -> CurrentPowerReading:
    """Decode a 20-byte current/power frame, raising FrameError if it is malformed."""
    frame = bytes(frame)
    if not _is_valid(frame):
        raise FrameError(f"not a current/power frame: {frame.hex(' ')}")
    current, power = struct.unpack_from("<ff", frame, 2)
    padding_is_zero = not any(frame[10:18])
    return CurrentPowerReading(current, power, padding_is_zero, frame)


def _report(reading: CurrentPowerReading) -> None:
    print("\n=== 电流功率协议数据帧解析结果 ===")
    print(f"电流 I: {reading.current:.3f} A")
    print(f"功率 W: {reading.power:.3f} W")
    print(f"剩余字节验证: {'通过' if reading.padding_is_zero else '失败'}")
    raw = "".join(f"{byte:02x} " for byte in reading.raw)
    print(f"原始数据: {raw}")
    print("=====================================\n")


def _read(port, size: int, timeout: float) -> bytes:
    """Read up to *size* bytes from a serial-like port using a temporary timeout."""
    previous = port.timeout
    port.timeout = timeout
    try:
        return port.read(size)
    finally:
        port.timeout = previous


class CurrentPowerProtocol(Protocol):
    """Parses current/power frames and forwards the values to a callback."""

    def __init__(self, callback: Optional[CurrentPowerCallback] = None) -> None:
        self.callback = callback

    def parse_frame(self, frame: bytes) -> CurrentPowerReading:
        """Decode *frame*, print a report, notify the callback and return the reading."""
        reading = decode_frame(frame)
        _report(reading)
        if self.callback is not None:
            self.callback(reading.current, reading.power)
        return reading

    def is_valid_frame(self, frame: bytes) -> bool:
        return _is_valid(bytes(frame))

    @property
    def frame_size(self) -> int:
        return FRAME_SIZE

    @property
    def name(self) -> str:
        return "电流功率协议"

    def find_frame_header(self, port) -> bool:
        """Skip bytes until an AA AA header has been consumed; False on timeout or mismatch."""
        while True:
            byte = _read(port, 1, _HEADER_TIMEOUT)
            if not byte:
                return False
            if byte[0] == 0xAA:
                break
        second = _read(port, 1, _HEADER_TIMEOUT)
        return bool(second) and second[0] == 0xAA