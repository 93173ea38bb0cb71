"""Reads frames from a serial port and hands them to the matching protocol."""

from __future__ import annotations

from typing import List, Optional, Union

import serial

from uartlink.current_power import CurrentPowerProtocol, CurrentPowerReading
from uartlink.protocol import FrameError, Protocol
from uartlink.serial_screen import SerialScreenEvent, SerialScreenProtocol

_CURRENT_POWER_HEADER = 0xAA
_SCREEN_HEADER = 0x65
_BYTE_TIMEOUT = 0.1
_CURRENT_POWER_TIMEOUT = 0.1
_SCREEN_TIMEOUT = 0.2

ParseResult = Union[CurrentPowerReading, SerialScreenEvent]


def _read(port, size: int, timeout: Optional[float]) -> bytes:
    """Read up to *size* bytes from a serial-like port using a temporary timeout."""
    previous = port.timeout
    port.timeout = timeout
    try:
        return port.read(size)
    finally:
        port.timeout = previous


class UartReader:
    """Reads one frame at a time from a port and dispatches it by its header byte."""

    def __init__(self, port_name: str, baud_rate: int = 9600, port=None) -> None:
        self.port_name = port_name
        self.baud_rate = baud_rate
        self._port = port
        self.protocols: List[Protocol] = []

    def __enter__(self) -> "UartReader":
        return self.open()

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def port(self):
        """The underlying serial port, or None while closed."""
        return self._port

    def add_protocol(self, protocol: Protocol) -> None:
        """Register a protocol that frames may be dispatched to."""
        self.protocols.append(protocol)

    def open(self) -> "UartReader":
        """Open the port at 8N1 without flow control; raise SerialException on failure."""
        if self._port is not None:
            return self
        try:
            self._port = serial.Serial(
                self.port_name,
                self.baud_rate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
                timeout=_BYTE_TIMEOUT,
            )
        except (serial.SerialException, ValueError) as exc:
            raise serial.SerialException(f"无法打开串口: {self.port_name}") from exc
        print(
            f"成功打开串口: {self.port_name} 波特率: {self.baud_rate} "
            "数据位: 8 停止位: 1 校验位: 无 流控制: 无"
        )
        return self

    def close(self) -> None:
        """Close the port if it is open."""
        if self._port is not None:
            self._port.close()
            self._port = None

    def read_and_parse_frame(self) -> Optional[ParseResult]:
        """Read one frame and parse it; return the parse result, or None if nothing usable arrived."""
        if self._port is None:
            raise serial.SerialException(f"串口未打开: {self.port_name}")
        first = _read(self._port, 1, _BYTE_TIMEOUT)
        if not first:
            return None
        if first[0] == _CURRENT_POWER_HEADER:
            second = _read(self._port, 1, _BYTE_TIMEOUT)
            if not second or second[0] != _CURRENT_POWER_HEADER:
                return None
            return self._read_frame(
                CurrentPowerProtocol, first + second, _CURRENT_POWER_TIMEOUT
            )
        if first[0] == _SCREEN_HEADER:
            return self._read_frame(SerialScreenProtocol, first, _SCREEN_TIMEOUT)
        return None

    def _read_frame(self, kind: type, head: bytes, timeout: float) -> Optional[ParseResult]:
        protocol = next((p for p in self.protocols if isinstance(p, kind)), None)
        if protocol is None:
            return None
        remaining = protocol.frame_size - len(head)
        rest = _read(self._port, remaining, timeout)
        if len(rest) != remaining:
            return None
        try:
            return protocol.parse_frame(head + rest)
        except FrameError:
            return None