"""Touch-screen protocol: key events in (65 page control event FF FF FF), text commands out."""

from __future__ import annotations

import random
import struct
import threading
from enum import Enum
from typing import Callable, Dict, Optional

import serial

from uartlink.protocol import FrameError, Protocol

FRAME_SIZE = 7
HEADER = 0x65
TERMINATOR = b"\xff\xff\xff"
_HEADER_TIMEOUT = 0.01
_FRAME_TIMEOUT = 0.01
_FLOAT_FIELD_LIMIT = 9
_COMMAND_LIMIT = 49

EventCallback = Callable[[], None]


class SerialScreenEvent(Enum):
    """Key events reported by the serial screen."""

    START_BUTTON = 0
    KEYBOARD_0 = 1
    KEYBOARD_1 = 2
    KEYBOARD_2 = 3
    KEYBOARD_3 = 4
    KEYBOARD_4 = 5
    KEYBOARD_5 = 6
    KEYBOARD_6 = 7
    KEYBOARD_7 = 8
    KEYBOARD_8 = 9
    KEYBOARD_9 = 10
    DELETE_BUTTON = 11
    CAMERA_EXPOSURE_PLUS_1 = 12
    CAMERA_EXPOSURE_PLUS_10 = 13
    CAMERA_EXPOSURE_PLUS_100 = 14
    CAMERA_EXPOSURE_PLUS_1000 = 15
    CAMERA_EXPOSURE_MINUS_1 = 16
    CAMERA_EXPOSURE_MINUS_10 = 17
    CAMERA_EXPOSURE_MINUS_100 = 18
    CAMERA_EXPOSURE_MINUS_1000 = 19
    CAMERA_THRESHOLD_PLUS_1 = 20
    CAMERA_THRESHOLD_PLUS_10 = 21
    CAMERA_THRESHOLD_PLUS_100 = 22
    CAMERA_THRESHOLD_PLUS_1000 = 23
    CAMERA_THRESHOLD_MINUS_1 = 24
    CAMERA_THRESHOLD_MINUS_10 = 25
    CAMERA_THRESHOLD_MINUS_100 = 26
    CAMERA_THRESHOLD_MINUS_1000 = 27
    UNKNOWN_EVENT = 28

    def label(self) -> str:
        """Display name of the function bound to this event."""
        return _LABELS[self]


_E = SerialScreenEvent

_LABELS: Dict[SerialScreenEvent, str] = {
    _E.START_BUTTON: "start按键",
    **{getattr(_E, f"KEYBOARD_{digit}"): f"键盘{digit}" for digit in range(10)},
    _E.DELETE_BUTTON: "delete按键",
    _E.CAMERA_EXPOSURE_PLUS_1: "摄像头曝光+1",
    _E.CAMERA_EXPOSURE_PLUS_10: "摄像头曝光+10",
    _E.CAMERA_EXPOSURE_PLUS_100: "摄像头曝光+100",
    _E.CAMERA_EXPOSURE_PLUS_1000: "摄像头曝光+1000",
    _E.CAMERA_EXPOSURE_MINUS_1: "摄像头曝光-1",
    _E.CAMERA_EXPOSURE_MINUS_10: "摄像头曝光-10",
    _E.CAMERA_EXPOSURE_MINUS_100: "摄像头曝光-100",
    _E.CAMERA_EXPOSURE_MINUS_1000: "摄像头曝光-1000",
    _E.CAMERA_THRESHOLD_PLUS_1: "相机阈值+1",
    _E.CAMERA_THRESHOLD_PLUS_10: "相机阈值+10",
    _E.CAMERA_THRESHOLD_PLUS_100: "相机阈值+100",
    _E.CAMERA_THRESHOLD_PLUS_1000: "相机阈值+1000",
    _E.CAMERA_THRESHOLD_MINUS_1: "相机阈值-1",
    _E.CAMERA_THRESHOLD_MINUS_10: "相机阈值-10",
    _E.CAMERA_THRESHOLD_MINUS_100: "相机阈值-100",
    _E.CAMERA_THRESHOLD_MINUS_1000: "相机阈值-1000",
    _E.UNKNOWN_EVENT: "未知功能",
}

_STEP_CONTROLS = {0x02: 0, 0x04: 1, 0x05: 2, 0x06: 3, 0x07: 4, 0x08: 5, 0x09: 6, 0x0A: 7}
_EXPOSURE_EVENTS = (
    _E.CAMERA_EXPOSURE_PLUS_1, _E.CAMERA_EXPOSURE_PLUS_10,
    _E.CAMERA_EXPOSURE_PLUS_100, _E.CAMERA_EXPOSURE_PLUS_1000,
    _E.CAMERA_EXPOSURE_MINUS_1, _E.CAMERA_EXPOSURE_MINUS_10,
    _E.CAMERA_EXPOSURE_MINUS_100, _E.CAMERA_EXPOSURE_MINUS_1000,
)
_THRESHOLD_EVENTS = (
    _E.CAMERA_THRESHOLD_PLUS_1, _E.CAMERA_THRESHOLD_PLUS_10,
    _E.CAMERA_THRESHOLD_PLUS_100, _E.CAMERA_THRESHOLD_PLUS_1000,
    _E.CAMERA_THRESHOLD_MINUS_1, _E.CAMERA_THRESHOLD_MINUS_10,
    _E.CAMERA_THRESHOLD_MINUS_100, _E.CAMERA_THRESHOLD_MINUS_1000,
)
_KEYBOARD_CONTROLS = {
    0x02: _E.KEYBOARD_0,
    0x05: _E.KEYBOARD_1,
    0x06: _E.KEYBOARD_2,
    0x07: _E.KEYBOARD_3,
    0x08: _E.KEYBOARD_4,
    0x09: _E.KEYBOARD_5,
    0x0A: _E.KEYBOARD_6,
    0x0B: _E.KEYBOARD_7,
    0x0C: _E.KEYBOARD_8,
    0x0E: _E.KEYBOARD_9,
    0x0D: _E.DELETE_BUTTON,
}


def parse_event(page: int, control: int, event: int) -> SerialScreenEvent:
    """Map a page/control pair to the key event it stands for."""
    if page == 0x01 and control == 0x02:
        return _E.START_BUTTON
    if page == 0x02:
        return _KEYBOARD_CONTROLS.get(control, _E.UNKNOWN_EVENT)
    if page in (0x04, 0x05) and control in _STEP_CONTROLS:
        table = _EXPOSURE_EVENTS if page == 0x04 else _THRESHOLD_EVENTS
        return table[_STEP_CONTROLS[control]]
    return _E.UNKNOWN_EVENT


def _as_float32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return float("inf") if value > 0 else float("-inf")


def format_float_command(name: str, value: float) -> str:
    """Build a text assignment such as t5.txt="2.999" (three decimals, no spaces)."""
    text = f"{_as_float32(value):.3f}"[:_FLOAT_FIELD_LIMIT]
    return f'{name}="{text}"'[:_COMMAND_LIMIT]


def _read(port, size: int, timeout: Optional[float]) -> bytes:
    """Read up to *size* bytes from a serial-like port using a temporary timeout."""
    previous = port.timeout
    port.timeout = timeout
    try:
        return port.read(size)
    finally:
        port.timeout = previous


def _hex(byte: int) -> str:
    return f"0x{byte:02x}"


class SerialScreenProtocol(Protocol):
    """Talks to a serial touch screen: receives key events and pushes measurement text."""

    def __init__(
        self,
        port_name: str,
        baud_rate: int = 9600,
        port=None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.port_name = port_name
        self.baud_rate = baud_rate
        self._port = port
        self._lock = threading.RLock()
        self._callbacks: Dict[SerialScreenEvent, EventCallback] = {}
        self._last_cmd: Optional[str] = None
        self.start_button_callback: Optional[EventCallback] = None

        generator = rng if rng is not None else random.Random()
        self.distance_d = generator.uniform(1.0, 99.0)
        self.side_length_x = generator.uniform(1.0, 99.0)
        self.current = 0.0
        self.power = 0.0
        self.max_power = 0.0
        self.start_received = False
        self.data_updated = False

        print(
            f"初始化随机值 - 距离D: {self.distance_d:.2f}, "
            f"边长x: {self.side_length_x:.2f}"
        )

    def __enter__(self) -> "SerialScreenProtocol":
        return self.open()

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def port(self):
        """The underlying serial port, or None while closed."""
        return self._port

    def open(self) -> "SerialScreenProtocol":
        """Open the port read/write at 8N1 without flow control; raise SerialException on failure."""
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
                timeout=0,
            )
        except (serial.SerialException, ValueError) as exc:
            raise serial.SerialException(
                f"无法打开串口屏串口: {self.port_name}"
            ) from exc
        print(
            f"成功打开串口屏串口: {self.port_name} 波特率: {self.baud_rate} "
            "数据位: 8 停止位: 1 校验位: 无 流控制: 无 (读写模式)"
        )
        return self

    def close(self) -> None:
        """Close the port if it is open."""
        if self._port is not None:
            self._port.close()
            self._port = None

    def send_float(self, name: str, value: float) -> None:
        """Send ``name="value"`` with three decimals."""
        self.send_cmd(format_float_command(name, value))

    def send_cmd(self, cmd: str) -> None:
        """Send a command followed by FF FF FF; does nothing while the port is closed."""
        if self._port is None:
            return
        self._port.write(cmd.encode("utf-8"))
        self._port.write(TERMINATOR)
        self._port.flush()
        if cmd != self._last_cmd:
            print(f"发送串口屏命令: {cmd}")
            self._last_cmd = cmd

    def update_current_power(self, current: float, power: float) -> None:
        """Store the latest current and power, tracking the maximum power seen."""
        with self._lock:
            self.current = current
            self.power = power
            if power > self.max_power:
                self.max_power = power
                print(f"*** 更新最大功率: {self.max_power:.3f} W ***")
            self.data_updated = True

    def update_max_power(self, max_power: float) -> None:
        """Overwrite the stored maximum power."""
        with self._lock:
            self.max_power = max_power
            self.data_updated = True

    def send_distance_and_side_length_immediately(self) -> None:
        """Push distance (t0) and side length (t1) right away."""
        self._send_distance_and_side_length()
        print("*** 立即发送距离和边长数据完成 ***")

    def check_for_serial_screen_data(self) -> Optional[SerialScreenEvent]:
        """Poll the port without blocking; parse one key frame if its header is waiting."""
        if self._port is None:
            return None
        first = _read(self._port, 1, 0)
        if not first or first[0] != HEADER:
            return None
        rest = _read(self._port, FRAME_SIZE - 1, _FRAME_TIMEOUT)
        if len(rest) != FRAME_SIZE - 1:
            return None
        try:
            return self.parse_frame(first + rest)
        except FrameError:
            return None

    def send_periodic_data(self) -> None:
        """Send current, power and max power; also distance and side length after a start press."""
        with self._lock:
            self.send_float("t2.txt", self.current)
            self.send_float("t3.txt", self.power)
            self.send_float("t4.txt", self.max_power)
            if self.start_received:
                self._send_distance_and_side_length()
                self.start_received = False

    def notify_start_button_pressed(self) -> None:
        """Schedule distance and side length for the next periodic send."""
        with self._lock:
            self.start_received = True
            print("*** 收到start按键通知，将发送距离和边长数据 ***")

    def register_event_callback(
        self, event: SerialScreenEvent, callback: EventCallback
    ) -> None:
        """Register *callback* for *event*, replacing any earlier one."""
        with self._lock:
            self._callbacks[event] = callback
            print(f"注册事件回调: {event.value}")

    def unregister_event_callback(self, event: SerialScreenEvent) -> None:
        """Remove the callback for *event*, if any."""
        with self._lock:
            if self._callbacks.pop(event, None) is not None:
                print(f"注销事件回调: {event.value}")

    def clear_all_event_callbacks(self) -> None:
        """Remove every registered callback."""
        with self._lock:
            self._callbacks.clear()
            print("清除所有事件回调")

    def _trigger_event_callback(self, event: SerialScreenEvent) -> None:
        with self._lock:
            callback = self._callbacks.get(event)
            if callback is not None:
                print(f"触发事件回调: {event.value}")
                callback()

    def _send_distance_and_side_length(self) -> None:
        self.send_float("t0.txt", self.distance_d)
        self.send_float("t1.txt", self.side_length_x)

    def parse_frame(self, frame: bytes) -> SerialScreenEvent:
        """Parse a key frame, fire its callback and return the event; raise FrameError if invalid."""
        frame = bytes(frame)
        if not self.is_valid_frame(frame):
            raise FrameError(f"not a serial screen frame: {frame.hex(' ')}")
        page, control, code = frame[1], frame[2], frame[3]

        print("\n=== 串口屏协议数据帧解析结果 ===")
        print(f"页面: {_hex(page)}")
        print(f"控件: {_hex(control)}")
        print(f"事件: {_hex(code)}")

        event = parse_event(page, control, code)
        print(f"功能: {event.label()}")

        self._trigger_event_callback(event)

        if event is SerialScreenEvent.START_BUTTON:
            with self._lock:
                self.start_received = True
                print("*** 检测到start按键，将发送距离和边长数据 ***")
                self.send_distance_and_side_length_immediately()
                if self.start_button_callback is not None:
                    self.start_button_callback()

        raw = "".join(f"{byte:02x} " for byte in frame)
        print(f"原始数据: {raw}")
        print("================================\n")
        return event

    def is_valid_frame(self, frame: bytes) -> bool:
        frame = bytes(frame)
        return (
            len(frame) == FRAME_SIZE
            and frame[0] == HEADER
            and frame[4:] == TERMINATOR
        )

    @property
    def frame_size(self) -> int:
        return FRAME_SIZE

    @property
    def name(self) -> str:
        return "串口屏协议"

    def find_frame_header(self, port) -> bool:
        """Skip bytes until the 0x65 header has been consumed; False on timeout."""
        while True:
            byte = _read(port, 1, _HEADER_TIMEOUT)
            if not byte:
                return False
            if byte[0] == HEADER:
                return True