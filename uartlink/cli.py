"""Command line entry: relay current/power readings to a serial touch screen."""

from __future__ import annotations

import argparse
import sys
import time
from typing import List, Optional

import serial
from serial.tools import list_ports

from uartlink.current_power import CurrentPowerProtocol
from uartlink.serial_screen import SerialScreenEvent, SerialScreenProtocol
from uartlink.uart_reader import UartReader

DEFAULT_CURRENT_POWER_PORT = "/dev/ttyUSB0"
DEFAULT_SCREEN_PORT = "/dev/ttyUSB1"
DEFAULT_BAUD_RATE = 9600
SEND_INTERVAL = 0.05
_IDLE_SLEEP = 0.001

_EVENT_MESSAGES = {
    SerialScreenEvent.START_BUTTON: "*** 处理start按键事件 ***",
    SerialScreenEvent.KEYBOARD_0: "*** 处理键盘0事件 ***",
    SerialScreenEvent.KEYBOARD_1: "*** 处理键盘1事件 ***",
    SerialScreenEvent.DELETE_BUTTON: "*** 处理delete按键事件 ***",
    SerialScreenEvent.CAMERA_EXPOSURE_PLUS_1: "*** 处理摄像头曝光+1事件 ***",
    SerialScreenEvent.CAMERA_EXPOSURE_MINUS_1: "*** 处理摄像头曝光-1事件 ***",
    SerialScreenEvent.CAMERA_THRESHOLD_PLUS_1: "*** 处理相机阈值+1事件 ***",
    SerialScreenEvent.CAMERA_THRESHOLD_MINUS_1: "*** 处理相机阈值-1事件 ***",
}


def list_available_ports() -> List[str]:
    """Print and return the names of the serial ports present on this machine."""
    try:
        ports = list_ports.comports()
    except OSError:
        print("无法获取串口列表", file=sys.stderr)
        return []
    names = [info.device for info in ports]
    print("可用串口列表:")
    for name in names:
        print(f"  {name}")
    return names


def main_loop(
    reader: UartReader,
    screen: SerialScreenProtocol,
    send_interval: float = SEND_INTERVAL,
    iterations: Optional[int] = None,
) -> None:
    """Poll both ports and push data to the screen every *send_interval* seconds.

    Runs forever unless *iterations* limits the number of passes.
    """
    print("单线程主循环已启动")
    last_send = time.monotonic()
    done = 0
    while iterations is None or done < iterations:
        now = time.monotonic()
        reader.read_and_parse_frame()
        screen.check_for_serial_screen_data()
        if now - last_send >= send_interval:
            screen.send_periodic_data()
            last_send = now
        time.sleep(_IDLE_SLEEP)
        done += 1


def _printer(message: str):
    def callback() -> None:
        print(message)

    return callback


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Relay current/power frames to a serial touch screen."
    )
    parser.add_argument("--current-power-port", default=DEFAULT_CURRENT_POWER_PORT)
    parser.add_argument("--screen-port", default=DEFAULT_SCREEN_PORT)
    parser.add_argument("--baud-rate", type=int, default=DEFAULT_BAUD_RATE)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Open both ports and run the main loop; return the process exit status."""
    args = _parse_args(argv)
    print("=== 串口通讯程序（单线程事件驱动）===")
    list_available_ports()

    print("串口配置:")
    print(f"  - 电流功率串口: {args.current_power_port} (波特率: {args.baud_rate})")
    print(f"  - 串口屏串口: {args.screen_port} (波特率: {args.baud_rate})")

    screen = SerialScreenProtocol(args.screen_port, args.baud_rate)
    for event, message in _EVENT_MESSAGES.items():
        screen.register_event_callback(event, _printer(message))

    reader = UartReader(args.current_power_port, args.baud_rate)
    reader.add_protocol(CurrentPowerProtocol(screen.update_current_power))

    try:
        reader.open()
    except serial.SerialException as exc:
        print(exc, file=sys.stderr)
        print("无法打开电流功率串口，程序退出", file=sys.stderr)
        return -1

    try:
        try:
            screen.open()
        except serial.SerialException as exc:
            print(exc, file=sys.stderr)
            print("无法打开串口屏串口，程序退出", file=sys.stderr)
            return -1
        print("串口屏串口已打开（读写模式）")
        print("启动单线程主循环...")
        try:
            main_loop(reader, screen)
        except KeyboardInterrupt:
            pass
        return 0
    finally:
        screen.close()
        reader.close()


if __name__ == "__main__":
    sys.exit(main())