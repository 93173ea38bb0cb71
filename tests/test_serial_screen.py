import random

import pytest
import serial

from uartlink.protocol import FrameError
from uartlink.serial_screen import (
    SerialScreenEvent,
    SerialScreenProtocol,
    format_float_command,
    parse_event,
)


class FakePort:
    def __init__(self, incoming=b""):
        self.incoming = bytearray(incoming)
        self.written = bytearray()
        self.timeout = None
        self.closed = False
        self.flushes = 0

    def read(self, size):
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        return chunk

    def write(self, data):
        self.written.extend(data)
        return len(data)

    def flush(self):
        self.flushes += 1

    def close(self):
        self.closed = True


def commands(port):
    parts = bytes(port.written).split(b"\xff\xff\xff")
    return [part.decode("utf-8") for part in parts if part]


def make_screen(incoming=b""):
    port = FakePort(incoming)
    screen = SerialScreenProtocol("screen", 9600, port=port, rng=random.Random(7))
    return screen, port


START_FRAME = bytes([0x65, 0x01, 0x02, 0x01, 0xFF, 0xFF, 0xFF])
KEY1_FRAME = bytes([0x65, 0x02, 0x05, 0x01, 0xFF, 0xFF, 0xFF])


@pytest.mark.parametrize(
    "page, control, expected",
    [
        (0x01, 0x02, SerialScreenEvent.START_BUTTON),
        (0x02, 0x02, SerialScreenEvent.KEYBOARD_0),
        (0x02, 0x05, SerialScreenEvent.KEYBOARD_1),
        (0x02, 0x0E, SerialScreenEvent.KEYBOARD_9),
        (0x02, 0x0C, SerialScreenEvent.KEYBOARD_8),
        (0x02, 0x0D, SerialScreenEvent.DELETE_BUTTON),
        (0x04, 0x02, SerialScreenEvent.CAMERA_EXPOSURE_PLUS_1),
        (0x04, 0x06, SerialScreenEvent.CAMERA_EXPOSURE_PLUS_1000),
        (0x04, 0x0A, SerialScreenEvent.CAMERA_EXPOSURE_MINUS_1000),
        (0x05, 0x04, SerialScreenEvent.CAMERA_THRESHOLD_PLUS_10),
        (0x05, 0x07, SerialScreenEvent.CAMERA_THRESHOLD_MINUS_1),
        (0x01, 0x03, SerialScreenEvent.UNKNOWN_EVENT),
        (0x02, 0x03, SerialScreenEvent.UNKNOWN_EVENT),
        (0x04, 0x03, SerialScreenEvent.UNKNOWN_EVENT),
        (0x09, 0x02, SerialScreenEvent.UNKNOWN_EVENT),
    ],
)
def test_parse_event(page, control, expected):
    assert parse_event(page, control, 0x01) is expected


def test_labels():
    assert SerialScreenEvent.KEYBOARD_0.label() == "键盘0"
    assert SerialScreenEvent.START_BUTTON.label() == "start按键"
    assert SerialScreenEvent.UNKNOWN_EVENT.label() == "未知功能"
    assert all(event.label() for event in SerialScreenEvent)


def test_format_float_command_matches_wire_format():
    assert format_float_command("t5.txt", 2.999) == 't5.txt="2.999"'
    assert format_float_command("t0.txt", 1.0) == 't0.txt="1.000"'


def test_format_float_command_truncates_value_field():
    command = format_float_command("t0.txt", 1e12)
    inner = command.split('"')[1]
    assert len(inner) == 9
    assert command.startswith('t0.txt="')


def test_send_cmd_appends_terminator():
    screen, port = make_screen()
    screen.send_cmd("page 1")
    assert bytes(port.written) == b"page 1\xff\xff\xff"
    assert port.flushes == 1


def test_send_cmd_without_port_writes_nothing():
    screen, port = make_screen()
    screen.close()
    screen.send_cmd("page 1")
    assert port.written == bytearray()
    assert screen.port is None


def test_update_current_power_tracks_maximum():
    screen, _ = make_screen()
    screen.update_current_power(1.0, 5.0)
    screen.update_current_power(2.0, 3.0)
    assert screen.current == 2.0
    assert screen.power == 3.0
    assert screen.max_power == 5.0
    assert screen.data_updated is True


def test_update_max_power_overrides():
    screen, _ = make_screen()
    screen.update_current_power(1.0, 5.0)
    screen.update_max_power(0.5)
    assert screen.max_power == 0.5


def test_send_periodic_data_without_start():
    screen, port = make_screen()
    screen.update_current_power(1.5, 2.25)
    screen.send_periodic_data()
    assert commands(port) == ['t2.txt="1.500"', 't3.txt="2.250"', 't4.txt="2.250"']


def test_send_periodic_data_after_start_notification():
    screen, port = make_screen()
    screen.notify_start_button_pressed()
    screen.send_periodic_data()
    sent = commands(port)
    assert [cmd.split("=")[0] for cmd in sent] == [
        "t2.txt", "t3.txt", "t4.txt", "t0.txt", "t1.txt",
    ]
    assert screen.start_received is False
    port.written.clear()
    screen.send_periodic_data()
    assert [cmd.split("=")[0] for cmd in commands(port)] == ["t2.txt", "t3.txt", "t4.txt"]


def test_random_initial_values_in_range():
    for seed in range(20):
        screen = SerialScreenProtocol("screen", port=FakePort(), rng=random.Random(seed))
        assert 1.0 <= screen.distance_d <= 99.0
        assert 1.0 <= screen.side_length_x <= 99.0


def test_parse_start_frame_sends_immediately_and_calls_callbacks():
    screen, port = make_screen()
    calls = []
    screen.register_event_callback(SerialScreenEvent.START_BUTTON, lambda: calls.append("event"))
    screen.start_button_callback = lambda: calls.append("start")
    event = screen.parse_frame(START_FRAME)
    assert event is SerialScreenEvent.START_BUTTON
    assert calls == ["event", "start"]
    assert screen.start_received is True
    sent = commands(port)
    assert sent == [
        format_float_command("t0.txt", screen.distance_d),
        format_float_command("t1.txt", screen.side_length_x),
    ]


def test_parse_key_frame_triggers_only_its_callback():
    screen, port = make_screen()
    calls = []
    screen.register_event_callback(SerialScreenEvent.KEYBOARD_1, lambda: calls.append(1))
    screen.register_event_callback(SerialScreenEvent.KEYBOARD_0, lambda: calls.append(0))
    assert screen.parse_frame(KEY1_FRAME) is SerialScreenEvent.KEYBOARD_1
    assert calls == [1]
    assert screen.start_received is False
    assert port.written == bytearray()


def test_parse_invalid_frame_raises():
    screen, _ = make_screen()
    with pytest.raises(FrameError):
        screen.parse_frame(b"\x65\x01\x02\x01\xff\xff")


@pytest.mark.parametrize(
    "frame, valid",
    [
        (START_FRAME, True),
        (KEY1_FRAME, True),
        (b"\x64\x01\x02\x01\xff\xff\xff", False),
        (b"\x65\x01\x02\x01\xff\xfe\xff", False),
        (b"\x65\x01\x02\x01\xff\xff\xff\xff", False),
        (b"", False),
    ],
)
def test_is_valid_frame(frame, valid):
    screen, _ = make_screen()
    assert screen.is_valid_frame(frame) is valid


def test_frame_size_and_name():
    screen, _ = make_screen()
    assert screen.frame_size == 7
    assert screen.name == "串口屏协议"


def test_unregister_and_clear_callbacks():
    screen, _ = make_screen()
    calls = []
    screen.register_event_callback(SerialScreenEvent.KEYBOARD_1, lambda: calls.append(1))
    screen.unregister_event_callback(SerialScreenEvent.KEYBOARD_1)
    screen.parse_frame(KEY1_FRAME)
    screen.register_event_callback(SerialScreenEvent.KEYBOARD_1, lambda: calls.append(2))
    screen.clear_all_event_callbacks()
    screen.parse_frame(KEY1_FRAME)
    assert calls == []


def test_check_for_serial_screen_data_parses_frame():
    screen, port = make_screen(KEY1_FRAME)
    calls = []
    screen.register_event_callback(SerialScreenEvent.KEYBOARD_1, lambda: calls.append(1))
    assert screen.check_for_serial_screen_data() is SerialScreenEvent.KEYBOARD_1
    assert calls == [1]
    assert port.incoming == bytearray()


def test_check_for_serial_screen_data_ignores_other_bytes():
    screen, port = make_screen(b"\x00" + KEY1_FRAME)
    assert screen.check_for_serial_screen_data() is None
    assert bytes(port.incoming) == KEY1_FRAME


def test_check_for_serial_screen_data_incomplete_frame():
    screen, _ = make_screen(KEY1_FRAME[:4])
    assert screen.check_for_serial_screen_data() is None


def test_check_for_serial_screen_data_bad_trailer():
    screen, _ = make_screen(b"\x65\x02\x05\x01\x00\xff\xff")
    assert screen.check_for_serial_screen_data() is None


def test_find_frame_header_skips_noise():
    screen, _ = make_screen()
    source = FakePort(b"\x00\x12\x65\x02")
    assert screen.find_frame_header(source) is True
    assert bytes(source.incoming) == b"\x02"


def test_find_frame_header_times_out():
    screen, _ = make_screen()
    assert screen.find_frame_header(FakePort(b"\x00\x01")) is False


def test_context_manager_closes_port():
    port = FakePort()
    with SerialScreenProtocol("screen", port=port, rng=random.Random(1)) as screen:
        assert screen.port is port
    assert port.closed is True
    assert screen.port is None


def test_open_missing_port_raises():
    screen = SerialScreenProtocol("/nonexistent/tty-screen", rng=random.Random(1))
    with pytest.raises(serial.SerialException):
        screen.open()
    assert screen.port is None