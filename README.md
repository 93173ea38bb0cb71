# uartlink

uartlink reads fixed-size frames from a current/power sensor on one UART and
forwards the readings to a serial touch screen on a second UART. It also
decodes the key events that the screen sends back.

## Frame formats

Current/power sensor frame, 20 bytes:

```
AA AA | current (float32 LE) | power (float32 LE) | 8 zero bytes | FF FF
```

Screen key event frame, 7 bytes:

```
65 | page | control | event | FF FF FF
```

Commands sent to the screen look like `t2.txt="1.234"`: the value has three
decimals and no spaces, and the bytes `FF FF FF` follow each command.

| Field    | Meaning          |
|----------|------------------|
| `t0.txt` | distance D       |
| `t1.txt` | side length x    |
| `t2.txt` | current I        |
| `t3.txt` | power P          |
| `t4.txt` | maximum power    |

## Installation

```
pip install .
```

## Command line

```
uartlink [--current-power-port PORT] [--screen-port PORT] [--baud-rate N]
```

Defaults: `--current-power-port /dev/ttyUSB0`, `--screen-port /dev/ttyUSB1`,
`--baud-rate 9600`. Both ports are opened at 8 data bits, 1 stop bit, no
parity and no flow control.

The command prints the serial ports it can find. It then opens the sensor
port and the screen port and runs a single-threaded loop:

- it reads one sensor frame, prints the decoded values and passes current
  and power on to the screen state, which keeps track of the maximum power;
- it polls the screen port, without blocking, for a key event;
- every 50 ms it sends current (`t2.txt`), power (`t3.txt`) and maximum
  power (`t4.txt`) to the screen.

When the start button is pressed, distance (`t0.txt`) and side length
(`t1.txt`) are sent at once and again with the next periodic send. A few
keys (start, keyboard 0 and 1, delete, exposure ±1, threshold ±1) have
handlers that print a message.

If either port cannot be opened the command prints an error and exits with
status -1. Ctrl-C stops the loop and closes both ports.

## Library use

```python
from uartlink.current_power import CurrentPowerProtocol
from uartlink.serial_screen import SerialScreenEvent, SerialScreenProtocol
from uartlink.uart_reader import UartReader

with SerialScreenProtocol("/dev/ttyUSB1", 9600) as screen:
    screen.register_event_callback(
        SerialScreenEvent.START_BUTTON, lambda: print("start pressed")
    )

    with UartReader("/dev/ttyUSB0", 9600) as reader:
        reader.add_protocol(CurrentPowerProtocol(screen.update_current_power))
        while True:
            reader.read_and_parse_frame()
            screen.check_for_serial_screen_data()
            screen.send_periodic_data()
```

- `UartReader.read_and_parse_frame()` reads one frame and returns a
  `CurrentPowerReading` (header `AA AA`) or a `SerialScreenEvent` (header
  `65`), dispatched to a matching protocol added with `add_protocol()`. It
  returns `None` on timeout, for an unknown header, or when no matching
  protocol was added. It raises `serial.SerialException` if the port is not
  open.
- `SerialScreenProtocol.check_for_serial_screen_data()` returns the event of
  a key frame waiting on the port, or `None`.
- `parse_frame()` on either protocol raises `uartlink.protocol.FrameError`
  for a malformed frame.
- `open()` raises `serial.SerialException` when a port cannot be opened.
- Both `UartReader` and `SerialScreenProtocol` accept an already opened
  serial-like object through their `port` argument.

Helpers that work without any hardware:

- `decode_frame(frame)` returns a `CurrentPowerReading` (`current`, `power`,
  `padding_is_zero`, `raw`) for a 20-byte sensor frame.
- `parse_event(page, control, event)` maps a key frame's fields to a
  `SerialScreenEvent`; unmapped pairs give `UNKNOWN_EVENT`.
- `SerialScreenEvent.label()` gives the display name of an event.
- `format_float_command(name, value)` builds the text of a screen command.

## What it does not do

- Distance D and side length x are not measured: each `SerialScreenProtocol`
  picks them at random between 1 and 99 when it is created (pass `rng` to fix
  them).
- The camera exposure and threshold keys are only decoded and reported; no
  camera is controlled.
- Console output (frame reports and messages) is in Chinese and printed to
  standard output.

## Tests

```
pip install .[test]
pytest
```