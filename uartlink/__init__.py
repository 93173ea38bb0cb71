"""Relay current/power UART sensor readings to a serial touch screen and decode its key events."""

__version__ = "0.1.0"