"""Common interface shared by every frame protocol spoken over the UART links."""

from __future__ import annotations

from abc import ABC, abstractmethod


class FrameError(ValueError):
    """Raised when a byte sequence is not a valid frame for a protocol."""


class Protocol(ABC):
    """A fixed-size frame protocol that can validate and parse frames."""

    @abstractmethod
    def parse_frame(self, frame: bytes):
        """Parse a complete frame and act on it; raise FrameError if invalid."""

    @abstractmethod
    def is_valid_frame(self, frame: bytes) -> bool:
        """Return whether *frame* has the size, header and trailer of this protocol."""

    @property
    @abstractmethod
    def frame_size(self) -> int:
        """Number of bytes in one complete frame."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable protocol name."""