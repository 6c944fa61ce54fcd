"""Wire format shared by the video server and the video client."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar, Iterable

SERVER_IP = "127.0.0.1"
VIDEO_PORT = 5555
CONTROL_PORT = 5556

FRAME_WIDTH = 640
FRAME_HEIGHT = 480
MAX_PACKET_SIZE = 1400
MAX_FRAME_SIZE = FRAME_WIDTH * FRAME_HEIGHT * 3

MSG_TYPE_FRAME_CHUNK = 1
MSG_TYPE_CONTROL = 2

BUTTON_COUNT = 8

# A one-byte type tag followed by naturally aligned 32-bit fields.
_HEADER = struct.Struct("<B3x7I")
_CONTROL = struct.Struct(f"<B3x2f{BUTTON_COUNT}B")

HEADER_SIZE = _HEADER.size
CONTROL_SIZE = _CONTROL.size
CHUNK_PAYLOAD_SIZE = MAX_PACKET_SIZE - HEADER_SIZE


class ProtocolError(ValueError):
    """A message does not follow the wire format."""


def calc_num_chunks(frame_size: int, chunk_size: int) -> int:
    """Return how many chunks of ``chunk_size`` bytes cover ``frame_size`` bytes."""
    if chunk_size <= 0:
        raise ValueError("chunk size must be positive")
    if frame_size < 0:
        raise ValueError("frame size must not be negative")
    return -(-frame_size // chunk_size)


@dataclass(frozen=True)
class FrameChunkHeader:
    """Header that precedes every chunk of frame data."""

    frame_id: int
    chunk_index: int
    total_chunks: int
    width: int
    height: int
    chunk_size: int
    chunk_offset: int

    SIZE: ClassVar[int] = HEADER_SIZE

    def pack(self) -> bytes:
        """Encode the header, tagged as a frame chunk."""
        try:
            return _HEADER.pack(
                MSG_TYPE_FRAME_CHUNK,
                self.frame_id,
                self.chunk_index,
                self.total_chunks,
                self.width,
                self.height,
                self.chunk_size,
                self.chunk_offset,
            )
        except struct.error as exc:
            raise ProtocolError(f"cannot encode chunk header: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> FrameChunkHeader:
        """Decode the header at the start of ``data``; any payload after it is ignored."""
        if len(data) < HEADER_SIZE:
            raise ProtocolError("incomplete chunk header")
        msg_type, *fields = _HEADER.unpack_from(data)
        if msg_type != MSG_TYPE_FRAME_CHUNK:
            raise ProtocolError(f"invalid message type: {msg_type}")
        return cls(*fields)


@dataclass(frozen=True)
class ControlMessage:
    """Joystick or keyboard state sent from the client to the server."""

    x_axis: float = 0.0
    y_axis: float = 0.0
    buttons: tuple[int, ...] = (0,) * BUTTON_COUNT

    SIZE: ClassVar[int] = CONTROL_SIZE

    def __post_init__(self) -> None:
        buttons = tuple(int(button) for button in self.buttons)
        if len(buttons) != BUTTON_COUNT:
            raise ValueError(f"expected {BUTTON_COUNT} buttons, got {len(buttons)}")
        object.__setattr__(self, "buttons", buttons)

    @classmethod
    def from_buttons(cls, x_axis: float, y_axis: float, buttons: Iterable[int]) -> ControlMessage:
        """Build a message, padding or truncating ``buttons`` to the fixed count."""
        states = list(buttons)[:BUTTON_COUNT]
        states.extend([0] * (BUTTON_COUNT - len(states)))
        return cls(x_axis, y_axis, tuple(states))

    def pack(self) -> bytes:
        """Encode the message, tagged as a control message."""
        try:
            return _CONTROL.pack(MSG_TYPE_CONTROL, self.x_axis, self.y_axis, *self.buttons)
        except struct.error as exc:
            raise ProtocolError(f"cannot encode control message: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> ControlMessage:
        """Decode a control message; ``data`` must be exactly one message long."""
        if len(data) != CONTROL_SIZE:
            raise ProtocolError(
                f"control message must be {CONTROL_SIZE} bytes, got {len(data)}"
            )
        msg_type, x_axis, y_axis, *buttons = _CONTROL.unpack(data)
        if msg_type != MSG_TYPE_CONTROL:
            raise ProtocolError(f"invalid message type: {msg_type}")
        return cls(x_axis, y_axis, tuple(buttons))