"""Reassembly of frames from the chunks that arrive over the video socket."""

from __future__ import annotations

from dataclasses import dataclass

from framecast.protocol import (
    FRAME_HEIGHT,
    FRAME_WIDTH,
    HEADER_SIZE,
    MAX_FRAME_SIZE,
    MAX_PACKET_SIZE,
    FrameChunkHeader,
    ProtocolError,
)

BYTES_PER_PIXEL = 3
REPORT_EVERY = 30


@dataclass
class FrameBuffer:
    """One RGB frame and the record of which of its chunks have arrived."""

    frame_id: int = 0
    width: int = FRAME_WIDTH
    height: int = FRAME_HEIGHT
    total_chunks: int = 0
    chunks_received: int = 0
    chunks_status: bytearray | None = None
    frame_data: bytearray | None = None
    complete: bool = False

    @property
    def frame_size(self) -> int:
        return self.width * self.height * BYTES_PER_PIXEL

    def ensure_resources(self, width: int, height: int, total_chunks: int) -> bool:
        """Allocate a black frame when the geometry changes; return whether it did."""
        unchanged = (
            self.width == width
            and self.height == height
            and self.total_chunks == total_chunks
            and self.frame_data is not None
        )
        if unchanged:
            return False

        self.chunks_status = None
        self.frame_data = None
        self.width = width
        self.height = height
        self.total_chunks = total_chunks
        self.chunks_received = 0
        self.complete = False

        self.chunks_status = bytearray(total_chunks)
        self.frame_data = bytearray(width * height * BYTES_PER_PIXEL)
        print(f"Allocated frame resources: {width}x{height}, {total_chunks} chunks")
        return True

    def reset(self, frame_id: int) -> None:
        """Start collecting chunks for ``frame_id``."""
        self.frame_id = frame_id
        self.chunks_received = 0
        self.complete = False
        if self.chunks_status is not None:
            self.chunks_status = bytearray(self.total_chunks)


@dataclass
class ClientStats:
    """Counters reported by the client."""

    frames_received: int = 0
    frames_displayed: int = 0
    chunks_received: int = 0


class FrameAssembler:
    """Collects chunk packets into frames and keeps the last complete one."""

    def __init__(self) -> None:
        self.current = FrameBuffer()
        self.display = FrameBuffer(frame_data=bytearray(MAX_FRAME_SIZE))
        self.stats = ClientStats()

    def feed(self, packet: bytes) -> FrameBuffer | None:
        """Take one packet; return the display frame when it completes a frame.

        Raises ProtocolError for packets that are malformed.
        """
        header = FrameChunkHeader.unpack(packet)
        if (
            header.chunk_size > MAX_PACKET_SIZE
            or len(packet) != HEADER_SIZE + header.chunk_size
        ):
            raise ProtocolError("invalid chunk size")

        current = self.current
        if header.frame_id != current.frame_id:
            current.reset(header.frame_id)

        try:
            current.ensure_resources(header.width, header.height, header.total_chunks)
        except MemoryError as exc:
            raise ProtocolError("failed to allocate frame resources") from exc

        index = header.chunk_index
        if index >= header.total_chunks or current.chunks_status[index]:
            return None

        end = header.chunk_offset + header.chunk_size
        if end > len(current.frame_data):
            raise ProtocolError("chunk lies outside the frame")
        current.frame_data[header.chunk_offset:end] = packet[HEADER_SIZE:]

        current.chunks_status[index] = 1
        current.chunks_received += 1
        self.stats.chunks_received += 1

        if current.chunks_received != current.total_chunks:
            return None

        current.complete = True
        self.stats.frames_received += 1

        display = self.display
        display.frame_data = bytearray(current.frame_data)
        display.width = current.width
        display.height = current.height
        display.frame_id = current.frame_id
        display.complete = True
        self.stats.frames_displayed += 1

        if self.stats.frames_displayed % REPORT_EVERY == 0:
            print(
                f"Received frame {current.frame_id} "
                f"(complete with {current.total_chunks} chunks)"
            )
        return display