"""Decode a video, cut its frames into chunks and stream them to a client."""

from __future__ import annotations

import argparse
import itertools
import socket
import sys
import time
from typing import Iterable, Iterator

import imageio.v3 as iio
import numpy as np
from PIL import Image

from framecast.protocol import (
    CHUNK_PAYLOAD_SIZE,
    CONTROL_PORT,
    CONTROL_SIZE,
    FRAME_HEIGHT,
    FRAME_WIDTH,
    VIDEO_PORT,
    ControlMessage,
    FrameChunkHeader,
    ProtocolError,
    calc_num_chunks,
)

DEFAULT_VIDEO = "video.mp4"
TARGET_FPS = 30
BYTES_PER_PIXEL = 3
IDLE_DELAY = 0.1
CHUNK_DELAY = 0.001
DELAY_EVERY = 10
REPORT_EVERY = 30


def chunk_frame(
    frame_id: int,
    data: bytes,
    width: int = FRAME_WIDTH,
    height: int = FRAME_HEIGHT,
) -> list[bytes]:
    """Split one RGB frame into packets, each a chunk header followed by its data."""
    frame_size = width * height * BYTES_PER_PIXEL
    if len(data) != frame_size:
        raise ValueError(
            f"frame of {width}x{height} needs {frame_size} bytes, got {len(data)}"
        )
    data = bytes(data)
    total = calc_num_chunks(frame_size, CHUNK_PAYLOAD_SIZE)
    packets = []
    for index, offset in enumerate(range(0, frame_size, CHUNK_PAYLOAD_SIZE)):
        payload = data[offset:offset + CHUNK_PAYLOAD_SIZE]
        header = FrameChunkHeader(
            frame_id=frame_id,
            chunk_index=index,
            total_chunks=total,
            width=width,
            height=height,
            chunk_size=len(payload),
            chunk_offset=offset,
        )
        packets.append(header.pack() + payload)
    return packets


def to_rgb_frame(image, width: int = FRAME_WIDTH, height: int = FRAME_HEIGHT) -> bytes:
    """Scale an image (array or picture) bilinearly to ``width`` x ``height`` RGB bytes."""
    if isinstance(image, Image.Image):
        picture = image
    else:
        array = np.asarray(image)
        if array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)
        picture = Image.fromarray(array)
    picture = picture.convert("RGB")
    if picture.size != (width, height):
        picture = picture.resize((width, height), Image.Resampling.BILINEAR)
    return picture.tobytes()


def iter_video_frames(
    path: str,
    width: int = FRAME_WIDTH,
    height: int = FRAME_HEIGHT,
) -> Iterator[bytes]:
    """Yield the video's frames as RGB bytes, starting over at the end, forever."""
    while True:
        produced = False
        for image in iio.imiter(path):
            produced = True
            yield to_rgb_frame(image, width, height)
        if not produced:
            raise ValueError(f"no video frames in {path}")


class FramePacer:
    """Works out how long to sleep to hold a target frame rate."""

    def __init__(self, fps: float = TARGET_FPS, start: float | None = None) -> None:
        if fps <= 0:
            raise ValueError("frame rate must be positive")
        self.frame_time = 1.0 / fps
        self.last = time.monotonic() if start is None else start

    def wait_time(self, now: float | None = None) -> float:
        """Return the seconds left in this frame's slot, never negative."""
        now = time.monotonic() if now is None else now
        wait = self.frame_time - (now - self.last)
        self.last = now
        return max(wait, 0.0)


class VideoServer:
    """Streams frames to whichever client last sent a control message."""

    def __init__(
        self,
        video_port: int = VIDEO_PORT,
        control_port: int = CONTROL_PORT,
        bind_host: str = "",
        width: int = FRAME_WIDTH,
        height: int = FRAME_HEIGHT,
        fps: float = TARGET_FPS,
    ) -> None:
        print("Initializing UDP sockets...")
        self.video_port = video_port
        self.width = width
        self.height = height
        self.fps = fps
        self.client_address: tuple[str, int] | None = None
        self.last_control: ControlMessage | None = None
        self.frame_count = 0
        self.chunk_count = 0
        self.chunk_delay = CHUNK_DELAY

        self.video_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self.control_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError:
            self.video_socket.close()
            raise
        try:
            self.control_socket.bind((bind_host, control_port))
        except OSError:
            self.close()
            raise
        self.control_socket.setblocking(False)
        print(
            f"UDP sockets initialized: Video port: {video_port}, "
            f"Control port: {self.control_address[1]}"
        )

    @property
    def control_address(self) -> tuple[str, int]:
        return self.control_socket.getsockname()

    @property
    def client_connected(self) -> bool:
        return self.client_address is not None

    def poll_control(self) -> ControlMessage | None:
        """Read one waiting control message, if any, and take its sender as the client."""
        try:
            data, sender = self.control_socket.recvfrom(CONTROL_SIZE)
        except OSError:
            return None
        try:
            control = ControlMessage.unpack(data)
        except ProtocolError:
            return None

        self.last_control = control
        host = sender[0]
        if self.client_address is None:
            print(f"Client connected from {host}! First control message received.")
        self.client_address = (host, self.video_port)
        buttons = ",".join(str(button) for button in control.buttons)
        print(
            f"Control: X={control.x_axis:.2f}, Y={control.y_axis:.2f}, "
            f"Buttons=[{buttons}]"
        )
        return control

    def send_frame(self, data: bytes) -> int:
        """Send ``data`` as the current frame; return how many chunks went out."""
        if self.client_address is None:
            return 0
        packets = chunk_frame(self.frame_count, data, self.width, self.height)
        for index, packet in enumerate(packets):
            try:
                self.video_socket.sendto(packet, self.client_address)
            except OSError:
                pass
            self.chunk_count += 1
            if index % DELAY_EVERY == 0 and self.chunk_delay > 0:
                time.sleep(self.chunk_delay)
        if self.frame_count % REPORT_EVERY == 0:
            print(
                f"Sent frame {self.frame_count} in {len(packets)} chunks "
                f"(total: {self.chunk_count} chunks)"
            )
        return len(packets)

    def run(self, frames: Iterable[bytes]) -> None:
        """Stream ``frames`` at the target rate once a client is known; stop when they run out."""
        pacer = FramePacer(self.fps)
        frames = iter(frames)
        while True:
            self.poll_control()
            if not self.client_connected:
                time.sleep(IDLE_DELAY)
                continue
            frame = next(frames, None)
            if frame is None:
                return
            self.frame_count += 1
            host, port = self.client_address
            print(f"Sending to client at {host}:{port}")
            self.send_frame(frame)
            wait = pacer.wait_time()
            if wait > 0:
                time.sleep(wait)

    def close(self) -> None:
        self.video_socket.close()
        control = getattr(self, "control_socket", None)
        if control is not None:
            control.close()

    def __enter__(self) -> VideoServer:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Stream a video file to a client over UDP.")
    parser.add_argument("--video", default=DEFAULT_VIDEO, help="video file to stream")
    parser.add_argument("--video-port", type=int, default=VIDEO_PORT, help="client video port")
    parser.add_argument("--control-port", type=int, default=CONTROL_PORT, help="local control port")
    parser.add_argument("--fps", type=float, default=TARGET_FPS, help="target frame rate")
    args = parser.parse_args(argv)

    print("===== UDP Video Streaming Server Starting =====")
    try:
        server = VideoServer(
            video_port=args.video_port, control_port=args.control_port, fps=args.fps
        )
    except (OSError, ValueError) as exc:
        print(f"Failed to initialize network: {exc}", file=sys.stderr)
        return 1

    status = 0
    with server:
        print(f"Opening video: {args.video}")
        frames = iter_video_frames(args.video, FRAME_WIDTH, FRAME_HEIGHT)
        try:
            first = next(frames)
        except Exception as exc:  # decoders report unreadable input with assorted types
            print(f"Could not open input file '{args.video}': {exc}", file=sys.stderr)
            print("Failed to initialize video", file=sys.stderr)
            status = 1
        else:
            print("Server initialized successfully. Waiting for client...")
            try:
                server.run(itertools.chain([first], frames))
            except KeyboardInterrupt:
                pass
    print("Server cleanup complete")
    return status


if __name__ == "__main__":
    sys.exit(main())