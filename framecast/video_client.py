"""Receive the chunked video stream, show it and send control input back."""

from __future__ import annotations

import argparse
import socket
import sys
import time
from typing import Iterable, Sequence

from framecast.assembly import FrameAssembler, FrameBuffer
from framecast.protocol import (
    CONTROL_PORT,
    FRAME_HEIGHT,
    FRAME_WIDTH,
    HEADER_SIZE,
    MAX_PACKET_SIZE,
    SERVER_IP,
    VIDEO_PORT,
    ControlMessage,
    ProtocolError,
)

CONTROL_INTERVAL = 0.020
STATS_INTERVAL = 1.0
LOOP_DELAY = 0.001
RECEIVE_SIZE = HEADER_SIZE + MAX_PACKET_SIZE

# Keys that map to the first four buttons, in order.
BUTTON_KEYS = ("space", "left shift", "e", "q")
MOVEMENT_KEYS = ("w", "s", "a", "d")


class RateLimiter:
    """Reports when at least ``interval`` seconds have passed since it last fired."""

    def __init__(self, interval: float, start: float | None = None) -> None:
        self.interval = interval
        self.last = time.monotonic() if start is None else start

    def due(self, now: float | None = None) -> bool:
        now = time.monotonic() if now is None else now
        if now - self.last < self.interval:
            return False
        self.last = now
        return True


def keyboard_control(pressed: Iterable[str]) -> ControlMessage:
    """Build a control message from the names of the keys held down (WASD and buttons)."""
    keys = {key.lower() for key in pressed}
    x_axis = 0.0
    y_axis = 0.0
    if "w" in keys:
        y_axis -= 1.0
    if "s" in keys:
        y_axis += 1.0
    if "a" in keys:
        x_axis -= 1.0
    if "d" in keys:
        x_axis += 1.0
    buttons = [int(key in keys) for key in BUTTON_KEYS]
    return ControlMessage.from_buttons(x_axis, y_axis, buttons)


def joystick_control(axes: Sequence[float], buttons: Iterable[int]) -> ControlMessage:
    """Build a control message from joystick axes and button states."""
    x_axis, y_axis = (axes[0], axes[1]) if len(axes) >= 2 else (0.0, 0.0)
    return ControlMessage.from_buttons(x_axis, y_axis, (int(b) for b in buttons))


class VideoClient:
    """The client's two UDP sockets and the frame assembler fed by them."""

    def __init__(
        self,
        server_ip: str = SERVER_IP,
        video_port: int = VIDEO_PORT,
        control_port: int = CONTROL_PORT,
        bind_host: str = "",
    ) -> None:
        print("Initializing UDP sockets...")
        self.server_control_address = (server_ip, control_port)
        self.assembler = FrameAssembler()
        self.video_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self.control_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError:
            self.video_socket.close()
            raise
        try:
            self.video_socket.bind((bind_host, video_port))
        except OSError:
            self.close()
            raise
        self.video_socket.setblocking(False)
        print(
            f"UDP sockets initialized: Connected to {server_ip} "
            f"(Video: port {self.video_address[1]}, Control: port {control_port})"
        )

    @property
    def video_address(self) -> tuple[str, int]:
        return self.video_socket.getsockname()

    @property
    def stats(self):
        return self.assembler.stats

    def receive_chunks(self) -> FrameBuffer | None:
        """Drain waiting chunk packets; return the display frame if one completed."""
        completed = None
        while True:
            try:
                packet = self.video_socket.recv(RECEIVE_SIZE)
            except OSError:
                break
            if not packet:
                break
            try:
                frame = self.assembler.feed(packet)
            except ProtocolError as exc:
                print(f"Dropped chunk: {exc}", file=sys.stderr)
                continue
            if frame is not None:
                completed = frame
        return completed

    def send_control(self, message: ControlMessage) -> None:
        self.control_socket.sendto(message.pack(), self.server_control_address)

    def close(self) -> None:
        self.video_socket.close()
        control = getattr(self, "control_socket", None)
        if control is not None:
            control.close()

    def __enter__(self) -> VideoClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _read_controls(pygame) -> ControlMessage:
    if pygame.joystick.get_count() > 0:
        stick = pygame.joystick.Joystick(0)
        axes = [stick.get_axis(i) for i in range(stick.get_numaxes())]
        buttons = [stick.get_button(i) for i in range(stick.get_numbuttons())]
        return joystick_control(axes, buttons)
    key_codes = {
        "w": pygame.K_w,
        "s": pygame.K_s,
        "a": pygame.K_a,
        "d": pygame.K_d,
        "space": pygame.K_SPACE,
        "left shift": pygame.K_LSHIFT,
        "e": pygame.K_e,
        "q": pygame.K_q,
    }
    state = pygame.key.get_pressed()
    return keyboard_control(name for name, code in key_codes.items() if state[code])


def _render(pygame, screen, frame: FrameBuffer) -> None:
    screen.fill((0, 0, 0))
    if frame.complete:
        image = pygame.image.frombuffer(bytes(frame.frame_data), (frame.width, frame.height), "RGB")
        screen.blit(pygame.transform.scale(image, screen.get_size()), (0, 0))
    pygame.display.flip()


def _run(client: VideoClient, pygame) -> None:
    print("Initializing display...")
    pygame.init()
    screen = pygame.display.set_mode((FRAME_WIDTH, FRAME_HEIGHT), pygame.RESIZABLE)
    pygame.display.set_caption("Video Stream Client")
    screen.fill((0, 0, 0))
    pygame.display.flip()
    print("Client initialized successfully. Connecting to server...")

    control_timer = RateLimiter(CONTROL_INTERVAL)
    stats_timer = RateLimiter(STATS_INTERVAL)
    client.send_control(ControlMessage())
    print("Sent initial control message. Waiting for video...")

    running = True
    while running:
        client.receive_chunks()
        _render(pygame, screen, client.assembler.display)
        now = time.monotonic()
        if control_timer.due(now):
            client.send_control(_read_controls(pygame))
        if stats_timer.due(now):
            stats = client.stats
            print(
                f"Statistics: Frames received={stats.frames_received}, "
                f"displayed={stats.frames_displayed}, chunks={stats.chunks_received}"
            )
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
        time.sleep(LOOP_DELAY)
    print("Exiting...")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Show the video stream and send controls.")
    parser.add_argument("--server", default=SERVER_IP, help="server address")
    parser.add_argument("--video-port", type=int, default=VIDEO_PORT, help="local video port")
    parser.add_argument("--control-port", type=int, default=CONTROL_PORT, help="server control port")
    args = parser.parse_args(argv)

    print("===== UDP Video Streaming Client Starting =====")
    try:
        client = VideoClient(args.server, args.video_port, args.control_port)
    except OSError as exc:
        print(f"Failed to initialize network: {exc}", file=sys.stderr)
        return 1

    import pygame

    status = 0
    with client:
        print(f"Attempting to connect to server at {args.server}:{args.control_port}")
        try:
            _run(client, pygame)
        except pygame.error as exc:
            print(f"Failed to initialize graphics: {exc}", file=sys.stderr)
            status = 1
        except KeyboardInterrupt:
            print("Exiting...")
        finally:
            pygame.quit()
    print("Client cleanup complete")
    return status


if __name__ == "__main__":
    sys.exit(main())