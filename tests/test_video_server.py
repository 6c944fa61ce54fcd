import socket
import time

import numpy as np
import pytest
from PIL import Image

from framecast.assembly import FrameAssembler
from framecast.protocol import (
    CHUNK_PAYLOAD_SIZE,
    HEADER_SIZE,
    MAX_PACKET_SIZE,
    ControlMessage,
    FrameChunkHeader,
    calc_num_chunks,
)
from framecast.video_server import (
    FramePacer,
    VideoServer,
    chunk_frame,
    iter_video_frames,
    main,
    to_rgb_frame,
)

WIDTH = 40
HEIGHT = 30
FRAME_SIZE = WIDTH * HEIGHT * 3


def _frame(seed: int = 0) -> bytes:
    return bytes((i * 7 + seed) % 256 for i in range(FRAME_SIZE))


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


@pytest.fixture
def server(receiver):
    srv = VideoServer(
        video_port=receiver.getsockname()[1],
        control_port=0,
        bind_host="127.0.0.1",
        width=WIDTH,
        height=HEIGHT,
        fps=200,
    )
    srv.chunk_delay = 0
    yield srv
    srv.close()


def _send_control(server, payload: bytes) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sender:
        sender.sendto(payload, ("127.0.0.1", server.control_address[1]))


def _poll(server, timeout: float = 2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        message = server.poll_control()
        if message is not None:
            return message
        time.sleep(0.01)
    return None


def test_chunk_frame_count_and_payload_cover_frame():
    data = _frame()
    packets = chunk_frame(3, data, WIDTH, HEIGHT)
    assert len(packets) == calc_num_chunks(FRAME_SIZE, CHUNK_PAYLOAD_SIZE)
    headers = [FrameChunkHeader.unpack(packet) for packet in packets]
    assert b"".join(packet[HEADER_SIZE:] for packet in packets) == data
    assert [h.chunk_index for h in headers] == list(range(len(packets)))
    assert all(h.total_chunks == len(packets) for h in headers)
    assert all(h.frame_id == 3 for h in headers)
    assert sum(h.chunk_size for h in headers) == FRAME_SIZE
    assert headers[-1].chunk_offset + headers[-1].chunk_size == FRAME_SIZE


def test_chunk_frame_first_header():
    packets = chunk_frame(7, _frame(), WIDTH, HEIGHT)
    header = FrameChunkHeader.unpack(packets[0])
    assert header == FrameChunkHeader(
        frame_id=7,
        chunk_index=0,
        total_chunks=len(packets),
        width=WIDTH,
        height=HEIGHT,
        chunk_size=CHUNK_PAYLOAD_SIZE,
        chunk_offset=0,
    )


def test_chunk_frame_packets_fit_packet_limit():
    packets = chunk_frame(1, bytes(FRAME_SIZE), WIDTH, HEIGHT)
    assert all(len(packet) <= MAX_PACKET_SIZE for packet in packets)


def test_chunk_frame_rejects_wrong_length():
    with pytest.raises(ValueError):
        chunk_frame(1, bytes(FRAME_SIZE - 1), WIDTH, HEIGHT)


def test_chunks_reassemble_into_frame():
    data = _frame(5)
    assembler = FrameAssembler()
    results = [assembler.feed(packet) for packet in chunk_frame(1, data, WIDTH, HEIGHT)]
    assert all(result is None for result in results[:-1])
    display = results[-1]
    assert display.complete
    assert bytes(display.frame_data) == data
    assert (display.width, display.height, display.frame_id) == (WIDTH, HEIGHT, 1)


def test_to_rgb_frame_scales_solid_colour():
    image = np.zeros((2, 2, 3), dtype=np.uint8)
    image[..., 0] = 255
    assert to_rgb_frame(image, 4, 3) == bytes([255, 0, 0]) * 12


def test_to_rgb_frame_expands_grayscale():
    image = np.full((3, 3), 7, dtype=np.uint8)
    assert to_rgb_frame(image, 3, 3) == bytes([7, 7, 7]) * 9


def test_to_rgb_frame_drops_alpha():
    picture = Image.new("RGBA", (2, 2), (10, 20, 30, 40))
    assert to_rgb_frame(picture, 2, 2) == bytes([10, 20, 30]) * 4


def test_iter_video_frames_loops(tmp_path):
    path = tmp_path / "clip.gif"
    red = Image.new("RGB", (8, 6), (255, 0, 0))
    blue = Image.new("RGB", (8, 6), (0, 0, 255))
    red.save(path, save_all=True, append_images=[blue], duration=100, loop=0)

    frames = iter_video_frames(str(path), 4, 3)
    taken = [next(frames) for _ in range(4)]
    assert all(len(frame) == 4 * 3 * 3 for frame in taken)
    assert taken[0][:3] == bytes([255, 0, 0])
    assert taken[0] == taken[2]
    assert taken[1] == taken[3]
    assert taken[0] != taken[1]


def test_iter_video_frames_missing_file(tmp_path):
    with pytest.raises(OSError):
        next(iter_video_frames(str(tmp_path / "missing.mp4"), 4, 3))


def test_frame_pacer_waits_rest_of_slot():
    pacer = FramePacer(fps=30, start=0.0)
    assert pacer.wait_time(0.0) == pytest.approx(1 / 30)


def test_frame_pacer_no_wait_when_behind_and_tracks_last():
    pacer = FramePacer(fps=30, start=0.0)
    assert pacer.wait_time(1.0) == 0.0
    assert pacer.last == 1.0
    assert pacer.wait_time(1.01) == pytest.approx(1 / 30 - 0.01)


def test_frame_pacer_rejects_bad_rate():
    with pytest.raises(ValueError):
        FramePacer(fps=0)


def test_poll_control_without_messages(server):
    assert server.poll_control() is None
    assert server.client_address is None


def test_poll_control_registers_client(server, receiver):
    message = ControlMessage(0.5, -1.0, (1, 0, 1, 0, 0, 0, 0, 1))
    _send_control(server, message.pack())
    received = _poll(server)
    assert received == message
    assert server.last_control == message
    assert server.client_address == ("127.0.0.1", receiver.getsockname()[1])
    assert server.client_connected


def test_poll_control_ignores_short_message(server):
    _send_control(server, b"\x02\x00\x00")
    assert _poll(server, timeout=0.3) is None
    assert server.client_address is None


def test_poll_control_ignores_wrong_type(server):
    payload = bytearray(ControlMessage().pack())
    payload[0] = 1
    _send_control(server, bytes(payload))
    assert _poll(server, timeout=0.3) is None
    assert not server.client_connected


def test_send_frame_without_client(server):
    assert server.send_frame(_frame()) == 0
    assert server.chunk_count == 0


def test_send_frame_reaches_client(server, receiver):
    _send_control(server, ControlMessage().pack())
    assert _poll(server) is not None
    server.frame_count = 1
    data = _frame(9)
    sent = server.send_frame(data)
    assert sent == calc_num_chunks(FRAME_SIZE, CHUNK_PAYLOAD_SIZE)
    assert server.chunk_count == sent

    assembler = FrameAssembler()
    display = None
    for _ in range(sent):
        display = assembler.feed(receiver.recv(65536)) or display
    assert display is not None
    assert bytes(display.frame_data) == data
    assert display.frame_id == 1


def test_run_streams_all_frames(server, receiver):
    _send_control(server, ControlMessage().pack())
    assert _poll(server) is not None
    frames = [_frame(seed) for seed in range(3)]
    server.run(frames)
    assert server.frame_count == 3

    per_frame = calc_num_chunks(FRAME_SIZE, CHUNK_PAYLOAD_SIZE)
    assert server.chunk_count == 3 * per_frame
    assembler = FrameAssembler()
    completed = []
    for _ in range(3 * per_frame):
        display = assembler.feed(receiver.recv(65536))
        if display is not None:
            completed.append((display.frame_id, bytes(display.frame_data)))
    assert completed == [(1, frames[0]), (2, frames[1]), (3, frames[2])]


def test_main_fails_for_missing_video(tmp_path):
    status = main(
        [
            "--video",
            str(tmp_path / "missing.mp4"),
            "--control-port",
            "0",
        ]
    )
    assert status == 1