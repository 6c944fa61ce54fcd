"""Fetch an image from the image server and save it."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterable, NamedTuple

import zmq

from framecast.image_server import SIZE_FIELD
from framecast.protocol import SERVER_IP, ProtocolError

REQUEST = b"GET_IMAGE"
IMAGE_PORT = 5555
OUTPUT_IMAGE = "received_image.jpg"


class ImageReply(NamedTuple):
    """The size the server announced and the data it sent."""

    size: int
    data: bytes

    @property
    def complete(self) -> bool:
        return len(self.data) == self.size


def decode_reply(parts: Iterable[bytes]) -> ImageReply:
    """Decode the server's two-part reply."""
    parts = list(parts)
    if len(parts) != 2:
        raise ProtocolError(f"expected 2 message parts, got {len(parts)}")
    size_field, data = parts
    if len(size_field) != SIZE_FIELD.size:
        raise ProtocolError(
            f"size field must be {SIZE_FIELD.size} bytes, got {len(size_field)}"
        )
    (size,) = SIZE_FIELD.unpack(size_field)
    if size < 0:
        raise ProtocolError(f"negative image size: {size}")
    return ImageReply(size, bytes(data))


def request_image(endpoint: str) -> ImageReply:
    """Ask the server at ``endpoint`` for its image and wait for the reply."""
    print(f"Connecting to server at {endpoint}")
    with zmq.Context() as context, context.socket(zmq.REQ) as requester:
        requester.setsockopt(zmq.LINGER, 0)
        requester.connect(endpoint)
        requester.send(REQUEST)
        print(f"Sent request: {REQUEST.decode()}")
        parts = requester.recv_multipart()

    reply = decode_reply(parts)
    print(f"Image size: {reply.size} bytes")
    if reply.complete:
        print(f"Received full image: {len(reply.data)} bytes")
    else:
        print(
            f"Received {len(reply.data)} bytes, expected {reply.size} bytes",
            file=sys.stderr,
        )
    return reply


def save_image(data: bytes, path: str | Path) -> int:
    """Write ``data`` to ``path`` and return the number of bytes written."""
    with open(path, "wb") as output:
        return output.write(data)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Request an image from the image server.")
    parser.add_argument("--server", default=SERVER_IP, help="server address")
    parser.add_argument("--port", type=int, default=IMAGE_PORT, help="server port")
    parser.add_argument("--output", default=OUTPUT_IMAGE, help="where to save the image")
    args = parser.parse_args(argv)

    endpoint = f"tcp://{args.server}:{args.port}"
    try:
        reply = request_image(endpoint)
    except zmq.ZMQError as exc:
        print(f"Failed to connect: {exc}", file=sys.stderr)
        return 1
    except ProtocolError as exc:
        print(f"Malformed reply: {exc}", file=sys.stderr)
        return 1

    try:
        save_image(reply.data, args.output)
    except OSError as exc:
        print(f"Failed to create output file: {exc}", file=sys.stderr)
        return 1

    print(f"Image saved to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())