"""Serve one image file to request/reply clients."""

from __future__ import annotations

import argparse
import struct
import sys
from pathlib import Path

import zmq

DEFAULT_IMAGE = "image2.jpg"
DEFAULT_ENDPOINT = "tcp://*:5555"

# The image length travels as a signed 64-bit integer ahead of the data.
SIZE_FIELD = struct.Struct("<q")


def load_image(path: str | Path) -> bytes:
    """Read the whole image file."""
    data = Path(path).read_bytes()
    print(f"Read image file: {path} ({len(data)} bytes)")
    return data


def handle_request(request: bytes, image: bytes) -> list[bytes]:
    """Build the two-part reply to a request: the image size, then the image."""
    return [SIZE_FIELD.pack(len(image)), bytes(image)]


def serve(image: bytes, endpoint: str = DEFAULT_ENDPOINT) -> None:
    """Answer every request on ``endpoint`` with ``image``; runs until interrupted."""
    with zmq.Context() as context, context.socket(zmq.REP) as responder:
        responder.setsockopt(zmq.LINGER, 0)
        responder.bind(endpoint)
        print(f"Server started at {endpoint}")
        print("Waiting for client requests...")
        while True:
            request = responder.recv()
            print(f"Received request: {request.decode(errors='replace')}")
            responder.send_multipart(handle_request(request, image))
            print(f"Sent image ({len(image)} bytes)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve an image over a request/reply socket.")
    parser.add_argument("--image", default=DEFAULT_IMAGE, help="image file to serve")
    parser.add_argument("--endpoint", default=DEFAULT_ENDPOINT, help="endpoint to bind")
    args = parser.parse_args(argv)

    try:
        image = load_image(args.image)
    except OSError as exc:
        print(f"Failed to open image file: {exc}", file=sys.stderr)
        return 1

    try:
        serve(image, args.endpoint)
    except zmq.ZMQError as exc:
        print(f"Failed to bind socket: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())