"""Image transfer over ZeroMQ and chunked RGB video streaming over UDP."""

__version__ = "0.1.0"