[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "framecast"
version = "0.1.0"
description = "Serve still images over ZeroMQ and stream raw RGB video over UDP, with a joystick/keyboard control channel back to the sender."
requires-python = ">=3.10"
keywords = ["video", "streaming", "udp", "zeromq", "remote-control", "frames"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
    "Topic :: System :: Networking",
]
dependencies = [
    "pyzmq",
    "pygame",
    "imageio",
    "pillow",
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
framecast-image-server = "framecast.image_server:main"
framecast-image-client = "framecast.image_client:main"
framecast-video-server = "framecast.video_server:main"
framecast-video-client = "framecast.video_client:main"

[tool.hatch.build.targets.wheel]
packages = ["framecast"]

[tool.pytest.ini_options]
addopts = "-ra"
