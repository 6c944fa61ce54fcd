# framecast

framecast moves pictures from one machine to another on a local network.
It has two pairs of programs:

- **Image transfer** over ZeroMQ request/reply: a server holds one image
  file and hands it to every client that asks for it.
- **Video streaming** over UDP: a server decodes a video file, scales every
  frame to 640×480 RGB, splits it into datagram-sized chunks and sends them
  to a client. The client puts the chunks back together, shows the frames in
  a window and sends joystick or keyboard input back to the server about
  fifty times a second.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Image transfer

Start the server in the directory that holds the image to serve:

```
framecast-image-server [--image PATH] [--endpoint ENDPOINT]
```

By default it reads `image2.jpg` and binds `tcp://*:5555`. Then, on the
client machine:

```
framecast-image-client [--server ADDRESS] [--port PORT] [--output PATH]
```

The client connects to `tcp://127.0.0.1:5555` unless told otherwise, sends
`GET_IMAGE`, and receives a two-part reply: the image size as a signed
64-bit little-endian integer, then the image bytes. It saves the data as
`received_image.jpg`, and reports on standard error if fewer bytes arrived
than were announced.

The same steps are available from Python:
`framecast.image_server.load_image(path)`, `handle_request(request, image)`
and `serve(image, endpoint)`, and `framecast.image_client.request_image(endpoint)`,
`decode_reply(parts)` and `save_image(data, path)`. `decode_reply` returns an
`ImageReply` with `size`, `data` and `complete`, and raises
`framecast.protocol.ProtocolError` for a reply of the wrong shape.

## Video streaming

Start the server next to the video it should play:

```
framecast-video-server [--video PATH] [--video-port PORT] [--control-port PORT] [--fps FPS]
```

It reads `video.mp4` by default with imageio; which video formats can be
read depends on the imageio plugins installed. It decodes the first frame
straight away and exits if it cannot. It then waits on UDP port 5556 for a
control message. Start the client:

```
framecast-video-client [--server ADDRESS] [--video-port PORT] [--control-port PORT]
```

The client binds UDP port 5555 for video, opens a resizable window and sends
its first control message to the server at `127.0.0.1:5556`. From then on the
server sends frames to the host the latest control message came from, on the
video port, at about 30 frames per second, and starts the video over when it
reaches the end. The client prints frame and chunk counts once a second.

### Controls

With a joystick attached, its first two axes and first eight buttons are
sent. Without one the keyboard is used:

| Key         | Effect         |
|-------------|----------------|
| W / S       | y axis −1 / +1 |
| A / D       | x axis −1 / +1 |
| Space       | button 0       |
| Left Shift  | button 1       |
| E           | button 2       |
| Q           | button 3       |

`framecast.video_client.keyboard_control(pressed)` and
`joystick_control(axes, buttons)` build these messages.

## Wire format

`framecast.protocol` describes the messages. All fields are little-endian.

A video datagram starts with a 32-byte `FrameChunkHeader`: message type (1),
frame id, chunk index, total chunks, frame width, frame height, chunk size
and the chunk's byte offset in the frame, followed by the chunk's pixel data.
`framecast.video_server.chunk_frame(frame_id, data, width, height)` cuts a
frame into datagrams of at most 1400 bytes, header included;
`calc_num_chunks(frame_size, chunk_size)` gives how many chunks a frame
needs.

A `ControlMessage` carries message type (2), an x and a y axis value
(−1.0 to 1.0) and eight button states, 20 bytes in all.

Both classes have `pack()` to produce bytes and `unpack(data)` to read them
back; malformed input raises `ProtocolError`.

On the receiving side `framecast.assembly.FrameAssembler.feed(packet)` takes
one datagram at a time. It raises `ProtocolError` for a bad header, a wrong
chunk size or a chunk outside the frame; it ignores duplicate chunks and
chunk indexes past the total; and it returns the display `FrameBuffer` once
every chunk of a frame has arrived, `None` otherwise. Counters are kept in
`FrameAssembler.stats`.

`framecast.video_server.VideoServer` and `framecast.video_client.VideoClient`
hold the sockets and can be used as context managers; `FramePacer` and
`RateLimiter` do the timing.

## What it does not do

- The video server only prints the control messages it receives and keeps
  the last one in `VideoServer.last_control`; nothing acts on them.
- Frames travel as uncompressed RGB. Lost datagrams are not resent: a frame
  missing a chunk is never shown.
- There is no authentication or encryption on either channel.