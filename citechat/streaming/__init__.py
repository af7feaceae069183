"""Line-oriented streaming protocol shared by the API and the chat client.

Responsibilities:
    - Short-id tables mapping inline markers to passages
    - Encoding answers into tagged, newline-terminated frames
    - Reassembling and repairing frames on the client side
"""

from citechat.streaming.decoder import (
    FrameRepairer,
    decode_frames,
    parse_frame,
    repair_frames,
    repair_line,
)
from citechat.streaming.encoder import StreamConfig, StreamEncoder
from citechat.streaming.short_ids import ShortIdTable, build_short_id_table

__all__ = [
    "FrameRepairer",
    "ShortIdTable",
    "StreamConfig",
    "StreamEncoder",
    "build_short_id_table",
    "decode_frames",
    "parse_frame",
    "repair_frames",
    "repair_line",
]
