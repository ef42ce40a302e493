"""
Bluesky integration: XRPC client, record decoding, threads and the firehose.
"""

from .client import BlueskyClient
from .cursor import CursorStore
from .jetstream import JetstreamConsumer, parse_jetstream_event
from .records import (
    InboundEvent,
    PostRecord,
    ReplyRef,
    StrongRef,
    decode_post_record,
    post_from_view,
    summarize_embed,
)
from .thread import ThreadNode, ThreadReconstructor

__all__ = [
    "BlueskyClient",
    "CursorStore",
    "JetstreamConsumer",
    "parse_jetstream_event",
    "InboundEvent",
    "PostRecord",
    "ReplyRef",
    "StrongRef",
    "decode_post_record",
    "post_from_view",
    "summarize_embed",
    "ThreadNode",
    "ThreadReconstructor",
]
