"""Try-on pipeline and its event stream."""

from .event_stream import EventStream, StreamClosedError, encode_event
from .tryon_pipeline import TryOnPipeline, EventSink

__all__ = [
    "TryOnPipeline",
    "EventSink",
    "EventStream",
    "StreamClosedError",
    "encode_event",
]
