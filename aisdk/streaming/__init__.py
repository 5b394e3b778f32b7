from .sse import SseDecoder, SseEvent
from .pipeline import ProviderChunk, sse_to_events
from .mapper import EventMapperConfig, EventMapperHooks, EventMapperState, map_events_to_parts
from .collect import StreamCollectorConfig, collect_stream_to_response
