"""
Incremental Server-Sent Events decoder.

Bytes are buffered until a blank line (`\\n\\n`, `\\r\\n\\r\\n` or `\\r\\r`) closes
a frame, so chunk boundaries never change the decoded output.
"""
from typing import List, Optional

from pydantic import BaseModel


class SseEvent(BaseModel):
    data: str
    event: Optional[str] = None
    id: Optional[str] = None
    retry: Optional[int] = None


def _find_event_terminator(buf: bytearray) -> Optional[int]:
    """Index of the last byte of the first blank-line terminator, or None."""
    idx = 0
    line_start = 0
    size = len(buf)
    while idx < size:
        byte = buf[idx]
        if byte == 0x0A:  # \n
            if idx == line_start:
                return idx
            idx += 1
            line_start = idx
        elif byte == 0x0D:  # \r
            # a trailing \r may still be followed by \n
            if idx + 1 >= size:
                return None
            terminator_len = 2 if buf[idx + 1] == 0x0A else 1
            if idx == line_start:
                return idx + terminator_len - 1
            idx += terminator_len
            line_start = idx
        else:
            idx += 1
    return None


def _split_lines(text: str) -> List[str]:
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


class SseDecoder:
    def __init__(self):
        self._buffer = bytearray()
        self._data: List[str] = []
        self._event: Optional[str] = None
        self._id: Optional[str] = None
        self._retry: Optional[int] = None

    def push(self, chunk: bytes) -> List[SseEvent]:
        """Feed a chunk and return every frame it completes."""
        self._buffer.extend(chunk)
        return self._process_buffer()

    def finish(self) -> List[SseEvent]:
        """Flush a trailing frame as if the stream ended with a blank line."""
        if self.has_buffered_data():
            self._buffer.extend(b"\n\n")
            return self._process_buffer()
        return []

    def has_buffered_data(self) -> bool:
        return bool(self._buffer) or bool(self._data)

    def _process_buffer(self) -> List[SseEvent]:
        events: List[SseEvent] = []
        while True:
            end = _find_event_terminator(self._buffer)
            if end is None:
                break
            frame = bytes(self._buffer[: end + 1])
            del self._buffer[: end + 1]
            self._process_frame(frame, events)
        return events

    def _process_frame(self, frame: bytes, events: List[SseEvent]) -> None:
        text = frame.decode("utf-8", errors="replace")
        for line in _split_lines(text):
            if not line:
                self._dispatch(events)
                continue
            if line.startswith(":"):
                continue
            if ":" in line:
                field, value = line.split(":", 1)
                value = value.lstrip()
            else:
                field, value = line, ""

            if field == "data":
                self._data.append(value)
            elif field == "event":
                self._event = value
            elif field == "id":
                self._id = value
            elif field == "retry":
                if value.isdigit():
                    self._retry = int(value)
        self._dispatch(events)

    def _dispatch(self, events: List[SseEvent]) -> None:
        if self._data:
            events.append(SseEvent(data="\n".join(self._data), event=self._event, id=self._id, retry=self._retry))
        self._data = []
        self._event = None
        self._id = None
        self._retry = None
