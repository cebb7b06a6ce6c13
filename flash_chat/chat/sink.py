"""Output sinks for streamed agent text.

The session client writes the whole accumulated stream on every chunk, and
an empty string when the stream buffer is cleared. Sinks replace what they
show; they never append.
"""
from typing import Protocol


class OutputSink(Protocol):
    def write(self, text: str) -> None: ...


class NullSink:
    def write(self, text: str) -> None:
        pass


class BufferSink:
    """Keeps the latest text and a write count. Handy for tests and polling UIs."""

    def __init__(self):
        self.text = ""
        self.writes = 0

    def write(self, text: str) -> None:
        self.text = text
        self.writes += 1
