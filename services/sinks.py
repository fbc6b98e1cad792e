"""Output sinks for streaming downloads.

A sink is an open, write-only byte output owned by whoever created it. The
producer only writes to it (and aborts it on failure); the owner closes it.

- ``BufferSink`` keeps everything in memory (tests, small payloads).
- ``QueueSink`` hands chunks from a producer thread to a WSGI response
  iterator through a bounded queue. Closing the iterator early (client went
  away, or never read at all on HEAD) makes the producer's next ``write()``
  raise ``SinkClosed``.
"""

from __future__ import annotations

import io
import queue
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterator, Optional

from werkzeug.wsgi import ClosingIterator

from services.errors import ArchiveFailure, SinkClosed
from services.logging_setup import core_log as _core_log


class Sink(ABC):
    def __init__(self) -> None:
        self.headers: Dict[str, str] = {}
        self.bytes_written = 0

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    @property
    def started(self) -> bool:
        return self.bytes_written > 0

    @abstractmethod
    def write(self, chunk: bytes) -> int:
        """Write ``chunk``; raise SinkClosed when the sink no longer accepts bytes."""

    @abstractmethod
    def close(self) -> None:
        """Signal a complete stream."""

    @abstractmethod
    def abort(self) -> None:
        """Signal a broken stream; the consumer must see it as truncated."""


class BufferSink(Sink):
    def __init__(self) -> None:
        super().__init__()
        self._buf = io.BytesIO()
        self.closed = False
        self.aborted = False

    def write(self, chunk: bytes) -> int:
        if self.closed or self.aborted:
            raise SinkClosed("sink is closed")
        n = self._buf.write(bytes(chunk))
        self.bytes_written += n
        return n

    def close(self) -> None:
        self.closed = True

    def abort(self) -> None:
        self.aborted = True

    def getvalue(self) -> bytes:
        return self._buf.getvalue()


_EOF = object()


class QueueSink(Sink):
    def __init__(self, maxsize: int = 16, poll_interval: float = 0.25) -> None:
        super().__init__()
        self._q: "queue.Queue[object]" = queue.Queue(maxsize=max(1, int(maxsize)))
        self._poll = float(poll_interval)
        self._finished = threading.Event()
        self._cancelled = threading.Event()
        self.aborted = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _put(self, item: object) -> bool:
        while not self._cancelled.is_set():
            try:
                self._q.put(item, timeout=self._poll)
                return True
            except queue.Full:
                continue
        return False

    def write(self, chunk: bytes) -> int:
        if self._finished.is_set() or self._cancelled.is_set():
            raise SinkClosed("sink is closed")
        data = bytes(chunk)
        if not data:
            return 0
        if not self._put(data):
            raise SinkClosed("client disconnected")
        self.bytes_written += len(data)
        return len(data)

    def _finish(self, aborted: bool) -> None:
        if self._finished.is_set():
            return
        self.aborted = aborted
        self._finished.set()
        self._put(_EOF)

    def close(self) -> None:
        self._finish(aborted=False)

    def abort(self) -> None:
        self._finish(aborted=True)

    def cancel(self) -> None:
        """Consumer side: stop accepting bytes (client disconnected)."""
        self._cancelled.set()

    def iter_chunks(self) -> Iterator[bytes]:
        """Response body iterator; raises when the producer aborted the stream."""
        try:
            while True:
                item = self._q.get()
                if item is _EOF:
                    if self.aborted:
                        # Raising here makes the server drop the connection.
                        raise ArchiveFailure("stream aborted", committed=True)
                    return
                yield item  # type: ignore[misc]
        finally:
            self._cancelled.set()

    def body(self) -> ClosingIterator:
        """WSGI body; closing it cancels the producer even if it was never iterated."""
        return ClosingIterator(self.iter_chunks(), [self.cancel])


def start_producer(produce: Callable[[Sink], None], sink: QueueSink, *, name: Optional[str] = None) -> threading.Thread:
    """Run ``produce(sink)`` in a worker thread and close/abort the sink when it ends.

    The producer reports its own failures (and aborts the sink); anything it
    raises is logged here as well.
    """

    def _run() -> None:
        try:
            produce(sink)
        except SinkClosed:
            sink.abort()
        except Exception as e:  # noqa: BLE001
            _core_log("error", "download producer failed", error=repr(e), bytes_sent=sink.bytes_written)
            sink.abort()
        else:
            sink.close()

    t = threading.Thread(target=_run, name=name or "download-producer", daemon=True)
    t.start()
    return t
