"""
Bounded byte pipe between a writer thread and the transport.

The writer pushes chunks with write() and finishes with close() or
close_with_error().  The reader iterates the pipe; an error closed into the
pipe is raised on the reading side as MultipartWriteError.  Either side can
cancel(): a blocked writer then fails with LoadCancelled instead of waiting
for a reader that has gone away.
"""

import queue
import threading
from typing import Iterator, Optional

from .exceptions import LoadCancelled, MultipartWriteError
from .logger import get_module_logger

logger = get_module_logger("pipe")

_EOF = object()

# How often a blocked writer re-checks for cancellation (seconds)
_POLL_INTERVAL = 0.05


class _Failure:
    def __init__(self, error: BaseException, part: Optional[str]):
        self.error = error
        self.part = part


class BytePipe:
    """Single-writer, single-reader pipe holding at most `max_chunks` chunks."""

    def __init__(self, max_chunks: int = 16):
        self._queue: queue.Queue = queue.Queue(maxsize=max_chunks)
        self._cancelled = threading.Event()
        self._closed = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    # --- Writer side ---

    def write(self, data: bytes) -> None:
        if self._closed:
            raise ValueError("write to closed pipe")
        if data:
            self._put(bytes(data))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._put(_EOF)

    def close_with_error(self, error: BaseException, part: Optional[str] = None) -> None:
        """Terminate the stream; the reader raises MultipartWriteError."""
        if self._closed:
            return
        self._closed = True
        try:
            self._put(_Failure(error, part))
        except LoadCancelled:
            # Nobody is reading any more, the error stays with the writer's log
            logger.debug(f"Pipe cancelled before error could be delivered: {error}")

    def _put(self, item) -> None:
        while not self._cancelled.is_set():
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
            except queue.Full:
                continue
            # A put that raced with cancel() still counts as cancelled
            if not self._cancelled.is_set():
                return
        raise LoadCancelled("Request body write cancelled")

    # --- Reader side ---

    def cancel(self) -> None:
        """Stop the writer promptly; pending chunks are dropped."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def __iter__(self) -> Iterator[bytes]:
        finished = False
        try:
            while True:
                if self._cancelled.is_set():
                    raise LoadCancelled("Request body read cancelled")
                try:
                    item = self._queue.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                if item is _EOF:
                    finished = True
                    return
                if isinstance(item, _Failure):
                    finished = True
                    raise MultipartWriteError(
                        f"Multipart body write failed: {item.error}", part=item.part
                    ) from item.error
                yield item
        finally:
            # Reader abandoned the stream early (transport error, generator closed)
            if not finished:
                self.cancel()
