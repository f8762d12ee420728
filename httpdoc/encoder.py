"""
BodyEncoder: turns a RequestSpec's body choice into a PreparedRequest.

URL-encoded and raw bodies are materialized and get a Content-Length.
Multipart bodies are streamed: a writer thread encodes form fields (in
insertion order) and then parts (in attachment order) into a BytePipe that
the transport reads while the request is in flight.  No Content-Length is
sent for them.
"""

import io
import secrets
import threading
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlencode

from .exceptions import InvariantError, LoadCancelled
from .logger import get_module_logger
from .pipe import BytePipe
from .request import BodyMode, RequestSpec, URLENCODED_CONTENT_TYPE, close_source, release_parts
from .schemas import MultipartPart, PreparedRequest

logger = get_module_logger("encoder")

COPY_CHUNK_SIZE = 32 * 1024


def escape_quotes(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def encode_form(spec: RequestSpec) -> bytes:
    return urlencode(spec.form.multi_items()).encode("ascii")


class MultipartStream:
    """
    Streamed multipart/form-data body.

    Iterating the stream starts the writer thread; cancel() stops it.  Every
    part source that the writer opened, or that was handed over as a file
    object, is closed on every exit path.
    """

    def __init__(self, fields: list[tuple[str, str]], parts: list[MultipartPart],
                 boundary: Optional[str] = None, max_chunks: int = 16):
        self.fields = list(fields)
        self.parts = list(parts)
        self.boundary = boundary or secrets.token_hex(16)
        self._pipe = BytePipe(max_chunks=max_chunks)
        self._thread: Optional[threading.Thread] = None
        self._started = False
        self.error: Optional[BaseException] = None

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def __iter__(self):
        if self._started:
            raise RuntimeError("multipart stream can only be consumed once")
        self._started = True
        self._thread = threading.Thread(
            target=self._run, name="httpdoc-multipart-writer", daemon=True
        )
        self._thread.start()
        return iter(self._pipe)

    def cancel(self) -> None:
        self._pipe.cancel()
        if not self._started:
            release_parts(self.parts)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    # --- Writer thread ---

    def _run(self) -> None:
        current = None
        try:
            first = True
            for name, value in self.fields:
                current = name
                self._pipe.write(self._part_header(first, self._disposition(name)))
                self._pipe.write(value.encode("utf-8"))
                first = False

            for part in self.parts:
                current = part.name
                headers = self._disposition(part.name, part.filename)
                if part.content_type:
                    headers += f"Content-Type: {part.content_type}\r\n"
                self._pipe.write(self._part_header(first, headers))
                self._copy(part)
                first = False

            closing = f"--{self.boundary}--\r\n" if first else f"\r\n--{self.boundary}--\r\n"
            self._pipe.write(closing.encode("ascii"))
            self._pipe.close()
        except LoadCancelled as e:
            self.error = e
            logger.debug("Multipart writer cancelled")
        except Exception as e:
            self.error = e
            logger.error(f"Multipart writer failed on part {current!r}: {e}")
            self._pipe.close_with_error(e, part=current)
        finally:
            release_parts(self.parts)

    def _part_header(self, first: bool, headers: str) -> bytes:
        delimiter = f"--{self.boundary}\r\n" if first else f"\r\n--{self.boundary}\r\n"
        return (delimiter + headers + "\r\n").encode("utf-8")

    @staticmethod
    def _disposition(name: str, filename: Optional[str] = None) -> str:
        value = f'form-data; name="{escape_quotes(name)}"'
        if filename is not None:
            value += f'; filename="{escape_quotes(filename)}"'
        return f"Content-Disposition: {value}\r\n"

    def _copy(self, part: MultipartPart) -> None:
        source = part.source
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        elif isinstance(source, Path):
            with source.open("rb") as f:
                self._copy_stream(f)
            return

        try:
            self._copy_stream(source)
        finally:
            close_source(source)

    def _copy_stream(self, stream) -> None:
        while True:
            chunk = stream.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            self._pipe.write(chunk)


class BodyEncoder:
    """Finalizes a RequestSpec into a PreparedRequest."""

    def __init__(self, boundary_factory: Optional[Callable[[], str]] = None):
        self.boundary_factory = boundary_factory
        self._encoders = {
            BodyMode.NONE: self._encode_none,
            BodyMode.URLENCODED: self._encode_urlencoded,
            BodyMode.RAW: self._encode_raw,
            BodyMode.MULTIPART: self._encode_multipart,
        }

    def encode(self, spec: RequestSpec) -> PreparedRequest:
        encode = self._encoders.get(spec.body_mode)
        if encode is None:
            raise InvariantError(f"No encoder for body mode {spec.body_mode!r}")

        headers = spec.headers.copy()
        content = encode(spec, headers)
        logger.debug(f"Encoded {spec.method} {spec.url} as {spec.body_mode.value}")
        return PreparedRequest(
            method=spec.method,
            url=str(spec.url),
            headers=list(headers.multi_items()),
            content=content,
        )

    def _encode_none(self, spec: RequestSpec, headers) -> None:
        return None

    def _encode_urlencoded(self, spec: RequestSpec, headers) -> bytes:
        body = encode_form(spec)
        headers["Content-Type"] = URLENCODED_CONTENT_TYPE
        headers["Content-Length"] = str(len(body))
        return body

    def _encode_raw(self, spec: RequestSpec, headers) -> bytes:
        body = spec.raw_body or b""
        headers["Content-Type"] = spec.raw_content_type or URLENCODED_CONTENT_TYPE
        headers["Content-Length"] = str(len(body))
        return body

    def _encode_multipart(self, spec: RequestSpec, headers) -> MultipartStream:
        boundary = self.boundary_factory() if self.boundary_factory else None
        stream = MultipartStream(list(spec.form.multi_items()), spec.parts, boundary=boundary)
        headers["Content-Type"] = stream.content_type
        if "Content-Length" in headers:
            del headers["Content-Length"]
        return stream
