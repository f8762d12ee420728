"""
RequestSpec: everything needed to build one outgoing request.

The body is an exclusive choice, recorded in `body_mode`:

  NONE        no body
  URLENCODED  form parameters, sent as application/x-www-form-urlencoded
  RAW         caller-supplied bytes with their own content type
  MULTIPART   form parameters followed by streamed parts

The last mutating call decides the mode.  Attaching a part cancels a raw
body and setting a raw body drops the form parameters and parts.
"""

import base64
import mimetypes
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

import httpx

from .exceptions import URLError
from .logger import get_module_logger
from .schemas import MultipartPart

logger = get_module_logger("request")

URLENCODED_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Methods whose parameters travel in the body rather than the query string
BODY_METHODS = ("POST", "PUT", "PATCH")

ParamsLike = Union[httpx.QueryParams, Mapping, Iterable, str, None]


class BodyMode(Enum):
    NONE = "none"
    URLENCODED = "urlencoded"
    RAW = "raw"
    MULTIPART = "multipart"


def parse_url(url: Union[str, httpx.URL]) -> httpx.URL:
    """
    Parse an absolute http(s) URL.

    Raises:
        URLError: the URL is malformed or not absolute
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise URLError(f"Malformed URL {url!r}: {e}", url=str(url)) from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise URLError(f"Not an absolute http(s) URL: {url!r}", url=str(url))
    return parsed


def close_source(source) -> None:
    """Close a part source that has a close() method; failures are only logged."""
    close = getattr(source, "close", None)
    if close is None:
        return
    try:
        close()
    except OSError as e:
        logger.warning(f"Failed to close multipart source: {e}")


def release_parts(parts: Iterable[MultipartPart]) -> None:
    """Close the file-object sources of parts that will never be written."""
    for part in parts:
        if not isinstance(part.source, (bytes, bytearray, memoryview, Path)):
            close_source(part.source)


class RequestSpec:
    """Method, URL, headers and body of one request (mutable builder)."""

    def __init__(self, url: Union[str, httpx.URL], method: str = "GET",
                 headers: Optional[httpx.Headers] = None):
        self.method = method.upper()
        self.url = parse_url(url)
        self.headers = httpx.Headers(headers)
        self.form = httpx.QueryParams()
        self.parts: list[MultipartPart] = []
        self.raw_body: Optional[bytes] = None
        self.raw_content_type: Optional[str] = None
        self.body_mode = BodyMode.NONE

        # user:password@host credentials become a Basic Authorization header
        if self.url.username:
            self.set_basic_auth(self.url.username, self.url.password)
            self.url = self.url.copy_with(username=None, password=None)

    def __repr__(self) -> str:
        return f"RequestSpec({self.method} {self.url} body={self.body_mode.value})"

    @property
    def has_body_method(self) -> bool:
        return self.method in BODY_METHODS

    def _promote_to_post(self) -> None:
        if not self.has_body_method:
            self.method = "POST"

    # --- Query parameters ---

    @property
    def query_params(self) -> httpx.QueryParams:
        return self.url.params

    def set_query_param(self, name: str, value: str) -> None:
        self.url = self.url.copy_set_param(name, value)

    def set_query_params(self, params: ParamsLike) -> None:
        """Replace the whole query string."""
        self.url = self.url.copy_with(params=httpx.QueryParams(params))

    # --- Form parameters ---

    def set_form_param(self, name: str, value: str) -> None:
        """Set a body parameter, promoting a GET-like request to POST."""
        self._promote_to_post()
        self.form = self.form.set(name, value)
        self._enter_form_mode()

    def add_form_param(self, name: str, value: str) -> None:
        self._promote_to_post()
        self.form = self.form.add(name, value)
        self._enter_form_mode()

    def set_form_params(self, params: ParamsLike) -> None:
        self._promote_to_post()
        self.form = httpx.QueryParams(params)
        self._enter_form_mode()

    def _enter_form_mode(self) -> None:
        # Form fields ride along with multipart parts; they replace a raw body
        if self.body_mode is BodyMode.MULTIPART:
            return
        self.raw_body = None
        self.raw_content_type = None
        self.body_mode = BodyMode.URLENCODED if self.form else BodyMode.NONE

    # --- Routed parameters ---

    def set_param(self, name: str, value: str) -> None:
        """Query parameter for GET-like methods, form parameter otherwise."""
        if self.has_body_method:
            self.set_form_param(name, value)
        else:
            self.set_query_param(name, value)

    def set_params(self, params: ParamsLike) -> None:
        if self.has_body_method:
            self.set_form_params(params)
        else:
            self.set_query_params(params)

    def param(self, name: str) -> str:
        """Query parameter `name`, falling back to the form parameter."""
        return self.query_params.get(name) or self.form.get(name) or ""

    # --- Raw body ---

    def set_body(self, data: bytes, content_type: Optional[str] = None) -> None:
        """Send `data` verbatim, discarding form parameters and parts."""
        self._promote_to_post()
        self.raw_body = bytes(data)
        self.raw_content_type = content_type or URLENCODED_CONTENT_TYPE
        self.form = httpx.QueryParams()
        release_parts(self.parts)
        self.parts = []
        self.body_mode = BodyMode.RAW

    # --- Multipart ---

    def set_multipart(self, params: ParamsLike = None) -> None:
        """Switch to multipart, keeping `params` as the leading form fields."""
        self._promote_to_post()
        self.raw_body = None
        self.raw_content_type = None
        if params is not None:
            self.form = httpx.QueryParams(params)
        self.body_mode = BodyMode.MULTIPART

    def add_part(self, part: MultipartPart) -> None:
        if self.body_mode is not BodyMode.MULTIPART:
            self.set_multipart()
        self.parts.append(part)

    def add_content_part(self, name: str, source, content_type: Optional[str] = None,
                         filename: Optional[str] = None) -> None:
        """Attach a stream as a part; the filename defaults to `name` plus an extension."""
        if filename is None:
            filename = name
            extension = mimetypes.guess_extension(content_type) if content_type else None
            if extension:
                filename += extension
        self.add_part(MultipartPart(name=name, filename=filename,
                                    content_type=content_type, source=source))

    def add_file_part(self, name: str, path: Union[str, Path]) -> None:
        """Attach a file; it is opened only when the body is written."""
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        self.add_part(MultipartPart(name=name, filename=path.name,
                                    content_type=content_type, source=path))

    # --- Headers ---

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def add_header(self, name: str, value: str) -> None:
        self.headers = httpx.Headers(list(self.headers.multi_items()) + [(name, value)])

    def remove_header(self, name: str) -> None:
        if name in self.headers:
            del self.headers[name]

    def set_basic_auth(self, username: str, password: Optional[str]) -> None:
        token = base64.b64encode(f"{username}:{password or ''}".encode("utf-8")).decode("ascii")
        self.headers["Authorization"] = f"Basic {token}"

    def add_cookie(self, name: str, value: str) -> None:
        pair = f"{name}={value}"
        existing = self.headers.get("Cookie")
        self.headers["Cookie"] = f"{existing}; {pair}" if existing else pair
