"""
Pydantic schemas defining the contracts between httpdoc components.

PreparedRequest: Contract from BodyEncoder to the transport
FetchedResponse: Contract from the transport back to the Document
MultipartPart:   One streamed part of a multipart/form-data body
DecodedBody:     Output of the ResponseDecoder

Data flow through a load:
  RequestSpec → BodyEncoder → PreparedRequest → Transport → FetchedResponse
  FetchedResponse → ResponseDecoder → DecodedBody → Document.body
"""

from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field


class MultipartPart(BaseModel):
    """
    A file-like part attached to a multipart request.

    `source` is bytes, a binary file object (anything with .read()), or a
    pathlib.Path that the multipart writer opens itself.  File objects are
    closed by the writer once copied, or when the write is abandoned.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    filename: Optional[str] = None
    content_type: Optional[str] = None
    source: Any = b""


class PreparedRequest(BaseModel):
    """A finalized request, ready to hand to the transport."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    method: str
    url: str
    headers: list[tuple[str, str]] = Field(default_factory=list)
    # bytes for materialized bodies, an iterator of bytes for multipart, None for no body
    content: Any = None

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return httpx.Headers(self.headers).get(name, default)


class FetchedResponse(BaseModel):
    """
    Response as returned by the transport.

    `content` is the raw body exactly as received (still compressed when the
    server sent a Content-Encoding). `url` is the final URL after redirects.
    """
    model_config = ConfigDict(frozen=True)

    status_code: int
    url: str
    headers: tuple[tuple[str, str], ...] = ()
    content: bytes = b""
    reason_phrase: str = ""

    def header(self, name: str, default: str = "") -> str:
        return httpx.Headers(self.headers).get(name, default)


class DecodedBody(BaseModel):
    """Normalized body plus what the decoder did to produce it."""
    body: bytes
    content_encoding: str = ""       # Algorithm that was undone ("" = identity)
    charset: str = "utf-8"           # Charset declared by the response
    transcoded: bool = False         # False for utf-8 and for unknown charsets
