"""
httpdoc

Lazily fetched HTTP documents with a light HTML query and navigation layer.
- Document: fetch-once resource with normalized (decompressed, UTF-8) body
- HTMLElement / HTMLElements: regex-extracted elements of a document
- element.doc(): follow a link, frame or form as a new Document

Public API surface:
  Core classes     : Document, RequestSpec, HTMLElement, HTMLElements
  Configuration    : ClientConfig, merge_headers
  Transport        : Transport (protocol), HttpxTransport
  Middleware       : MiddlewareChain
  Patterns         : RawPattern, CompiledPattern
  Error types      : HttpDocError and the LoadError family
"""

# --- Documents and the HTML query layer ---
from .document import Document, new_document, load_json
from .request import RequestSpec, BodyMode
from .html import HTMLElement, HTMLElements, html_to_text
from .navigation import element_to_document, resolve_url

# --- Session: configuration, transport, hooks ---
from .config import ClientConfig, DEFAULT_CONFIG, DEFAULT_HEADERS, merge_headers
from .transport import Transport, HttpxTransport
from .middleware import MiddlewareChain
from .patterns import RawPattern, CompiledPattern
from .schemas import FetchedResponse, MultipartPart, PreparedRequest

# --- Exceptions (LoadError is what callers usually catch) ---
from .exceptions import (
    HttpDocError,
    ConfigError,
    URLError,
    PatternError,
    InvariantError,
    LoadError,
    TransportError,
    StatusError,
    DecodeError,
    MiddlewareError,
    LoadCancelled,
    MultipartWriteError,
)

__version__ = "0.1.0"
__all__ = [
    "Document",
    "new_document",
    "load_json",
    "RequestSpec",
    "BodyMode",
    "HTMLElement",
    "HTMLElements",
    "html_to_text",
    "element_to_document",
    "resolve_url",
    "ClientConfig",
    "DEFAULT_CONFIG",
    "DEFAULT_HEADERS",
    "merge_headers",
    "Transport",
    "HttpxTransport",
    "MiddlewareChain",
    "RawPattern",
    "CompiledPattern",
    "FetchedResponse",
    "MultipartPart",
    "PreparedRequest",
    "HttpDocError",
    "ConfigError",
    "URLError",
    "PatternError",
    "InvariantError",
    "LoadError",
    "TransportError",
    "StatusError",
    "DecodeError",
    "MiddlewareError",
    "LoadCancelled",
    "MultipartWriteError",
]
