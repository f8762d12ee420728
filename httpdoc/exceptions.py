"""
Custom exceptions for httpdoc.

Error philosophy:
  - URLError, PatternError, ConfigError → FAIL FAST: programmer error at
    construction time, raised immediately.
  - LoadError and its subclasses → RECOVERABLE: a load failure is cached on
    the Document and the very same exception is raised again on every later
    load() call.  StatusError is special: the response stays readable.
  - InvariantError → internal bug, never expected in normal operation.
"""

from typing import Optional


class HttpDocError(Exception):
    """Base exception for all httpdoc errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- FAIL FAST: construction errors ---

class ConfigError(HttpDocError):
    """Raised when a configuration value cannot be parsed."""
    pass


class URLError(HttpDocError):
    """Raised for a malformed URL or a reference that cannot be resolved."""

    def __init__(self, message: str, url: str, details: Optional[dict] = None):
        super().__init__(message, details)
        self.url = url


class PatternError(HttpDocError):
    """Raised when a string pattern fails to compile."""

    def __init__(self, message: str, pattern: str, details: Optional[dict] = None):
        super().__init__(message, details)
        self.pattern = pattern


class InvariantError(HttpDocError):
    """An internal lookup table is missing an entry."""
    pass


# --- RECOVERABLE: load failures ---

class LoadError(HttpDocError):
    """
    Base class for every failure of Document.load().

    The owning Document caches the instance, so callers can compare
    identities across repeated load() calls.
    """

    def __init__(self, message: str, document_url: str = "", details: Optional[dict] = None):
        super().__init__(message, details)
        self.document_url = document_url


class TransportError(LoadError):
    """Connection, timeout or DNS failure. No response is available."""
    pass


class StatusError(LoadError):
    """
    The server answered with a status code >= 400.

    The response is kept on the Document, so status, headers and body of
    the error page can still be inspected.
    """

    def __init__(self, message: str, status_code: int, document_url: str = "",
                 details: Optional[dict] = None):
        super().__init__(message, document_url, details)
        self.status_code = status_code


class DecodeError(LoadError):
    """The response body could not be decompressed."""

    def __init__(self, message: str, encoding: str, document_url: str = "",
                 details: Optional[dict] = None):
        super().__init__(message, document_url, details)
        self.encoding = encoding


class MiddlewareError(LoadError):
    """A post-load hook reported failure or raised."""

    def __init__(self, message: str, hook: str, document_url: str = "",
                 details: Optional[dict] = None):
        super().__init__(message, document_url, details)
        self.hook = hook


class LoadCancelled(LoadError):
    """The load was cancelled before the request body was fully written."""
    pass


# --- Multipart streaming ---

class MultipartWriteError(HttpDocError):
    """
    Raised on the reading side of a multipart pipe when the writer failed.

    The writer's original exception is chained as __cause__.
    """

    def __init__(self, message: str, part: Optional[str] = None,
                 details: Optional[dict] = None):
        super().__init__(message, details)
        self.part = part
