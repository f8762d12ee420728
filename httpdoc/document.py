"""
Document: a lazily fetched HTTP resource.

A Document wraps one RequestSpec.  Nothing goes over the wire until load()
is called, explicitly or by the first content accessor.  load() performs at
most one transport call per Document: whatever it produced, success or
failure, is cached and returned again by every later call.

Load pipeline:
  RequestSpec → BodyEncoder → Transport → ResponseDecoder → middleware
  → status check

All builder methods return the Document so calls can be chained:

    doc = Document("https://example.com/search").set_param("q", "python")
    for link in doc.links():
        print(link.attr("href"), link.inner_text())
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import httpx

from .config import DEFAULT_CONFIG, ClientConfig, merge_headers
from .decoder import ResponseDecoder, charset_of, parse_media_type
from .encoder import BodyEncoder, MultipartStream
from .exceptions import DecodeError, LoadCancelled, LoadError, StatusError, TransportError
from .html import HTMLElements, Origin, get_elements_by_tag_name
from .logger import get_module_logger
from .middleware import MiddlewareChain
from .patterns import PatternLike, normalize_pattern
from .request import BodyMode, ParamsLike, RequestSpec
from .schemas import FetchedResponse
from .transport import Transport, transport_for

logger = get_module_logger("document")


class Document:
    """Lazily loaded HTTP document with HTML query helpers."""

    def __init__(
        self,
        url: Union[str, httpx.URL],
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
        middleware: Optional[MiddlewareChain] = None,
        method: str = "GET",
    ):
        """
        Build an unloaded document.

        Args:
            url: Absolute http(s) URL; user:password@ credentials become Basic auth
            config: Client settings (default headers, timeout, proxy, ...)
            transport: HTTP layer; defaults to the shared transport for `config`
            middleware: Post-load hooks run after each successful round-trip
            method: Initial HTTP method

        Raises:
            URLError: `url` is malformed or not absolute
        """
        self.config = config or DEFAULT_CONFIG
        self.transport = transport if transport is not None else transport_for(self.config)
        self.middleware = middleware if middleware is not None else MiddlewareChain()
        self.request = RequestSpec(url, method=method, headers=merge_headers(self.config.headers()))

        self.response: Optional[FetchedResponse] = None
        self.body: Optional[bytes] = None
        self.encoder = BodyEncoder()
        self.decoder = ResponseDecoder()

        self._loaded = False
        self._error: Optional[LoadError] = None
        self._lock = threading.RLock()
        self._loading = False
        self._cancelled = False
        self._stream: Optional[MultipartStream] = None

    def __repr__(self) -> str:
        return f"httpdoc.Document(url={self.url} loaded={self.loaded})"

    # ---------- request side ----------

    @property
    def method(self) -> str:
        return self.request.method

    def set_method(self, method: str) -> "Document":
        self.request.method = method.upper()
        return self

    @property
    def url(self) -> httpx.URL:
        """Effective URL: the final URL after redirects once loaded."""
        if self.response is not None:
            return httpx.URL(self.response.url)
        return self.request.url

    @property
    def query_params(self) -> httpx.QueryParams:
        return self.url.params

    @property
    def form_params(self) -> httpx.QueryParams:
        return self.request.form

    def param(self, name: str) -> str:
        """Query parameter `name`, falling back to the form parameter."""
        return self.query_params.get(name) or self.request.form.get(name) or ""

    def set_param(self, name: str, value: str) -> "Document":
        self.request.set_param(name, value)
        return self

    def set_params(self, params: ParamsLike) -> "Document":
        self.request.set_params(params)
        return self

    def set_query_param(self, name: str, value: str) -> "Document":
        self.request.set_query_param(name, value)
        return self

    set_get_param = set_query_param

    def set_post_param(self, name: str, value: str) -> "Document":
        self.request.set_form_param(name, value)
        return self

    def set_post_params(self, params: ParamsLike) -> "Document":
        self.request.set_form_params(params)
        return self

    def set_post_data(self, data: bytes, content_type: Optional[str] = None) -> "Document":
        self.request.set_body(data, content_type)
        return self

    set_body = set_post_data

    def set_json(self, value: Any) -> "Document":
        return self.set_post_data(json.dumps(value).encode("utf-8"), "application/json")

    @property
    def is_multipart(self) -> bool:
        return self.request.body_mode is BodyMode.MULTIPART

    def set_multipart_params(self, params: ParamsLike) -> "Document":
        self.request.set_multipart(params)
        return self

    def set_multipart_content(self, name: str, source, content_type: Optional[str] = None,
                              filename: Optional[str] = None) -> "Document":
        self.request.add_content_part(name, source, content_type, filename)
        return self

    def set_file(self, name: str, path: Union[str, Path]) -> "Document":
        """
        Attach a file as a multipart part.

        Raises:
            FileNotFoundError: `path` does not exist
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"No such file: {path}")
        self.request.add_file_part(name, path)
        return self

    def set_header(self, name: str, value: str) -> "Document":
        self.request.set_header(name, value)
        return self

    def add_header(self, name: str, value: str) -> "Document":
        self.request.add_header(name, value)
        return self

    def set_headers(self, headers: Mapping[str, str]) -> "Document":
        for name, value in headers.items():
            self.request.set_header(name, value)
        return self

    def set_user_agent(self, user_agent: str) -> "Document":
        return self.set_header("User-Agent", user_agent)

    def set_basic_auth(self, username: str, password: str) -> "Document":
        self.request.set_basic_auth(username, password)
        return self

    def set_cookies(self, cookies: Mapping[str, str]) -> "Document":
        self.request.remove_header("Cookie")
        return self.add_cookies(cookies)

    def add_cookies(self, cookies: Mapping[str, str]) -> "Document":
        for name, value in cookies.items():
            self.request.add_cookie(name, value)
        self.transport.set_cookies(str(self.url), dict(cookies))
        return self

    def add_cookie(self, name: str, value: str) -> "Document":
        return self.add_cookies({name: value})

    def set_proxy(self, proxy: Optional[str]) -> "Document":
        """Route this document through `proxy` (host:port or URL); no-op for empty values."""
        if proxy:
            self.config = self.config.with_proxy(proxy)
            self.transport = transport_for(self.config)
            logger.debug(f"Using proxy {self.config.proxy} for {self.url}")
        return self

    # ---------- lifecycle ----------

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def error(self) -> Optional[LoadError]:
        """Cached load failure, None when unloaded or loaded successfully."""
        return self._error

    @property
    def ok(self) -> bool:
        return self._loaded and self._error is None

    def load(self) -> "Document":
        """
        Fetch the document, once.

        Returns:
            self, so calls can be chained

        Raises:
            LoadError: the cached failure of the (single) load attempt
        """
        with self._lock:
            if self._loading:
                # Re-entered from a middleware hook; the response is already in place
                return self
            if not self._loaded:
                self._loading = True
                try:
                    self._load()
                except LoadError as e:
                    self._error = e
                except Exception as e:
                    # Internal faults still use up the one attempt; every call raises the same wrapper
                    logger.error(f"Unexpected {type(e).__name__} loading {self.url}: {e}")
                    self._error = LoadError(f"Load failed: {e}", document_url=str(self.url),
                                            details={"error": str(e)})
                    raise self._error from e
                except BaseException as e:
                    # An interrupt propagates as is; later calls see it as a cancelled load
                    self._error = LoadCancelled("Load interrupted", document_url=str(self.url))
                    self._error.__cause__ = e
                    raise
                finally:
                    self._loaded = True
                    self._loading = False
                    self._stream = None
        if self._error is not None:
            raise self._error
        return self

    submit = load

    def cancel(self) -> None:
        """
        Abort a load in progress (or prevent a future one).

        An in-flight multipart writer is stopped promptly and the load fails
        with LoadCancelled.
        """
        self._cancelled = True
        stream = self._stream
        if stream is not None:
            stream.cancel()

    def _load(self) -> None:
        url = str(self.request.url)
        if self._cancelled:
            raise LoadCancelled("Load cancelled before start", document_url=url)

        prepared = self.encoder.encode(self.request)
        if isinstance(prepared.content, MultipartStream):
            self._stream = prepared.content

        logger.info(f"Loading {prepared.method} {url}")
        try:
            response = self.transport.send(prepared)
        except LoadError as e:
            if not e.document_url:
                e.document_url = url
            logger.warning(f"Transport failed for {url}: {e.message}")
            raise
        except Exception as e:
            logger.warning(f"Transport failed for {url}: {e}")
            raise TransportError(f"{type(e).__name__}: {e}", document_url=url) from e
        finally:
            if self._stream is not None:
                self._stream.cancel()

        if self._cancelled:
            raise LoadCancelled("Load cancelled", document_url=url)
        if not isinstance(response, FetchedResponse):
            raise TransportError(f"Transport returned {type(response).__name__}", document_url=url)

        self.response = response
        try:
            decoded = self.decoder.decode(
                response.content,
                content_encoding=response.header("Content-Encoding"),
                content_type=response.header("Content-Type"),
            )
        except DecodeError as e:
            if not e.document_url:
                e.document_url = response.url
            raise
        self.body = decoded.body
        logger.info(f"Loaded {response.url}: {response.status_code}, {len(self.body)} bytes")

        self.middleware.run(self)

        if response.status_code >= 400:
            logger.warning(f"HTTP status {response.status_code} for {response.url}")
            raise StatusError(
                f"http-status-code {response.status_code}",
                status_code=response.status_code,
                document_url=response.url,
            )

    def _ensure_loaded(self) -> None:
        """Load if needed; error pages stay readable."""
        try:
            self.load()
        except StatusError:
            pass

    # ---------- response side ----------

    @property
    def status_code(self) -> int:
        self._ensure_loaded()
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        self._ensure_loaded()
        return httpx.Headers(self.response.headers)

    def content_type(self) -> str:
        """Lower-cased media type of the response, e.g. 'text/html'."""
        media_type, _ = parse_media_type(self.headers.get("Content-Type", ""))
        return media_type

    def charset(self) -> str:
        return charset_of(self.headers.get("Content-Type", ""))

    def is_image(self) -> bool:
        return self.content_type().startswith("image")

    def content(self) -> bytes:
        """Normalized body: decompressed and transcoded to UTF-8."""
        self._ensure_loaded()
        return self.body

    def raw_content(self) -> bytes:
        """Body exactly as received."""
        self._ensure_loaded()
        return self.response.content

    def text(self) -> str:
        return self.content().decode("utf-8", errors="replace")

    def get_json(self) -> Any:
        """
        Parse the body as JSON.

        Raises:
            LoadError: the document failed to load (including status >= 400)
            json.JSONDecodeError: the body is not JSON
        """
        self.load()
        return json.loads(self.content())

    def trace(self) -> str:
        """Multi-line dump of the request and response, also logged at INFO."""
        self._ensure_loaded()

        def lines(pairs) -> str:
            return "".join(f"\n- {name}: {value}" for name, value in pairs)

        dump = (
            f"======== httpdoc.Request {datetime.now().isoformat()} ========\n"
            f"Request URL: {self.request.url}\n"
            f"Request Method: {self.request.method}\n"
            f"Status Code: {self.response.status_code} {self.response.reason_phrase}\n"
            f"Request Headers: {lines(self.request.headers.multi_items())}\n"
            f"Query String Parameters: {lines(self.request.url.params.multi_items())}\n"
            f"Form Data: {lines(self.request.form.multi_items())}\n"
            f"Response Headers: {lines(self.response.headers)}\n"
            f"RESPONSE:\n{self.text()}\n"
        )
        logger.info(dump)
        return dump

    # ---------- regex queries ----------

    def match(self, pattern: PatternLike) -> list[str]:
        """Whole match followed by its groups, [] when nothing matches."""
        m = normalize_pattern(pattern).search(self.text())
        if m is None:
            return []
        return [m.group(0)] + [g or "" for g in m.groups()]

    def submatch(self, pattern: PatternLike, group: int) -> str:
        found = self.match(pattern)
        return found[group] if found else ""

    def match_all(self, pattern: PatternLike) -> list[str]:
        return [m.group(0) for m in normalize_pattern(pattern).finditer(self.text())]

    def submatch_all(self, pattern: PatternLike) -> list[list[str]]:
        return [[m.group(0)] + [g or "" for g in m.groups()]
                for m in normalize_pattern(pattern).finditer(self.text())]

    def all_submatches(self, pattern: PatternLike, group: int) -> list[str]:
        return [found[group] for found in self.submatch_all(pattern)]

    # ---------- html ----------

    @property
    def origin(self) -> Origin:
        return Origin(url=str(self.url), config=self.config,
                      transport=self.transport, middleware=self.middleware)

    def elements_by_tag_name(self, name: str) -> HTMLElements:
        text = self.text()
        return get_elements_by_tag_name(text, name, origin=self.origin, document=self)

    def title(self) -> str:
        element = self.elements_by_tag_name("title").first()
        return element.inner_text() if element is not None else ""

    def forms(self) -> HTMLElements:
        return self.elements_by_tag_name("form")

    def links(self) -> HTMLElements:
        return self.elements_by_tag_name("a")

    def frames(self) -> HTMLElements:
        return self.elements_by_tag_name("iframe") + self.elements_by_tag_name("frame")

    def images(self) -> HTMLElements:
        return self.elements_by_tag_name("img")

    def scripts(self) -> HTMLElements:
        return self.elements_by_tag_name("script")

    def meta_tags(self) -> HTMLElements:
        return self.elements_by_tag_name("meta")

    def meta_description(self) -> str:
        element = self.meta_tags().filter_by_attr_value("name", "description").first()
        return element.attr("content") if element is not None else ""

    def meta_csrf_token(self) -> str:
        element = self.meta_tags().filter_by_attr_value("name", "csrf-token").first()
        return element.attr("content") if element is not None else ""

    def meta_icon(self) -> str:
        """Favicon URL as written in the page, preferring type="image/ico"."""
        links = self.elements_by_tag_name("link").filter_by_attr("href")
        for rel in ("icon", "shortcut icon", "apple-touch-icon"):
            tags = links.filter_by_attr_value("rel", rel)
            if tags:
                preferred = tags.filter_by_attr_value("type", "image/ico").first()
                return (preferred or tags.first()).attr("href")
        return ""

    def meta_image(self) -> str:
        links = self.elements_by_tag_name("link").filter_by_attr("href")
        for rel in ("image", "image_src"):
            tag = links.filter_by_attr_value("rel", rel).first()
            if tag is not None:
                return tag.attr("href")
        tag = self.meta_tags().filter_by_attr_value("property", "og:image").filter_by_attr("content").first()
        return tag.attr("content") if tag is not None else ""

    # ---------- navigation ----------

    def new_doc(self, reference: str) -> "Document":
        """Unloaded document at `reference`, resolved against this document's URL."""
        from .navigation import derive_document
        return derive_document(self.origin, reference)

    def new_ajax(self, reference: str) -> "Document":
        """
        Like new_doc(), marked as an XMLHttpRequest and carrying the page's
        csrf-token meta value.  Loads this document to read the token.
        """
        csrf = self.meta_csrf_token()
        doc = self.new_doc(reference)
        if csrf:
            doc.set_header("X-CSRF-Token-Auth", csrf)
        doc.set_header("X-Requested-With", "XMLHttpRequest")
        return doc


def new_document(url: str, config: Optional[ClientConfig] = None,
                 transport: Optional[Transport] = None) -> Document:
    """Convenience function to build an unloaded Document."""
    return Document(url, config=config, transport=transport)


def load_json(url: str, config: Optional[ClientConfig] = None,
              transport: Optional[Transport] = None) -> Any:
    """Fetch `url` and parse its body as JSON."""
    return Document(url, config=config, transport=transport).get_json()
