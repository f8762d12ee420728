"""
Transport: the one blocking HTTP call of a Document.

The transport owns everything below the request/response boundary:
redirect following, the cookie jar, connection reuse, timeouts and
proxying.  Documents only see the Transport protocol, so tests can swap in
a stub that never touches the network.
"""

from functools import lru_cache
from typing import Mapping, Optional, Protocol

import httpx

from .config import ClientConfig
from .exceptions import LoadError, MultipartWriteError, TransportError
from .logger import get_module_logger
from .schemas import FetchedResponse, PreparedRequest

logger = get_module_logger("transport")


class Transport(Protocol):
    """What a Document needs from the HTTP layer."""

    def send(self, request: PreparedRequest) -> FetchedResponse:
        """
        Perform the request.

        Must return the raw (still content-encoded) body and the final URL
        after redirects, or raise TransportError.
        """
        ...

    def set_cookies(self, url: str, cookies: Mapping[str, str]) -> None:
        """Store cookies for `url` in the transport's cookie jar."""
        ...


class HttpxTransport:
    """Transport backed by one httpx.Client (cookie jar + connection pool)."""

    def __init__(self, config: Optional[ClientConfig] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.config = config or ClientConfig()
        self.client = httpx.Client(
            timeout=httpx.Timeout(self.config.timeout),
            follow_redirects=self.config.follow_redirects,
            max_redirects=self.config.max_redirects,
            proxy=self.config.proxy,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.client.close()

    @property
    def cookies(self) -> httpx.Cookies:
        return self.client.cookies

    def set_cookies(self, url: str, cookies: Mapping[str, str]) -> None:
        host = httpx.URL(url).host
        for name, value in cookies.items():
            self.client.cookies.set(name, value, domain=host)

    def send(self, request: PreparedRequest) -> FetchedResponse:
        httpx_request = self.client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.content,
        )
        try:
            response = self.client.send(httpx_request, stream=True)
            try:
                # Raw bytes keep the Content-Encoding; ResponseDecoder undoes it
                if response.is_stream_consumed:
                    # Already read in memory; the stream still holds the raw bytes
                    content = b"".join(response.stream)
                else:
                    content = b"".join(response.iter_raw())
            finally:
                response.close()
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Timeout after {self.config.timeout}s: {e}",
                document_url=request.url,
                details={"error": str(e)}
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"{type(e).__name__}: {e}",
                document_url=request.url,
                details={"error": str(e)}
            ) from e
        except httpx.StreamError as e:
            raise TransportError(
                f"Response stream unavailable: {e}",
                document_url=request.url,
                details={"error": str(e)}
            ) from e
        except MultipartWriteError as e:
            raise TransportError(
                f"Request body failed: {e.message}",
                document_url=request.url,
                details={"part": e.part}
            ) from e
        except LoadError:
            raise

        return FetchedResponse(
            status_code=response.status_code,
            url=str(response.url),
            headers=tuple(response.headers.multi_items()),
            content=content,
            reason_phrase=response.reason_phrase,
        )


@lru_cache(maxsize=1000)
def transport_for(config: ClientConfig) -> HttpxTransport:
    """
    Shared transport for a config.

    Documents built from equal configs (including the same proxy address)
    share cookies and pooled connections.
    """
    logger.debug(f"Creating transport (proxy={config.proxy})")
    return HttpxTransport(config)
