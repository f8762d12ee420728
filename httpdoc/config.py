"""
Client configuration for httpdoc.

ClientConfig is an immutable value passed into every Document.  It replaces
a process-wide default client: two Documents built from equal configs share
one transport (see transport.transport_for), while a Document built from a
different config never sees the other's headers, cookies or proxy.
"""

import os
from typing import Mapping, Optional, Union

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from .exceptions import ConfigError
from .logger import get_module_logger

logger = get_module_logger("config")


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/134.0.0.0 Safari/537.36"
)

# Accept-Encoding lists exactly the algorithms decoder.DECOMPRESSORS handles
DEFAULT_HEADERS: tuple[tuple[str, str], ...] = (
    ("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"),
    ("Accept-Encoding", "gzip, deflate, br"),
    ("Accept-Language", "en-US,en;q=0.9"),
    ("Cache-Control", "max-age=0"),
    ("Connection", "keep-alive"),
    ("Pragma", "no-cache"),
    ("User-Agent", DEFAULT_USER_AGENT),
)

HeadersLike = Union[httpx.Headers, Mapping[str, str], tuple, list, None]


def merge_headers(defaults: HeadersLike, overrides: HeadersLike = None) -> httpx.Headers:
    """
    Merge two header sets into a new httpx.Headers.

    Every header named in `overrides` replaces all of its values in
    `defaults` (names compare case-insensitively).  Neither argument is
    modified.
    """
    merged = httpx.Headers(defaults)
    if overrides is None:
        return merged
    overrides = httpx.Headers(overrides)
    for name in {key.lower() for key in overrides.keys()}:
        if name in merged:
            del merged[name]
    return httpx.Headers(list(merged.multi_items()) + list(overrides.multi_items()))


class ClientConfig(BaseModel):
    """Settings shared by every Document built from this config."""
    model_config = ConfigDict(frozen=True)

    default_headers: tuple[tuple[str, str], ...] = DEFAULT_HEADERS
    timeout: float = 60.0
    follow_redirects: bool = True
    max_redirects: int = 20
    proxy: Optional[str] = None
    user_agent: Optional[str] = None    # Overrides the User-Agent in default_headers

    def headers(self) -> httpx.Headers:
        """Headers applied to every newly constructed request."""
        if self.user_agent:
            return merge_headers(self.default_headers, {"User-Agent": self.user_agent})
        return httpx.Headers(self.default_headers)

    def with_proxy(self, proxy: Optional[str]) -> "ClientConfig":
        """Return a copy of this config routed through `proxy`."""
        return self.model_copy(update={"proxy": normalize_proxy(proxy) if proxy else None})

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ClientConfig":
        """
        Build a config from HTTPDOC_* environment variables.

        A .env file (python-dotenv) is loaded first; variables already set
        in the environment win over the file.

        Raises:
            ConfigError: a numeric or boolean variable has an invalid value
        """
        load_dotenv(dotenv_path)

        values = {}
        if os.getenv("HTTPDOC_TIMEOUT"):
            values["timeout"] = _parse_number("HTTPDOC_TIMEOUT", float)
        if os.getenv("HTTPDOC_MAX_REDIRECTS"):
            values["max_redirects"] = _parse_number("HTTPDOC_MAX_REDIRECTS", int)
        if os.getenv("HTTPDOC_FOLLOW_REDIRECTS"):
            values["follow_redirects"] = _parse_bool("HTTPDOC_FOLLOW_REDIRECTS")
        if os.getenv("HTTPDOC_PROXY"):
            values["proxy"] = normalize_proxy(os.environ["HTTPDOC_PROXY"])
        if os.getenv("HTTPDOC_USER_AGENT"):
            values["user_agent"] = os.environ["HTTPDOC_USER_AGENT"]

        logger.debug(f"Config from environment: {sorted(values)}")
        return cls(**values)


def normalize_proxy(proxy: str) -> str:
    """Add the http:// scheme to a bare host:port proxy address."""
    proxy = proxy.strip()
    if "//" not in proxy:
        proxy = "//" + proxy
    if proxy.startswith("//"):
        proxy = "http:" + proxy
    return proxy


def _parse_number(name: str, kind: type):
    raw = os.environ[name]
    try:
        return kind(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}", details={"variable": name})


def _parse_bool(name: str) -> bool:
    raw = os.environ[name].strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}", details={"variable": name})


DEFAULT_CONFIG = ClientConfig()
