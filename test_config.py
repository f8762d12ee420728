"""
Tests for ClientConfig, header merging and the shared transport cache.
"""

import httpx
import pytest
from pydantic import ValidationError

from httpdoc import ClientConfig, ConfigError, DEFAULT_HEADERS, Document, merge_headers
from httpdoc.config import normalize_proxy
from httpdoc.transport import HttpxTransport, transport_for

ENV_VARS = (
    "HTTPDOC_TIMEOUT",
    "HTTPDOC_MAX_REDIRECTS",
    "HTTPDOC_FOLLOW_REDIRECTS",
    "HTTPDOC_PROXY",
    "HTTPDOC_USER_AGENT",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # An empty .env keeps a developer's own file out of the picture
    dotenv = tmp_path / ".env"
    dotenv.write_text("")
    return dotenv


def test_merge_headers_overrides_case_insensitively():
    defaults = {"Accept": "text/html", "User-Agent": "default"}

    merged = merge_headers(defaults, {"user-agent": "custom", "X-Extra": "1"})

    assert merged["User-Agent"] == "custom"
    assert merged.get_list("user-agent") == ["custom"]
    assert merged["Accept"] == "text/html"
    assert merged["x-extra"] == "1"


def test_merge_headers_replaces_every_value_of_a_name():
    defaults = httpx.Headers([("X-Tag", "a"), ("X-Tag", "b")])

    merged = merge_headers(defaults, [("x-tag", "c")])

    assert merged.get_list("X-Tag") == ["c"]


def test_merge_headers_does_not_modify_inputs():
    defaults = httpx.Headers({"Accept": "text/html"})
    overrides = {"Accept": "application/json"}

    merge_headers(defaults, overrides)

    assert defaults["Accept"] == "text/html"
    assert overrides == {"Accept": "application/json"}


def test_merge_headers_without_overrides_copies():
    defaults = httpx.Headers({"Accept": "text/html"})

    merged = merge_headers(defaults)
    merged["Accept"] = "changed"

    assert defaults["Accept"] == "text/html"


def test_default_headers_advertise_supported_encodings():
    headers = ClientConfig().headers()

    assert headers["Accept-Encoding"] == "gzip, deflate, br"
    assert headers["User-Agent"] == dict(DEFAULT_HEADERS)["User-Agent"]


def test_user_agent_override():
    headers = ClientConfig(user_agent="bot/2.0").headers()

    assert headers["User-Agent"] == "bot/2.0"
    assert headers.get_list("User-Agent") == ["bot/2.0"]


def test_documents_do_not_share_header_state(transport):
    first = Document("https://example.com/", transport=transport)
    second = Document("https://example.com/", transport=transport)

    first.set_header("X-Only-First", "1")

    assert "X-Only-First" not in second.request.headers
    assert "X-Only-First" not in ClientConfig().headers()


def test_config_is_immutable():
    config = ClientConfig()

    with pytest.raises(ValidationError):
        config.timeout = 1.0


# --- Environment ---

def test_from_env_defaults(clean_env):
    config = ClientConfig.from_env(clean_env)

    assert config == ClientConfig()


def test_from_env_reads_variables(clean_env, monkeypatch):
    monkeypatch.setenv("HTTPDOC_TIMEOUT", "2.5")
    monkeypatch.setenv("HTTPDOC_MAX_REDIRECTS", "3")
    monkeypatch.setenv("HTTPDOC_FOLLOW_REDIRECTS", "no")
    monkeypatch.setenv("HTTPDOC_PROXY", "proxy.local:3128")
    monkeypatch.setenv("HTTPDOC_USER_AGENT", "envbot/1.0")

    config = ClientConfig.from_env(clean_env)

    assert config.timeout == 2.5
    assert config.max_redirects == 3
    assert config.follow_redirects is False
    assert config.proxy == "http://proxy.local:3128"
    assert config.headers()["User-Agent"] == "envbot/1.0"


def test_from_env_reads_dotenv_file(clean_env, monkeypatch):
    clean_env.write_text("HTTPDOC_TIMEOUT=7\n")
    # load_dotenv sets os.environ directly; register the name so it is undone
    monkeypatch.setenv("HTTPDOC_TIMEOUT", "")
    monkeypatch.delenv("HTTPDOC_TIMEOUT")

    config = ClientConfig.from_env(clean_env)

    assert config.timeout == 7.0


@pytest.mark.parametrize("name,value", [
    ("HTTPDOC_TIMEOUT", "soon"),
    ("HTTPDOC_MAX_REDIRECTS", "2.5"),
    ("HTTPDOC_FOLLOW_REDIRECTS", "maybe"),
])
def test_from_env_rejects_bad_values(clean_env, monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigError) as excinfo:
        ClientConfig.from_env(clean_env)

    assert excinfo.value.details["variable"] == name


# --- Proxy ---

@pytest.mark.parametrize("value,expected", [
    ("proxy.local:3128", "http://proxy.local:3128"),
    ("//proxy.local:3128", "http://proxy.local:3128"),
    ("http://proxy.local:3128", "http://proxy.local:3128"),
    ("socks5://proxy.local:1080", "socks5://proxy.local:1080"),
    ("  proxy.local:8080 ", "http://proxy.local:8080"),
])
def test_normalize_proxy(value, expected):
    assert normalize_proxy(value) == expected


def test_with_proxy_returns_new_config():
    config = ClientConfig()

    proxied = config.with_proxy("proxy.local:3128")

    assert proxied.proxy == "http://proxy.local:3128"
    assert config.proxy is None
    assert config.with_proxy("").proxy is None


def test_transport_for_shares_one_transport_per_config():
    config = ClientConfig(timeout=12.0)

    first = transport_for(config)
    second = transport_for(ClientConfig(timeout=12.0))

    assert isinstance(first, HttpxTransport)
    assert first is second
    assert transport_for(ClientConfig(timeout=13.0)) is not first


def test_set_proxy_switches_to_a_proxied_transport():
    doc = Document("https://example.com/")

    doc.set_proxy("proxy.local:3128")

    assert doc.config.proxy == "http://proxy.local:3128"
    assert doc.transport is transport_for(doc.config)
    assert Document("https://example.com/").transport is not doc.transport


def test_set_proxy_ignores_empty_value():
    doc = Document("https://example.com/")
    transport = doc.transport

    doc.set_proxy("")

    assert doc.transport is transport
    assert doc.config.proxy is None
