"""
Tests for following links, frames and forms to new documents.
"""

from urllib.parse import parse_qs

import pytest

from conftest import StubTransport, html_response, page_transport
from httpdoc import Document, MiddlewareChain, URLError
from httpdoc.encoder import MultipartStream
from httpdoc.navigation import resolve_url

BASE = "https://pkg.example.com/about"

PAGE = """<html><body>
<a href="/about">About</a>
<a href="https://other.example.org/x?y=1">Other</a>
<a href="relative/page">Relative</a>
<link rel="stylesheet" href="/style.css">
<img src="/img/logo.png">
<iframe src="frame.html"></iframe>
<form action="/search" method="get"><input name="q" value="x"></form>
<form action="/login" method="post">
  <input name="user" value="">
  <input name="remember" value="on">
</form>
<form method="POST" enctype="multipart/form-data">
  <input name="title" value="t">
</form>
</body></html>"""


@pytest.fixture
def page():
    transport = page_transport(PAGE)
    return Document(BASE, transport=transport), transport


def test_link_target_resolves_against_owner_url(page):
    doc, _ = page
    link = doc.links().first()

    assert link.inner_text() == "About"
    assert str(link.doc().url) == "https://pkg.example.com/about"


def test_absolute_and_relative_links(page):
    doc, _ = page

    targets = [str(d.url) for d in doc.links().docs()]

    assert targets == [
        "https://pkg.example.com/about",
        "https://other.example.org/x?y=1",
        "https://pkg.example.com/relative/page",
    ]


def test_link_tag_uses_href(page):
    doc, _ = page
    stylesheet = doc.elements_by_tag_name("link").first()

    assert str(stylesheet.doc().url) == "https://pkg.example.com/style.css"


def test_other_tags_use_src(page):
    doc, _ = page

    assert str(doc.images().first().doc().url) == "https://pkg.example.com/img/logo.png"
    assert str(doc.frames().first().doc().url) == "https://pkg.example.com/frame.html"


def test_get_form_submits_fields_as_query(page):
    doc, _ = page
    form = doc.forms().first()

    assert form.form_params().get_list("q") == ["x"]

    target = form.doc().set_param("q", "sha256")

    assert target.method == "GET"
    assert target.url.path == "/search"
    assert target.url.params.multi_items() == [("q", "sha256")]


def test_post_form_submits_fields_as_body(page):
    doc, _ = page
    target = doc.forms().eq(1).doc()

    target.set_param("user", "ann").load()

    assert target.method == "POST"
    request = target.transport.last_request
    assert request.url == "https://pkg.example.com/login"
    assert parse_qs(target.transport.bodies[-1].decode("ascii")) == {
        "user": ["ann"], "remember": ["on"],
    }


def test_multipart_form_with_empty_action_targets_owner(page):
    doc, transport = page
    target = doc.forms().eq(2).doc()

    assert str(target.url) == BASE
    assert target.method == "POST"
    assert target.is_multipart
    assert target.form_params.multi_items() == [("title", "t")]

    target.load()
    assert isinstance(transport.last_request.content, MultipartStream)
    assert b'name="title"' in transport.bodies[-1]


def test_derived_document_is_unloaded_and_shares_session(page):
    doc, transport = page
    doc.load()
    calls = transport.calls

    target = doc.links().first().doc()

    assert not target.loaded
    assert transport.calls == calls
    assert target.transport is doc.transport
    assert target.config is doc.config
    assert target.middleware is doc.middleware


def test_derived_document_carries_referer_and_origin(page):
    doc, transport = page
    target = doc.links().eq(1).doc()

    target.load()

    request = transport.last_request
    assert request.header("Referer") == BASE
    assert request.header("Origin") == "https://pkg.example.com"


def test_referer_is_the_effective_url_after_redirect():
    transport = StubTransport(
        lambda request, body: html_response(request, PAGE, url="https://pkg.example.com/final")
    )
    doc = Document("https://pkg.example.com/start", transport=transport)

    target = doc.links().eq(2).doc()

    assert target.request.headers["Referer"] == "https://pkg.example.com/final"
    assert str(target.url) == "https://pkg.example.com/relative/page"


def test_shared_middleware_runs_for_derived_documents():
    seen = []
    transport = page_transport(PAGE)
    doc = Document(BASE, transport=transport,
                   middleware=MiddlewareChain([lambda d: seen.append(str(d.url))]))

    doc.links().first().doc().load()

    assert seen == [BASE, "https://pkg.example.com/about"]


def test_new_doc_resolves_reference(page):
    doc, transport = page

    target = doc.new_doc("../docs/?lang=en")

    assert str(target.url) == "https://pkg.example.com/docs/?lang=en"
    assert transport.calls == 0


def test_new_ajax_sends_csrf_and_xhr_headers():
    transport = page_transport('<meta name="csrf-token" content="tok123"><p>hi</p>')
    doc = Document(BASE, transport=transport)

    target = doc.new_ajax("/api/items")

    assert target.request.headers["X-CSRF-Token-Auth"] == "tok123"
    assert target.request.headers["X-Requested-With"] == "XMLHttpRequest"


def test_new_ajax_without_token_omits_csrf_header(page):
    doc, _ = page

    target = doc.new_ajax("/api/items")

    assert "X-CSRF-Token-Auth" not in target.request.headers
    assert target.request.headers["X-Requested-With"] == "XMLHttpRequest"


def test_resolve_url():
    assert resolve_url("https://a.example/x/y", "../z") == "https://a.example/z"
    assert resolve_url("https://a.example/x", "") == "https://a.example/x"
    assert resolve_url("https://a.example/x/y", "?page=2") == "https://a.example/x/y?page=2"
    assert resolve_url("https://a.example/x/y", "  //cdn.example/lib.js ") == "https://cdn.example/lib.js"

    with pytest.raises(URLError):
        resolve_url("https://a.example/", "mailto:someone@example.com")
