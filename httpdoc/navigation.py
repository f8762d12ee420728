"""
NavigationResolver: extracted element → new Document.

  form        action resolved against the owner's URL ("" = the owner
              itself), method from the method attribute (default GET), the
              form's field values as query or body parameters
  a, link     href resolved against the owner's URL
  anything    src resolved against the owner's URL
  else

The new Document shares the owner's config, transport (cookies,
connections) and middleware, carries a Referer of the owner's effective
URL, and is not loaded.
"""

import httpx

from .document import Document
from .exceptions import HttpDocError, URLError
from .html import HTMLElement, Origin
from .logger import get_module_logger
from .request import parse_url

logger = get_module_logger("navigation")

MULTIPART_ENCTYPE = "multipart/form-data"

# Attribute holding the navigation target, per tag
TARGET_ATTRIBUTES = {
    "form": "action",
    "a": "href",
    "link": "href",
}
DEFAULT_TARGET_ATTRIBUTE = "src"


def resolve_url(base: str, reference: str) -> str:
    """
    Resolve `reference` against `base`.

    Raises:
        URLError: the result is not a valid absolute http(s) URL
    """
    try:
        joined = httpx.URL(base).join(reference.strip())
    except (httpx.InvalidURL, TypeError) as e:
        raise URLError(f"Cannot resolve {reference!r} against {base}: {e}", url=reference) from e
    return str(parse_url(joined))


def derive_document(origin: Origin, reference: str) -> Document:
    """New Document at `reference`, sharing the session of `origin`."""
    target = resolve_url(origin.url, reference)
    doc = Document(target, config=origin.config, transport=origin.transport,
                   middleware=origin.middleware)

    owner = httpx.URL(origin.url)
    doc.set_header("Referer", origin.url)
    doc.set_header("Origin", f"{owner.scheme}://{owner.netloc.decode('ascii')}")
    logger.debug(f"Derived {target} from {origin.url}")
    return doc


def element_to_document(element: HTMLElement) -> Document:
    """
    Document that following `element` would load.

    Raises:
        HttpDocError: the element was built without an owning document
        URLError: the target attribute does not resolve to a valid URL
    """
    if element.origin is None:
        raise HttpDocError(f"Element {element!r} has no owning document")

    attribute = TARGET_ATTRIBUTES.get(element.tag_name, DEFAULT_TARGET_ATTRIBUTE)
    doc = derive_document(element.origin, element.attr(attribute))

    if element.tag_name == "form":
        method = element.attr("method").strip().upper() or "GET"
        doc.set_method(method)
        params = element.form_params()
        if method != "GET" and element.attr("enctype").strip().lower() == MULTIPART_ENCTYPE:
            doc.set_multipart_params(params)
        else:
            doc.set_params(params)
    return doc
