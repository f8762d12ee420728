"""
Regex-based HTML query engine.

This is deliberately not a conforming HTML parser: elements are found with
pattern matching over the normalized document text.  It is enough to walk
links, frames and forms of real pages, and it never fails on bad markup,
it just matches less.

  - void tags (meta, link, br, input, ...) match <tag ...> or <tag .../>
  - container tags match the shortest <tag ...>...</tag> span, so nested
    tags of the same name end at the first closing tag
  - attributes are only captured when quoted: name="value" or name='value'
"""

import html
import re
import weakref
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

import httpx

if TYPE_CHECKING:
    from .config import ClientConfig
    from .document import Document
    from .middleware import MiddlewareChain
    from .transport import Transport

VOID_TAGS = frozenset([
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input', 'keygen',
    'link', 'meta', 'option', 'param', 'source', 'track', 'wbr',
])

FORM_FIELD_PATTERN = re.compile(r'<(input|textarea|select|button)(?=[\s/>])([^<>]*)>', re.IGNORECASE)
ATTRIBUTE_PATTERN = re.compile(r'''\s([a-zA-Z0-9_:\-]+)\s*=\s*("[^"]*"|'[^']*')''')

# --- Text extraction patterns, applied in this order by html_to_text() ---
COMMENT_PATTERN = re.compile(r'<!--[\s\S]*?-->')
SCRIPT_STYLE_PATTERN = re.compile(r'<(script|style)(?=[\s/>])[^<>]*>[\s\S]*?</\1\s*>', re.IGNORECASE)
INSTRUCTION_PATTERN = re.compile(r'<\?[\s\S]*?\?>|<![^<>]*>')
WHITESPACE_PATTERN = re.compile(r'\s+')
LINE_BREAK_PATTERN = re.compile(r'<(?:br|p)(?=[\s/>])[^<>]*>', re.IGNORECASE)
LIST_ITEM_PATTERN = re.compile(r'<li(?=[\s/>])[^<>]*>', re.IGNORECASE)
TAG_PATTERN = re.compile(r'</?[a-zA-Z][a-zA-Z0-9\-]*(?:\s[^<>]*)?/?>')

BULLET = "\n• "


def tag_pattern(name: str) -> re.Pattern:
    """Pattern matching elements named `name`, in void or paired form."""
    void = name.lower() in VOID_TAGS
    name = re.escape(name.lower())
    if void:
        return re.compile(rf'<{name}(?=[\s/>])([^<>]*?)/?>', re.IGNORECASE)
    return re.compile(rf'<{name}(?=[\s/>])([^<>]*)>([\s\S]*?)</{name}\s*>', re.IGNORECASE)


def parse_tag_attrs(source: str) -> dict[str, str]:
    """
    Parse quoted attributes of an opening tag.

    Names are lower-cased and values entity-decoded.  The first occurrence
    of a repeated attribute wins, as in browsers.
    """
    attrs: dict[str, str] = {}
    for name, quoted in ATTRIBUTE_PATTERN.findall(" " + source):
        attrs.setdefault(name.lower(), html.unescape(quoted[1:-1]))
    return attrs


def html_to_text(markup: str) -> str:
    """
    Plain text of an HTML fragment.

    Order matters: comments, script/style blocks and processing
    instructions go first so their contents never reach the output,
    whitespace is collapsed before <br>/<p>/<li> become line breaks, and the
    markers are inserted before the final pass strips every remaining tag.
    """
    text = COMMENT_PATTERN.sub('', markup)
    text = SCRIPT_STYLE_PATTERN.sub('', text)
    text = INSTRUCTION_PATTERN.sub('', text)
    text = WHITESPACE_PATTERN.sub(' ', text)
    text = LINE_BREAK_PATTERN.sub('\n', text)
    text = LIST_ITEM_PATTERN.sub(BULLET, text)
    text = TAG_PATTERN.sub('', text)
    return html.unescape(text).strip()


@dataclass(frozen=True)
class Origin:
    """
    What an element needs to navigate: the owning document's effective URL
    and its session.  Holding this instead of the Document keeps large
    bodies collectable while element collections are still referenced.
    """
    url: str
    config: "ClientConfig"
    transport: "Transport"
    middleware: "MiddlewareChain"


class HTMLElement:
    """One matched element."""

    def __init__(self, tag_name: str, attributes: dict[str, str], inner_html: str,
                 origin: Optional[Origin] = None, document: Optional["Document"] = None):
        self.tag_name = tag_name.lower()
        self.attributes = attributes
        self.inner_html = "" if self.tag_name in VOID_TAGS else inner_html
        self.origin = origin
        self._document_ref = weakref.ref(document) if document is not None else None

    @property
    def document(self) -> Optional["Document"]:
        """Owning Document, or None once it has been garbage collected."""
        return self._document_ref() if self._document_ref is not None else None

    def attr(self, name: str, default: str = "") -> str:
        return self.attributes.get(name.lower(), default)

    def has_attr(self, name: str) -> bool:
        return name.lower() in self.attributes

    def inner_text(self) -> str:
        return html_to_text(self.inner_html)

    def form_params(self) -> httpx.QueryParams:
        """name/value pairs of the form fields inside this element, in document order."""
        pairs = []
        for _, attr_source in FORM_FIELD_PATTERN.findall(self.inner_html):
            attrs = parse_tag_attrs(attr_source)
            name = attrs.get("name", "")
            if name:
                pairs.append((name, attrs.get("value", "")))
        return httpx.QueryParams(pairs)

    def doc(self) -> "Document":
        """New (unloaded) Document this element navigates to."""
        from .navigation import element_to_document
        return element_to_document(self)

    def __str__(self) -> str:
        attrs = "".join(f' {k}="{html.escape(v)}"' for k, v in self.attributes.items())
        if self.tag_name in VOID_TAGS:
            return f"<{self.tag_name}{attrs}>"
        return f"<{self.tag_name}{attrs}>{self.inner_html}</{self.tag_name}>"

    def __repr__(self) -> str:
        return f"HTMLElement({self.tag_name!r}, {self.attributes!r})"


class HTMLElements(Sequence):
    """
    Elements in document order.

    Integer indexing past either end returns None instead of raising;
    filters return new collections.
    """

    def __init__(self, elements=()):
        self._elements: list[HTMLElement] = list(elements)

    def __len__(self) -> int:
        return len(self._elements)

    def __iter__(self) -> Iterator[HTMLElement]:
        return iter(self._elements)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return HTMLElements(self._elements[index])
        if -len(self._elements) <= index < len(self._elements):
            return self._elements[index]
        return None

    def __add__(self, other) -> "HTMLElements":
        return HTMLElements(list(self) + list(other))

    def __repr__(self) -> str:
        return f"HTMLElements({self._elements!r})"

    def index(self, value, start: int = 0, stop: Optional[int] = None) -> int:
        return self._elements.index(value, start, len(self._elements) if stop is None else stop)

    def count(self, value) -> int:
        return self._elements.count(value)

    def eq(self, index: int) -> Optional[HTMLElement]:
        return self[index]

    def first(self) -> Optional[HTMLElement]:
        return self[0]

    def last(self) -> Optional[HTMLElement]:
        return self[-1]

    def filter(self, predicate: Callable[[HTMLElement], Any]) -> "HTMLElements":
        return HTMLElements(e for e in self._elements if predicate(e))

    def filter_by_attr(self, name: str) -> "HTMLElements":
        return self.filter(lambda e: e.has_attr(name))

    def filter_by_attr_value(self, name: str, value: str) -> "HTMLElements":
        return self.filter(lambda e: e.attr(name, None) == value)

    def attrs(self, name: str) -> list[str]:
        """Values of attribute `name` for the elements that have it."""
        return [e.attributes[name.lower()] for e in self._elements if e.has_attr(name)]

    def texts(self) -> list[str]:
        return [e.inner_text() for e in self._elements]

    def docs(self) -> list["Document"]:
        return [e.doc() for e in self._elements]


def get_elements_by_tag_name(markup: str, name: str, origin: Optional[Origin] = None,
                             document: Optional["Document"] = None) -> HTMLElements:
    """All `name` elements of `markup`, in document order."""
    tag_name = name.lower()
    void = tag_name in VOID_TAGS
    elements = []
    for match in tag_pattern(tag_name).finditer(markup):
        elements.append(HTMLElement(
            tag_name=tag_name,
            attributes=parse_tag_attrs(match.group(1)),
            inner_html="" if void else match.group(2),
            origin=origin,
            document=document,
        ))
    return HTMLElements(elements)
