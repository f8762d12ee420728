"""
ResponseDecoder: raw response bytes → normalized UTF-8 body.

Two steps, both table driven:

1. Content-Encoding: "gzip", "deflate" and "br" select a decompressor; any
   other value (or none) leaves the bytes alone.  A corrupt stream fails the
   load with DecodeError.
2. Charset: the charset parameter of Content-Type selects a codec.  Absent
   or utf-8 means no transcoding.  A charset the codec registry does not
   know, or one naming a non-text codec, leaves the body as received; it is
   logged but never fails the load, so mislabeled pages can still be
   rendered on a best-effort basis.
"""

import codecs
import gzip
import zlib
from email.message import Message
from typing import Callable

import brotli

from .exceptions import DecodeError
from .logger import get_module_logger
from .schemas import DecodedBody

logger = get_module_logger("decoder")


def _gunzip(data: bytes) -> bytes:
    return gzip.decompress(data)


def _inflate(data: bytes) -> bytes:
    # Servers disagree on "deflate": zlib-wrapped (RFC 1950) or raw (RFC 1951)
    try:
        return zlib.decompress(data)
    except zlib.error:
        return zlib.decompress(data, -zlib.MAX_WBITS)


def _unbrotli(data: bytes) -> bytes:
    return brotli.decompress(data)


DECOMPRESSORS: dict[str, Callable[[bytes], bytes]] = {
    "gzip": _gunzip,
    "deflate": _inflate,
    "br": _unbrotli,
}

# WHATWG encoding spec: browsers silently remap these labels.
# https://encoding.spec.whatwg.org/#names-and-labels
# iso-8859-1 and windows-1252 agree on 0x00-0x7F, but only windows-1252
# assigns printable characters to 0x80-0x9F, and that is what pages labeled
# iso-8859-1 actually contain.
WHATWG_CHARSET_MAP = {
    'iso-8859-1': 'windows-1252',
    'iso8859-1': 'windows-1252',
    'iso88591': 'windows-1252',
    'latin-1': 'windows-1252',
    'latin1': 'windows-1252',
    'us-ascii': 'windows-1252',
    'ascii': 'windows-1252',
    'iso-8859-9': 'windows-1254',
    'iso-8859-11': 'windows-874',
    'tis-620': 'windows-874',
    'x-sjis': 'shift_jis',
    'gb2312': 'gbk',
    'ks_c_5601-1987': 'euc-kr',
    'x-mac-roman': 'mac-roman',
    'x-user-defined': 'windows-1252',
}

UTF8_LABELS = ('utf-8', 'utf8')


def parse_media_type(content_type: str) -> tuple[str, dict[str, str]]:
    """
    Split a Content-Type value into (media type, parameters).

    The media type and parameter names are lower-cased; a missing or
    unparsable value yields ("", {}).
    """
    if not content_type or not content_type.strip():
        return "", {}
    message = Message()
    message["Content-Type"] = content_type
    media_type = message.get_content_type()
    # email falls back to text/plain for values it cannot parse
    if media_type == "text/plain" and not content_type.strip().lower().startswith("text/plain"):
        media_type = content_type.split(";", 1)[0].strip().lower()
    params = {}
    for key, value in message.get_params(failobj=[])[1:]:
        params[key.lower()] = value.strip() if isinstance(value, str) else str(value)
    return media_type, params


def charset_of(content_type: str) -> str:
    """Charset named by a Content-Type value, 'utf-8' when absent."""
    _, params = parse_media_type(content_type)
    return params.get("charset") or "utf-8"


def lookup_codec(charset: str):
    """
    Find a codec for a charset label, applying the WHATWG remapping.

    Raises:
        LookupError: the registry has no codec for the label
    """
    label = charset.strip().strip('"\'').lower()
    return codecs.lookup(WHATWG_CHARSET_MAP.get(label, label))


def decompress(data: bytes, content_encoding: str) -> bytes:
    """
    Undo a Content-Encoding.

    Raises:
        DecodeError: the body is not valid for the declared algorithm
    """
    algorithm = (content_encoding or "").strip().lower()
    decompressor = DECOMPRESSORS.get(algorithm)
    if decompressor is None:
        return data
    try:
        return decompressor(data)
    except (OSError, EOFError, zlib.error, brotli.error) as e:
        logger.error(f"Failed to decode {algorithm} body ({len(data)} bytes): {e}")
        raise DecodeError(
            f"Failed to decode {algorithm} body: {e}",
            encoding=algorithm,
            details={"error": str(e), "size": len(data)}
        ) from e


def transcode(data: bytes, charset: str) -> tuple[bytes, bool]:
    """
    Re-encode `data` from `charset` to UTF-8.

    Returns:
        Tuple of (body, transcoded).  For utf-8, for charsets missing
        from the codec registry and for non-text codecs the body is
        returned unchanged.
    """
    if charset.strip().lower() in UTF8_LABELS:
        return data, False
    try:
        codec = lookup_codec(charset)
    except LookupError:
        logger.warning(f"Unknown charset {charset!r}, leaving body untranscoded")
        return data, False
    # The registry also holds bytes-to-bytes and str-to-str codecs (base64, rot13, ...)
    if not getattr(codec, "_is_text_encoding", True):
        logger.warning(f"Charset {charset!r} names a non-text codec, leaving body untranscoded")
        return data, False
    try:
        # Undecodable bytes become U+FFFD rather than failing the load
        text = codec.decode(data, "replace")[0]
    except (UnicodeError, TypeError, ValueError, AssertionError) as e:
        logger.warning(f"Charset {charset!r} cannot decode the body ({e}), leaving it untranscoded")
        return data, False
    if not isinstance(text, str):
        logger.warning(f"Charset {charset!r} did not produce text, leaving body untranscoded")
        return data, False
    return text.encode("utf-8"), True


class ResponseDecoder:
    """Normalizes raw response bodies."""

    def decode(self, data: bytes, content_encoding: str = "", content_type: str = "") -> DecodedBody:
        body = decompress(data, content_encoding)
        charset = charset_of(content_type)
        body, transcoded = transcode(body, charset)

        algorithm = (content_encoding or "").strip().lower()
        logger.debug(
            f"Decoded {len(data)} raw bytes → {len(body)} bytes "
            f"(encoding={algorithm or 'identity'}, charset={charset}, transcoded={transcoded})"
        )
        return DecodedBody(
            body=body,
            content_encoding=algorithm if algorithm in DECOMPRESSORS else "",
            charset=charset,
            transcoded=transcoded,
        )
