"""Turn fetched bytes into normalized documents.

The pipeline is: pick the content kind, decode the bytes strictly, strip
markup (HTML) or decode entities (plain text), then fold the text to a
lowercase, single-spaced stream suitable for indexing.
"""

from __future__ import annotations

import dataclasses
import html as html_lib
import re
import unicodedata
from typing import Optional

from bs4 import BeautifulSoup
from bs4.dammit import EncodingDetector

from .errors import DecodeError
from .models import ContentKind, Document


@dataclasses.dataclass(frozen=True)
class NormalizePolicy:
    strip_non_alnum: bool = False
    drop_page_chrome: bool = True


DEFAULT_POLICY = NormalizePolicy()

BOILERPLATE_TAGS = {"script", "style", "noscript", "svg", "template"}
CHROME_SELECTOR = '[role="navigation"], header, footer, nav'

HTML_TYPES = {"text/html", "application/xhtml+xml"}
TEXT_TYPES = {"application/json", "application/xml", "application/javascript"}

_MARKUP_HEAD = re.compile(
    r"^\s*(?:<\?xml[^>]*\?>\s*)?(?:<!--.*?-->\s*)*"
    r"<(?:!doctype\s+html|html|head|body|meta|title|link|base|script|style|div|p|span|a|ul|ol|table|form|"
    r"section|article|main|h[1-6]|br|img)\b",
    re.I | re.S,
)
_CONTROL = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")
_NON_ALNUM = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


# ------------------------------ Classification ------------------------------ #


def media_type(content_type: Optional[str]) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    m = re.search(r"charset\s*=\s*[\"']?([\w.:-]+)", content_type, flags=re.I)
    return m.group(1) if m else None


def classify(content_type: Optional[str]) -> ContentKind:
    mt = media_type(content_type)
    if mt in HTML_TYPES:
        return ContentKind.HTML
    if mt.startswith("text/") or mt in TEXT_TYPES:
        return ContentKind.PLAIN_TEXT
    return ContentKind.UNKNOWN


def sniff(raw: bytes) -> ContentKind:
    """Resolve an unknown content type from the first bytes of the body.

    A byte order mark is stripped first; UTF-16/32 text legitimately
    contains NUL bytes, so only BOM-less bodies are checked for them.
    """
    data, bom_encoding = EncodingDetector.strip_byte_order_mark(raw)
    head = data[:1024]
    if bom_encoding is None and b"\x00" in head:
        raise DecodeError("binary content")
    if _MARKUP_HEAD.match(head.decode(bom_encoding or "utf-8", errors="ignore")):
        return ContentKind.HTML
    return ContentKind.PLAIN_TEXT


# -------------------------------- Decoding ---------------------------------- #


def decode_bytes(raw: bytes, content_type: Optional[str], kind: ContentKind) -> str:
    """Decode strictly: BOM, then declared charset, then ``<meta charset>`` (HTML), then UTF-8."""
    data, bom_encoding = EncodingDetector.strip_byte_order_mark(raw)
    encoding = bom_encoding or charset_from_content_type(content_type)
    if encoding is None and kind is ContentKind.HTML:
        encoding = EncodingDetector.find_declared_encoding(data, is_html=True)
    encoding = encoding or "utf-8"
    try:
        return data.decode(encoding)
    except LookupError as e:
        raise DecodeError(f"unknown encoding {encoding!r}") from e
    except UnicodeDecodeError as e:
        raise DecodeError(f"invalid {encoding} at byte {e.start}: {e.reason}") from e


# ------------------------------ Text extraction ----------------------------- #


def extract_text_from_html(markup: str, drop_page_chrome: bool = True) -> str:
    try:
        soup = BeautifulSoup(markup, "lxml")
    except Exception as e:  # lxml surfaces several exception types for broken input
        raise DecodeError(f"cannot parse HTML: {e}") from e
    for tag in BOILERPLATE_TAGS:
        for el in soup.find_all(tag):
            el.decompose()
    if drop_page_chrome:
        for el in soup.select(CHROME_SELECTOR):
            el.decompose()
    return soup.get_text(separator=" ")


def fold_text(text: str, strip_non_alnum: bool = False) -> str:
    text = unicodedata.normalize("NFKC", text)
    text = text.lower()
    text = _CONTROL.sub(" ", text)
    if strip_non_alnum:
        text = _NON_ALNUM.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalize(
    raw: bytes,
    content_type: Optional[str],
    doc_id: str = "",
    policy: NormalizePolicy = DEFAULT_POLICY,
) -> Document:
    """Build a :class:`Document` from a response body.

    Raises :class:`DecodeError` when the body is binary, cannot be decoded
    under its encoding, or cannot be parsed as HTML.
    """
    kind = classify(content_type)
    effective = sniff(raw) if kind is ContentKind.UNKNOWN else kind
    text = decode_bytes(raw, content_type, effective)
    if effective is ContentKind.HTML:
        text = extract_text_from_html(text, drop_page_chrome=policy.drop_page_chrome)
    else:
        text = html_lib.unescape(text)
    return Document(id=doc_id, content=fold_text(text, policy.strip_non_alnum), kind=effective)
