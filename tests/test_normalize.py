import pytest

from sitescore.errors import DecodeError
from sitescore.models import SENTINEL, ContentKind
from sitescore.normalize import NormalizePolicy, classify, normalize

PAGE = (
    b"<html><head><title>Hi</title><script>var x = 1;</script><style>p {}</style></head>"
    b"<body><nav>Menu Items</nav><p>Caf&eacute; &amp;  Bar</p>\n\n<p>Second\tLine</p>"
    b"<footer>copyright</footer></body></html>"
)


def test_html_is_stripped_decoded_and_folded():
    doc = normalize(PAGE, "text/html; charset=utf-8", doc_id="https://example.com/")

    assert doc.id == "https://example.com/"
    assert doc.kind is ContentKind.HTML
    assert doc.content == "hi café & bar second line"
    assert doc.length == len(doc.content)


def test_page_chrome_can_be_kept():
    doc = normalize(PAGE, "text/html", policy=NormalizePolicy(drop_page_chrome=False))

    assert "menu items" in doc.content
    assert "copyright" in doc.content
    assert "var x" not in doc.content


def test_strip_non_alnum_policy():
    doc = normalize(PAGE, "text/html", policy=NormalizePolicy(strip_non_alnum=True))

    assert doc.content == "hi café bar second line"


def test_plain_text_entities_are_decoded():
    doc = normalize(b"Tom &amp; Jerry\n\t RULE", "text/plain")

    assert doc.kind is ContentKind.PLAIN_TEXT
    assert doc.content == "tom & jerry rule"


def test_declared_charset_is_used():
    doc = normalize("Café Ünïcode".encode("latin-1"), "text/plain; charset=ISO-8859-1")

    assert doc.content == "café ünïcode"


def test_meta_charset_is_used_for_html():
    raw = b'<html><head><meta charset="windows-1252"></head><body>caf\xe9</body></html>'

    assert normalize(raw, "text/html").content == "café"


def test_byte_order_mark_wins():
    raw = "\ufeffhello".encode("utf-16-le")

    assert normalize(raw, "text/plain").content == "hello"


def test_unknown_type_is_sniffed_as_html():
    doc = normalize(b"  <!DOCTYPE html><html><body><p>Hello</p></body></html>", None)

    assert doc.kind is ContentKind.HTML
    assert doc.content == "hello"


def test_unknown_type_with_utf16_bom_is_plain_text():
    doc = normalize("\ufeffhello world".encode("utf-16-le"), None)

    assert doc.kind is ContentKind.PLAIN_TEXT
    assert doc.content == "hello world"


def test_unknown_type_with_utf8_bom_is_sniffed_as_html():
    doc = normalize("\ufeff<!DOCTYPE html><html><body><p>Hello</p></body></html>".encode(), None)

    assert doc.kind is ContentKind.HTML
    assert doc.content == "hello"


@pytest.mark.parametrize(
    "raw",
    [
        b'<?xml version="1.0" encoding="utf-8"?>\n<html><body><p>Hi</p></body></html>',
        b"<!-- generated --><div><p>Hi</p></div>",
        b"\n<p>Hi</p>",
    ],
)
def test_unknown_type_markup_openers_are_html(raw):
    doc = normalize(raw, None)

    assert doc.kind is ContentKind.HTML
    assert doc.content == "hi"


def test_unknown_type_falls_back_to_plain_text():
    doc = normalize(b"just some words", "application/octet-stream")

    assert doc.kind is ContentKind.PLAIN_TEXT
    assert doc.content == "just some words"


def test_binary_content_is_a_decode_error():
    with pytest.raises(DecodeError):
        normalize(b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR", "image/png")


def test_invalid_bytes_are_a_decode_error():
    with pytest.raises(DecodeError):
        normalize(b"caf\xe9", "text/plain; charset=utf-8")


def test_unknown_charset_is_a_decode_error():
    with pytest.raises(DecodeError):
        normalize(b"hello", "text/plain; charset=not-a-real-codec")


def test_control_characters_never_survive():
    doc = normalize(b"a\x00b\x07c", "text/plain")

    assert SENTINEL not in doc.content
    assert doc.content == "a b c"


def test_empty_body_gives_empty_document():
    assert normalize(b"", "text/html").length == 0


@pytest.mark.parametrize(
    ("content_type", "kind"),
    [
        ("text/html; charset=utf-8", ContentKind.HTML),
        ("application/xhtml+xml", ContentKind.HTML),
        ("text/plain", ContentKind.PLAIN_TEXT),
        ("text/markdown", ContentKind.PLAIN_TEXT),
        ("application/json", ContentKind.PLAIN_TEXT),
        ("image/png", ContentKind.UNKNOWN),
        (None, ContentKind.UNKNOWN),
        ("", ContentKind.UNKNOWN),
    ],
)
def test_classify(content_type, kind):
    assert classify(content_type) is kind
