from __future__ import annotations

import hashlib
import re
from typing import Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

import tldextract
from slugify import slugify

# Bundled public suffix snapshot only, no network lookup at runtime.
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

SUPPORTED_SCHEMES = ("http", "https")


def sha1_short(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8", errors="ignore")).hexdigest()[:10]


def file_safe_slug(text: str, maxlen: int = 80) -> str:
    s = slugify(text, max_length=maxlen, allow_unicode=False).strip("-_.")
    return s or sha1_short(text)


def normalize_url(url: str, base: Optional[str] = None, sort_query: bool = True) -> str:
    url = url.strip()
    if base:
        url = urljoin(base, url)
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    if scheme not in SUPPORTED_SCHEMES:
        return url
    if "@" in netloc:
        netloc = netloc.split("@", 1)[-1]
    if (scheme == "http" and netloc.endswith(":80")) or (scheme == "https" and netloc.endswith(":443")):
        netloc = netloc.rsplit(":", 1)[0]
    path = parts.path or "/"
    path = re.sub(r"/{2,}", "/", path)
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/")
    query = parts.query
    if sort_query and query:
        q = parse_qsl(query, keep_blank_values=True)
        q.sort()
        query = urlencode(q, doseq=True)
    return urlunsplit((scheme, netloc, path, query, ""))


def is_fetchable(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme.lower() in SUPPORTED_SCHEMES and bool(parts.netloc)


def get_registrable_domain(url: str) -> Tuple[str, str, str]:
    ext = _EXTRACT(url)
    return ext.subdomain, ext.domain, ext.suffix


def derive_site_slug(site_url: str) -> str:
    """Short label for logs and reports, e.g. ``example-com`` for ``https://www.example.com/a``."""
    netloc = urlsplit(site_url).netloc or site_url
    _, dom, suf = get_registrable_domain(site_url)
    base = f"{dom}.{suf}" if dom and suf else netloc
    slug = file_safe_slug(base, maxlen=80)
    return slug or sha1_short(site_url)
