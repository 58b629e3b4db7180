# shopassist/utils/urls.py
import re
from typing import Optional
from urllib.parse import urlparse, urlunparse, urlencode, parse_qsl

MARKETPLACE_HOST_MARKERS = ("amazon.", "amzn.")

_ASIN_RE = re.compile(r"^[A-Z0-9]{8,12}$", re.IGNORECASE)
_PRODUCT_PATH_RE = re.compile(r"/(?:dp|gp/product)/[A-Z0-9]{10}(?:/|$)", re.IGNORECASE)


def hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def merchant_domain(url: str) -> str:
    host = hostname(url)
    return host[4:] if host.startswith("www.") else host


def is_marketplace_url(url: str) -> bool:
    host = hostname(url)
    return any(m in host for m in MARKETPLACE_HOST_MARKERS)


def is_http_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        u = urlparse(url.strip())
    except ValueError:
        return False
    return u.scheme in ("http", "https") and bool(u.netloc)


def strip_ref(path: str) -> str:
    """Drop a marketplace `/ref=...` tracking suffix from a path."""
    idx = path.find("/ref=")
    return path[:idx] if idx >= 0 else path


def _marketplace_product_path(path: str, query: str) -> Optional[str]:
    """`.../dp/<ASIN>` path of a marketplace link, unwrapping sponsored `/sspa/click?url=` redirects."""
    if path.startswith("/sspa/click"):
        target = dict(parse_qsl(query)).get("url")
        if not target:
            return None
        path = urlparse(target).path
    path = strip_ref(path)
    return path if _PRODUCT_PATH_RE.search(path) else None


def canonical_url(url: str) -> str:
    """
    Identity form of a product URL: no query string, no fragment and,
    for marketplace hosts, no `/ref=` tracking suffix. Marketplace links
    that do not resolve to a `/dp/<ASIN>` page keep their query string.
    """
    try:
        u = urlparse(url.strip())
    except ValueError:
        return url
    if not u.scheme or not u.netloc:
        return url
    if not is_marketplace_url(url):
        return urlunparse((u.scheme, u.netloc, u.path, "", "", ""))

    product_path = _marketplace_product_path(u.path, u.query)
    if product_path is None:
        return urlunparse((u.scheme, u.netloc, u.path, "", u.query, ""))
    return urlunparse((u.scheme, u.netloc, product_path, "", "", ""))


def catalog_lookup_url(url: str) -> str:
    """
    URL form accepted by the structured catalog. Marketplace URLs lose
    their tracking path and query and always end with a slash.
    """
    if not is_marketplace_url(url):
        return url
    u = urlparse(url)
    path = strip_ref(u.path)
    if not path.endswith("/"):
        path += "/"
    return f"{u.scheme}://{u.netloc}{path}"


def _slug_to_title(slug: str) -> str:
    words = re.sub(r"[-_]+", " ", slug).split()
    return " ".join(w[:1].upper() + w[1:] for w in words).strip()


def guess_title_from_url(url: str) -> str:
    """Best-effort product title from the URL path ('Product' when nothing fits)."""
    try:
        path = strip_ref(urlparse(url).path)
    except ValueError:
        return "Product"

    dp_idx = path.find("/dp/")
    if dp_idx > 0:
        path = path[:dp_idx]

    segments = [s for s in path.split("/") if s]
    if not segments:
        return "Product"
    last = segments[-1]
    if _ASIN_RE.match(last) and len(segments) >= 2:
        return _slug_to_title(segments[-2]) or "Product"
    return _slug_to_title(last) or "Product"


def upgrade_image_url(url: Optional[str]) -> Optional[str]:
    """Swap marketplace thumbnails and storefront CDN images for large renditions."""
    if not url:
        return url
    if "m.media-amazon.com" in url or "amazon.com" in url:
        u = re.sub(r"_AC_(UY|UX|UL|SY|SX)\d+_", "_AC_UL800_", url)
        u = re.sub(r"_SL\d+_", "_SL1200_", u)
        u = re.sub(r"_SX\d+_", "_SX1200_", u)
        u = re.sub(r"_SY\d+_", "_SY1200_", u)
        return u
    if "cdn.shopify.com" in url:
        try:
            p = urlparse(url)
        except ValueError:
            return url
        query = dict(parse_qsl(p.query, keep_blank_values=True))
        if not query.get("width"):
            query["width"] = "1200"
        return urlunparse(p._replace(query=urlencode(query)))
    return url
