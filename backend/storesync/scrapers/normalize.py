"""Field normalization shared by every parser."""

import re
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

# "$10 to $20", "10 - 20", "10 – 20"
_RANGE_SPLIT = re.compile(r"\s+(?:to|-|–|—)\s+", re.IGNORECASE)
_NUMBER = re.compile(r"\d[\d,.]*")
_PLACEHOLDER_TITLE = re.compile(r"^shop on\b", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def parse_price(text: str | None) -> float | None:
    """Parse a display price into a float.

    Currency symbols and words are dropped. When both ',' and '.' appear the
    last one is the decimal mark. A lone ',' is a decimal mark only when
    exactly two digits follow it. Ranges reduce to their lower bound.
    """
    if not text:
        return None

    text = _RANGE_SPLIT.split(text.strip(), maxsplit=1)[0]
    match = _NUMBER.search(text)
    if not match:
        return None

    cleaned = match.group(0).rstrip(",.")
    has_comma = "," in cleaned
    has_dot = "." in cleaned

    if has_comma and has_dot:
        if cleaned.rfind(",") > cleaned.rfind("."):
            # European: 1.234,56
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            # US: 1,234.56
            cleaned = cleaned.replace(",", "")
    elif has_comma:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) == 2:
            cleaned = head.replace(",", "") + "." + tail
        else:
            cleaned = cleaned.replace(",", "")
    elif cleaned.count(".") > 1:
        # 1.234.567
        cleaned = cleaned.replace(".", "")

    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_quantity(text: str | None, default: int = 1) -> int:
    if not text:
        return default
    match = re.search(r"(\d+)", text.replace(",", ""))
    return int(match.group(1)) if match else default


def resolve_url(url: str, base_url: str) -> str:
    """Make a possibly relative or protocol-relative URL absolute."""
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return "https:" + url
    return urljoin(base_url, url)


def clean_text(text: str | None) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def strip_html(html: str | None) -> str:
    if not html:
        return ""
    return clean_text(BeautifulSoup(html, "lxml").get_text(" "))


def is_placeholder_title(title: str | None) -> bool:
    """Promo cards like 'Shop on eBay' and empty or too-short titles are not products."""
    title = clean_text(title)
    if len(title) < 3:
        return True
    return bool(_PLACEHOLDER_TITLE.match(title))


def dedupe(values) -> list:
    seen = set()
    unique = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


def with_query_param(url: str, key: str, value) -> str:
    """Return url with one query parameter set, replacing it in place if present."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    if any(k == key for k, _ in query):
        query = [(k, str(value) if k == key else v) for k, v in query]
    else:
        query.append((key, str(value)))
    return urlunsplit(parts._replace(query=urlencode(query)))


def has_query_param(url: str, key: str) -> bool:
    return any(k == key for k, _ in parse_qsl(urlsplit(url).query, keep_blank_values=True))


def to_decimal(price: float | Decimal | None) -> Decimal | None:
    """Prices are stored with two decimal places."""
    if price is None:
        return None
    return Decimal(str(price)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
