"""Canonical forms of the URI, query string and headers used by SigV4.

Everything here is a pure function of its input. The output has to match
what the server computes byte for byte, otherwise the signature check fails
without telling us why.
"""
from __future__ import annotations

from typing import Iterable, Mapping
from urllib.parse import parse_qsl, quote, urlsplit

# RFC 3986 unreserved characters; ``quote`` never escapes letters and digits.
_UNRESERVED = "-_.~"


def uri_encode(value: str) -> str:
    """Percent-encode everything outside the unreserved set, ``/`` included."""
    return quote(value, safe=_UNRESERVED)


def canonical_uri(path: str) -> str:
    """Encode each ``/``-separated segment of a decoded path independently.

    Empty segments survive, so ``//`` and a trailing ``/`` are preserved.
    """
    if not path:
        return "/"
    return "/".join(uri_encode(segment) for segment in path.split("/"))


def canonical_query_string(query: str) -> str:
    if not query:
        return ""
    pairs = parse_qsl(query, keep_blank_values=True)
    encoded = sorted((uri_encode(name), uri_encode(value)) for name, value in pairs)
    return "&".join(f"{name}={value}" for name, value in encoded)


def canonical_query(url: str) -> str:
    """Sorted, encoded query parameters of ``url`` (``""`` when there are none)."""
    return canonical_query_string(urlsplit(url).query)


def normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Lowercase names and fold whitespace runs in values.

    Names that only differ by case are merged with ``,`` in insertion order.
    """
    normalized: dict[str, str] = {}
    for name, value in headers.items():
        lowered = name.strip().lower()
        folded = " ".join(str(value).split())
        if lowered in normalized:
            normalized[lowered] = f"{normalized[lowered]},{folded}"
        else:
            normalized[lowered] = folded
    return normalized


def canonical_headers(headers: Mapping[str, str]) -> str:
    """``name:value`` lines sorted by lowercased name, each ending in ``\\n``."""
    normalized = normalize_headers(headers)
    return "".join(f"{name}:{normalized[name]}\n" for name in sorted(normalized))


def canonical_signed_headers(headers: Mapping[str, str] | Iterable[str]) -> str:
    names = {name.strip().lower() for name in headers}
    return ";".join(sorted(names))
