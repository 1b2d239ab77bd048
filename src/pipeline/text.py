from __future__ import annotations

"""
Text normalization helpers shared by the extractors and the exporter.

Pure string utilities: whitespace collapsing, person-name splitting with
professional suffix stripping, US-biased phone normalization and URL
canonicalization.
"""

import re
from typing import Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

WS_RE = re.compile(r"\s+")
DIGITS_RE = re.compile(r"[0-9]+")

# Comma-attached forms first ("Jane Public, Realtor®"), then standalone words
_SUFFIX_RES = [
    re.compile(r",?\s*\bRealtor\b[®™]?", re.IGNORECASE),
    re.compile(r",?\s*\bBroker\s*Associate\b", re.IGNORECASE),
    re.compile(r"\b(?:Team|Group)\b", re.IGNORECASE),
]


def normalize_whitespace(text: Optional[str]) -> str:
    if not text:
        return ""
    return WS_RE.sub(" ", text).strip()


def split_person_name(raw_name: Optional[str]) -> Tuple[str, str]:
    """Split a display name into (first_name, last_name).

    Professional suffixes (Realtor, Broker Associate, Team, Group) are removed
    first. The last remaining token is the last name; everything before it is
    the first name, so "Mary Jane Smith" -> ("Mary Jane", "Smith").
    """
    name = normalize_whitespace(raw_name)
    for rx in _SUFFIX_RES:
        name = rx.sub(" ", name)
    name = normalize_whitespace(name).strip(" ,")
    if not name:
        return "", ""
    parts = name.split(" ")
    if len(parts) == 1:
        return parts[0], ""
    return " ".join(parts[:-1]), parts[-1]


def normalize_phone(raw: Optional[str]) -> str:
    """Best-effort E.164-like phone normalization (US-biased).

    10 digits -> +1XXXXXXXXXX, 11 digits starting with 1 -> +1XXXXXXXXXX,
    already '+'-prefixed input is returned trimmed as-is, anything else is
    returned as the bare digit string.
    """
    if not raw:
        return ""
    digits = "".join(DIGITS_RE.findall(raw))
    if not digits:
        return ""
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    trimmed = raw.strip()
    if trimmed.startswith("+"):
        return trimmed
    return digits


def strip_scheme(href: Optional[str], scheme: str) -> str:
    """Remove a leading 'tel:' / 'mailto:' style prefix, case-insensitively."""
    s = (href or "").strip()
    prefix = scheme.rstrip(":") + ":"
    if s.lower().startswith(prefix.lower()):
        s = s[len(prefix):]
    return s.strip()


def normalize_url(u: str, keep_query: bool = False) -> str:
    """Canonicalize a URL: lowercase host, drop fragment.

    The query string is dropped unless keep_query=True, in which case its
    parameters are sorted so equivalent listing URLs compare equal.
    """
    try:
        sp = urlsplit(u)
        if not sp.scheme:
            return u
        query = ""
        if keep_query and sp.query:
            query = urlencode(sorted(parse_qsl(sp.query, keep_blank_values=True)))
        return urlunsplit(sp._replace(netloc=(sp.netloc or "").lower(), query=query, fragment=""))
    except ValueError:
        return u


def site_host(u: str) -> str:
    """Host without port and without a leading 'www.'."""
    try:
        host = (urlsplit(u).hostname or "").lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host
