"""
Contact Extraction Logic - Names, Phones, Emails and Contact Links

Extracts one person's contact details from a rendered profile page using
prioritized strategy cascades:
- name: known heading marker, then the first generic heading
- phone: known paragraph marker, then a tel: link, then a regex over page text
- email: known contact-block anchor, then any mailto: link, then a regex over
  the raw markup

Each cascade returns an empty string when every strategy misses; extraction
never raises. When a profile has no email, find_contact_link() locates the
"Contact" affordance that leads to the secondary contact page.
"""

import html
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin

from .cascade import Strategy, first_value, run_cascade
from .page import RenderedPage
from .text import normalize_whitespace, strip_scheme
from src.config import SelectorConfig


@dataclass(frozen=True)
class ProfileFields:
    """Raw cascade results for one page (phone not yet normalized)."""
    name: str
    phone: str
    email: str
    email_strategy: Optional[str] = None


CONTACT_WORD_RE = re.compile(r"contact", re.IGNORECASE)
NON_NAVIGABLE_PREFIXES = ("#", "javascript:", "mailto:", "tel:")
# Retina image names like logo@2x.png match the email shape
ASSET_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".css", ".js", ".ico")


class ContactExtractor:
    """
    Pulls name/phone/email from a single profile or contact page.

    Site-specific markers come from SelectorConfig; the generic fallbacks
    (headings, tel:/mailto: links, regexes) work on any page.
    """

    def __init__(self, selectors: Optional[SelectorConfig] = None):
        self.selectors = selectors or SelectorConfig()

        # Email pattern (RFC-5322-ish, good enough for markup sweeps)
        self.email_pattern = re.compile(
            r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE
        )

        # US 3-3-4 phone shape with optional parentheses/separators
        self.phone_pattern = re.compile(
            r"\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}"
        )

        self.name_strategies: List[Strategy[str]] = [
            Strategy("name_heading", self._name_from_marker),
            Strategy("first_heading", self._name_from_heading),
        ]
        self.phone_strategies: List[Strategy[str]] = [
            Strategy("phone_paragraph", self._phone_from_marker),
            Strategy("tel_link", self._phone_from_tel_link),
            Strategy("text_regex", self._phone_from_text),
        ]
        self.email_strategies: List[Strategy[str]] = [
            Strategy("email_block", self._email_from_block),
            Strategy("mailto_link", self._email_from_mailto),
            Strategy("markup_regex", self._email_from_markup),
        ]

    # -------------------------
    # Helpers
    # -------------------------
    def _sanitize_mailto(self, href: str) -> Optional[str]:
        """Strip the mailto: scheme plus any ?subject=/#fragment and lowercase."""
        if not href:
            return None
        raw = strip_scheme(html.unescape(href), "mailto")
        email = raw.split("?", 1)[0].split("#", 1)[0].strip().lower()
        return email or None

    # -------------------------
    # Name
    # -------------------------
    def _name_from_marker(self, page: RenderedPage) -> str:
        el = page.query_first(self.selectors.name_heading)
        return normalize_whitespace(el.text()) if el else ""

    def _name_from_heading(self, page: RenderedPage) -> str:
        el = page.query_first("h1, h2")
        return normalize_whitespace(el.text()) if el else ""

    # -------------------------
    # Phone
    # -------------------------
    def _phone_from_marker(self, page: RenderedPage) -> str:
        el = page.query_first(self.selectors.phone_paragraph)
        return normalize_whitespace(el.text()) if el else ""

    def _phone_from_tel_link(self, page: RenderedPage) -> str:
        el = page.query_first('a[href^="tel:"], a[href^="TEL:"], a[href^="Tel:"]')
        if not el:
            return ""
        return normalize_whitespace(strip_scheme(el.get_attribute("href"), "tel"))

    def _phone_from_text(self, page: RenderedPage) -> str:
        m = self.phone_pattern.search(page.text() or "")
        return m.group(0) if m else ""

    # -------------------------
    # Email
    # -------------------------
    def _email_from_block(self, page: RenderedPage) -> str:
        el = page.query_first(self.selectors.email_anchor)
        if not el:
            return ""
        href = (el.get_attribute("href") or "").strip()
        if not href.lower().startswith("mailto:"):
            return ""
        return self._sanitize_mailto(href) or ""

    def _email_from_mailto(self, page: RenderedPage) -> str:
        for el in page.query_all('a[href^="mailto:"], a[href^="MAILTO:"], a[href^="Mailto:"]'):
            email = self._sanitize_mailto(el.get_attribute("href") or "")
            if email:
                return email
        return ""

    def _email_from_markup(self, page: RenderedPage) -> str:
        for m in self.email_pattern.finditer(page.content() or ""):
            email = m.group(0).lower()
            if not email.endswith(ASSET_SUFFIXES):
                return email
        return ""

    # -------------------------
    # Public API
    # -------------------------
    def extract_name(self, page: RenderedPage) -> str:
        return first_value(self.name_strategies, page)

    def extract_phone(self, page: RenderedPage) -> str:
        return first_value(self.phone_strategies, page)

    def extract_email(self, page: RenderedPage) -> str:
        return first_value(self.email_strategies, page)

    def extract(self, page: RenderedPage) -> ProfileFields:
        """All three fields plus the name of the email strategy that hit."""
        hit = run_cascade(self.email_strategies, page)
        return ProfileFields(
            name=self.extract_name(page),
            phone=self.extract_phone(page),
            email=hit.value if hit else "",
            email_strategy=hit.strategy if hit else None,
        )

    def find_contact_link(self, page: RenderedPage) -> Optional[str]:
        """Absolute URL of the page's "Contact" affordance, if any.

        Anchors with a navigable href win over buttons carrying a router-style
        navigation attribute.
        """
        try:
            candidates = page.query_all("a, button")
        except Exception:
            return None
        target = None
        for el in candidates:
            if el.tag != "a" or not CONTACT_WORD_RE.search(el.text() or ""):
                continue
            href = (el.get_attribute("href") or "").strip()
            if href and not href.lower().startswith(NON_NAVIGABLE_PREFIXES):
                target = href
                break
        if target is None:
            for el in candidates:
                if el.tag != "button" or not CONTACT_WORD_RE.search(el.text() or ""):
                    continue
                for attr in self.selectors.nav_attributes:
                    value = (el.get_attribute(attr) or "").strip()
                    if value:
                        target = value
                        break
                if target:
                    break
        if not target:
            return None
        abs_url = urljoin(page.url, target)
        if not abs_url.startswith(("http://", "https://")):
            return None
        return abs_url
