# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Pattern tables for click classification.

Three read-only tables, built once at import as ``DEFAULT_PATTERNS`` and
injected into :class:`~machh.classifier.ClickClassifier`:

- protocol prefixes (``tel:``, ``mailto:``, ...) → click type
- domain substrings (maps, WhatsApp web, booking platforms) → click type,
  evaluated in registration order
- CTA keywords in French and English → ``cta_click``
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass

from . import ClickType

# ── Protocol prefixes ──────────────────────────────────────────────────

PROTOCOL_PATTERNS: tuple[tuple[str, ClickType], ...] = (
    ("tel:", ClickType.PHONE_CALL),
    ("mailto:", ClickType.EMAIL_CLICK),
    ("sms:", ClickType.SMS),
    ("whatsapp:", ClickType.WHATSAPP),
)

# ── Domain substrings (order is the tie-break) ─────────────────────────

DOMAIN_PATTERNS: tuple[tuple[str, ClickType], ...] = (
    # directions
    ("maps.google.", ClickType.DIRECTIONS),
    ("google.com/maps", ClickType.DIRECTIONS),
    ("goo.gl/maps", ClickType.DIRECTIONS),
    ("maps.app.goo.gl", ClickType.DIRECTIONS),
    ("maps.apple.com", ClickType.DIRECTIONS),
    ("waze.com", ClickType.DIRECTIONS),
    ("bing.com/maps", ClickType.DIRECTIONS),
    ("openstreetmap.org", ClickType.DIRECTIONS),
    # whatsapp web links
    ("wa.me/", ClickType.WHATSAPP),
    ("api.whatsapp.com", ClickType.WHATSAPP),
    ("web.whatsapp.com", ClickType.WHATSAPP),
    ("chat.whatsapp.com", ClickType.WHATSAPP),
    # booking platforms
    ("calendly.com", ClickType.BOOKING),
    ("doctolib.", ClickType.BOOKING),
    ("planity.com", ClickType.BOOKING),
    ("booksy.com", ClickType.BOOKING),
    ("treatwell.", ClickType.BOOKING),
    ("resalib.fr", ClickType.BOOKING),
    ("acuityscheduling.com", ClickType.BOOKING),
    ("setmore.com", ClickType.BOOKING),
    ("simplybook.", ClickType.BOOKING),
    ("zcal.co", ClickType.BOOKING),
    ("thefork.", ClickType.BOOKING),
    ("lafourchette.", ClickType.BOOKING),
    ("opentable.", ClickType.BOOKING),
    ("booking.com", ClickType.BOOKING),
)

# ── CTA keywords ───────────────────────────────────────────────────────

CTA_KEYWORDS: tuple[str, ...] = (
    # French — contact
    "contactez-nous",
    "nous contacter",
    "contact",
    "appelez",
    "appeler",
    "ecrivez-nous",
    "rappel",
    # French — appointment / booking
    "prendre rendez-vous",
    "rendez-vous",
    "rdv",
    "réservez",
    "réserver",
    "réservation",
    # French — quote
    "devis",
    "demander un devis",
    "devis gratuit",
    "estimation",
    # French — purchase / signup
    "acheter",
    "commander",
    "ajouter au panier",
    "s'inscrire",
    "inscription",
    "essai gratuit",
    "télécharger",
    "en savoir plus",
    "commencer",
    # English — contact
    "contact us",
    "get in touch",
    "call now",
    "call us",
    "email us",
    "request a callback",
    # English — appointment / booking
    "book now",
    "book an appointment",
    "book a call",
    "schedule",
    "reserve",
    "reservation",
    # English — quote
    "get a quote",
    "free quote",
    "request a quote",
    "get an estimate",
    # English — purchase / signup
    "buy now",
    "order now",
    "add to cart",
    "checkout",
    "sign up",
    "subscribe",
    "free trial",
    "get started",
    "download",
)


def fold_text(text: str) -> str:
    """Lowercase, strip combining diacritical marks, trim.

    ``"  Réservez Maintenant "`` → ``"reservez maintenant"``.
    """
    decomposed = unicodedata.normalize("NFD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


@dataclass(frozen=True, slots=True)
class PatternRegistry:
    """Immutable protocol/domain/keyword tables.

    Keywords are folded once at construction so matching compares folded
    text against folded keywords.
    """

    protocols: tuple[tuple[str, ClickType], ...] = PROTOCOL_PATTERNS
    domains: tuple[tuple[str, ClickType], ...] = DOMAIN_PATTERNS
    cta_keywords: tuple[str, ...] = CTA_KEYWORDS

    def __post_init__(self) -> None:
        object.__setattr__(self, "protocols", tuple((p.lower(), t) for p, t in self.protocols))
        object.__setattr__(self, "domains", tuple((d.lower(), t) for d, t in self.domains))
        folded = tuple(dict.fromkeys(k for k in (fold_text(k) for k in self.cta_keywords) if k))
        object.__setattr__(self, "cta_keywords", folded)

    def match_protocol(self, target: str) -> ClickType | None:
        low = (target or "").strip().lower()
        for prefix, click_type in self.protocols:
            if low.startswith(prefix):
                return click_type
        return None

    def match_domain(self, target: str) -> ClickType | None:
        low = (target or "").lower()
        if not low:
            return None
        for needle, click_type in self.domains:
            if needle in low:
                return click_type
        return None

    def match_keyword(self, text: str) -> bool:
        """Symmetric containment between folded *text* and any keyword.

        Text shorter than 3 chars never matches; the reverse direction
        (keyword contains text) needs at least 4 chars.
        """
        folded = fold_text(text)
        if len(folded) < 3:
            return False
        for keyword in self.cta_keywords:
            if keyword in folded:
                return True
            if len(folded) >= 4 and folded in keyword:
                return True
        return False


DEFAULT_PATTERNS = PatternRegistry()
