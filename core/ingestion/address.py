"""
Address Normaliser - Free-text Address to Structured Key

Cleans a raw property address and splits it into (city, street, house
number) using fixed lookup tables. There is no fuzzy or phonetic matching:
an unknown city or street lowers the confidence score, it never raises.

The lookup tables are part of the dedupe key contract. Changing their
contents or order changes the keys of already-ingested records.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Final, Optional

from core.comp_engine.stats import clamp
from core.ingestion.schema import NormalizedAddress


# Separator between components of the normalised key
KEY_SEPARATOR: Final = " | "


@dataclass(frozen=True)
class AddressLocale:
    """
    Locale-specific lookup tables for address normalisation.

    Attributes:
        cities: Gazetteer of known city names. Matched by plain substring,
            first entry in order wins.
        abbreviations: (pattern, replacement) pairs expanding street-type
            abbreviations to their full word.
        unit_noise: Patterns for apartment/floor/entrance sub-tokens.
        street_prefixes: Street-type words stripped from the start of the
            isolated street name.
        street_aliases: Lowercased spelling variant -> canonical street name.
        house_number: Pattern for the house number token.
        strip_chars: Character class removed during cleaning.
    """

    cities: tuple[str, ...]
    abbreviations: tuple[tuple[str, str], ...]
    unit_noise: tuple[str, ...]
    street_prefixes: tuple[str, ...]
    street_aliases: dict[str, str]
    house_number: str
    strip_chars: str


HEBREW_LOCALE: Final = AddressLocale(
    cities=(
        "תל אביב",
        "תל אביב-יפו",
        "ירושלים",
        "חיפה",
        "ראשון לציון",
        "פתח תקווה",
        "נתניה",
        "באר שבע",
    ),
    abbreviations=(
        (r"\bרח\b\.?\s*", "רחוב "),
        (r"\bשד\b\.?\s*", "שדרות "),
    ),
    unit_noise=(
        r"\bדירה\s*\d+[א-ת]?",
        r"\bקומה\s*\d+[א-ת]?",
        r"\bכניסה\s*[א-ת\d]+",
    ),
    street_prefixes=("רחוב", "שדרות"),
    street_aliases={
        "וייצמן": "ויצמן",
        "ויצמן": "ויצמן",
        "בן-גוריון": "בן גוריון",
        "בן גוריון": "בן גוריון",
        "בןגוריון": "בן גוריון",
        "הרצל": "הרצל",
    },
    house_number=r"(\d{1,5}[א-תA-Za-z]?)",
    # Quote marks, geresh/gershayim, bidi marks, niqqud
    strip_chars=r"[\"'`\u05f3\u05f4\u200e\u200f\u0591-\u05bd\u05bf-\u05c7]",
)


class AddressNormalizer:
    """
    Normalises free-text addresses against a fixed locale gazetteer.

    Pipeline:
    1. Strip quotes, bidi control characters and diacritics
    2. Expand street-type abbreviations
    3. Remove apartment/floor/entrance noise
    4. Extract the first house-number token
    5. Match the city gazetteer (first match wins)
    6. Subtract city and house number to isolate the street
    7. Strip leading street-type prefixes
    8. Collapse street spelling variants through the alias table
    9. Build the lowercased "city | street | number" key
    """

    def __init__(self, locale: AddressLocale = HEBREW_LOCALE):
        self._locale = locale
        self._strip_re = re.compile(locale.strip_chars)
        self._abbreviation_res = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in locale.abbreviations
        ]
        self._noise_res = [re.compile(p, re.IGNORECASE) for p in locale.unit_noise]
        self._prefix_res = [
            re.compile(rf"^{re.escape(prefix)}\s+", re.IGNORECASE)
            for prefix in locale.street_prefixes
        ]
        self._house_re = re.compile(locale.house_number)

    @property
    def locale(self) -> AddressLocale:
        return self._locale

    def normalize(self, raw: Any) -> NormalizedAddress:
        """
        Normalise a raw address.

        Args:
            raw: Free-text address (None and non-strings are tolerated)

        Returns:
            NormalizedAddress with an additive confidence in [0, 1]
        """
        cleaned = self.clean(raw)

        house_match = self._house_re.search(cleaned)
        house_number = house_match.group(1) if house_match else None

        city = self.match_city(cleaned)

        street = cleaned
        if city:
            street = re.sub(
                rf"\b{re.escape(city)}\b", "", street, flags=re.IGNORECASE
            ).strip()
        if house_number:
            street = street.replace(house_number, "", 1).strip()

        for prefix_re in self._prefix_res:
            street = prefix_re.sub("", street)
        street = _collapse_whitespace(street)

        canonical_street = self.canonical_street(street or None)

        components = [c for c in (city, canonical_street, house_number) if c]
        normalized = KEY_SEPARATOR.join(components).lower()

        confidence = 0.0
        if city:
            confidence += 0.35
        if canonical_street:
            confidence += 0.35
        if house_number:
            confidence += 0.20
        if len(cleaned) >= 10:
            confidence += 0.05
        if len(components) >= 2:
            confidence += 0.05

        return NormalizedAddress(
            raw="" if raw is None else str(raw),
            cleaned=cleaned,
            normalized=normalized,
            city=city,
            street=street or None,
            canonical_street=canonical_street,
            house_number=house_number,
            confidence=clamp(confidence, 0.0, 1.0),
        )

    def clean(self, raw: Any) -> str:
        """Strip quotes/diacritics, expand abbreviations, drop unit noise."""
        text = "" if raw is None else str(raw)
        text = self._strip_re.sub("", text.strip())
        text = re.sub(r"[,;]", " ", text)
        for pattern, replacement in self._abbreviation_res:
            text = pattern.sub(replacement, text)
        for pattern in self._noise_res:
            text = pattern.sub(" ", text)
        return _collapse_whitespace(text)

    def match_city(self, text: str) -> Optional[str]:
        """Return the first gazetteer city contained in text, if any."""
        for city in self._locale.cities:
            if city in text:
                return city
        return None

    def canonical_street(self, street: Optional[str]) -> Optional[str]:
        """Map a street through the alias table; unknown streets pass through."""
        if not street:
            return None
        key = _collapse_whitespace(street.lower())
        return self._locale.street_aliases.get(key, street)


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


_default_normalizer = AddressNormalizer()


def normalize_address(raw: Any) -> NormalizedAddress:
    """Normalise an address with the default (Hebrew) locale."""
    return _default_normalizer.normalize(raw)
