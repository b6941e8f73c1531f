"""
Locale fallback helpers for translated catalog text.

Translations are stored as rows with a `locale` attribute (SectionI18n,
ItemI18n, MenuI18n). Lookup order is: requested locale -> tenant default
locale -> first available translation.
"""
from typing import Iterable, List, Optional, Sequence


def normalize_locale(locale: Optional[str]) -> Optional[str]:
    """Normalize 'en_us' / 'EN-us' to 'en-US'. Returns None for empty input."""
    if not locale:
        return None
    parts = locale.strip().replace('_', '-').split('-')
    if not parts[0]:
        return None
    if len(parts) == 1:
        return parts[0].lower()
    return f"{parts[0].lower()}-{parts[1].upper()}"


def locale_chain(requested: Optional[str], default: Optional[str]) -> List[str]:
    """Build the ordered, de-duplicated list of locales to try."""
    chain = []
    for locale in (normalize_locale(requested), normalize_locale(default)):
        if locale and locale not in chain:
            chain.append(locale)
    return chain


def resolve_field(translations: Sequence, field: str, chain: Iterable[str]) -> Optional[str]:
    """
    Resolve a single text field through the fallback chain.

    A translation that exists but leaves the field empty does not stop the
    search: the next locale in the chain is tried, then every remaining
    translation in stored order.
    """
    if not translations:
        return None
    by_locale = {normalize_locale(t.locale): t for t in translations}
    for locale in chain:
        row = by_locale.get(locale)
        if row is not None and getattr(row, field, None):
            return getattr(row, field)
    for row in translations:
        value = getattr(row, field, None)
        if value:
            return value
    return None
