"""
Canonical form and content hash for sale draft payloads.

Two payloads hash identically exactly when they represent the same listing
content. The rules are declared per field below instead of applied as one
blanket policy, because array order means something for some fields and
nothing for others:

- ``formData.tags`` is a selection set: sorted before hashing.
- ``photos`` is ordered (the first photo is the listing cover): kept.
- ``items`` is the seller-arranged item list: kept in order.

Whitespace is trimmed (and collapsed on single-line fields), ``""`` / ``None``
/ missing all mean "absent" for optional fields, integral floats collapse to
ints, and UI-only state (``currentStep``, client item ids) is excluded.

The same functions back the server's authoritative hash and the autosave
client's local no-change shortcut, so they must stay pure.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

_WHITESPACE_RUN = re.compile(r"\s+")

Canonical = Dict[str, Any]


def _line(value: Any) -> Optional[str]:
    """Single-line text: trim and collapse whitespace runs."""
    if value is None:
        return None
    text = _WHITESPACE_RUN.sub(" ", str(value)).strip()
    return text or None


def _text(value: Any) -> Optional[str]:
    """Multi-line text: unify line endings, strip line tails, trim."""
    if value is None:
        return None
    text = str(value).replace("\r\n", "\n").replace("\r", "\n")
    text = "\n".join(line.rstrip() for line in text.split("\n")).strip()
    return text or None


def _number(value: Any) -> Optional[Any]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _unordered_lines(value: Any) -> Optional[List[str]]:
    """Order-insignificant list of strings: canonicalize entries, then sort."""
    if not value:
        return None
    entries = [entry for entry in (_line(v) for v in value) if entry is not None]
    return sorted(entries) or None


def _ordered_lines(value: Any) -> Optional[List[str]]:
    """Order-significant list of strings: canonicalize entries, keep order."""
    if not value:
        return None
    entries = [entry for entry in (_line(v) for v in value) if entry is not None]
    return entries or None


# Field name -> canonicalizer. Fields not listed are not content.
FORM_FIELDS: Dict[str, Callable[[Any], Any]] = {
    "title": _line,
    "description": _text,
    "address": _line,
    "city": _line,
    "state": _line,
    "zip_code": _line,
    "lat": _number,
    "lng": _number,
    "date_start": _line,
    "time_start": _line,
    "date_end": _line,
    "time_end": _line,
    "duration_hours": _number,
    "tags": _unordered_lines,
    "pricing_mode": _line,
}

# ``id`` is deliberately absent: client-side item ids are temporary.
ITEM_FIELDS: Dict[str, Callable[[Any], Any]] = {
    "name": _line,
    "price": _number,
    "description": _text,
    "image_url": _line,
    "category": _line,
}

# Order significance of the top-level array fields.
ORDER_SIGNIFICANT_FIELDS = frozenset({"photos", "items"})
ORDER_INSIGNIFICANT_FIELDS = frozenset({"formData.tags"})


def _apply(fields: Mapping[str, Callable[[Any], Any]], source: Mapping[str, Any]) -> Canonical:
    canonical: Canonical = {}
    for name, rule in fields.items():
        value = rule(source.get(name))
        if value is not None:
            canonical[name] = value
    return canonical


def _items(value: Any) -> List[Canonical]:
    if not value:
        return []
    items = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        canonical = _apply(ITEM_FIELDS, item)
        if canonical:
            items.append(canonical)
    return items


def normalize(payload: Mapping[str, Any]) -> Canonical:
    """Return the canonical form of a draft payload.

    Accepts the plain-dict payload (``formData`` / ``photos`` / ``items``).
    Always returns all three top-level keys so that an empty draft has a
    single representation.
    """
    form_data = payload.get("formData") or {}
    return {
        "formData": _apply(FORM_FIELDS, form_data),
        "photos": _ordered_lines(payload.get("photos")) or [],
        "items": _items(payload.get("items")),
    }


def serialize(canonical: Canonical) -> bytes:
    """Deterministic byte encoding of a canonical form."""
    return json.dumps(
        canonical,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def hash_canonical(canonical: Canonical) -> str:
    """SHA-256 digest (64 hex chars) of a canonical form."""
    return hashlib.sha256(serialize(canonical)).hexdigest()


def content_hash(payload: Mapping[str, Any]) -> str:
    """Normalize and hash a draft payload."""
    return hash_canonical(normalize(payload))


def contents_equal(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    """Check whether two payloads carry identical listing content."""
    return content_hash(a) == content_hash(b)
