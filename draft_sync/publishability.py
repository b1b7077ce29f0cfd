"""
Publishability check for sale drafts.

Pure function: no database access, never raises. The publish flow itself
lives elsewhere; read endpoints attach this so the dashboard can show which
drafts are ready.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
TIME_RE = re.compile(r"^\d{2}:\d{2}$")


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def compute_publishability(payload: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Return ``{"isPublishable": bool, "blockingErrors": {field: message}}``.

    Required: title, a category (any tag), address, city, state, lat/lng in
    range, date_start (YYYY-MM-DD) and time_start (HH:MM). Optional end
    date/time, photos and items are checked only when present.
    """
    if not payload:
        return {"isPublishable": False, "blockingErrors": {"draft": "Draft payload is missing"}}

    form = payload.get("formData")
    if not form:
        return {"isPublishable": False, "blockingErrors": {"formData": "Form data is missing"}}

    errors: Dict[str, str] = {}

    if _blank(form.get("title")):
        errors["title"] = "Title is required"
    if not form.get("tags"):
        errors["category"] = "Category is required"
    for field, label in (("address", "Address"), ("city", "City"), ("state", "State")):
        if _blank(form.get(field)):
            errors[field] = f"{label} is required"

    for field, label, bound in (("lat", "Latitude", 90), ("lng", "Longitude", 180)):
        value = form.get(field)
        if not _is_number(value):
            errors[field] = f"{label} is required and must be a valid number"
        elif not -bound <= value <= bound:
            errors[field] = f"{label} must be between -{bound} and {bound}"

    date_start = form.get("date_start")
    if _blank(date_start):
        errors["date_start"] = "Start date is required"
    elif not DATE_RE.match(date_start):
        errors["date_start"] = "Start date must be in YYYY-MM-DD format"

    time_start = form.get("time_start")
    if _blank(time_start):
        errors["time_start"] = "Start time is required"
    elif not TIME_RE.match(time_start):
        errors["time_start"] = "Start time must be in HH:MM format"

    date_end = form.get("date_end")
    if date_end not in (None, ""):
        if not isinstance(date_end, str) or not DATE_RE.match(date_end):
            errors["date_end"] = "End date must be in YYYY-MM-DD format"

    time_end = form.get("time_end")
    if time_end not in (None, ""):
        if not isinstance(time_end, str) or not TIME_RE.match(time_end):
            errors["time_end"] = "End time must be in HH:MM format"

    photos = payload.get("photos")
    if photos is not None:
        if not isinstance(photos, list):
            errors["photos"] = "Photos must be an array"
        else:
            for i, photo in enumerate(photos):
                if _blank(photo):
                    errors[f"photos[{i}]"] = "Photo URL must be a non-empty string"
                elif not _is_url(photo):
                    errors[f"photos[{i}]"] = "Photo URL must be a valid URL"

    items = payload.get("items")
    if items is not None:
        if not isinstance(items, list):
            errors["items"] = "Items must be an array"
        else:
            for i, item in enumerate(items):
                if not isinstance(item, Mapping):
                    errors[f"items[{i}]"] = "Item must be an object"
                    continue
                if _blank(item.get("id")):
                    errors[f"items[{i}].id"] = "Item ID is required"
                if _blank(item.get("name")):
                    errors[f"items[{i}].name"] = "Item name is required"
                image_url = item.get("image_url")
                if image_url not in (None, ""):
                    if not isinstance(image_url, str) or not _is_url(image_url):
                        errors[f"items[{i}].image_url"] = "Item image URL must be a valid URL"

    return {"isPublishable": not errors, "blockingErrors": errors}
