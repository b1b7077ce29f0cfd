"""Tests for payload canonicalization and content hashing."""

import copy
import json
import re

from draft_sync.normalizer import (
    ORDER_INSIGNIFICANT_FIELDS,
    ORDER_SIGNIFICANT_FIELDS,
    content_hash,
    contents_equal,
    normalize,
    serialize,
)


class TestContentHash:
    def test_hash_is_64_hex_chars(self, payload):
        digest = content_hash(payload)
        assert re.fullmatch(r"[0-9a-f]{64}", digest)

    def test_hash_is_deterministic(self, payload):
        assert content_hash(payload) == content_hash(copy.deepcopy(payload))

    def test_key_order_does_not_matter(self, payload):
        reordered = json.loads(json.dumps(payload, sort_keys=True))
        reordered["formData"] = dict(reversed(list(payload["formData"].items())))
        assert content_hash(reordered) == content_hash(payload)

    def test_title_change_changes_hash(self, make_payload):
        assert content_hash(make_payload(title="Moving sale")) != content_hash(
            make_payload(title="Estate sale")
        )

    def test_unicode_is_hashed_as_utf8(self, make_payload):
        a = make_payload(title="Vente de déménagement")
        b = make_payload(title="Vente de demenagement")
        assert content_hash(a) != content_hash(b)
        assert "déménagement".encode("utf-8") in serialize(normalize(a))


class TestWhitespace:
    def test_single_line_fields_trimmed_and_collapsed(self, make_payload):
        assert contents_equal(
            make_payload(title="  Moving   sale \t"),
            make_payload(title="Moving sale"),
        )

    def test_multiline_description_keeps_line_breaks(self, make_payload):
        a = make_payload(description="Line one\r\nLine two   \n")
        b = make_payload(description="Line one\nLine two")
        c = make_payload(description="Line one Line two")
        assert contents_equal(a, b)
        assert not contents_equal(a, c)

    def test_whitespace_inside_items_is_normalized(self, payload):
        other = copy.deepcopy(payload)
        other["items"][0]["name"] = "  Oak   chair "
        assert contents_equal(payload, other)


class TestAbsentValues:
    def test_empty_string_none_and_missing_are_equal(self, payload):
        with_empty = copy.deepcopy(payload)
        with_empty["formData"]["zip_code"] = ""
        with_none = copy.deepcopy(payload)
        with_none["formData"]["zip_code"] = None
        assert contents_equal(payload, with_empty)
        assert contents_equal(payload, with_none)

    def test_whitespace_only_string_is_absent(self, payload):
        other = copy.deepcopy(payload)
        other["formData"]["zip_code"] = "   "
        assert contents_equal(payload, other)

    def test_empty_draft_has_single_representation(self):
        empty = normalize({})
        assert empty == {"formData": {}, "photos": [], "items": []}
        assert normalize({"formData": {}, "photos": [], "items": []}) == empty
        assert normalize({"formData": None, "photos": None}) == empty

    def test_empty_tags_list_is_absent(self, payload):
        other = copy.deepcopy(payload)
        other["formData"]["tags"] = []
        missing = copy.deepcopy(payload)
        del missing["formData"]["tags"]
        assert contents_equal(other, missing)


class TestNumbers:
    def test_integral_float_equals_int(self, payload):
        other = copy.deepcopy(payload)
        other["items"][0]["price"] = 25.0
        assert contents_equal(payload, other)

    def test_fractional_price_differs(self, payload):
        other = copy.deepcopy(payload)
        other["items"][0]["price"] = 25.5
        assert not contents_equal(payload, other)


class TestOrder:
    def test_order_tables_cover_array_fields(self):
        assert ORDER_SIGNIFICANT_FIELDS == {"photos", "items"}
        assert ORDER_INSIGNIFICANT_FIELDS == {"formData.tags"}

    def test_tag_order_is_insignificant(self, make_payload):
        assert contents_equal(
            make_payload(tags=["tools", "furniture"]),
            make_payload(tags=["furniture", "tools"]),
        )

    def test_photo_order_is_significant(self, payload):
        a = copy.deepcopy(payload)
        a["photos"] = ["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"]
        b = copy.deepcopy(payload)
        b["photos"] = list(reversed(a["photos"]))
        assert not contents_equal(a, b)

    def test_item_order_is_significant(self, payload):
        a = copy.deepcopy(payload)
        a["items"] = [{"name": "Chair"}, {"name": "Table"}]
        b = copy.deepcopy(payload)
        b["items"] = [{"name": "Table"}, {"name": "Chair"}]
        assert not contents_equal(a, b)


class TestExcludedFields:
    def test_current_step_is_not_content(self, payload):
        other = copy.deepcopy(payload)
        other["currentStep"] = 4
        assert contents_equal(payload, other)

    def test_client_item_ids_are_not_content(self, payload):
        other = copy.deepcopy(payload)
        other["items"][0]["id"] = "tmp-999"
        assert contents_equal(payload, other)
        assert "id" not in normalize(payload)["items"][0]


class TestSerialize:
    def test_serialization_is_compact_and_sorted(self):
        canonical = normalize({"formData": {"title": "A", "city": "B"}})
        assert serialize(canonical) == b'{"formData":{"city":"B","title":"A"},"items":[],"photos":[]}'

    def test_normalize_does_not_mutate_input(self, payload):
        original = copy.deepcopy(payload)
        normalize(payload)
        assert payload == original
