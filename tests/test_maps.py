from __future__ import annotations

import pytest

from fluentrest.maps import Headers, OrderedMap, Query


def test_put_and_get_return_exact_values() -> None:
    values = OrderedMap()
    payload = {"nested": [1, 2]}

    values.put("a", 1)
    values.put("b", payload)

    assert values.get("a") == 1
    assert values.get("b") is payload
    assert values.get("missing") is None
    assert values.get("missing", "fallback") == "fallback"


def test_ordered_map_keeps_insertion_order_and_is_case_sensitive() -> None:
    values = OrderedMap({"b": 1, "a": 2})
    values.put("B", 3)

    assert list(values) == ["b", "a", "B"]
    assert values.contains_key("b") == "b"
    assert values.contains_key("A") is False


def test_contains_value_returns_stored_value_or_false() -> None:
    values = OrderedMap({"a": "x", "b": "y"})

    assert values.contains_value("y") == "y"
    assert values.contains_value("z") is False


def test_remove_returns_value_or_none() -> None:
    values = OrderedMap({"a": 1})

    assert values.remove("a") == 1
    assert values.remove("a") is None
    assert values.is_empty()


def test_keys_are_coerced_to_strings() -> None:
    values = OrderedMap()
    values.put(1, "one")

    assert values.get("1") == "one"
    assert values.contains_key(1) == "1"


def test_put_with_single_argument_merges() -> None:
    values = OrderedMap({"a": 1})
    values.put({"b": 2})
    values.put(OrderedMap({"c": 3}))

    assert values.to_dict() == {"a": 1, "b": 2, "c": 3}
    assert values.size() == 3


def test_put_all_is_idempotent() -> None:
    collection = {"a": 1, "b": 2}
    once = OrderedMap()
    once.put_all(collection)
    twice = OrderedMap()
    twice.put_all(collection)
    twice.put_all(collection)

    assert once == twice


def test_put_all_ignores_unsupported_input() -> None:
    values = OrderedMap({"a": 1})
    values.put_all(42)
    values.put_all(None)

    assert values.to_dict() == {"a": 1}


def test_clear_leaves_map_reusable() -> None:
    values = OrderedMap({"a": 1})
    values.clear()
    assert values.size() == 0

    values.put("b", 2)
    assert values.to_dict() == {"b": 2}


def test_ordered_map_string_form_is_json() -> None:
    assert OrderedMap({"a": 1}).to_string() == '{"a": 1}'
    assert OrderedMap('{"a": 1}').get("a") == 1


def test_mapping_protocol() -> None:
    values = OrderedMap()
    values["a"] = 1

    assert "a" in values
    assert values["a"] == 1
    assert len(values) == 1
    del values["a"]
    with pytest.raises(KeyError):
        values["a"]


@pytest.mark.parametrize("inserted", ["Content-Type", "content-type", "CONTENT-TYPE"])
def test_headers_lookup_ignores_case(inserted: str) -> None:
    headers = Headers()
    headers.put(inserted, "text/plain")

    assert headers.get("Content-Type") == "text/plain"
    assert headers.get("content-type") == "text/plain"


def test_headers_contains_key_reports_first_seen_casing() -> None:
    headers = Headers()
    headers.put("X-Request-Id", "1")
    headers.put("x-request-id", "2")

    assert headers.contains_key("X-REQUEST-ID") == "X-Request-Id"
    assert headers.to_dict() == {"X-Request-Id": "2"}
    assert headers.size() == 1


def test_headers_remove_and_contains_value_ignore_case() -> None:
    headers = Headers({"Accept": "Application/JSON"})

    assert headers.contains_value("application/json") == "Application/JSON"
    assert headers.remove("ACCEPT") == "Application/JSON"
    assert headers.is_empty()


def test_headers_merge_keeps_single_key_per_case_class() -> None:
    headers = Headers({"Accept": "text/html"})
    headers.put_all({"ACCEPT": "application/json", "Accept-Language": "en"})

    assert headers.to_dict() == {"Accept": "application/json", "Accept-Language": "en"}


def test_headers_parse_and_render_header_blocks() -> None:
    headers = Headers("Content-Type: text/plain\r\nX-Id:  7 \r\n")

    assert headers.get("content-type") == "text/plain"
    assert headers.get("X-ID") == "7"
    assert headers.to_string() == "Content-Type: text/plain\r\nX-Id: 7\r\n"


def test_query_stays_case_sensitive_and_parses_strings() -> None:
    query = Query("page=1&Page=2&q=hello+world")

    assert query.get("page") == "1"
    assert query.get("Page") == "2"
    assert query.get("q") == "hello world"
    assert str(query) == "page=1&Page=2&q=hello%20world"


def test_query_accepts_other_map_flavours() -> None:
    query = Query()
    query.put_all(Headers({"Accept": "json"}))
    query.put_all(OrderedMap({"limit": 10}))

    assert query.to_dict() == {"Accept": "json", "limit": 10}
