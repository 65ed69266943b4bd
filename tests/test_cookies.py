from __future__ import annotations

import http.cookiejar

import pytest
from requests.cookies import RequestsCookieJar

from fluentrest.cookies import CookieJar, add_cookie, jar
from fluentrest.errors import CookieJarError


def test_jar_stores_and_renders_cookie_strings() -> None:
    cookie_jar = jar()

    stored = cookie_jar.set_cookie_string("session=abc; Path=/; HttpOnly", "http://example.com/login")
    cookie_jar.add("theme=dark", "http://example.com/")

    assert stored == ["session"]
    assert isinstance(cookie_jar, RequestsCookieJar)
    assert cookie_jar.get_cookie_string("http://example.com/") == "session=abc; theme=dark"
    assert cookie_jar.to_string("http://other.test/") == ""
    assert cookie_jar.get("session") == "abc"


def test_jar_without_url_lists_everything() -> None:
    cookie_jar = jar()
    cookie_jar.set_cookie_string("a=1")

    assert cookie_jar.get_cookie_string() == "a=1"


def test_cookies_for_dotless_hosts_are_returned() -> None:
    cookie_jar = jar()
    cookie_jar.set_cookie_string("a=1", "http://localhost:8080/")

    assert cookie_jar.get_cookie_string("http://localhost:8080/path") == "a=1"


def test_jar_can_be_seeded_from_another_store() -> None:
    store = http.cookiejar.CookieJar()
    seed = jar()
    seed.set_cookie_string("token=1", "http://example.com/")
    for cookie in seed:
        store.set_cookie(cookie)

    cookie_jar = jar(store)

    assert cookie_jar.get_cookie_string("http://example.com/") == "token=1"


def test_public_suffix_rejection_is_opt_in() -> None:
    url = "http://www.example.co.uk/"

    lenient = jar()
    strict = jar(reject_public_suffixes=True)

    assert lenient.set_cookie_string("a=1; Domain=.co.uk", url) == ["a"]
    assert strict.set_cookie_string("a=1; Domain=.co.uk", url) == []
    assert strict.set_cookie_string("b=2; Domain=.example.co.uk", url) == ["b"]


def test_invalid_cookie_string_raises() -> None:
    with pytest.raises(CookieJarError):
        jar().set_cookie_string('bad"name=1', "http://example.com/")


def test_add_cookie_supports_plain_cookiejars() -> None:
    ours = jar()
    plain = RequestsCookieJar()

    add_cookie(ours, "a", 1, "http://example.com/")
    add_cookie(plain, "b", "2", "http://example.com/")

    assert ours.get("a") == "1"
    assert plain.get("b") == "2"
    assert isinstance(ours, CookieJar)


def test_add_cookie_rejects_unknown_jars() -> None:
    with pytest.raises(CookieJarError):
        add_cookie({}, "a", "1")
