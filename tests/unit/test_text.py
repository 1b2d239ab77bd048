import pytest

from src.pipeline.text import (
    normalize_phone,
    normalize_url,
    normalize_whitespace,
    site_host,
    split_person_name,
    strip_scheme,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("904-555-1234", "+19045551234"),
        ("19045551234", "+19045551234"),
        ("(904) 555.1234", "+19045551234"),
        ("+44 20 7946 0958", "+44 20 7946 0958"),
        ("  +44 20 7946 0958  ", "+44 20 7946 0958"),
        ("555", "555"),
        ("", ""),
        (None, ""),
        ("call us", ""),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_split_person_name_strips_realtor_suffix():
    assert split_person_name("Jane Q. Public, Realtor®") == ("Jane Q.", "Public")


def test_split_person_name_single_and_empty():
    assert split_person_name("Smith") == ("Smith", "")
    assert split_person_name("") == ("", "")
    assert split_person_name(None) == ("", "")


def test_split_person_name_multi_token_first_name():
    assert split_person_name("Mary Jane Smith") == ("Mary Jane", "Smith")


def test_split_person_name_strips_titles_case_insensitive():
    assert split_person_name("John Doe, Broker Associate") == ("John", "Doe")
    assert split_person_name("the doe TEAM") == ("the", "doe")
    assert split_person_name("Realtor") == ("", "")
    assert split_person_name("Acme Group") == ("Acme", "")


def test_normalize_whitespace():
    assert normalize_whitespace("  Jane \n\t Doe  ") == "Jane Doe"
    assert normalize_whitespace(None) == ""


def test_strip_scheme_case_insensitive():
    assert strip_scheme("TEL:+1 904 555 1234", "tel") == "+1 904 555 1234"
    assert strip_scheme("mailto:a@b.com", "mailto:") == "a@b.com"
    assert strip_scheme("a@b.com", "mailto") == "a@b.com"


def test_normalize_url_drops_fragment_and_query():
    assert normalize_url("https://Example.com/Agents/x?a=1#top") == "https://example.com/Agents/x"


def test_normalize_url_keep_query_sorts_params():
    a = normalize_url("https://example.com/agents?page=2&sort=az", keep_query=True)
    b = normalize_url("https://EXAMPLE.com/agents?sort=az&page=2#frag", keep_query=True)
    assert a == b == "https://example.com/agents?page=2&sort=az"


def test_site_host_ignores_www():
    assert site_host("https://www.Example.com:8443/x") == "example.com"
