import pytest

from doodl.services.common import (
    coerce_tags,
    ensure_scheme,
    normalize_notes,
    normalize_tag_list,
    parse_tags,
)
from doodl.services.errors import ValidationError
from doodl.services.memo_text import (
    build_memo_search_text,
    extract_tags,
    has_nsfw_line,
    normalize_content,
)
from doodl.services.search_text import derive_search_text


def test_search_text_joins_non_empty_fields_in_fixed_order():
    text = derive_search_text(
        "https://example.com",
        "Example",
        "",
        None,
        ["python", "web"],
    )

    assert text == "https://example.com Example python web"


def test_search_text_is_pure():
    args = ("https://a.test", "A", "desc", "notes here", ["x"])

    assert derive_search_text(*args) == derive_search_text(*args)
    assert derive_search_text(None, None, None, None, None) == ""


def test_extract_tags_folds_case_and_ignores_embedded_hashes():
    assert extract_tags("check #Foo and foo#bar and #foo again") == ["foo"]


def test_extract_tags_sorted_and_deduplicated():
    content = "#zeta first\n(#alpha) and #Beta_2, #alpha-one #beta_2"

    assert extract_tags(content) == ["alpha", "alpha-one", "beta_2", "zeta"]
    assert extract_tags("") == []


def test_nsfw_requires_an_exact_line():
    assert has_nsfw_line("intro\n#nsfw\nmore text") is True
    assert has_nsfw_line("intro\n   #NSFW  \n") is True
    assert has_nsfw_line("see #nsfw-warning") is False
    assert has_nsfw_line("this is #nsfw content") is False


def test_memo_search_text_is_lowercased_content_and_tags():
    assert build_memo_search_text("Hello #World", ["world"]) == "hello #world world"


def test_normalize_content_rejects_blank():
    assert normalize_content("  hi  ") == "hi"
    with pytest.raises(ValidationError):
        normalize_content("   ")
    with pytest.raises(ValidationError):
        normalize_content(None)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("example.com", "https://example.com"),
        ("  http://example.com/a ", "http://example.com/a"),
        ("HTTPS://Example.com", "HTTPS://Example.com"),
        ("", ""),
    ],
)
def test_ensure_scheme(raw, expected):
    assert ensure_scheme(raw) == expected


def test_parse_tags_splits_and_normalizes():
    assert parse_tags(["Python", "web, Tools; python", " "]) == [
        "python",
        "web",
        "tools",
    ]
    assert parse_tags("a,b") == ["a", "b"]
    assert parse_tags(None) == []


def test_normalize_notes_blank_is_none():
    assert normalize_notes("   ") is None
    assert normalize_notes(" keep ") == "keep"


def test_tag_lists_are_normalized_per_entry():
    assert normalize_tag_list([" A ", "c, d", "a", 3, ""]) == ["a", "c, d"]
    assert coerce_tags(["x;y"]) == ["x;y"]
    assert coerce_tags("x;y") == ["x", "y"]
