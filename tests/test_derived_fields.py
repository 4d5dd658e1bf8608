"""
Tests for slug, excerpt, read-time and publication stamp derivation.
"""
import re

import pytest

from fly_thoughts.services.derived_fields import (
    compute_read_time,
    derive_post_fields,
    make_excerpt,
    next_free_slug,
    slugify,
)


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Hello, World!", "hello-world"),
        ("  Getting   Started -- with FastAPI  ", "getting-started-with-fastapi"),
        ("Crème Brûlée à la carte", "creme-brulee-a-la-carte"),
        ("C++ & Rust: 2024", "c-rust-2024"),
        ("!!!", "post"),
        ("日本語", "post"),
    ],
)
def test_slugify(title, expected):
    assert slugify(title) == expected


def test_slugify_only_emits_url_safe_characters():
    for title in ["Hello_World", "--a--b--", "Ünïcödé Tïtlé?", "tabs\tand\nnewlines"]:
        slug = slugify(title)
        assert re.fullmatch(r"[a-z0-9]+(-[a-z0-9]+)*", slug)


def test_next_free_slug_uses_lowest_free_suffix():
    assert next_free_slug("hello", []) == "hello"
    assert next_free_slug("hello", ["hello"]) == "hello-2"
    assert next_free_slug("hello", ["hello", "hello-2", "hello-4"]) == "hello-3"
    assert next_free_slug("hello", ["hello-2"]) == "hello"


def test_excerpt_strips_markup_and_truncates():
    content = "<p>Hello world</p>" + "x" * 250
    excerpt = make_excerpt(content)
    assert excerpt == ("Hello world" + "x" * 250)[:200] + "..."
    assert "<" not in excerpt
    assert len(excerpt) == 203


def test_excerpt_decodes_entities_and_drops_script_tags():
    excerpt = make_excerpt("<p>Fish &amp; Chips</p><script>x</script>")
    assert excerpt.startswith("Fish & Chips")
    assert "<script>" not in excerpt


def test_excerpt_of_short_content_still_gets_ellipsis():
    assert make_excerpt("<b>Hi</b>") == "Hi..."


@pytest.mark.parametrize(
    "words, expected",
    [(0, 1), (1, 1), (200, 1), (201, 2), (450, 3), (1000, 5)],
)
def test_read_time(words, expected):
    assert compute_read_time(" ".join(["word"] * words)) == expected


def test_derive_on_create_published(now):
    derived = derive_post_fields(
        {"title": "My First Post", "content": "<p>one two three</p>", "status": "published"}, now=now
    )
    assert derived == {
        "slug": "my-first-post",
        "read_time": 1,
        "excerpt": "one two three...",
        "published_at": now,
    }


def test_derive_on_create_draft_has_no_publish_stamp():
    derived = derive_post_fields({"title": "Draft", "content": "body", "status": "draft"})
    assert "published_at" not in derived


def test_explicit_excerpt_is_not_overwritten():
    derived = derive_post_fields({"title": "T", "content": "body", "excerpt": "Mine"})
    assert "excerpt" not in derived


def test_content_only_edit_leaves_derived_fields_untouched():
    current = {"title": "T", "content": "old", "excerpt": "old...", "status": "draft"}
    assert derive_post_fields({"content": " ".join(["w"] * 900)}, current) == {}


def test_title_edit_rederives_slug_and_read_time_from_stored_content():
    current = {"title": "Old", "content": " ".join(["w"] * 450), "excerpt": "kept", "status": "draft"}
    derived = derive_post_fields({"title": "New Title"}, current)
    assert derived == {"slug": "new-title", "read_time": 3}


def test_first_publish_stamps_once(now):
    current = {"title": "T", "content": "c", "status": "draft", "published_at": None}
    assert derive_post_fields({"status": "published"}, current, now=now) == {"published_at": now}

    already = {**current, "status": "published", "published_at": now}
    assert "published_at" not in derive_post_fields({"status": "published"}, already)
    assert "published_at" not in derive_post_fields({"status": "draft"}, already)
