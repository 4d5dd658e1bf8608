"""
Tests for post listing filters, sorts and pagination metadata.
"""
import pytest
from pymongo import ASCENDING, DESCENDING

from fly_thoughts.exceptions import ValidationError
from fly_thoughts.services.query_builder import (
    SORTS,
    build_filter,
    build_pagination,
    build_post_query,
    build_sort,
    parse_tags,
)


def test_default_filter_only_matches_published():
    assert build_filter() == {"status": "published"}


def test_category_is_lowercased():
    assert build_filter(category=" Tech ")["category"] == "tech"


def test_tags_split_trim_and_lowercase():
    assert parse_tags("Python, fastapi ,,PYTHON") == ["python", "fastapi"]
    assert build_filter(tags="Python,web")["tags"] == {"$in": ["python", "web"]}
    assert "tags" not in build_filter(tags=" , ")


def test_search_is_escaped_and_case_insensitive():
    query = build_filter(search="c++ (intro)")
    pattern = {"$regex": r"c\+\+\ \(intro\)", "$options": "i"}
    assert query["$or"] == [{"title": pattern}, {"content": pattern}, {"tags": pattern}]


def test_blank_search_is_ignored():
    assert "$or" not in build_filter(search="   ")


def test_base_filter_replaces_published_default():
    query = build_filter(category="art", base_filter={"author_id": "user_1"})
    assert query == {"author_id": "user_1", "category": "art"}


@pytest.mark.parametrize("name", ["latest", "oldest", "popular", "views"])
def test_every_sort_ends_with_post_id_tiebreaker(name):
    assert build_sort(name)[-1][0] == "post_id"


def test_sort_keys():
    assert build_sort("latest")[0] == ("published_at", DESCENDING)
    assert build_sort("oldest")[0] == ("published_at", ASCENDING)
    assert build_sort("popular")[:2] == [("likes_count", DESCENDING), ("views", DESCENDING)]
    assert build_sort("views")[0] == ("views", DESCENDING)


@pytest.mark.parametrize("name", [None, "", "random", "LATEST"])
def test_unknown_sort_falls_back_to_latest(name):
    assert build_sort(name) == SORTS["latest"]


def test_page_window():
    query = build_post_query(page=3, limit=10)
    assert query.skip == 20
    assert query.limit == 10


def test_order_override():
    order = [("updated_at", DESCENDING), ("post_id", DESCENDING)]
    assert build_post_query(order=order, sort="views").sort == order


@pytest.mark.parametrize("page, limit", [(0, 10), (-1, 10), (1, 0), (1, 101)])
def test_invalid_page_window_is_rejected(page, limit):
    with pytest.raises(ValidationError):
        build_post_query(page=page, limit=limit)


def test_limit_upper_bound_is_inclusive():
    assert build_post_query(page=1, limit=100).limit == 100


def test_pagination_metadata():
    assert build_pagination(3, 10, 23) == {
        "page": 3,
        "limit": 10,
        "total": 23,
        "pages": 3,
        "has_next": False,
        "has_prev": True,
    }
    first = build_pagination(1, 10, 23)
    assert first["has_next"] is True
    assert first["has_prev"] is False


def test_pagination_with_no_results():
    meta = build_pagination(1, 10, 0)
    assert meta["pages"] == 0
    assert meta["has_next"] is False
