"""Tests for search request validation and normalization."""

from datetime import datetime, timezone

import pytest

from unified_search.schemas.search import (
    MAX_PAGE,
    MAX_SEARCH_TAG_IDS,
    SearchRequest,
    SearchSort,
    SearchType,
    parse_search_request,
)
from unified_search.services.exceptions import SearchValidationError


def test_defaults():
    request = parse_search_request({"query": "python"})
    assert request.query == "python"
    assert request.type == SearchType.ALL
    assert request.page == 1
    assert request.limit == 20
    assert request.sort == SearchSort.RELEVANCE
    assert request.only_published is True
    assert request.tag_ids is None
    assert request.offset == 0


def test_query_is_trimmed():
    request = parse_search_request({"query": "   async python  "})
    assert request.query == "async python"


@pytest.mark.parametrize("query", ["", "   ", None])
def test_empty_query_rejected(query):
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": query})
    assert exc.value.field == "query"


def test_missing_query_rejected():
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"type": "posts"})
    assert exc.value.field == "query"


def test_query_length_limit():
    assert parse_search_request({"query": "a" * 100}).query == "a" * 100
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "a" * 101})
    assert exc.value.field == "query"
    assert "100" in exc.value.message


@pytest.mark.parametrize("query", ["drop -- table", "a /* b", "b */ c", "x; y", "nul\x00byte"])
def test_illegal_query_content_rejected(query):
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": query})
    assert exc.value.field == "query"
    assert exc.value.message == "contains illegal characters"


@pytest.mark.parametrize("limit", [0, -1, 100, 51])
def test_limit_out_of_range_rejected(limit):
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "python", "limit": limit})
    assert exc.value.field == "limit"


@pytest.mark.parametrize("limit", [1, 20, 50])
def test_limit_in_range_accepted(limit):
    assert parse_search_request({"query": "python", "limit": limit}).limit == limit


def test_page_must_be_positive():
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "python", "page": 0})
    assert exc.value.field == "page"


@pytest.mark.parametrize("page", [MAX_PAGE + 1, 10**18])
def test_page_upper_bound_rejected(page):
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "python", "type": "posts", "page": page, "limit": 50})
    assert exc.value.field == "page"


def test_last_page_accepted():
    request = parse_search_request({"query": "python", "page": MAX_PAGE, "limit": 50})
    assert request.offset == (MAX_PAGE - 1) * 50


def test_offset_follows_page_and_limit():
    request = parse_search_request({"query": "python", "page": 3, "limit": 10})
    assert request.offset == 20


def test_numeric_strings_are_coerced():
    request = parse_search_request({"query": "python", "page": "2", "limit": "5"})
    assert request.page == 2
    assert request.limit == 5


@pytest.mark.parametrize("value", ["everything", "post", 3])
def test_invalid_type_rejected(value):
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "python", "type": value})
    assert exc.value.field == "type"


def test_type_is_case_insensitive():
    assert parse_search_request({"query": "python", "type": "POSTS"}).type == SearchType.POSTS


def test_latest_is_an_alias_for_recency():
    assert parse_search_request({"query": "python", "sort": "latest"}).sort == SearchSort.RECENCY
    assert parse_search_request({"query": "python", "sort": "recency"}).sort == SearchSort.RECENCY


def test_invalid_sort_rejected():
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "python", "sort": "popular"})
    assert exc.value.field == "sort"


def test_camel_and_snake_case_keys():
    camel = parse_search_request({"query": "python", "authorId": "u1", "onlyPublished": False})
    snake = parse_search_request({"query": "python", "author_id": "u1", "only_published": False})
    assert camel == snake
    assert camel.author_id == "u1"
    assert camel.only_published is False


def test_blank_author_id_is_ignored():
    assert parse_search_request({"query": "python", "authorId": "  "}).author_id is None


def test_tag_ids_are_deduplicated_in_order():
    request = parse_search_request({"query": "python", "tagIds": ["b", "a", "b", " a ", "c"]})
    assert request.tag_ids == ["b", "a", "c"]


def test_tag_id_dedup_is_idempotent():
    once = parse_search_request({"query": "python", "tagIds": ["a", "a", "b"]})
    twice = parse_search_request({"query": "python", "tagIds": once.tag_ids})
    assert once.tag_ids == twice.tag_ids == ["a", "b"]


def test_tag_ids_accept_comma_separated_string():
    request = parse_search_request({"query": "python", "tagIds": "a, b,,c"})
    assert request.tag_ids == ["a", "b", "c"]


def test_empty_tag_ids_mean_no_filter():
    assert parse_search_request({"query": "python", "tagIds": []}).tag_ids is None


def test_tag_id_count_is_checked_after_dedup():
    ids = [f"tag-{i}" for i in range(MAX_SEARCH_TAG_IDS)]
    request = parse_search_request({"query": "python", "tagIds": ids + ids})
    assert request.tag_ids == ids


def test_too_many_tag_ids_rejected():
    ids = [f"tag-{i}" for i in range(MAX_SEARCH_TAG_IDS + 1)]
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "python", "tagIds": ids})
    assert exc.value.field == "tagIds"


def test_long_tag_id_rejected():
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "python", "tagIds": ["x" * 65]})
    assert exc.value.field == "tagIds"


def test_date_only_bounds_cover_whole_days():
    request = parse_search_request(
        {"query": "python", "publishedFrom": "2024-03-01", "publishedTo": "2024-03-31"}
    )
    assert request.published_from == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert request.published_to == datetime(2024, 3, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)


def test_same_day_range_is_valid():
    request = parse_search_request(
        {"query": "python", "publishedFrom": "2024-03-01", "publishedTo": "2024-03-01"}
    )
    assert request.published_from < request.published_to


def test_naive_datetimes_are_utc():
    request = parse_search_request(
        {"query": "python", "publishedFrom": datetime(2024, 3, 1, 8, 30)}
    )
    assert request.published_from == datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)


def test_iso_datetime_with_offset():
    request = parse_search_request({"query": "python", "publishedFrom": "2024-03-01T10:00:00+02:00"})
    assert request.published_from == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def test_invalid_date_rejected():
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request({"query": "python", "publishedFrom": "2024-13-45"})
    assert exc.value.field == "publishedFrom"


def test_inverted_date_range_rejected():
    with pytest.raises(SearchValidationError) as exc:
        parse_search_request(
            {"query": "python", "publishedFrom": "2024-04-01", "publishedTo": "2024-03-01"}
        )
    assert exc.value.field == "publishedTo"


def test_request_passes_through_unchanged():
    request = SearchRequest(query="python")
    assert parse_search_request(request) is request


def test_request_is_immutable():
    request = parse_search_request({"query": "python"})
    with pytest.raises(Exception):
        request.query = "other"  # type: ignore[misc]
