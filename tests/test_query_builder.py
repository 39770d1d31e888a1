"""Unit tests for translating query parameters into filter descriptions."""

from datetime import datetime, timezone

import pytest

from app.query.builder import QueryBuilder, parse_include, parse_select, translate
from app.query.conditions import (
    CursorPagination,
    Equals,
    OffsetPagination,
    OrderSpec,
    Quantifier,
    Range,
    RelationExists,
    SelectionMode,
    SortDirection,
    WhereClause,
)
from app.query.model_config import POST_CONFIG, USER_CONFIG, ModelConfig


def test_user_listing_params_translate_to_where_order_and_page() -> None:
    params = {
        "page": "2",
        "limit": "5",
        "emailContains": "@acme.com",
        "orderBy": "createdAt",
        "orderDir": "desc",
    }
    assert translate(USER_CONFIG, params).to_dict() == {
        "where": {"email": {"contains": "@acme.com", "mode": "insensitive"}},
        "orderBy": {"createdAt": "desc"},
        "skip": 5,
        "take": 5,
    }


def test_no_params_uses_model_defaults() -> None:
    assert translate(USER_CONFIG, {}).to_dict() == {
        "orderBy": {"createdAt": "desc"},
        "skip": 0,
        "take": 10,
    }


def test_post_default_limit_is_twenty() -> None:
    description = translate(POST_CONFIG, {})
    assert description.take == 20
    assert description.skip == 0


@pytest.mark.parametrize(
    "page,limit,skip",
    [(1, 1, 0), (1, 100, 0), (3, 7, 14), (10, 10, 90)],
)
def test_page_and_limit_become_skip_and_take(page: int, limit: int, skip: int) -> None:
    description = translate(USER_CONFIG, {"page": str(page), "limit": str(limit)})
    assert description.pagination == OffsetPagination(skip=skip, take=limit)


def test_limit_is_clamped_to_max() -> None:
    description = translate(USER_CONFIG, {"limit": "500"})
    assert description.take == 100


def test_explicit_skip_and_take_win_over_page() -> None:
    description = translate(USER_CONFIG, {"page": "4", "limit": "10", "skip": "3", "take": "7"})
    assert description.pagination == OffsetPagination(skip=3, take=7)


def test_take_alone_leaves_skip_unset_and_is_clamped() -> None:
    description = translate(USER_CONFIG, {"take": "250"})
    assert description.pagination == OffsetPagination(skip=None, take=100)


def test_skip_zero_still_counts_as_explicit() -> None:
    description = translate(USER_CONFIG, {"page": "3", "skip": "0"})
    assert description.pagination == OffsetPagination(skip=0, take=None)


def test_cursor_forces_skip_one() -> None:
    description = translate(USER_CONFIG, {"cursor": "abc", "page": "3", "skip": "7", "take": "5"})
    assert description.pagination == CursorPagination(cursor="abc", take=5, skip=1)
    assert description.to_dict()["cursor"] == {"id": "abc"}
    assert description.skip == 1


def test_cursor_keeps_page_limit_as_take() -> None:
    description = translate(USER_CONFIG, {"cursor": "abc", "page": "2", "limit": "4"})
    assert description.skip == 1
    assert description.take == 4


def test_string_filter_last_one_present_wins() -> None:
    params = {"email": "a@acme.com", "emailContains": "acme"}
    where = translate(USER_CONFIG, params).to_dict()["where"]
    assert where == {"email": {"contains": "acme", "mode": "insensitive"}}

    params.update({"emailStartsWith": "a", "emailEndsWith": ".com"})
    where = translate(USER_CONFIG, params).to_dict()["where"]
    assert where == {"email": {"endsWith": ".com", "mode": "insensitive"}}


def test_exact_string_match() -> None:
    where = translate(USER_CONFIG, {"name": "Alice"}).to_dict()["where"]
    assert where == {"name": "Alice"}


def test_empty_values_are_ignored() -> None:
    description = translate(USER_CONFIG, {"email": "", "emailContains": ""})
    assert description.where is None


def test_date_range_is_inclusive_on_both_ends() -> None:
    description = translate(
        USER_CONFIG,
        {"createdAfter": "2024-01-01T00:00:00Z", "createdBefore": "2024-06-30T23:59:59Z"},
    )
    condition = description.where.fields["createdAt"]
    assert condition == Range(
        "createdAt",
        gte=datetime(2024, 1, 1, tzinfo=timezone.utc),
        lte=datetime(2024, 6, 30, 23, 59, 59, tzinfo=timezone.utc),
    )


def test_boolean_field_filter() -> None:
    assert translate(POST_CONFIG, {"published": "false"}).to_dict()["where"] == {"published": False}
    assert translate(POST_CONFIG, {"published": "maybe"}).where is None


def test_number_fields_exact_and_range() -> None:
    config = ModelConfig(number_fields=("views",), default_order_by="views")
    assert translate(config, {"views": "3"}).to_dict()["where"] == {"views": 3}
    assert translate(config, {"viewsMin": "2", "viewsMax": "9"}).to_dict()["where"] == {
        "views": {"gte": 2, "lte": 9}
    }


def test_later_relation_flag_overwrites_earlier_one() -> None:
    description = translate(USER_CONFIG, {"hasPublishedPosts": "true", "hasPosts": "false"})
    assert description.where.fields["posts"] == RelationExists("posts", Quantifier.NONE)
    assert description.to_dict()["where"] == {"posts": {"none": {}}}


def test_relation_flag_true_means_some() -> None:
    where = translate(POST_CONFIG, {"hasAuthor": "true"}).to_dict()["where"]
    assert where == {"author": {"some": {}}}


def test_relation_search_overwrites_relation_flag() -> None:
    description = translate(USER_CONFIG, {"hasPosts": "false", "postsTitleContains": "async"})
    assert description.to_dict()["where"] == {
        "posts": {"some": {"title": {"contains": "async", "mode": "insensitive"}}}
    }


def test_and_or_lists_merge_with_field_conditions() -> None:
    params = {
        "nameContains": "a",
        "and": '[{"email": {"endsWith": "acme.com"}}]',
        "or": '[{"name": "Alice"}, {"name": "Bob"}]',
    }
    assert translate(USER_CONFIG, params).to_dict()["where"] == {
        "name": {"contains": "a", "mode": "insensitive"},
        "AND": [{"email": {"endsWith": "acme.com"}}],
        "OR": [{"name": "Alice"}, {"name": "Bob"}],
    }


def test_empty_or_list_is_kept() -> None:
    description = translate(USER_CONFIG, {"or": "[]"})
    assert description.where is not None
    assert description.where.any_of == ()


def test_order_by_uses_default_direction_of_model() -> None:
    description = translate(USER_CONFIG, {"orderBy": "email"})
    assert description.order_by == (OrderSpec(("email",), SortDirection.DESC),)


def test_order_by_list_pairs_directions_and_defaults_to_asc() -> None:
    description = translate(USER_CONFIG, {"orderBy": "name, email ,createdAt", "orderDir": "desc,asc"})
    assert description.to_dict()["orderBy"] == [
        {"name": "desc"},
        {"email": "asc"},
        {"createdAt": "asc"},
    ]


def test_dotted_order_by_nests_under_relation() -> None:
    description = translate(POST_CONFIG, {"orderBy": "author.name", "orderDir": "asc"})
    assert description.to_dict()["orderBy"] == {"author": {"name": "asc"}}


def test_select_wins_over_include() -> None:
    description = translate(USER_CONFIG, {"select": "id,email", "include": "posts"})
    assert description.to_dict()["select"] == {"id": True, "email": True}
    assert "include" not in description.to_dict()


def test_select_with_nested_relation_fields_and_counts() -> None:
    selection = parse_select("id, posts.title, posts._count, _count")
    assert selection.mode == SelectionMode.SELECT
    assert selection.fields == ("id",)
    assert selection.count is True
    nested = selection.relations["posts"]
    assert nested.fields == ("title",)
    assert nested.count is True


def test_include_with_filter_coerces_booleans() -> None:
    selection = parse_include("posts:published=true,_count")
    assert selection.count is True
    assert selection.relations["posts"].where == WhereClause({"published": Equals("published", True)})

    selection = parse_include("posts:title=Hello")
    assert selection.relations["posts"].where == WhereClause({"title": Equals("title", "Hello")})


def test_distinct_is_trimmed() -> None:
    description = translate(POST_CONFIG, {"distinct": " published , authorId "})
    assert description.distinct == ("published", "authorId")


def test_helpers_return_new_builders() -> None:
    builder = QueryBuilder.from_params({}, USER_CONFIG)
    extra = WhereClause({"name": Equals("name", "Bob")})

    with_where = builder.add_where(extra)
    assert builder.build().where is None
    assert with_where.build().to_dict()["where"] == {"name": "Bob"}

    ordered = builder.set_order_by("author.name", SortDirection.DESC)
    assert ordered.build().order_by == (OrderSpec(("author", "name"), SortDirection.DESC),)

    assert builder.set_limit(1000).build().take == 100
    assert builder.set_limit(5).build().take == 5


def test_model_config_rejects_inconsistent_limits() -> None:
    with pytest.raises(ValueError):
        ModelConfig(default_limit=50, max_limit=10)
    with pytest.raises(ValueError):
        ModelConfig(default_limit=0)
