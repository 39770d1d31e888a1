from datetime import datetime, timedelta, timezone

import pytest

from app.query.conditions import (
    And,
    Equals,
    In,
    MatchOperator,
    Not,
    Quantifier,
    Range,
    RelationExists,
    StringMatch,
    WhereClause,
    condition_to_dict,
)
from app.query.parser import (
    ConditionParseError,
    check_date_values,
    parse_condition_list,
    parse_iso_datetime,
    parse_where,
    split_csv,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-01-01T00:00:00Z", datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ("2024-01-01T10:30:00.123Z", datetime(2024, 1, 1, 10, 30, 0, 123000, tzinfo=timezone.utc)),
        ("2024-06-30T23:59:59+02:00", datetime(2024, 6, 30, 21, 59, 59, tzinfo=timezone.utc)),
    ],
)
def test_parse_iso_datetime_accepts(value: str, expected: datetime) -> None:
    assert parse_iso_datetime(value) == expected


def test_parse_iso_datetime_keeps_offset() -> None:
    parsed = parse_iso_datetime("2024-06-30T23:59:59+02:00")
    assert parsed.utcoffset() == timedelta(hours=2)


@pytest.mark.parametrize("value", ["2024-01-01", "yesterday", "2024-01-01 00:00:00", "2024-13-01T00:00:00Z", ""])
def test_parse_iso_datetime_rejects(value: str) -> None:
    with pytest.raises(ValueError):
        parse_iso_datetime(value)


def test_condition_list_must_be_json_array() -> None:
    with pytest.raises(ConditionParseError):
        parse_condition_list("{not json")
    with pytest.raises(ConditionParseError):
        parse_condition_list('{"published": true}')
    with pytest.raises(ConditionParseError):
        parse_condition_list("[1, 2]")


def test_condition_list_of_simple_equals() -> None:
    assert parse_condition_list('[{"published": true}, {"title": "Hello"}]') == (
        WhereClause({"published": Equals("published", True)}),
        WhereClause({"title": Equals("title", "Hello")}),
    )


def test_field_operators() -> None:
    where = parse_where(
        {
            "title": {"contains": "next", "mode": "insensitive"},
            "authorId": {"in": ["a", "b"]},
            "createdAt": {"gte": "2024-01-01T00:00:00Z", "lt": "2024-02-01T00:00:00Z"},
        }
    )
    assert where.fields["title"] == StringMatch("title", MatchOperator.CONTAINS, "next", insensitive=True)
    assert where.fields["authorId"] == In("authorId", ("a", "b"))
    assert where.fields["createdAt"] == Range(
        "createdAt", gte="2024-01-01T00:00:00Z", lt="2024-02-01T00:00:00Z"
    )


def test_case_sensitive_match_without_mode() -> None:
    where = parse_where({"title": {"startsWith": "Async"}})
    assert where.fields["title"] == StringMatch("title", MatchOperator.STARTS_WITH, "Async", insensitive=False)


def test_not_and_not_in() -> None:
    where = parse_where({"name": {"not": "Bob"}, "email": {"notIn": ["x@acme.com"]}})
    assert where.fields["name"] == Not(Equals("name", "Bob"))
    assert where.fields["email"] == In("email", ("x@acme.com",), negate=True)


def test_several_operators_on_one_field_combine_with_and() -> None:
    condition = parse_where({"title": {"startsWith": "A", "endsWith": "n"}}).fields["title"]
    assert isinstance(condition, And)
    assert len(condition.conditions) == 2


def test_relation_quantifiers() -> None:
    where = parse_where({"posts": {"some": {"published": True}}})
    assert where.fields["posts"] == RelationExists(
        "posts", Quantifier.SOME, WhereClause({"published": Equals("published", True)})
    )

    assert parse_where({"posts": {"none": {}}}).fields["posts"] == RelationExists("posts", Quantifier.NONE)
    assert parse_where({"author": {"is": None}}).fields["author"] == RelationExists("author", Quantifier.NONE)


def test_to_one_shorthand() -> None:
    where = parse_where({"author": {"name": "Alice"}})
    assert where.fields["author"] == RelationExists(
        "author", Quantifier.SOME, WhereClause({"name": Equals("name", "Alice")})
    )


def test_nested_or_and_not() -> None:
    where = parse_where({"OR": [{"name": "Alice"}, {"name": "Bob"}], "NOT": {"email": "x@acme.com"}})
    assert condition_to_dict(where) == {
        "OR": [{"name": "Alice"}, {"name": "Bob"}],
        "NOT": {"email": "x@acme.com"},
    }


@pytest.mark.parametrize(
    "data",
    [
        ["not an object"],
        {"title": ["a", "b"]},
        {"title": {"contains": 5}},
        {"title": {"in": "a"}},
        {"title": {"mode": "loud", "contains": "a"}},
        {"title": {"mode": "insensitive"}},
        {"AND": "x"},
    ],
)
def test_malformed_conditions_raise(data) -> None:
    with pytest.raises(ConditionParseError):
        parse_where(data)


def test_split_csv_drops_blanks() -> None:
    assert split_csv(" a, ,b ,, c") == ["a", "b", "c"]


def test_empty_operator_object_filters_nothing() -> None:
    where = parse_where({"title": {}, "published": True})
    assert where.fields["title"] == WhereClause()
    assert condition_to_dict(where) == {"published": True}


def test_check_date_values_walks_nested_conditions() -> None:
    dates = frozenset({"createdAt"})
    valid = parse_condition_list(
        '[{"createdAt": {"gte": "2024-01-01T00:00:00Z"}},'
        ' {"posts": {"some": {"createdAt": {"in": ["2024-02-01T00:00:00Z"]}}}},'
        ' {"NOT": {"createdAt": null}}, {"title": "yesterday"}]'
    )
    check_date_values(valid, dates)

    for raw in (
        '[{"createdAt": {"lt": "yesterday"}}]',
        '[{"OR": [{"createdAt": "2024-01-01"}]}]',
        '[{"author": {"is": {"createdAt": {"not": 5}}}}]',
    ):
        with pytest.raises(ConditionParseError):
            check_date_values(parse_condition_list(raw), dates)
