from __future__ import annotations

import pytest
from psycopg import sql

from resource_store.query.conditions import (
    SelectQuery,
    and_in,
    and_like,
    and_range,
    and_where,
    filter_by_exact_match,
    is_filled,
    or_in,
    or_like,
    or_where,
)
from tests.fakes import render


def _where_of(query: SelectQuery) -> str:
    statement, _ = query.build()
    text = render(statement)
    return text.split(" WHERE ", 1)[1] if " WHERE " in text else ""


@pytest.mark.parametrize("value", [0, False, "0", "x", [], 0.0])
def test_is_filled_accepts_falsy_values_other_than_none_and_empty_string(value) -> None:
    assert is_filled(value)


@pytest.mark.parametrize("value", [None, ""])
def test_is_filled_rejects_none_and_empty_string(value) -> None:
    assert not is_filled(value)


def test_build_renders_columns_table_order_and_pagination() -> None:
    query = SelectQuery("brand", ["id", "name"])
    and_where(query, {"status": 1})
    query.order_by("name", "desc").paginate(limit=10, offset=20)

    statement, params = query.build()

    assert render(statement) == (
        'SELECT "id", "name" FROM "brand" WHERE "status" = %s '
        'ORDER BY "name" DESC LIMIT %s OFFSET %s'
    )
    assert params == [1, 10, 20]


def test_build_without_columns_or_predicates_selects_everything() -> None:
    statement, params = SelectQuery("brand").build()

    assert render(statement) == 'SELECT * FROM "brand"'
    assert params == []


def test_dotted_column_names_are_qualified() -> None:
    query = and_where(SelectQuery("brand", ["b.id"]), {"b.status": 1})

    statement, _ = query.build()

    assert '"b"."status" = %s' in render(statement)
    assert 'SELECT "b"."id"' in render(statement)


def test_build_count_ignores_order_and_pagination() -> None:
    query = and_where(SelectQuery("brand", ["id"]), {"status": 1})
    query.order_by("id").paginate(limit=5, offset=5)

    statement, params = query.build_count()

    assert render(statement) == 'SELECT COUNT(*) FROM "brand" WHERE "status" = %s'
    assert params == [1]


def test_build_exists_wraps_the_filtered_select() -> None:
    query = and_where(SelectQuery("brand"), {"name": "Acme"})

    statement, params = query.build_exists()

    assert render(statement) == 'SELECT EXISTS (SELECT 1 FROM "brand" WHERE "name" = %s)'
    assert params == ["Acme"]


def test_clone_is_independent_of_the_original() -> None:
    query = and_where(SelectQuery("brand"), {"id": 1})
    copy = query.clone()
    and_where(copy, {"status": 2})

    assert query.predicate_count == 1
    assert copy.predicate_count == 2
    assert query.params == [1]


def test_filter_by_exact_match_drops_keys_outside_the_whitelist() -> None:
    query = SelectQuery("brand")
    filter_by_exact_match(query, {"status": 1, "x; DROP TABLE brand": 1}, ["id", "status"])

    assert _where_of(query) == '"status" = %s'
    assert query.params == [1]


def test_filter_by_exact_match_keeps_zero_and_skips_unfilled() -> None:
    query = SelectQuery("brand")
    filter_by_exact_match(query, {"status": 0, "id": None, "name": ""}, ["id", "status", "name"])

    assert _where_of(query) == '"status" = %s'
    assert query.params == [0]


def test_filter_by_exact_match_with_nothing_allowed_adds_nothing() -> None:
    query = filter_by_exact_match(SelectQuery("brand"), {"status": 1}, [])

    assert query.predicate_count == 0


def test_and_where_adds_one_clause_per_filled_condition() -> None:
    query = and_where(SelectQuery("brand"), {"status": 1, "name": "Acme", "id": None})

    assert _where_of(query) == '"status" = %s AND "name" = %s'
    assert query.params == [1, "Acme"]


def test_or_where_groups_conditions_into_one_clause() -> None:
    query = and_where(SelectQuery("brand"), {"status": 1})
    or_where(query, {"name": "Acme", "id": 7})

    assert _where_of(query) == '"status" = %s AND ("name" = %s OR "id" = %s)'
    assert query.params == [1, "Acme", 7]


def test_or_where_with_only_unfilled_values_adds_nothing() -> None:
    query = or_where(SelectQuery("brand"), {"name": "", "id": None})

    assert query.predicate_count == 0
    assert query.params == []


def test_and_like_wraps_value_in_wildcards() -> None:
    query = and_like(SelectQuery("brand"), "ilike", {"name": "ac"})

    assert _where_of(query) == '"name" ILIKE %s'
    assert query.params == ["%ac%"]


def test_and_like_escapes_wildcards_in_the_value() -> None:
    query = and_like(SelectQuery("brand"), "LIKE", {"name": "50%_off\\"})

    assert query.params == ["%50\\%\\_off\\\\%"]


def test_and_like_rejects_unknown_operators() -> None:
    with pytest.raises(ValueError):
        and_like(SelectQuery("brand"), "= ANY", {"name": "ac"})


def test_or_like_groups_columns() -> None:
    query = or_like(SelectQuery("brand"), "ILIKE", {"name": "ac", "code": "x", "note": ""})

    assert _where_of(query) == '("name" ILIKE %s OR "code" ILIKE %s)'
    assert query.params == ["%ac%", "%x%"]


def test_and_in_binds_the_whole_list_and_skips_empty_lists() -> None:
    query = and_in(SelectQuery("brand"), {"status": [1, 2], "id": []})

    assert _where_of(query) == '"status" = ANY(%s)'
    assert query.params == [[1, 2]]


def test_and_in_ignores_scalar_values() -> None:
    query = and_in(SelectQuery("brand"), {"status": 1, "name": "Acme"})

    assert query.predicate_count == 0


def test_or_in_groups_membership_tests() -> None:
    query = or_in(SelectQuery("brand"), {"status": [1], "id": (3, 4)})

    assert _where_of(query) == '("status" = ANY(%s) OR "id" = ANY(%s))'
    assert query.params == [[1], [3, 4]]


def test_and_range_applies_each_bound_independently() -> None:
    query = and_range(
        SelectQuery("brand"),
        {"id": {"min": 10, "max": 20}, "lock_version": {"min": 2}, "status": {"max": 0}},
    )

    assert _where_of(query) == '"id" >= %s AND "id" <= %s AND "lock_version" >= %s AND "status" <= %s'
    assert query.params == [10, 20, 2, 0]


def test_and_range_ignores_non_mapping_and_unfilled_bounds() -> None:
    query = and_range(SelectQuery("brand"), {"id": 5, "status": {"min": None, "max": ""}})

    assert query.predicate_count == 0


def test_raw_where_keeps_params_aligned() -> None:
    query = SelectQuery("brand").where(sql.SQL("{} IS NOT NULL").format(sql.Identifier("sync_flag")))
    and_where(query, {"status": 1})

    assert _where_of(query) == '"sync_flag" IS NOT NULL AND "status" = %s'
    assert query.params == [1]
