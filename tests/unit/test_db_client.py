"""Tests for the SQLite client: filter language, sorting and CRUD."""

from datetime import UTC, datetime

import pytest

from src.core import db_client


@pytest.mark.unit
class TestParseFilter:
    def test_empty_filter(self):
        assert db_client.parse_filter("") == ("", [])

    def test_and_of_comparisons(self):
        clause, params = db_client.parse_filter('user_id = "7" && completed = false')

        assert clause == "user_id = ? AND completed = ?"
        assert params == ["7", 0]

    def test_or_group(self):
        clause, params = db_client.parse_filter('user_id = "7" && (id = "1" || id = "2")')

        assert clause == "user_id = ? AND (id = ? OR id = ?)"
        assert params == ["7", "1", "2"]

    def test_null_comparisons(self):
        assert db_client.parse_filter("due_date != null") == ("due_date IS NOT NULL", [])
        assert db_client.parse_filter("due_date = null") == ("due_date IS NULL", [])

    def test_contains_escapes_wildcards(self):
        clause, params = db_client.parse_filter('title ~ "50%_done"')

        assert clause == "casefold(title) LIKE ? ESCAPE '\\'"
        assert params == ["%50\\%\\_done%"]

    def test_contains_folds_the_search_value(self):
        _, params = db_client.parse_filter('title ~ "RÉSUMÉ"')

        assert params == ["%résumé%"]

    def test_separators_inside_quotes_are_values(self):
        clause, params = db_client.parse_filter('title = "a && b || c"')

        assert clause == "title = ?"
        assert params == ["a && b || c"]

    def test_sanitized_quotes_stay_inside_value(self):
        value = 'x" || user_id != "'
        clause, params = db_client.parse_filter(f'title = "{db_client.sanitize_param(value)}"')

        assert clause == "title = ?"
        assert params == [value]

    @pytest.mark.parametrize("bad", ["title", 'title = "unterminated', "(a = 1", "title <> 3"])
    def test_invalid_syntax_raises(self, bad):
        with pytest.raises(ValueError, match="Invalid filter"):
            db_client.parse_filter(bad)


@pytest.mark.unit
class TestParseSort:
    def test_prefixes(self):
        assert db_client.parse_sort("-created_at") == "created_at DESC, id DESC"
        assert db_client.parse_sort("+due_date") == "due_date ASC, id ASC"

    def test_invalid_terms_are_dropped(self):
        assert db_client.parse_sort("title; DROP TABLE tasks") == "id ASC"

    def test_explicit_id_is_not_duplicated(self):
        assert db_client.parse_sort("-id") == "id DESC"


@pytest.mark.unit
def test_format_timestamp_is_utc_with_microseconds():
    value = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    assert db_client.format_timestamp(value) == "2024-03-01T12:00:00.000000+00:00"
    assert db_client.format_timestamp(value.replace(tzinfo=None)) == "2024-03-01T12:00:00.000000+00:00"


@pytest.mark.unit
class TestCrud:
    async def test_create_and_get(self, test_db):
        record = await db_client.create_record(
            collection="categories", data={"name": "Work", "user_id": "1"}
        )

        fetched = await db_client.get_record(collection="categories", record_id=record["id"])

        assert fetched["name"] == "Work"
        assert fetched["user_id"] == "1"
        assert isinstance(fetched["id"], str)
        assert fetched["created_at"] == fetched["updated_at"]

    async def test_get_missing_raises(self, test_db):
        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.get_record(collection="categories", record_id="999")

    async def test_non_numeric_id_is_not_found(self, test_db):
        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.get_record(collection="categories", record_id="abc")

    async def test_update_touches_updated_at(self, test_db):
        record = await db_client.create_record(collection="categories", data={"name": "Work", "user_id": "1"})

        updated = await db_client.update_record(
            collection="categories", record_id=record["id"], data={"name": "Home"}
        )

        assert updated["name"] == "Home"
        assert updated["updated_at"] >= record["updated_at"]
        assert updated["created_at"] == record["created_at"]

    async def test_update_records_counts_matches(self, test_db):
        for name in ("a", "b", "c"):
            await db_client.create_record(collection="categories", data={"name": name, "user_id": "1"})
        await db_client.create_record(collection="categories", data={"name": "d", "user_id": "2"})

        changed = await db_client.update_records(
            collection="categories", filter_query='user_id = "1"', data={"name": "x"}
        )

        assert changed == 3

    async def test_delete_records_and_count(self, test_db):
        first = await db_client.create_record(collection="categories", data={"name": "a", "user_id": "1"})
        await db_client.create_record(collection="categories", data={"name": "b", "user_id": "1"})

        deleted = await db_client.delete_records(collection="categories", filter_query=f'id = "{first["id"]}"')

        assert deleted == 1
        assert await db_client.count_records(collection="categories") == 1

    async def test_delete_missing_raises(self, test_db):
        with pytest.raises(db_client.RecordNotFoundError):
            await db_client.delete_record(collection="categories", record_id="999")

    async def test_list_records_pages_and_sorts(self, test_db):
        for name in ("c", "a", "b"):
            await db_client.create_record(collection="categories", data={"name": name, "user_id": "1"})

        first_page = await db_client.list_records(collection="categories", per_page=2, sort="+name")
        second_page = await db_client.list_records(collection="categories", page=2, per_page=2, sort="+name")

        assert [r["name"] for r in first_page] == ["a", "b"]
        assert [r["name"] for r in second_page] == ["c"]

    async def test_get_first_record(self, test_db):
        await db_client.create_record(collection="categories", data={"name": "Work", "user_id": "1"})

        assert await db_client.get_first_record(collection="categories", filter_query='name = "Work"')
        assert await db_client.get_first_record(collection="categories", filter_query='name = "Nope"') is None

    async def test_invalid_collection_name(self, test_db):
        with pytest.raises(ValueError, match="Invalid collection name"):
            await db_client.count_records(collection="tasks; DROP TABLE users")

    async def test_contains_ignores_case_beyond_ascii(self, test_db):
        await db_client.create_record(collection="categories", data={"name": "Straße Café", "user_id": "1"})

        assert await db_client.count_records(collection="categories", filter_query='name ~ "STRASSE CAFÉ"') == 1
        assert await db_client.count_records(collection="categories", filter_query='name ~ "café"') == 1
