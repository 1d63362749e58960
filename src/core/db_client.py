"""SQLite database client wrapper with CRUD operations.

Records are plain dicts. Every table carries ``created_at`` / ``updated_at``
columns which are maintained here. Filters use a small expression language:

    user_id = "12" && completed = false && (priority = "high" || priority = "low")

Quoted values are always strings, bare ``true`` / ``false`` / ``null`` and
numbers are literals. ``~`` is a case-insensitive substring match.
"""

import asyncio
import json
import logging
import re
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when a database operation fails."""


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist."""


_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_COMPARISON_RE = re.compile(
    r"""^(\w+)\s*(>=|<=|!=|=|>|<|~)\s*(?:"((?:[^"\\]|\\.)*)"|'((?:[^'\\]|\\.)*)'|([\w.+-]+))$""",
    re.DOTALL,
)
_SORT_TERM_RE = re.compile(r"^([+-]?)([A-Za-z_][A-Za-z0-9_]*)(?:\s+(ASC|DESC))?$", re.IGNORECASE)

_SQL_OPERATORS = {
    "=": "=",
    "!=": "!=",
    ">": ">",
    "<": "<",
    ">=": ">=",
    "<=": "<=",
    "~": "LIKE",
}

SqlValue = str | int | float | None


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not _IDENTIFIER_RE.match(collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in a double-quoted filter value."""
    return json.dumps(str(value))[1:-1]


def format_timestamp(value: datetime) -> str:
    """Normalize a datetime to the UTC ISO-8601 form stored in the database.

    Naive datetimes are taken to be UTC. The fixed microsecond precision keeps
    stored timestamps lexicographically comparable.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _serialize_value(value: Any) -> SqlValue:  # noqa: ANN401
    """Convert a Python value into something SQLite can bind."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_literal(token: str) -> SqlValue:
    """Parse an unquoted literal (true/false/null/number)."""
    lowered = token.lower()
    if lowered == "true":
        return 1
    if lowered == "false":
        return 0
    if lowered == "null":
        return None
    try:
        return int(token)
    except ValueError:
        pass
    try:
        return float(token)
    except ValueError:
        msg = f"Invalid filter literal: {token}"
        raise ValueError(msg) from None


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards and wrap the value for a substring match."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _casefold(value: str | None) -> str | None:
    return value.casefold() if isinstance(value, str) else value


def _parse_single_comparison(comparison: str) -> tuple[str, list[SqlValue]]:
    """Parse a single comparison expression into a SQL condition and parameters."""
    match = _COMPARISON_RE.match(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field, op, double_quoted, single_quoted, literal = match.groups()
    sql_op = _SQL_OPERATORS[op]

    value: SqlValue
    if double_quoted is not None:
        value = json.loads(f'"{double_quoted}"')
    elif single_quoted is not None:
        value = single_quoted.replace("\\'", "'")
    else:
        value = _parse_literal(literal)

    if value is None:
        if op == "=":
            return f"{field} IS NULL", []
        if op == "!=":
            return f"{field} IS NOT NULL", []
        msg = f"Operator {op} cannot be used with null: {comparison}"
        raise ValueError(msg)

    if sql_op == "LIKE":
        return f"casefold({field}) LIKE ? ESCAPE '\\'", [_escape_like(str(value).casefold())]

    return f"{field} {sql_op} ?", [value]


def _split_top_level(expression: str, separator: str) -> list[str]:
    """Split an expression on a separator that is outside quotes and parentheses."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    i = 0

    while i < len(expression):
        char = expression[i]
        if quote:
            current.append(char)
            if char == "\\" and i + 1 < len(expression):
                current.append(expression[i + 1])
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
            current.append(char)
        elif char == "(":
            depth += 1
            current.append(char)
        elif char == ")":
            depth -= 1
            current.append(char)
        elif depth == 0 and expression.startswith(separator, i):
            parts.append("".join(current).strip())
            current = []
            i += len(separator)
            continue
        else:
            current.append(char)
        i += 1

    if quote is not None or depth != 0:
        msg = f"Invalid filter syntax: {expression}"
        raise ValueError(msg)

    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def _parse_or_group(or_group: str) -> tuple[str, list[SqlValue]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_conditions = []
    or_params: list[SqlValue] = []

    for part in _split_top_level(inner, "||"):
        cond, values = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.extend(values)

    return f"({' OR '.join(or_conditions)})", or_params


def parse_filter(filter_query: str) -> tuple[str, list[SqlValue]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    conditions = []
    params: list[SqlValue] = []

    for part in _split_top_level(filter_query, "&&"):
        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
        else:
            cond, cond_params = _parse_single_comparison(part)
        conditions.append(cond)
        params.extend(cond_params)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate ``-field`` / ``+field`` / ``field DESC`` terms into an ORDER BY clause.

    Invalid terms are dropped with a warning. ``id`` is appended as a tiebreaker
    so that pagination is stable.
    """
    terms = []
    has_id = False
    for raw_term in sort.split(","):
        term = raw_term.strip()
        if not term:
            continue
        match = _SORT_TERM_RE.match(term)
        if not match:
            logger.warning("Invalid sort parameter, ignoring", extra={"sort": term})
            continue
        prefix, field, direction = match.groups()
        if direction:
            direction = direction.upper()
        else:
            direction = "DESC" if prefix == "-" else "ASC"
        has_id = has_id or field == "id"
        terms.append(f"{field} {direction}")

    if not terms:
        return "id ASC"
    if not has_id:
        first_direction = terms[0].rsplit(" ", 1)[1]
        terms.append(f"id {first_direction}")
    return ", ".join(terms)


def _where(filter_query: str) -> tuple[str, list[SqlValue]]:
    where_clause, params = parse_filter(filter_query)
    return (f"WHERE {where_clause}" if where_clause else ""), params


def _rows_to_records(cursor: aiosqlite.Cursor, rows: Any) -> list[dict[str, Any]]:  # noqa: ANN401
    columns = [description[0] for description in cursor.description]
    return [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA journal_mode = WAL")
        # SQLite's own LIKE only folds ASCII letters
        await conn.create_function("casefold", 1, _casefold, deterministic=True)

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            conn = _db_connections.pop(cache_key, None)
            if conn is not None:
                await conn.close()
                logger.info("Closed SQLite connection", extra={"db_path": str(path)})
    except (aiosqlite.Error, RuntimeError) as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e)})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema  # noqa: PLC0415 - schema imports this module

    await schema.init_db(db_path=db_path)


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    now = datetime.now(UTC)
    payload = {"created_at": now, "updated_at": now, **data}

    try:
        conn = await get_connection()

        columns = list(payload.keys())
        for column in columns:
            _validate_collection_name(column)
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_serialize_value(payload[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        record_id = cursor.lastrowid
    except aiosqlite.Error as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id))


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        conn = await get_connection()
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _rows_to_records(cursor, [row])[0]


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    count = await update_records(collection=collection, filter_query=f'id = "{sanitize_param(record_id)}"', data=data)
    if count == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def update_records(*, collection: str, filter_query: str, data: dict[str, Any]) -> int:
    """Update every record matching the filter in one statement and return the affected count."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    payload = {"updated_at": datetime.now(UTC), **data}
    for column in payload:
        _validate_collection_name(column)

    where_clause, params = _where(filter_query)
    set_clause = ", ".join(f"{key} = ?" for key in payload)
    values = [_serialize_value(val) for val in payload.values()]

    try:
        conn = await get_connection()
        query = f"UPDATE {collection} SET {set_clause} {where_clause}"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, [*values, *params])
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("update_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to update records in {collection}: {e}"
        raise DatabaseError(msg) from e

    return cursor.rowcount


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    count = await delete_records(collection=collection, filter_query=f'id = "{sanitize_param(record_id)}"')
    if count == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


async def delete_records(*, collection: str, filter_query: str) -> int:
    """Delete every record matching the filter and return the deleted count."""
    _validate_collection_name(collection)
    where_clause, params = _where(filter_query)

    try:
        conn = await get_connection()
        query = f"DELETE FROM {collection} {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("delete_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to delete records from {collection}: {e}"
        raise DatabaseError(msg) from e

    return cursor.rowcount


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    _validate_collection_name(collection)
    where_clause, params = _where(filter_query)
    order_by = parse_sort(sort)
    offset = (max(page, 1) - 1) * per_page

    try:
        conn = await get_connection()
        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, [*params, per_page, offset])
        rows = await cursor.fetchall()
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e

    records = _rows_to_records(cursor, rows)
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def list_all_records(*, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
    """Fetch every matching record, paging through in chunks."""
    chunk_size = constants.ANALYTICS_CHUNK_SIZE
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        chunk = await list_records(
            collection=collection,
            page=page,
            per_page=chunk_size,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(chunk)
        if len(chunk) < chunk_size:
            return records
        page += 1


async def count_records(*, collection: str, filter_query: str = "") -> int:
    """Count records matching the filter."""
    _validate_collection_name(collection)
    where_clause, params = _where(filter_query)

    try:
        conn = await get_connection()
        query = f"SELECT COUNT(*) FROM {collection} {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        logger.error("count_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to count records in {collection}: {e}"
        raise DatabaseError(msg) from e

    return int(row[0]) if row else 0


async def get_first_record(*, collection: str, filter_query: str, sort: str = "") -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, per_page=1, filter_query=filter_query, sort=sort)
    return records[0] if records else None
