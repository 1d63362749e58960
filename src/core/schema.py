"""SQLite schema management (code-first approach).

Owner and category references are plain integer columns without declared
foreign keys: deleting a user or a category leaves dependent rows in place.
"""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


TABLE_SCHEMAS: dict[str, str] = {
    "users": """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password TEXT NOT NULL,
        avatar TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    "categories": """CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        user_id INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        description TEXT,
        completed INTEGER NOT NULL DEFAULT 0,
        due_date TEXT,
        category_id INTEGER,
        priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('high', 'medium', 'low')),
        tags TEXT NOT NULL DEFAULT '[]',
        recurrence TEXT CHECK (recurrence IS NULL OR recurrence IN ('Daily', 'Weekly', 'Monthly')),
        document TEXT NOT NULL DEFAULT '',
        user_id INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
    "notifications": """CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        user_id INTEGER NOT NULL,
        task_id INTEGER NOT NULL,
        notify_at TEXT NOT NULL,
        sent INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )""",
}

INDEXES: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_categories_user ON categories (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_title ON tasks (user_id, title)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_task ON notifications (task_id, sent)",
]

COLLECTIONS = list(TABLE_SCHEMAS)


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist yet."""
    conn = await db_client.get_connection(db_path=db_path)

    for table_name, ddl in TABLE_SCHEMAS.items():
        await conn.execute(ddl)
        logger.debug("Ensured table", extra={"table": table_name})

    for index_ddl in INDEXES:
        await conn.execute(index_ddl)

    await conn.commit()
    logger.info("Database schema initialized", extra={"tables": COLLECTIONS})
