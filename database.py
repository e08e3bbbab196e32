# database.py

import logging
import sqlite3

from flask import g

import config

LOGGER = logging.getLogger(__name__)

SOURCE_DB_PATHS = {
    "shojo": lambda: config.SHOJO_DB_PATH,
    "toongod": lambda: config.TOONGOD_DB_PATH,
    "manga": lambda: config.MANGA_DB_PATH,
}

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS titles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT UNIQUE NOT NULL,
        url TEXT UNIQUE NOT NULL,
        author TEXT,
        updated TEXT,
        cover_image_url TEXT,
        genres TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alternatives (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        alt_title TEXT UNIQUE NOT NULL,
        title_id INTEGER NOT NULL,
        FOREIGN KEY (title_id) REFERENCES titles (id)
    )
    """,
)


def db_path_for(source):
    """Return the configured SQLite path for a source name."""
    key = getattr(source, "value", source)
    try:
        return SOURCE_DB_PATHS[key]()
    except KeyError:
        raise ValueError(f"unknown source: {source!r}") from None


def connect(path):
    """Open a SQLite connection with row access by column name.

    WAL journaling lets readers on other connections see the last committed
    state while a writer is mid-transaction.
    """
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if path != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_schema(conn):
    for statement in SCHEMA_STATEMENTS:
        conn.execute(statement)
    conn.commit()


def open_and_init_db(path):
    """Open a source database and create its schema if needed."""
    conn = connect(path)
    init_schema(conn)
    LOGGER.info("Database '%s' connected and schema initialized.", path, extra={"source": "db"})
    return conn


def setup_database_standalone():
    """Initialize every source database; failures here are fatal to startup."""
    for source in SOURCE_DB_PATHS:
        path = db_path_for(source)
        try:
            conn = open_and_init_db(path)
        except sqlite3.Error:
            LOGGER.exception("Error initializing database '%s'", path, extra={"source": "db"})
            raise
        conn.close()


def run(conn, sql, params=()):
    """Execute a write statement and commit it."""
    cursor = conn.execute(sql, params)
    conn.commit()
    return cursor


def get(conn, sql, params=()):
    """Return the first row of a query or None."""
    return conn.execute(sql, params).fetchone()


def all_rows(conn, sql, params=()):
    return conn.execute(sql, params).fetchall()


def get_db(source):
    """Return the request-scoped connection for a source, opening it once."""
    key = getattr(source, "value", source)
    connections = g.setdefault("source_dbs", {})
    if key not in connections:
        connections[key] = open_and_init_db(db_path_for(key))
    return connections[key]


def close_db(exception=None):
    """Close every source connection opened during the request."""
    connections = g.pop("source_dbs", None) or {}
    for conn in connections.values():
        conn.close()
