import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from crawlers.records import TitleRecord
import database
from database import connect, open_and_init_db
from repositories import titles_repo
from repositories.titles_repo import (
    PersistenceAnomaly,
    TitleStore,
    genre_stats,
    get_all_titles_for_search,
    get_covers_by_title,
    get_alternatives,
    list_genres,
    parse_genres,
    upsert_title,
)


@pytest.fixture
def conn(tmp_path):
    connection = open_and_init_db(str(tmp_path / "manga.db"))
    yield connection
    connection.close()


def _record(title="Ocean King", **overrides):
    values = {
        "url": f"https://www.mangakakalot.gg/manga/{title.lower().replace(' ', '-')}",
        "author": "Jane Doe",
        "updated": "2024-05-01",
        "cover_image_url": "https://img.mangakakalot.gg/ocean.jpg",
        "genres": ["Action", "Fantasy"],
        "alternatives": ["Sea Monarch"],
    }
    values.update(overrides)
    return TitleRecord(title=title, **values)


def test_upsert_twice_keeps_one_row_and_latest_fields(conn):
    first_id = upsert_title(conn, _record())
    second_id = upsert_title(conn, _record(author="J. Doe", genres=["Action"]))

    rows = conn.execute("SELECT * FROM titles").fetchall()
    assert first_id == second_id
    assert len(rows) == 1
    assert rows[0]["author"] == "J. Doe"
    assert parse_genres(rows[0]["genres"]) == ["Action"]
    assert get_alternatives(conn, first_id) == ["Sea Monarch"]


def test_upsert_sets_record_id(conn):
    record = _record()

    title_id = upsert_title(conn, record)

    assert record.id == title_id


def test_alternate_name_belongs_to_first_owner(conn):
    owner_id = upsert_title(conn, _record("Ocean King", alternatives=["Shared Name"]))
    other_id = upsert_title(conn, _record("Night Garden", alternatives=["Shared Name", "Garden at Night"]))

    assert get_alternatives(conn, owner_id) == ["Shared Name"]
    assert get_alternatives(conn, other_id) == ["Garden at Night"]


def test_search_projection_includes_title_and_alternates(conn):
    upsert_title(conn, _record("Ocean King", alternatives=["Sea Monarch", "바다의 왕"]))
    upsert_title(conn, _record("Night Garden", alternatives=[], genres=[]))

    items = get_all_titles_for_search(conn)

    assert [item.title for item in items] == ["Ocean King", "Night Garden"]
    assert items[0].searchable_names == ("Ocean King", "Sea Monarch", "바다의 왕")
    assert items[0].alternatives == ["Sea Monarch", "바다의 왕"]
    assert items[0].genres == ("Action", "Fantasy")
    assert items[1].searchable_names == ("Night Garden",)
    assert items[1].genres == ()


def test_unreadable_row_skips_alternates(conn, monkeypatch):
    def missing(_conn, title):
        raise PersistenceAnomaly(title)

    monkeypatch.setattr(titles_repo, "_resolve_title_id", missing)

    assert upsert_title(conn, _record()) is None
    assert conn.execute("SELECT COUNT(*) FROM alternatives").fetchone()[0] == 0


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, []),
        ("", []),
        ("not json", []),
        ('{"genre": "Action"}', []),
        ('["Action", 3, "", "Drama"]', ["Action", "Drama"]),
    ],
)
def test_parse_genres_tolerates_malformed_values(raw, expected):
    assert parse_genres(raw) == expected


def test_malformed_genre_column_reads_as_empty(conn):
    upsert_title(conn, _record())
    conn.execute("UPDATE titles SET genres = 'Action, Drama'")
    conn.commit()

    items = get_all_titles_for_search(conn)

    assert items[0].genres == ()


def test_genre_listing_and_stats(conn):
    upsert_title(conn, _record("Ocean King", genres=["Fantasy", "Action"]))
    upsert_title(conn, _record("Night Garden", genres=["Drama", "Action"], alternatives=[]))
    upsert_title(conn, _record("Plain Title", genres=[], alternatives=[]))

    stats = genre_stats(conn)

    assert list_genres(conn) == ["Action", "Drama", "Fantasy"]
    assert stats["total_titles"] == 3
    assert stats["titles_with_genres"] == 2
    assert stats["samples"][0] == {"title": "Ocean King", "genres": ["Fantasy", "Action"]}


def test_title_store_wraps_connection(conn):
    store = TitleStore(conn, "manga", db_name="manga.db")

    store.upsert_title(_record())

    assert [item.title for item in store.get_all_titles_for_search()] == ["Ocean King"]


def test_upsert_writes_through_shared_statement_helper(conn, tmp_path, monkeypatch):
    statements = []

    def recording_run(connection, sql, params=()):
        statements.append(" ".join(sql.split()))
        return database.run(connection, sql, params)

    monkeypatch.setattr(titles_repo, "run", recording_run)

    upsert_title(conn, _record(alternatives=["Sea Monarch", "King of Waves"]))

    assert len([sql for sql in statements if sql.startswith("INSERT INTO titles")]) == 1
    assert len([sql for sql in statements if sql.startswith("INSERT INTO alternatives")]) == 2
    other = connect(str(tmp_path / "manga.db"))
    try:
        assert other.execute("SELECT COUNT(*) FROM alternatives").fetchone()[0] == 2
        assert other.execute("SELECT title FROM titles").fetchone()[0] == "Ocean King"
    finally:
        other.close()


def test_covers_by_title_skip_missing_covers(conn):
    upsert_title(conn, _record("Ocean King"))
    upsert_title(conn, _record("Deep Ocean", cover_image_url=None, alternatives=[]))

    covers = get_covers_by_title(conn, ["Ocean King", "Deep Ocean", "Unstored", "", "Ocean King"])

    assert covers == {"Ocean King": "https://img.mangakakalot.gg/ocean.jpg"}
    assert get_covers_by_title(conn, []) == {}
