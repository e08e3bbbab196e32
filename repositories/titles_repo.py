"""Repository for per-source title and alternate-name persistence."""

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from crawlers.records import NOT_AVAILABLE, TitleRecord
from database import all_rows, get, run

LOGGER = logging.getLogger(__name__)
LOG_SOURCE = "db"


class PersistenceAnomaly(Exception):
    """The title upsert went through but its row could not be read back."""

    def __init__(self, title):
        self.title = title
        super().__init__(f"could not retrieve id for title: {title}")


@dataclass(frozen=True)
class SearchableTitle:
    """Read-only, search-ready projection of a stored title."""

    id: int
    title: str
    url: str
    author: Optional[str] = None
    updated: Optional[str] = None
    cover_image_url: Optional[str] = None
    genres: Tuple[str, ...] = ()
    searchable_names: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def alternatives(self) -> List[str]:
        return [name for name in self.searchable_names if name != self.title]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "author": self.author,
            "updated": self.updated,
            "cover_image_url": self.cover_image_url,
            "genres": list(self.genres),
            "searchable_names": list(self.searchable_names),
        }


def parse_genres(raw) -> List[str]:
    """Decode the JSON genre column; anything malformed reads as no genres."""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(parsed, list):
        return []
    return [genre for genre in parsed if isinstance(genre, str) and genre]


def _resolve_title_id(conn, title) -> int:
    row = get(conn, "SELECT id FROM titles WHERE title = ?", (title,))
    if row is None:
        raise PersistenceAnomaly(title)
    return row["id"]


def upsert_title(conn, record: TitleRecord, *, db_name: str = "") -> Optional[int]:
    """
    Insert a title or refresh its mutable columns, then attach alternates.

    The title is the conflict key: on conflict only url, author, updated,
    cover_image_url and genres are overwritten. Each alternate is inserted on
    its own and silently skipped if another title already owns it.

    Returns the row id, or None if the row could not be read back; in that
    case the alternates are skipped and the anomaly is logged, not raised.
    """
    genres_json = json.dumps(list(record.genres or []), ensure_ascii=False)
    cover_image_url = record.cover_image_url or NOT_AVAILABLE

    run(
        conn,
        """
        INSERT INTO titles (title, url, author, updated, cover_image_url, genres)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(title) DO UPDATE SET
            url = excluded.url,
            author = excluded.author,
            updated = excluded.updated,
            cover_image_url = excluded.cover_image_url,
            genres = excluded.genres
        """,
        (record.title, record.url, record.author, record.updated, cover_image_url, genres_json),
    )

    try:
        title_id = _resolve_title_id(conn, record.title)
    except PersistenceAnomaly as exc:
        LOGGER.error("%s", exc, extra={"source": LOG_SOURCE})
        return None

    for alt_title in record.alternatives or []:
        if not alt_title:
            continue
        run(
            conn,
            """
            INSERT INTO alternatives (alt_title, title_id)
            VALUES (?, ?)
            ON CONFLICT(alt_title) DO NOTHING
            """,
            (alt_title, title_id),
        )

    record.id = title_id
    LOGGER.info(
        "Saved/Updated: %s (ID: %s)%s",
        record.title,
        title_id,
        f" in {db_name}" if db_name else "",
        extra={"source": "parsing"},
    )
    return title_id


def get_alternatives(conn, title_id) -> List[str]:
    rows = all_rows(conn, "SELECT alt_title FROM alternatives WHERE title_id = ? ORDER BY id", (title_id,))
    return [row["alt_title"] for row in rows]


def get_all_titles_for_search(conn) -> List[SearchableTitle]:
    """Full read of titles and alternates, denormalized for the search cache."""
    if conn is None:
        return []

    titles = all_rows(conn, "SELECT id, title, url, author, updated, cover_image_url, genres FROM titles ORDER BY id")
    alternatives = all_rows(conn, "SELECT alt_title, title_id FROM alternatives ORDER BY id")

    alternatives_by_title = defaultdict(list)
    for row in alternatives:
        alternatives_by_title[row["title_id"]].append(row["alt_title"])

    results = []
    for row in titles:
        names = [row["title"], *alternatives_by_title.get(row["id"], [])]
        results.append(
            SearchableTitle(
                id=row["id"],
                title=row["title"],
                url=row["url"],
                author=row["author"],
                updated=row["updated"],
                cover_image_url=row["cover_image_url"],
                genres=tuple(parse_genres(row["genres"])),
                searchable_names=tuple(name for name in names if name),
            )
        )
    return results


def list_genres(conn) -> List[str]:
    rows = all_rows(conn, "SELECT genres FROM titles WHERE genres IS NOT NULL AND genres != '[]'")
    genres = set()
    for row in rows:
        genres.update(parse_genres(row["genres"]))
    return sorted(genres)


def genre_stats(conn) -> Dict[str, Any]:
    total = get(conn, "SELECT COUNT(*) AS count FROM titles")
    with_genres = get(conn, "SELECT COUNT(*) AS count FROM titles WHERE genres IS NOT NULL AND genres != '[]'")
    samples = all_rows(conn, "SELECT title, genres FROM titles ORDER BY id LIMIT 5")
    return {
        "total_titles": total["count"] if total else 0,
        "titles_with_genres": with_genres["count"] if with_genres else 0,
        "samples": [{"title": row["title"], "genres": parse_genres(row["genres"])} for row in samples],
    }


def get_covers_by_title(conn, titles) -> Dict[str, str]:
    """Stored cover URLs for the given titles, skipping rows without a usable cover."""
    titles = [title for title in dict.fromkeys(titles or []) if title]
    if not titles:
        return {}
    placeholders = ", ".join("?" for _ in titles)
    rows = all_rows(conn, f"SELECT title, cover_image_url FROM titles WHERE title IN ({placeholders})", titles)
    return {
        row["title"]: row["cover_image_url"]
        for row in rows
        if row["cover_image_url"] and row["cover_image_url"] != NOT_AVAILABLE
    }


class TitleStore:
    """One source's storage handle, as used by the batch pipeline."""

    def __init__(self, conn, source_name: str, db_name: str = ""):
        self.conn = conn
        self.source_name = source_name
        self.db_name = db_name

    def upsert_title(self, record: TitleRecord) -> Optional[int]:
        return upsert_title(self.conn, record, db_name=self.db_name)

    def get_all_titles_for_search(self) -> List[SearchableTitle]:
        return get_all_titles_for_search(self.conn)

    def close(self):
        self.conn.close()
