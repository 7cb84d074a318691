"""
SQLite-backed article and mutation store.

Articles are the work list: one row per (protein, PMID) with a success
flag. Articles enqueued without a protein share a single unnamed scope, so
the same PMID can be queued once per protein and once unscoped. Mutations
hang off article rows, unique per (article, name).

All writes made by the batch orchestrator happen inside transaction(),
which issues explicit BEGIN IMMEDIATE / COMMIT / ROLLBACK statements so
that each article is committed durably before the next one starts.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
import sqlite3
from typing import Any, Iterable, Iterator

from ..core.errors import PersistenceFailure
from ..core.types import ArticleStatus


SCHEMA = """
CREATE TABLE IF NOT EXISTS proteins (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS articles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    protein_id INTEGER REFERENCES proteins (id) ON DELETE CASCADE,
    pmid TEXT NOT NULL,
    success INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_articles_protein_pmid
    ON articles (IFNULL(protein_id, 0), pmid);
CREATE INDEX IF NOT EXISTS idx_articles_pmid ON articles (pmid);
CREATE INDEX IF NOT EXISTS idx_articles_success ON articles (success);
CREATE TABLE IF NOT EXISTS mutations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    article_id INTEGER NOT NULL REFERENCES articles (id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (article_id, name)
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MutationStore:
    """Persistence gateway for article status and mutation mentions.

    Usable as a context manager; open() creates the schema on first use.
    """

    def __init__(self, path: Path | str):
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._in_transaction = False

    @property
    def path(self) -> str:
        return self._path

    def open(self) -> None:
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path, timeout=30.0, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(SCHEMA)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "MutationStore":
        self.open()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceFailure("Store is not open", {"path": self._path})
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the block in one transaction, rolling back on any exception.

        A nested call joins the enclosing transaction.
        """
        if self._in_transaction:
            yield
            return
        self._execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield
            self._execute("COMMIT")
        except BaseException:
            # sqlite may already have rolled back on its own after some errors.
            if self.conn.in_transaction:
                self.conn.execute("ROLLBACK")
            raise
        finally:
            self._in_transaction = False

    def _execute(self, sql: str, params: tuple | dict | None = None) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params or ())
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"{type(exc).__name__}: {exc}", {"sql": sql.split()[0]}) from exc

    def _protein_id(self, name: str, create: bool = False) -> int | None:
        row = self._execute("SELECT id FROM proteins WHERE name = ?", (name,)).fetchone()
        if row is not None:
            return int(row["id"])
        if not create:
            return None
        cursor = self._execute(
            "INSERT INTO proteins (name, created_at) VALUES (?, ?)", (name, _now())
        )
        return int(cursor.lastrowid)

    @staticmethod
    def _scope(identifier: str, protein: str | None) -> tuple[str, tuple]:
        # Without a protein every row of the PMID is addressed.
        if protein is None:
            return "a.pmid = ?", (str(identifier),)
        return (
            "a.pmid = ? AND a.protein_id = (SELECT id FROM proteins WHERE name = ?)",
            (str(identifier), protein),
        )

    def _article_ids(self, identifier: str, protein: str | None = None) -> list[int]:
        clause, params = self._scope(identifier, protein)
        rows = self._execute(
            f"SELECT a.id FROM articles a WHERE {clause} ORDER BY a.id", params
        ).fetchall()
        if not rows:
            details = {"pmid": str(identifier)}
            if protein is not None:
                details["protein"] = protein
            raise PersistenceFailure(f"Unknown article {identifier}", details)
        return [int(row["id"]) for row in rows]

    def add_articles(self, identifiers: Iterable[str], protein: str | None = None) -> int:
        """Register identifiers as pending work; known ones are left untouched.

        Args:
            identifiers: PMIDs to enqueue
            protein: Name the articles are collected under, created on first use

        Returns:
            Number of newly inserted articles
        """
        now = _now()
        pmids = [str(pmid).strip() for pmid in identifiers if str(pmid).strip()]
        with self.transaction():
            protein_id = self._protein_id(protein, create=True) if protein else None
            before = self.conn.total_changes
            for pmid in pmids:
                self._execute(
                    "INSERT OR IGNORE INTO articles (protein_id, pmid, success, created_at, updated_at) "
                    "VALUES (?, ?, 0, ?, ?)",
                    (protein_id, pmid, now, now),
                )
            return self.conn.total_changes - before

    def pending_identifiers(self, limit: int | None = None, protein: str | None = None) -> list[str]:
        """Return distinct pending PMIDs in enqueue order, optionally for one protein."""
        sql = "SELECT a.pmid FROM articles a"
        params: tuple = ()
        if protein is not None:
            sql += " JOIN proteins p ON p.id = a.protein_id AND p.name = ?"
            params += (protein,)
        sql += " WHERE a.success = ? GROUP BY a.pmid ORDER BY MIN(a.id)"
        params += (ArticleStatus.PENDING.value,)
        if limit is not None:
            sql += " LIMIT ?"
            params += (int(limit),)
        return [row["pmid"] for row in self._execute(sql, params).fetchall()]

    def article_status(self, identifier: str, protein: str | None = None) -> ArticleStatus | None:
        """Return the article's status, PENDING if any of its rows is pending."""
        clause, params = self._scope(identifier, protein)
        row = self._execute(
            f"SELECT MIN(a.success) AS success FROM articles a WHERE {clause}", params
        ).fetchone()
        if row is None or row["success"] is None:
            return None
        return ArticleStatus(int(row["success"]))

    def update_article_status(
        self, identifier: str, status: ArticleStatus, protein: str | None = None
    ) -> None:
        """Set the status flag; raises PersistenceFailure for unknown articles."""
        ids = self._article_ids(identifier, protein)
        marks = ", ".join("?" for _ in ids)
        self._execute(
            f"UPDATE articles SET success = ?, updated_at = ? WHERE id IN ({marks})",
            (status.value, _now(), *ids),
        )

    def insert_mentions(
        self, identifier: str, tokens: Iterable[str], protein: str | None = None
    ) -> int:
        """Store tokens for an article, ignoring ones already stored.

        Returns:
            Number of new mention rows
        """
        names = sorted(set(tokens))
        if not names:
            return 0
        now = _now()
        inserted = 0
        for article_id in self._article_ids(identifier, protein):
            for name in names:
                cursor = self._execute(
                    "INSERT OR IGNORE INTO mutations (article_id, name, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?)",
                    (article_id, name, now, now),
                )
                inserted += cursor.rowcount
        return inserted

    def mentions_for(self, identifier: str, protein: str | None = None) -> list[str]:
        clause, params = self._scope(identifier, protein)
        rows = self._execute(
            "SELECT DISTINCT m.name FROM mutations m JOIN articles a ON a.id = m.article_id "
            f"WHERE {clause} ORDER BY m.name",
            params,
        ).fetchall()
        return [row["name"] for row in rows]

    def mention_counts(
        self, limit: int | None = None, protein: str | None = None
    ) -> list[tuple[str, int]]:
        """Return (token, number of articles) pairs, most frequent first."""
        sql = (
            "SELECT m.name AS name, COUNT(DISTINCT a.pmid) AS n "
            "FROM mutations m JOIN articles a ON a.id = m.article_id"
        )
        params: tuple = ()
        if protein is not None:
            sql += " JOIN proteins p ON p.id = a.protein_id AND p.name = ?"
            params += (protein,)
        sql += " GROUP BY m.name ORDER BY n DESC, m.name"
        if limit is not None:
            sql += " LIMIT ?"
            params += (int(limit),)
        return [(row["name"], int(row["n"])) for row in self._execute(sql, params).fetchall()]

    def protein_summary(self) -> list[tuple[str, int, int]]:
        """Return (protein, articles, pending articles) for every protein."""
        rows = self._execute(
            "SELECT p.name AS name, COUNT(a.id) AS total, "
            "COALESCE(SUM(a.success = 0), 0) AS pending "
            "FROM proteins p LEFT JOIN articles a ON a.protein_id = p.id "
            "GROUP BY p.id ORDER BY p.name"
        ).fetchall()
        return [(row["name"], int(row["total"]), int(row["pending"])) for row in rows]
