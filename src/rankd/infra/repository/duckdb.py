"""DuckDB-backed storage for ranked entries.

Reads go through Ibis expressions. Writes use the raw DuckDB connection so
that shifts, inserts and deletes can share one explicit transaction.
"""

import builtins
import contextlib
import logging
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import duckdb
import ibis
import pandas as pd
from ibis.expr.types import Table

from rankd.core.exceptions import (
    DuplicateEntryError,
    EntryNotFoundError,
    InvariantViolationError,
    PersistenceFailureError,
)
from rankd.core.types import MediaKind, RankedEntry, Tier
from rankd.features.ranking.invariants import rank_violations

logger = logging.getLogger(__name__)


def _to_db_timestamp(value: datetime) -> datetime:
    """Store timestamps as naive UTC."""
    return value.astimezone(UTC).replace(tzinfo=None)


def _from_db_timestamp(value: Any) -> datetime:
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class DuckDBRankingRepository:
    """DuckDB-backed ranking storage."""

    def __init__(self, conn: ibis.BaseBackend) -> None:
        if not hasattr(conn, "con"):
            msg = "DuckDBRankingRepository requires a raw DuckDB connection via the '.con' attribute."
            raise ValueError(msg)
        self.conn = conn
        self.table_name = "ranked_entries"

    @classmethod
    def connect(cls, db_path: Path | None = None) -> "DuckDBRankingRepository":
        """Open (or create) the database at ``db_path``; in-memory when ``None``."""
        if db_path is not None:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        database = str(db_path) if db_path is not None else ":memory:"
        repo = cls(ibis.duckdb.connect(database=database))
        repo.initialize()
        logger.debug("Ranking repository opened (db=%s)", database)
        return repo

    def initialize(self) -> None:
        """Creates the 'ranked_entries' table if it doesn't exist."""
        self.conn.con.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                id VARCHAR PRIMARY KEY,
                external_id VARCHAR NOT NULL,
                title VARCHAR NOT NULL,
                media_kind VARCHAR NOT NULL CHECK (media_kind IN ('movie', 'series')),
                tier VARCHAR NOT NULL CHECK (tier IN ('good', 'medium', 'bad')),
                "rank" INTEGER NOT NULL CHECK ("rank" >= 1),
                comparison_count INTEGER NOT NULL DEFAULT 0,
                review VARCHAR,
                created_at TIMESTAMP NOT NULL
            )
        """)

    def close(self) -> None:
        self.conn.disconnect()

    # Reads

    def _get_table(self) -> Table:
        return self.conn.table(self.table_name)

    def _hydrate(self, row: dict[str, Any]) -> RankedEntry:
        review = row["review"]
        return RankedEntry(
            id=str(row["id"]),
            external_id=str(row["external_id"]),
            title=str(row["title"]),
            media_kind=MediaKind(row["media_kind"]),
            tier=Tier(row["tier"]),
            rank=int(row["rank"]),
            comparison_count=int(row["comparison_count"]),
            review=None if review is None or pd.isna(review) else str(review),
            created_at=_from_db_timestamp(row["created_at"]),
        )

    def _fetch(self, query: Table) -> builtins.list[RankedEntry]:
        result = query.execute()
        return [self._hydrate(row) for row in result.to_dict(orient="records")]

    def list_partition(self, media_kind: MediaKind) -> builtins.list[RankedEntry]:
        """Entries of one media kind in ascending rank order."""
        t = self._get_table()
        query = t.filter(t["media_kind"] == media_kind.value).order_by(["rank", "created_at"])
        return self._fetch(query)

    def list_all(self) -> builtins.list[RankedEntry]:
        t = self._get_table()
        return self._fetch(t.order_by(["media_kind", "rank", "created_at"]))

    def get(self, entry_id: str) -> RankedEntry | None:
        t = self._get_table()
        entries = self._fetch(t.filter(t["id"] == entry_id).limit(1))
        return entries[0] if entries else None

    def find_by_external_id(self, external_id: str, media_kind: MediaKind) -> RankedEntry | None:
        t = self._get_table()
        query = t.filter((t["external_id"] == external_id) & (t["media_kind"] == media_kind.value)).limit(1)
        entries = self._fetch(query)
        return entries[0] if entries else None

    def count(self, media_kind: MediaKind | None = None) -> int:
        t = self._get_table()
        query = t
        if media_kind is not None:
            query = query.filter(t["media_kind"] == media_kind.value)
        return int(query.count().execute())

    # Writes

    @contextlib.contextmanager
    def transaction(self, operation: str) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run the enclosed writes as one DuckDB transaction.

        DuckDB errors are re-raised as ``PersistenceFailureError``; any other
        exception rolls back and propagates unchanged.
        """
        con = self.conn.con
        try:
            con.execute("BEGIN TRANSACTION")
        except duckdb.Error as exc:
            raise PersistenceFailureError(operation, exc) from exc

        try:
            yield con
            con.execute("COMMIT")
        except duckdb.Error as exc:
            logger.exception("Transaction failed during %s, rolling back", operation)
            self._rollback(con)
            raise PersistenceFailureError(operation, exc) from exc
        except Exception:
            logger.warning("Rolling back %s", operation)
            self._rollback(con)
            raise

    def _rollback(self, con: duckdb.DuckDBPyConnection) -> None:
        try:
            con.execute("ROLLBACK")
        except duckdb.TransactionException:
            # A failed COMMIT has already ended the transaction.
            logger.debug("No active transaction to roll back")

    def apply(
        self,
        media_kind: MediaKind,
        *,
        inserts: Sequence[RankedEntry] = (),
        updates: Sequence[RankedEntry] = (),
        deletes: Sequence[str] = (),
    ) -> None:
        """Apply inserts, updates and deletes to one partition atomically.

        The partition is checked for contiguous ranks and unique external ids
        before committing; a violation rolls the whole change back.
        """
        for entry in (*inserts, *updates):
            if entry.media_kind != media_kind:
                msg = f"'{entry.title}' does not belong to the {media_kind.value} partition"
                raise InvariantViolationError(msg, media_kind=media_kind.value)

        operation = (
            f"apply {len(inserts)} insert(s), {len(updates)} update(s), "
            f"{len(deletes)} delete(s) to {media_kind.value}"
        )
        with self.transaction(operation) as con:
            for entry_id in deletes:
                self._delete_row(con, entry_id)
            for entry in updates:
                self._update_row(con, entry)
            for entry in inserts:
                self._insert_row(con, entry)
            self._verify(con, media_kind)

        logger.debug("Committed: %s", operation)

    def _insert_row(self, con: duckdb.DuckDBPyConnection, entry: RankedEntry) -> None:
        con.execute(
            f"""
            INSERT INTO {self.table_name}
                (id, external_id, title, media_kind, tier, "rank", comparison_count, review, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                entry.id,
                entry.external_id,
                entry.title,
                entry.media_kind.value,
                entry.tier.value,
                entry.rank,
                entry.comparison_count,
                entry.review,
                _to_db_timestamp(entry.created_at),
            ],
        )

    def _update_row(self, con: duckdb.DuckDBPyConnection, entry: RankedEntry) -> None:
        """Update the mutable columns of an entry; ``created_at`` never changes."""
        row = con.execute(
            f"""
            UPDATE {self.table_name}
            SET "rank" = ?, tier = ?, comparison_count = ?, title = ?, review = ?
            WHERE id = ?
            """,
            [entry.rank, entry.tier.value, entry.comparison_count, entry.title, entry.review, entry.id],
        ).fetchone()
        if not row or row[0] == 0:
            raise EntryNotFoundError(entry.id)

    def _delete_row(self, con: duckdb.DuckDBPyConnection, entry_id: str) -> None:
        row = con.execute(f"DELETE FROM {self.table_name} WHERE id = ?", [entry_id]).fetchone()
        if not row or row[0] == 0:
            raise EntryNotFoundError(entry_id)

    def _verify(self, con: duckdb.DuckDBPyConnection, media_kind: MediaKind) -> None:
        ranks = [
            row[0]
            for row in con.execute(
                f'SELECT "rank" FROM {self.table_name} WHERE media_kind = ?',
                [media_kind.value],
            ).fetchall()
        ]
        problems = rank_violations(ranks)
        if problems:
            raise InvariantViolationError("; ".join(problems), media_kind=media_kind.value)

        duplicate = con.execute(
            f"""
            SELECT external_id FROM {self.table_name}
            WHERE media_kind = ?
            GROUP BY external_id
            HAVING count(*) > 1
            LIMIT 1
            """,
            [media_kind.value],
        ).fetchone()
        if duplicate is not None:
            raise DuplicateEntryError(duplicate[0], media_kind.value)
