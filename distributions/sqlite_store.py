"""
SQLite Distribution Store

Durable DistributionStore backed by a single SQLite file in WAL mode.
Every mutation runs in one BEGIN IMMEDIATE transaction, so the
version check and the write cannot interleave with another writer.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

from core.schemas.distribution import Distribution, DistributionFilters, Leaf
from core.schemas.errors import (
    ErrorCodes,
    IntegrityException,
    NotFoundException,
    StateConflictException,
)
from core.schemas.timestamps import ensure_utc, parse_datetime
from core.schemas.versioning import assert_supported_schema_version

from .store import (
    DistributionStore,
    LeafUpdate,
    check_leaf_set,
    check_totals,
    check_transition,
)

logger = logging.getLogger(__name__)


SCHEMA = """
    CREATE TABLE IF NOT EXISTS counters (
        name    TEXT PRIMARY KEY,
        value   INTEGER NOT NULL
    );

    CREATE TABLE IF NOT EXISTS distributions (
        distribution_id INTEGER PRIMARY KEY,
        status          TEXT NOT NULL,
        vault_type      TEXT NOT NULL,
        created_at      TEXT NOT NULL,
        version         INTEGER NOT NULL,
        data            TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS leaves (
        distribution_id INTEGER NOT NULL,
        leaf_index      INTEGER NOT NULL,
        address         TEXT NOT NULL,
        amount          TEXT NOT NULL,
        leaf_hash       TEXT NOT NULL,
        claimed         INTEGER NOT NULL DEFAULT 0,
        claimed_at      TEXT,
        claim_tx_ref    TEXT,
        PRIMARY KEY (distribution_id, leaf_index),
        FOREIGN KEY (distribution_id) REFERENCES distributions(distribution_id)
    );

    CREATE UNIQUE INDEX IF NOT EXISTS idx_leaves_address
        ON leaves(distribution_id, address);
    CREATE INDEX IF NOT EXISTS idx_leaves_user ON leaves(address);
    CREATE INDEX IF NOT EXISTS idx_distributions_status ON distributions(status);
    CREATE INDEX IF NOT EXISTS idx_distributions_created ON distributions(created_at);
"""


def _ts(dt: datetime) -> str:
    """Fixed-width UTC timestamp so text ordering equals time ordering."""
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _row_to_leaf(row: sqlite3.Row) -> Leaf:
    return Leaf(
        distribution_id=row["distribution_id"],
        index=row["leaf_index"],
        address=row["address"],
        amount=int(row["amount"]),
        leaf_hash=row["leaf_hash"],
        claimed=bool(row["claimed"]),
        claimed_at=parse_datetime(row["claimed_at"]) if row["claimed_at"] else None,
        claim_tx_ref=row["claim_tx_ref"],
    )


def _row_to_distribution(row: sqlite3.Row) -> Distribution:
    distribution = Distribution.model_validate_json(row["data"])
    assert_supported_schema_version(distribution.schema_version)
    return distribution


class SQLiteDistributionStore(DistributionStore):
    """DistributionStore persisted to SQLite."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        self._init_db()

    def _get_db(self) -> sqlite3.Connection:
        """Open a connection with WAL mode and explicit transaction control."""
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=10, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _db(self) -> Iterator[sqlite3.Connection]:
        """Read connection. Auto-closes."""
        conn = self._get_db()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        """Write transaction. Commits on success, rolls back on any error."""
        conn = self._get_db()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Create tables if they don't exist. Safe to call multiple times."""
        with self._db() as conn:
            conn.executescript(SCHEMA)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def next_distribution_id(self) -> int:
        with self._tx() as conn:
            conn.execute(
                "INSERT INTO counters (name, value) VALUES ('distribution_id', 1) "
                "ON CONFLICT(name) DO UPDATE SET value = value + 1"
            )
            row = conn.execute("SELECT value FROM counters WHERE name = 'distribution_id'").fetchone()
            return int(row["value"])

    def create(self, distribution: Distribution, leaves: Sequence[Leaf]) -> Distribution:
        check_leaf_set(distribution, leaves)
        did = distribution.distribution_id
        try:
            with self._tx() as conn:
                conn.execute(
                    "INSERT INTO distributions "
                    "(distribution_id, status, vault_type, created_at, version, data) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        did,
                        distribution.status.value,
                        distribution.vault_type.value,
                        _ts(distribution.created_at),
                        distribution.version,
                        distribution.model_dump_json(),
                    ),
                )
                conn.executemany(
                    "INSERT INTO leaves "
                    "(distribution_id, leaf_index, address, amount, leaf_hash, claimed, claimed_at, claim_tx_ref) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            did,
                            leaf.index,
                            leaf.address,
                            str(leaf.amount),
                            leaf.leaf_hash,
                            int(leaf.claimed),
                            _ts(leaf.claimed_at) if leaf.claimed_at else None,
                            leaf.claim_tx_ref,
                        )
                        for leaf in leaves
                    ],
                )
                conn.execute(
                    "INSERT INTO counters (name, value) VALUES ('distribution_id', ?) "
                    "ON CONFLICT(name) DO UPDATE SET value = MAX(value, excluded.value)",
                    (did,),
                )
        except sqlite3.IntegrityError as e:
            raise StateConflictException(
                f"Distribution {did} already exists",
                distribution_id=did,
                code=ErrorCodes.DUPLICATE_DISTRIBUTION,
            ) from e
        return distribution.model_copy(deep=True)

    def _locked_current(self, conn: sqlite3.Connection, distribution_id: int) -> Distribution:
        row = conn.execute(
            "SELECT data FROM distributions WHERE distribution_id = ?", (distribution_id,)
        ).fetchone()
        if row is None:
            raise NotFoundException(
                f"Distribution {distribution_id} not found",
                distribution_id=distribution_id,
            )
        return _row_to_distribution(row)

    def _write_distribution(self, conn: sqlite3.Connection, distribution: Distribution) -> None:
        conn.execute(
            "UPDATE distributions SET status = ?, version = ?, data = ? WHERE distribution_id = ?",
            (
                distribution.status.value,
                distribution.version,
                distribution.model_dump_json(),
                distribution.distribution_id,
            ),
        )

    def update(self, distribution: Distribution, expected_version: int) -> Distribution:
        did = distribution.distribution_id
        with self._tx() as conn:
            stored = self._locked_current(conn, did)
            check_transition(stored, distribution, expected_version)
            new = distribution.evolve(version=expected_version + 1)
            leaves = [_row_to_leaf(r) for r in conn.execute(
                "SELECT * FROM leaves WHERE distribution_id = ? ORDER BY leaf_index", (did,)
            )]
            check_totals(new, leaves)
            self._write_distribution(conn, new)
        return new

    def apply_sync(
        self,
        distribution: Distribution,
        leaf_updates: Iterable[LeafUpdate],
        expected_version: int,
    ) -> Distribution:
        did = distribution.distribution_id
        updates = list(leaf_updates)
        with self._tx() as conn:
            stored = self._locked_current(conn, did)
            check_transition(stored, distribution, expected_version)

            for update in updates:
                cursor = conn.execute(
                    "UPDATE leaves SET claimed = ?, claimed_at = ?, claim_tx_ref = ? "
                    "WHERE distribution_id = ? AND leaf_index = ?",
                    (
                        int(update.claimed),
                        _ts(update.claimed_at) if update.claimed_at else None,
                        update.claim_tx_ref,
                        did,
                        update.index,
                    ),
                )
                if cursor.rowcount != 1:
                    raise IntegrityException(
                        f"Leaf index {update.index} out of range",
                        distribution_id=did,
                        code=ErrorCodes.CLAIM_INDEX_OUT_OF_RANGE,
                    )

            new = distribution.evolve(version=expected_version + 1)
            leaves = [_row_to_leaf(r) for r in conn.execute(
                "SELECT * FROM leaves WHERE distribution_id = ? ORDER BY leaf_index", (did,)
            )]
            check_totals(new, leaves)
            self._write_distribution(conn, new)

        logger.debug("Applied sync to distribution %d (version %d)", did, new.version)
        return new

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, distribution_id: int) -> Optional[Distribution]:
        with self._db() as conn:
            row = conn.execute(
                "SELECT data FROM distributions WHERE distribution_id = ?", (distribution_id,)
            ).fetchone()
        return _row_to_distribution(row) if row is not None else None

    def list(self, filters: DistributionFilters) -> tuple[list[Distribution], int]:
        clauses: list[str] = []
        params: list[object] = []
        if filters.status is not None:
            clauses.append("status = ?")
            params.append(filters.status.value)
        if filters.vault_type is not None:
            clauses.append("vault_type = ?")
            params.append(filters.vault_type.value)
        if filters.created_from is not None:
            clauses.append("created_at >= ?")
            params.append(_ts(filters.created_from))
        if filters.created_to is not None:
            clauses.append("created_at <= ?")
            params.append(_ts(filters.created_to))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._db() as conn:
            total = conn.execute(f"SELECT COUNT(*) AS n FROM distributions {where}", params).fetchone()["n"]
            rows = conn.execute(
                f"SELECT data FROM distributions {where} "
                "ORDER BY created_at DESC, distribution_id DESC LIMIT ? OFFSET ?",
                [*params, filters.limit, filters.offset],
            ).fetchall()
        return [_row_to_distribution(r) for r in rows], int(total)

    def _require_exists(self, conn: sqlite3.Connection, distribution_id: int) -> None:
        row = conn.execute(
            "SELECT 1 FROM distributions WHERE distribution_id = ?", (distribution_id,)
        ).fetchone()
        if row is None:
            raise NotFoundException(
                f"Distribution {distribution_id} not found",
                distribution_id=distribution_id,
            )

    def get_leaves(self, distribution_id: int) -> list[Leaf]:
        with self._db() as conn:
            self._require_exists(conn, distribution_id)
            rows = conn.execute(
                "SELECT * FROM leaves WHERE distribution_id = ? ORDER BY leaf_index",
                (distribution_id,),
            ).fetchall()
        return [_row_to_leaf(r) for r in rows]

    def get_leaf_by_address(self, distribution_id: int, address: str) -> Optional[Leaf]:
        with self._db() as conn:
            self._require_exists(conn, distribution_id)
            row = conn.execute(
                "SELECT * FROM leaves WHERE distribution_id = ? AND address = ?",
                (distribution_id, address.lower()),
            ).fetchone()
        return _row_to_leaf(row) if row is not None else None

    def list_leaves(self, distribution_id: int, offset: int, limit: int) -> tuple[list[Leaf], int]:
        with self._db() as conn:
            self._require_exists(conn, distribution_id)
            total = conn.execute(
                "SELECT COUNT(*) AS n FROM leaves WHERE distribution_id = ?", (distribution_id,)
            ).fetchone()["n"]
            rows = conn.execute(
                "SELECT * FROM leaves WHERE distribution_id = ? ORDER BY leaf_index LIMIT ? OFFSET ?",
                (distribution_id, limit, offset),
            ).fetchall()
        return [_row_to_leaf(r) for r in rows], int(total)

    def find_leaves_by_address(self, address: str) -> list[Leaf]:
        with self._db() as conn:
            rows = conn.execute(
                "SELECT * FROM leaves WHERE address = ? ORDER BY distribution_id",
                (address.lower(),),
            ).fetchall()
        return [_row_to_leaf(r) for r in rows]

