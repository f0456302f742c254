"""Record storage for the solvency ledger and the ownership registry.

Two stores implement ``RecordStore``: an in-memory store for tests and
embedding, and a SQLite store that persists snapshots and ownership entries.
Both refuse to overwrite an existing timestamp or address.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..core.records import OwnershipEntry, OwnershipStatus, SolvencyRecord
from ..core.types import MAX_TIMESTAMP, AddressOwnershipProof, Asset
from ..crypto.hashing import Hash
from ..crypto.merkle_sum import MerkleSumNode
from ..errors.exceptions import DuplicateError, NotFoundError, StorageError


@dataclass
class DatabaseConfig:
    """Database configuration."""

    database_path: str = "solvency.db"
    connection_timeout: float = 30.0

    synchronous: str = "FULL"  # OFF, NORMAL, FULL
    journal_mode: str = "WAL"  # DELETE, TRUNCATE, PERSIST, MEMORY, WAL, OFF

    def validate(self) -> None:
        if not self.database_path:
            raise ValueError("database_path cannot be empty")
        if self.connection_timeout <= 0:
            raise ValueError("connection_timeout must be positive")
        if self.synchronous.upper() not in ("OFF", "NORMAL", "FULL", "EXTRA"):
            raise ValueError(f"Unsupported synchronous mode: {self.synchronous}")
        if self.journal_mode.upper() not in (
            "DELETE",
            "TRUNCATE",
            "PERSIST",
            "MEMORY",
            "WAL",
            "OFF",
        ):
            raise ValueError(f"Unsupported journal mode: {self.journal_mode}")


class RecordStore(ABC):
    """Persistence for solvency records and ownership entries."""

    @abstractmethod
    def insert_record(self, record: SolvencyRecord) -> None:
        """Store a new record; ``DuplicateError`` if the timestamp exists."""
        pass

    @abstractmethod
    def get_record(self, timestamp: int) -> Optional[SolvencyRecord]:
        pass

    @abstractmethod
    def list_timestamps(self) -> List[int]:
        """All recorded timestamps in ascending order."""
        pass

    @abstractmethod
    def insert_ownership(self, entries: Iterable[OwnershipEntry]) -> None:
        """Store new entries atomically; ``DuplicateError`` if any address exists."""
        pass

    @abstractmethod
    def update_ownership(self, entry: OwnershipEntry) -> None:
        """Replace the entry for an existing address."""
        pass

    @abstractmethod
    def get_ownership(self, address: str) -> Optional[OwnershipEntry]:
        pass

    @abstractmethod
    def list_ownership(self, status: Optional[OwnershipStatus] = None) -> List[OwnershipEntry]:
        """Entries in submission order, optionally filtered by status."""
        pass

    def close(self) -> None:
        pass


class InMemoryRecordStore(RecordStore):
    """Dictionary-backed store."""

    def __init__(self):
        self._records: Dict[int, SolvencyRecord] = {}
        self._ownership: Dict[str, OwnershipEntry] = {}
        self._lock = threading.RLock()

    def insert_record(self, record: SolvencyRecord) -> None:
        with self._lock:
            if record.timestamp in self._records:
                raise DuplicateError(
                    f"A record already exists at timestamp {record.timestamp}",
                    key=record.timestamp,
                )
            self._records[record.timestamp] = record

    def get_record(self, timestamp: int) -> Optional[SolvencyRecord]:
        with self._lock:
            return self._records.get(timestamp)

    def list_timestamps(self) -> List[int]:
        with self._lock:
            return sorted(self._records)

    def insert_ownership(self, entries: Iterable[OwnershipEntry]) -> None:
        entries = list(entries)
        with self._lock:
            for entry in entries:
                if entry.address in self._ownership:
                    raise DuplicateError(
                        f"Address {entry.address} is already owned", key=entry.address
                    )
            for entry in entries:
                self._ownership[entry.address] = entry

    def update_ownership(self, entry: OwnershipEntry) -> None:
        with self._lock:
            if entry.address not in self._ownership:
                raise NotFoundError(f"Unknown address {entry.address}", key=entry.address)
            self._ownership[entry.address] = entry

    def get_ownership(self, address: str) -> Optional[OwnershipEntry]:
        with self._lock:
            return self._ownership.get(address)

    def list_ownership(self, status: Optional[OwnershipStatus] = None) -> List[OwnershipEntry]:
        with self._lock:
            entries = list(self._ownership.values())
        if status is None:
            return entries
        return [entry for entry in entries if entry.status == status]


class SQLiteRecordStore(RecordStore):
    """SQLite-backed store; each write runs in its own transaction."""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self.config.validate()
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._logger = logging.getLogger(__name__)

        if self.config.database_path != ":memory:":
            Path(self.config.database_path).parent.mkdir(parents=True, exist_ok=True)

        self.connect()

    def connect(self) -> None:
        with self._lock:
            if self._connection is not None:
                return

            try:
                self._connection = sqlite3.connect(
                    self.config.database_path,
                    timeout=self.config.connection_timeout,
                    isolation_level=None,  # transactions are explicit
                    check_same_thread=False,
                )
                self._connection.execute(f"PRAGMA journal_mode = {self.config.journal_mode}")
                self._connection.execute(f"PRAGMA synchronous = {self.config.synchronous}")
                self._create_tables()
                self._logger.info(f"Connected to SQLite database: {self.config.database_path}")
            except sqlite3.Error as e:
                self._connection = None
                raise StorageError(
                    f"Failed to connect to database: {e}",
                    storage_type="sqlite",
                    operation="connect",
                    cause=e,
                )

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                    self._logger.info("Disconnected from SQLite database")
                except sqlite3.Error as e:
                    self._logger.error(f"Error closing database connection: {e}")
                finally:
                    self._connection = None

    def _create_tables(self) -> None:
        statements = [
            """
            CREATE TABLE IF NOT EXISTS solvency_records (
                timestamp INTEGER PRIMARY KEY,
                root_hash TEXT NOT NULL,
                root_sum TEXT NOT NULL,  -- decimal, may exceed 64 bits
                assets TEXT NOT NULL,  -- JSON
                proof_hash TEXT NOT NULL,
                recorded_at REAL NOT NULL
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS ownership_proofs (
                address TEXT PRIMARY KEY,
                chain_id TEXT NOT NULL,
                signature BLOB NOT NULL,
                message BLOB NOT NULL,
                status TEXT NOT NULL,
                submitted_at REAL NOT NULL,
                finalized_at REAL,
                verifier_id TEXT,
                reason TEXT,
                seq INTEGER NOT NULL
            )
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_ownership_status ON ownership_proofs(status)
            """,
        ]
        for statement in statements:
            self._connection.execute(statement)

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StorageError(
                "Database not connected", storage_type="sqlite", operation="query"
            )
        return self._connection

    def insert_record(self, record: SolvencyRecord) -> None:
        with self._lock:
            connection = self._require_connection()
            try:
                connection.execute("BEGIN IMMEDIATE")
                connection.execute(
                    """
                    INSERT INTO solvency_records
                        (timestamp, root_hash, root_sum, assets, proof_hash, recorded_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.timestamp,
                        record.mst_root.hash.to_hex(),
                        str(record.mst_root.sum),
                        json.dumps([asset.to_dict() for asset in record.assets]),
                        record.proof_hash,
                        record.recorded_at,
                    ),
                )
                connection.execute("COMMIT")
            except sqlite3.IntegrityError:
                connection.execute("ROLLBACK")
                raise DuplicateError(
                    f"A record already exists at timestamp {record.timestamp}",
                    key=record.timestamp,
                )
            except sqlite3.Error as e:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")
                raise StorageError(
                    f"Failed to store record: {e}",
                    storage_type="sqlite",
                    operation="insert_record",
                    cause=e,
                )

    def get_record(self, timestamp: int) -> Optional[SolvencyRecord]:
        if not 0 < timestamp <= MAX_TIMESTAMP:
            return None
        with self._lock:
            row = self._query_one(
                "SELECT * FROM solvency_records WHERE timestamp = ?", (timestamp,)
            )
        if row is None:
            return None
        return SolvencyRecord(
            timestamp=row["timestamp"],
            mst_root=MerkleSumNode(Hash.from_hex(row["root_hash"]), int(row["root_sum"])),
            assets=tuple(Asset.from_dict(a) for a in json.loads(row["assets"])),
            proof_hash=row["proof_hash"],
            recorded_at=row["recorded_at"],
        )

    def list_timestamps(self) -> List[int]:
        with self._lock:
            rows = self._query_all("SELECT timestamp FROM solvency_records ORDER BY timestamp")
        return [row["timestamp"] for row in rows]

    def insert_ownership(self, entries: Iterable[OwnershipEntry]) -> None:
        entries = list(entries)
        with self._lock:
            connection = self._require_connection()
            try:
                connection.execute("BEGIN IMMEDIATE")
                (seq,) = connection.execute(
                    "SELECT COALESCE(MAX(seq), -1) + 1 FROM ownership_proofs"
                ).fetchone()
                for offset, entry in enumerate(entries):
                    connection.execute(
                        """
                        INSERT INTO ownership_proofs
                            (address, chain_id, signature, message, status, submitted_at,
                             finalized_at, verifier_id, reason, seq)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        self._ownership_row(entry) + (seq + offset,),
                    )
                connection.execute("COMMIT")
            except sqlite3.IntegrityError:
                connection.execute("ROLLBACK")
                raise DuplicateError(
                    "An address in the batch is already owned",
                    key=[entry.address for entry in entries],
                )
            except sqlite3.Error as e:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")
                raise StorageError(
                    f"Failed to store ownership proofs: {e}",
                    storage_type="sqlite",
                    operation="insert_ownership",
                    cause=e,
                )

    def update_ownership(self, entry: OwnershipEntry) -> None:
        with self._lock:
            connection = self._require_connection()
            try:
                cursor = connection.execute(
                    """
                    UPDATE ownership_proofs
                    SET status = ?, finalized_at = ?, verifier_id = ?, reason = ?
                    WHERE address = ?
                    """,
                    (
                        entry.status.value,
                        entry.finalized_at,
                        entry.verifier_id,
                        entry.reason,
                        entry.address,
                    ),
                )
            except sqlite3.Error as e:
                raise StorageError(
                    f"Failed to update ownership entry: {e}",
                    storage_type="sqlite",
                    operation="update_ownership",
                    cause=e,
                )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Unknown address {entry.address}", key=entry.address)

    def get_ownership(self, address: str) -> Optional[OwnershipEntry]:
        with self._lock:
            row = self._query_one("SELECT * FROM ownership_proofs WHERE address = ?", (address,))
        return None if row is None else self._ownership_entry(row)

    def list_ownership(self, status: Optional[OwnershipStatus] = None) -> List[OwnershipEntry]:
        with self._lock:
            if status is None:
                rows = self._query_all("SELECT * FROM ownership_proofs ORDER BY seq")
            else:
                rows = self._query_all(
                    "SELECT * FROM ownership_proofs WHERE status = ? ORDER BY seq",
                    (status.value,),
                )
        return [self._ownership_entry(row) for row in rows]

    @staticmethod
    def _ownership_row(entry: OwnershipEntry) -> tuple:
        return (
            entry.address,
            entry.chain_id,
            bytes(entry.proof.signature),
            bytes(entry.proof.message),
            entry.status.value,
            entry.submitted_at,
            entry.finalized_at,
            entry.verifier_id,
            entry.reason,
        )

    @staticmethod
    def _ownership_entry(row: Dict) -> OwnershipEntry:
        return OwnershipEntry(
            proof=AddressOwnershipProof(
                address=row["address"],
                chain_id=row["chain_id"],
                signature=bytes(row["signature"]),
                message=bytes(row["message"]),
            ),
            status=OwnershipStatus(row["status"]),
            submitted_at=row["submitted_at"],
            finalized_at=row["finalized_at"],
            verifier_id=row["verifier_id"],
            reason=row["reason"],
        )

    def _query_all(self, query: str, params: tuple = ()) -> List[Dict]:
        connection = self._require_connection()
        try:
            cursor = connection.execute(query, params)
            columns = [description[0] for description in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(
                f"Query execution failed: {e}", storage_type="sqlite", operation="query", cause=e
            )

    def _query_one(self, query: str, params: tuple = ()) -> Optional[Dict]:
        rows = self._query_all(query, params)
        return rows[0] if rows else None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
