import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from sealbid.utils.logger import get_logger

logger = get_logger("storage.sqlite")

# Column order shared by insert and load of sealed bids
BID_COLUMNS = (
    "nullifier",
    "auction",
    "bidder",
    "amount",
    "price",
    "salt",
    "commitment",
    "timestamp",
    "revealed",
)


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Nullifier set (global, one row per nullifier, tagged with auction).
    2. Sealed bids in insertion order (seq), unique per nullifier.
    3. Engine metadata (schema version).

    uint256 quantities are stored as decimal or hex TEXT since they exceed
    SQLite's 64-bit INTEGER.
    """

    SCHEMA_VERSION = "2"

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            conn.row_factory = sqlite3.Row
            # WAL lets readers proceed while a writer commits
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn_local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Nullifier Set
            # Global across auctions, prevents double bids and replays
            conn.execute("""
                CREATE TABLE IF NOT EXISTS nullifiers (
                    nullifier TEXT PRIMARY KEY,
                    auction TEXT NOT NULL,
                    timestamp INTEGER NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_nullifier_auction ON nullifiers(auction);")

            # 2. Sealed Bids
            # seq preserves insertion order (last-resort settlement tie-break)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sealed_bids (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    nullifier TEXT NOT NULL UNIQUE,
                    auction TEXT NOT NULL,
                    bidder TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    price TEXT NOT NULL,
                    salt TEXT NOT NULL,
                    commitment TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    revealed INTEGER NOT NULL DEFAULT 0
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_bid_auction ON sealed_bids(auction);")

            # 3. Engine Metadata
            conn.execute("""
                CREATE TABLE IF NOT EXISTS engine_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)
            conn.execute(
                "INSERT OR IGNORE INTO engine_meta (key, value) VALUES ('schema_version', ?)",
                (self.SCHEMA_VERSION,)
            )

    def close(self):
        """Close every connection opened by this adapter."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._conn_local = threading.local()

    # =========================================================================
    # Nullifier Operations
    # =========================================================================

    def insert_nullifier(self, nullifier: str, auction: str, timestamp: int):
        """
        Insert a nullifier row.

        Raises:
            sqlite3.IntegrityError: If the nullifier already exists
        """
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT INTO nullifiers (nullifier, auction, timestamp) VALUES (?, ?, ?)",
                (nullifier, auction, timestamp)
            )

    def delete_nullifier(self, nullifier: str):
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM nullifiers WHERE nullifier = ?", (nullifier,))

    def delete_nullifiers_for_auction(self, auction: str) -> int:
        """Delete all nullifiers of an auction, returning the row count."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute("DELETE FROM nullifiers WHERE auction = ?", (auction,))
            return cursor.rowcount

    def get_all_nullifiers(self) -> List[Tuple[str, str, int]]:
        """Get all (nullifier, auction, timestamp) rows."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT nullifier, auction, timestamp FROM nullifiers ORDER BY rowid ASC")
        return [(row["nullifier"], row["auction"], row["timestamp"]) for row in cursor]

    # =========================================================================
    # Sealed Bid Operations
    # =========================================================================

    def insert_sealed_bid(self, row: Tuple):
        """
        Append a sealed bid row (values in BID_COLUMNS order).

        Raises:
            sqlite3.IntegrityError: If a bid with this nullifier exists
        """
        placeholders = ", ".join("?" for _ in BID_COLUMNS)
        conn = self._get_conn()
        with conn:
            conn.execute(
                f"INSERT INTO sealed_bids ({', '.join(BID_COLUMNS)}) VALUES ({placeholders})",
                row
            )

    def set_bid_revealed(self, nullifier: str) -> int:
        """Flag a bid as revealed, returning the row count."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                "UPDATE sealed_bids SET revealed = 1 WHERE nullifier = ?", (nullifier,)
            )
            return cursor.rowcount

    def get_all_sealed_bids(self) -> List[Tuple]:
        """Get all sealed bid rows (BID_COLUMNS order) by insertion sequence."""
        conn = self._get_conn()
        cursor = conn.execute(
            f"SELECT {', '.join(BID_COLUMNS)} FROM sealed_bids ORDER BY seq ASC"
        )
        return [tuple(row) for row in cursor]

    def delete_sealed_bids(self, auction: str) -> int:
        """Delete all bids of an auction, returning the row count."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute("DELETE FROM sealed_bids WHERE auction = ?", (auction,))
            return cursor.rowcount

    # =========================================================================
    # Metadata Operations
    # =========================================================================

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM engine_meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None
