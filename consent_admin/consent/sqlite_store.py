"""
Relational consent store on SQLite (WAL mode).
"""

import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from consent_admin.consent.models import ConsentRecord, StoreStatistics
from consent_admin.consent.store import ConsentStore, _require
from consent_admin.shared.exceptions import (
    ConfigurationError,
    PermanentStorageError,
    StorageError,
    TransientStorageError,
)
from consent_admin.shared.logging import get_logger

logger = get_logger(__name__)

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

_TRANSIENT_CODES = (
    "SQLITE_BUSY",
    "SQLITE_LOCKED",
    "SQLITE_IOERR",
    "SQLITE_INTERRUPT",
    "SQLITE_CANTOPEN",
    "SQLITE_FULL",
)
_TRANSIENT_MESSAGES = ("locked", "busy", "disk i/o", "unable to open", "interrupted")


def _is_transient(error: sqlite3.Error) -> bool:
    code = getattr(error, "sqlite_errorname", None)
    if code:
        # Extended codes (SQLITE_BUSY_SNAPSHOT, SQLITE_IOERR_READ, ...) share the prefix
        return code.startswith(_TRANSIENT_CODES)
    message = str(error).lower()
    return isinstance(error, sqlite3.OperationalError) and any(
        m in message for m in _TRANSIENT_MESSAGES
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteConsentStore(ConsentStore):
    """
    Consent records in one SQLite table.

    DSN is a filesystem path, ``sqlite:///<path>``, or ``:memory:`` (a
    private shared-cache database that lives as long as the store).
    """

    def __init__(self, dsn: str, table: str = "consent", timeout: float = 5.0):
        if not dsn:
            raise ConfigurationError("Consent store DSN is empty")
        if not _TABLE_NAME.match(table or ""):
            raise ConfigurationError(f"Invalid consent table name '{table}'")

        self.table = table
        self.timeout = timeout
        self._anchor: Optional[sqlite3.Connection] = None

        if dsn.startswith("sqlite:///"):
            dsn = dsn[len("sqlite:///"):]
        elif dsn.startswith("sqlite://"):
            raise ConfigurationError(f"Unsupported SQLite DSN '{dsn}'")

        if dsn == ":memory:":
            self._database = f"file:consent-{uuid.uuid4().hex}?mode=memory&cache=shared"
            self._uri = True
        else:
            db_path = Path(dsn)
            try:
                db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConfigurationError(f"Cannot create directory for {db_path}: {e}") from e
            self._database = str(db_path)
            self._uri = False

        try:
            if self._uri:
                # Keeps the in-memory database alive between connections
                self._anchor = self._connect()
            self._init_database()
        except sqlite3.Error as e:
            raise ConfigurationError(f"Consent store unreachable at '{dsn}': {e}") from e

        logger.info("Consent store ready", extra={"backend": "sqlite", "table": self.table})

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._database, timeout=self.timeout, uri=self._uri)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        """Initialize database schema."""
        conn = self._connect()
        try:
            if not self._uri:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    hashed_user_id TEXT NOT NULL,
                    service_id TEXT NOT NULL,
                    attribute_fingerprint TEXT NOT NULL,
                    consent_date TEXT NOT NULL,
                    usage_date TEXT,
                    PRIMARY KEY (hashed_user_id, service_id, attribute_fingerprint)
                );

                CREATE INDEX IF NOT EXISTS idx_{self.table}_service ON {self.table}(service_id);
            """)
            conn.commit()
        finally:
            conn.close()

    @contextmanager
    def _get_connection(self):
        """Get database connection; translate SQLite failures into StorageError."""
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise TransientStorageError(f"Cannot connect to consent store: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            if _is_transient(e):
                raise TransientStorageError(f"Consent store temporarily unavailable: {e}") from e
            raise PermanentStorageError(f"Consent store operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def has_consent(self, hashed_user_id: str, service_id: str, attribute_fingerprint: str) -> bool:
        """Check for the exact grant and refresh its usage date when found."""
        _require("hashed_user_id", hashed_user_id)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"""UPDATE {self.table} SET usage_date = ?
                    WHERE hashed_user_id = ? AND service_id = ? AND attribute_fingerprint = ?""",
                (_now(), hashed_user_id, service_id, attribute_fingerprint)
            )
            found = cursor.rowcount > 0

        logger.debug("Consent check", extra={"hashed_user_id": hashed_user_id, "found": found})
        return found

    def save_consent(self, hashed_user_id: str, service_id: str, attribute_fingerprint: str) -> None:
        _require("hashed_user_id", hashed_user_id)
        _require("service_id", service_id)
        _require("attribute_fingerprint", attribute_fingerprint)
        now = _now()
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"""INSERT OR IGNORE INTO {self.table}
                    (hashed_user_id, service_id, attribute_fingerprint, consent_date, usage_date)
                    VALUES (?, ?, ?, ?, ?)""",
                (hashed_user_id, service_id, attribute_fingerprint, now, now)
            )
            if cursor.rowcount == 0:
                logger.debug("Consent already recorded", extra={"hashed_user_id": hashed_user_id})

    def list_consents(self, hashed_user_id: str) -> List[ConsentRecord]:
        _require("hashed_user_id", hashed_user_id)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""SELECT hashed_user_id, service_id, attribute_fingerprint, consent_date, usage_date
                    FROM {self.table}
                    WHERE hashed_user_id = ?
                    ORDER BY rowid ASC""",
                (hashed_user_id,)
            ).fetchall()

        return [
            ConsentRecord(
                hashed_user_id=row["hashed_user_id"],
                service_id=row["service_id"],
                attribute_fingerprint=row["attribute_fingerprint"],
                consent_date=_parse_date(row["consent_date"]),
                usage_date=_parse_date(row["usage_date"]),
            )
            for row in rows
        ]

    def delete_all_consents(self, hashed_user_id: str) -> int:
        """Delete every grant for the user in a single write transaction."""
        _require("hashed_user_id", hashed_user_id)
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                f"DELETE FROM {self.table} WHERE hashed_user_id = ?",
                (hashed_user_id,)
            )
            removed = cursor.rowcount

        logger.debug(
            "Deleted all consents",
            extra={"hashed_user_id": hashed_user_id, "removed": removed}
        )
        return removed

    def delete_consent(self, hashed_user_id: str, service_id: str) -> int:
        _require("hashed_user_id", hashed_user_id)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"DELETE FROM {self.table} WHERE hashed_user_id = ? AND service_id = ?",
                (hashed_user_id, service_id)
            )
            return cursor.rowcount

    def get_statistics(self) -> StoreStatistics:
        with self._get_connection() as conn:
            row = conn.execute(
                f"""SELECT COUNT(*) AS total,
                           COUNT(DISTINCT hashed_user_id) AS users,
                           COUNT(DISTINCT service_id) AS services
                    FROM {self.table}"""
            ).fetchone()

        return StoreStatistics(total=row["total"], users=row["users"], services=row["services"])

    def close(self) -> None:
        if self._anchor is not None:
            self._anchor.close()
            self._anchor = None
