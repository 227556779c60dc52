"""SQLite-backed persistence for the current Pesapal bearer token."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from checkout.core.crypto import CredentialCipher
from checkout.models.credential import GatewayCredential

logger = logging.getLogger(__name__)

DEFAULT_SLOT = "pesapal"


class StorageUnavailable(Exception):
    """Raised when the credential database cannot be read or written."""


def _to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def _from_iso(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SQLiteCredentialStore:
    """Single logical credential slot kept in a uniquely keyed table.

    ``put`` is a compare-and-swap: the caller passes the expiry it observed
    and the write only lands if the row still carries it. This keeps several
    processes sharing one database from clobbering each other's refreshes.
    """

    def __init__(
        self,
        db_path: str,
        *,
        cipher: CredentialCipher,
        slot: str = DEFAULT_SLOT,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        self._slot = slot
        self._timeout = timeout_seconds
        if self._db_path.parent and not self._db_path.parent.exists():
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageUnavailable(
                    f"Cannot create credential directory {self._db_path.parent}."
                ) from exc
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self._db_path, timeout=self._timeout, check_same_thread=False
            )
        except sqlite3.Error as exc:
            raise StorageUnavailable(
                f"Cannot open credential database at {self._db_path}."
            ) from exc
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS gateway_credentials (
                        slot TEXT PRIMARY KEY,
                        access_token_encrypted TEXT NOT NULL,
                        expires_at TEXT NOT NULL,
                        notification_id TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise StorageUnavailable("Cannot initialise credential schema.") from exc

    def get(self) -> Optional[GatewayCredential]:
        """Return the credential with the latest expiry, if any."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM gateway_credentials "
                    "ORDER BY expires_at DESC LIMIT 1"
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable("Failed to read gateway credential.") from exc
        if not row:
            return None
        return self._row_to_credential(row)

    def put(
        self,
        access_token: str,
        expires_at: datetime,
        *,
        expected_expires_at: Optional[datetime] = None,
        notification_id: Optional[str] = None,
    ) -> GatewayCredential:
        """Store a freshly issued token if nobody else replaced it first.

        ``expected_expires_at`` is the expiry the caller read before
        refreshing, or ``None`` when it saw no credential at all. If the slot
        changed in the meantime the stored record is returned untouched.
        A ``notification_id`` of ``None`` keeps whatever id is already stored.
        """
        now_iso = _to_iso(datetime.now(timezone.utc))
        encrypted = self._cipher.encrypt(access_token)
        try:
            with self._connect() as conn:
                if expected_expires_at is None:
                    cursor = conn.execute(
                        """
                        INSERT INTO gateway_credentials (
                            slot,
                            access_token_encrypted,
                            expires_at,
                            notification_id,
                            created_at,
                            updated_at
                        )
                        VALUES (?, ?, ?, ?, ?, ?)
                        ON CONFLICT(slot) DO NOTHING
                        """,
                        (
                            self._slot,
                            encrypted,
                            _to_iso(expires_at),
                            notification_id,
                            now_iso,
                            now_iso,
                        ),
                    )
                else:
                    cursor = conn.execute(
                        """
                        UPDATE gateway_credentials
                        SET access_token_encrypted = ?,
                            expires_at = ?,
                            notification_id = COALESCE(?, notification_id),
                            updated_at = ?
                        WHERE slot = ? AND expires_at = ?
                        """,
                        (
                            encrypted,
                            _to_iso(expires_at),
                            notification_id,
                            now_iso,
                            self._slot,
                            _to_iso(expected_expires_at),
                        ),
                    )
                written = cursor.rowcount == 1
                row = conn.execute(
                    "SELECT * FROM gateway_credentials WHERE slot = ?",
                    (self._slot,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable("Failed to write gateway credential.") from exc

        if row is None:
            raise StorageUnavailable(
                "Credential slot vanished while it was being written."
            )
        if not written:
            logger.info(
                "Credential slot %r was replaced concurrently; keeping stored token.",
                self._slot,
            )
        return self._row_to_credential(row)

    def _row_to_credential(self, row: sqlite3.Row) -> GatewayCredential:
        try:
            access_token = self._cipher.decrypt(row["access_token_encrypted"])
        except ValueError as exc:
            raise StorageUnavailable(
                "Stored gateway credential could not be decrypted."
            ) from exc
        return GatewayCredential(
            access_token=access_token,
            expires_at=_from_iso(row["expires_at"]),
            notification_id=row["notification_id"],
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )


__all__ = ["DEFAULT_SLOT", "SQLiteCredentialStore", "StorageUnavailable"]
