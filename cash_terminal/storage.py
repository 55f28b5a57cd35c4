"""
Account Storage Module

Load/save boundary for account records. Provides an abstract store and
implementations for in-memory (testing), JSON file, and SQLite persistence.
All monetary values are stored as Decimal strings and transactions are
embedded in their account record in log order.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone
from pathlib import Path
import json
import os
import sqlite3
import tempfile
import threading

from .accounts import Account
from .config import TerminalConfig
from .logging_config import get_logger
from .outcomes import StorageError


logger = get_logger("cash_terminal.storage")


class AccountStore(ABC):
    """Abstract interface for account persistence backends"""

    @abstractmethod
    def save(self, account: Account) -> None:
        """Insert or replace one account record"""
        pass

    @abstractmethod
    def load(self, account_id: str) -> Optional[Account]:
        """Load one account record"""
        pass

    @abstractmethod
    def load_all(self) -> List[Account]:
        """Load every account record"""
        pass

    @abstractmethod
    def count(self) -> int:
        """Count stored accounts"""
        pass

    def save_all(self, accounts: List[Account]) -> None:
        """Persist a batch of accounts"""
        for account in accounts:
            self.save(account)

    def close(self) -> None:
        """Release backend resources (default no-op)"""
        pass


def _decode(payload: Union[str, Dict[str, Any]]) -> Account:
    try:
        data = json.loads(payload) if isinstance(payload, str) else payload
        return Account.from_dict(data)
    except (KeyError, TypeError, ValueError, ArithmeticError) as e:
        raise StorageError(f"Malformed account record: {e}") from e


class InMemoryAccountStore(AccountStore):
    """In-memory store for testing"""

    def __init__(self):
        self._records: Dict[str, str] = {}
        self._lock = threading.RLock()

    def save(self, account: Account) -> None:
        with self._lock:
            # Serialize to prevent external mutation
            self._records[account.id] = json.dumps(account.to_dict())

    def load(self, account_id: str) -> Optional[Account]:
        with self._lock:
            record = self._records.get(account_id)
            return _decode(record) if record else None

    def load_all(self) -> List[Account]:
        with self._lock:
            return [_decode(record) for record in self._records.values()]

    def count(self) -> int:
        with self._lock:
            return len(self._records)


class JSONFileAccountStore(AccountStore):
    """
    Stores every account in one indented JSON list.

    The file is rewritten on each save through a temporary file and an
    atomic rename, so a crash never leaves a half-written document.
    """

    def __init__(self, path: Union[str, Path] = "accounts.json"):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._records: Optional[Dict[str, Dict[str, Any]]] = None

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if self._records is not None:
            return self._records

        if not self.path.exists():
            logger.warning(f"Accounts file {self.path} not found, starting with no accounts")
            self._records = {}
            return self._records

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read accounts file {self.path}: {e}") from e

        if not isinstance(raw, list):
            raise StorageError(f"Accounts file {self.path} must contain a JSON list")

        records: Dict[str, Dict[str, Any]] = {}
        for item in raw:
            if not isinstance(item, dict) or 'id' not in item:
                raise StorageError(f"Malformed account record in {self.path}")
            records[str(item['id'])] = item
        self._records = records
        return self._records

    def _write(self, records: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".accounts-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(list(records.values()), handle, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Cannot write accounts file {self.path}: {e}") from e

    def save(self, account: Account) -> None:
        with self._lock:
            records = dict(self._read())
            records[account.id] = account.to_dict()
            self._write(records)
            self._records = records

    def save_all(self, accounts: List[Account]) -> None:
        with self._lock:
            records = dict(self._read())
            for account in accounts:
                records[account.id] = account.to_dict()
            self._write(records)
            self._records = records

    def load(self, account_id: str) -> Optional[Account]:
        with self._lock:
            record = self._read().get(account_id)
            return _decode(record) if record else None

    def load_all(self) -> List[Account]:
        with self._lock:
            return [_decode(record) for record in self._read().values()]

    def count(self) -> int:
        with self._lock:
            return len(self._read())


class SQLiteAccountStore(AccountStore):
    """SQLite store, one row per account with a JSON payload"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", table: str = "accounts"):
        self.db_path = str(db_path)
        self.table = table
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()

        with self._lock:
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id TEXT PRIMARY KEY,
                    card_number TEXT NOT NULL UNIQUE,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.commit()

    def save(self, account: Account) -> None:
        with self._lock:
            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(account.to_dict())
            try:
                self._connection.execute(f"""
                    INSERT INTO {self.table} (id, card_number, data, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                """, (account.id, account.card_number, data_json, account.created_at.isoformat(), now))
                self._connection.commit()
            except sqlite3.Error as e:
                self._connection.rollback()
                raise StorageError(f"Cannot save account {account.id}: {e}") from e

    def load(self, account_id: str) -> Optional[Account]:
        with self._lock:
            cursor = self._connection.execute(f"""
                SELECT data FROM {self.table} WHERE id = ?
            """, (account_id,))
            row = cursor.fetchone()
            return _decode(row['data']) if row else None

    def load_all(self) -> List[Account]:
        with self._lock:
            cursor = self._connection.execute(f"""
                SELECT data FROM {self.table} ORDER BY created_at, rowid
            """)
            return [_decode(row['data']) for row in cursor.fetchall()]

    def count(self) -> int:
        with self._lock:
            cursor = self._connection.execute(f"""
                SELECT COUNT(*) as count FROM {self.table}
            """)
            return cursor.fetchone()['count']

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_store(config: TerminalConfig) -> AccountStore:
    """Build the store selected by configuration"""
    backend = config.storage_backend.lower()
    if backend == "memory":
        return InMemoryAccountStore()
    if backend == "json":
        return JSONFileAccountStore(config.accounts_file)
    if backend == "sqlite":
        return SQLiteAccountStore(config.database_path)
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")
