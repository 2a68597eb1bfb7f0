from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from app.authorization import AuthorizationEngine
from app.db.postgres import PostgresTxRunner, validate_identifier
from app.keyed_map import IDENTIFIER_KEY, PRINCIPAL_KEY, RECORD_ID_KEY, KeyedMap
from app.persistence import StorePersistenceMixin
from app.repositories.grants import InMemoryAccessGrantsRepository
from app.repositories.identities import InMemoryIdentitiesRepository
from app.repositories.profiles import InMemoryProfilesRepository
from app.repositories.records import InMemoryRecordsRepository
from app.runtime_profile import snapshot_on_write, true_stack_required
from app.store_grants import StoreGrantsMixin
from app.store_identity import StoreIdentityMixin
from app.store_records import StoreRecordsMixin

logger = logging.getLogger(__name__)

ANONYMOUS_PRINCIPAL = "2vxsx-fae"


class InMemoryStore(
    StoreIdentityMixin,
    StoreRecordsMixin,
    StoreGrantsMixin,
    StorePersistenceMixin,
):
    """Process-wide state object holding every store.

    Lifecycle: empty at cold start; populated only through ``restore()``
    (durable backends call it while constructing). All operations run under
    one re-entrant lock, so at most one of them touches the state at a time.
    """

    DID_METHOD = "serum"

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._lock = threading.RLock()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.did_method = os.environ.get("SERUM_DID_METHOD", "").strip().lower() or self.DID_METHOD
        self.anonymous_principal = (
            os.environ.get("SERUM_ANONYMOUS_PRINCIPAL", "").strip() or ANONYMOUS_PRINCIPAL
        )
        self.identities: KeyedMap[dict[str, Any]] = KeyedMap(PRINCIPAL_KEY)
        self.profiles: KeyedMap[dict[str, Any]] = KeyedMap(IDENTIFIER_KEY)
        self.records: KeyedMap[dict[str, Any]] = KeyedMap(RECORD_ID_KEY)
        self.owner_index: KeyedMap[list[int]] = KeyedMap(IDENTIFIER_KEY)
        self.grants: KeyedMap[list[dict[str, Any]]] = KeyedMap(PRINCIPAL_KEY)
        self._bind_repositories(next_record_id=1)

    def _bind_repositories(self, *, next_record_id: int) -> None:
        self.identities_repository = InMemoryIdentitiesRepository(self.identities)
        self.profiles_repository = InMemoryProfilesRepository(self.profiles)
        self.records_repository = InMemoryRecordsRepository(
            self.records,
            self.owner_index,
            next_id=next_record_id,
        )
        self.grants_repository = InMemoryAccessGrantsRepository(self.grants)
        self.authorization = AuthorizationEngine(
            records=self.records_repository,
            grants=self.grants_repository,
            clock=self._utcnow,
        )

    def reset(self) -> None:
        with self._lock:
            self.identities.clear()
            self.profiles.clear()
            self.records.clear()
            self.owner_index.clear()
            self.grants.clear()
            self._bind_repositories(next_record_id=1)

    def set_clock(self, clock: Callable[[], datetime]) -> None:
        self._clock = clock

    def _utcnow(self) -> datetime:
        return self._clock()

    def _utcnow_iso(self) -> str:
        return self._utcnow().isoformat()

    def _after_write(self) -> None:
        return None

    def save_state(self) -> None:
        return None


class SqliteBackedStore(InMemoryStore):
    """Persistent store backend that snapshots state to SQLite."""

    def __init__(self, db_path: str, *, save_on_write: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._save_on_write = save_on_write
        self._initialize_database()
        self._load_state()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path))

    def _initialize_database(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS store_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  payload TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def save_state(self) -> None:
        with self._lock:
            snapshot = self.snapshot()
            blob = json.dumps(snapshot, sort_keys=True, ensure_ascii=True, separators=(",", ":"))
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO store_state(id, payload)
                    VALUES (1, ?)
                    ON CONFLICT(id) DO UPDATE SET payload = excluded.payload
                    """,
                    (blob,),
                )
                conn.commit()
        logger.info("store_snapshot_saved backend=sqlite path=%s", self._db_path)

    def _load_state(self) -> None:
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT payload FROM store_state WHERE id = 1").fetchone()
        if row is None:
            return
        payload_raw = row[0]
        if not isinstance(payload_raw, str):
            return
        try:
            payload = json.loads(payload_raw)
        except json.JSONDecodeError:
            logger.warning("store_snapshot_unreadable backend=sqlite path=%s", self._db_path)
            return
        if not isinstance(payload, dict):
            return
        self.restore(payload)

    def reset(self) -> None:
        super().reset()
        self.save_state()

    def _after_write(self) -> None:
        if self._save_on_write:
            self.save_state()


class PostgresBackedStore(InMemoryStore):
    """Persistent store backend that snapshots state to PostgreSQL."""

    def __init__(
        self,
        *,
        dsn: str,
        table_name: str = "serum_store_state",
        save_on_write: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must be provided for postgres store backend")
        self._table_name = validate_identifier(table_name.strip() or "serum_store_state")
        self._save_on_write = save_on_write
        self._tx_runner = PostgresTxRunner(dsn)
        self._initialize_database()
        self._load_state()

    def _initialize_database(self) -> None:
        create_sql = f"""
                CREATE TABLE IF NOT EXISTS {self._table_name} (
                  id SMALLINT PRIMARY KEY,
                  payload JSONB NOT NULL
                )
                """

        def _op(conn: Any) -> None:
            with conn.cursor() as cur:
                cur.execute(create_sql)

        self._tx_runner.run_in_tx(fn=_op)

    def save_state(self) -> None:
        with self._lock:
            blob = json.dumps(self.snapshot(), sort_keys=True, ensure_ascii=True, separators=(",", ":"))
            sql = f"""
                INSERT INTO {self._table_name}(id, payload)
                VALUES (1, %s::jsonb)
                ON CONFLICT(id) DO UPDATE SET payload = EXCLUDED.payload
            """

            def _op(conn: Any) -> None:
                with conn.cursor() as cur:
                    cur.execute(sql, (blob,))

            self._tx_runner.run_in_tx(fn=_op)
        logger.info("store_snapshot_saved backend=postgres table=%s", self._table_name)

    def _load_state(self) -> None:
        sql = f"SELECT payload::text FROM {self._table_name} WHERE id = 1"

        def _op(conn: Any) -> Any:
            with conn.cursor() as cur:
                cur.execute(sql)
                return cur.fetchone()

        with self._lock:
            row = self._tx_runner.run_in_tx(fn=_op)
        if row is None:
            return
        payload_raw = row[0]
        if isinstance(payload_raw, str):
            try:
                payload = json.loads(payload_raw)
            except json.JSONDecodeError:
                logger.warning("store_snapshot_unreadable backend=postgres table=%s", self._table_name)
                return
        else:
            payload = payload_raw
        if not isinstance(payload, dict):
            return
        self.restore(payload)

    def reset(self) -> None:
        super().reset()
        self.save_state()

    def _after_write(self) -> None:
        if self._save_on_write:
            self.save_state()


def create_store_from_env(environ: Mapping[str, str] | None = None) -> InMemoryStore:
    env = os.environ if environ is None else environ
    backend = env.get("SERUM_STORE_BACKEND", "memory").strip().lower()
    if true_stack_required(env) and backend != "postgres":
        raise RuntimeError("SERUM_STORE_BACKEND must be postgres when SERUM_REQUIRE_TRUESTACK=true")
    save_on_write = snapshot_on_write(env)
    if backend == "sqlite":
        db_path = env.get("SERUM_STORE_SQLITE_PATH", ".local/serum-store.sqlite3")
        return SqliteBackedStore(db_path, save_on_write=save_on_write)
    if backend == "postgres":
        dsn = env.get("POSTGRES_DSN", "").strip()
        if not dsn:
            raise ValueError("POSTGRES_DSN must be set when SERUM_STORE_BACKEND=postgres")
        table_name = env.get("SERUM_STORE_POSTGRES_TABLE", "serum_store_state")
        return PostgresBackedStore(dsn=dsn, table_name=table_name, save_on_write=save_on_write)
    return InMemoryStore()


store = create_store_from_env()
