"""
Persistence Service.
Durable key-value storage for wizard progress and committed plans.
"""
import json
import logging
import sqlite3
from typing import Optional

from ..config import settings
from ..models.plan import TripPlan
from ..models.session import WizardSnapshot

logger = logging.getLogger(__name__)

WIZARD_PREFIX = "wizard:"
PLAN_PREFIX = "plan:"
SESSION_TRIP_PREFIX = "session-trip:"


class InMemoryStore:
    """Key-value store kept in process memory."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, value: str):
        self._data[key] = value

    def delete(self, key: str):
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._data if k.startswith(prefix)]


class SQLiteStore:
    """Key-value store backed by a single SQLite table."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._execute(
            "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )

    def _get_connection(self) -> sqlite3.Connection:
        """Create a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, query: str, args: tuple = ()) -> list[dict]:
        """Execute a statement and commit it."""
        conn = self._get_connection()
        try:
            cursor = conn.execute(query, args)
            rows = cursor.fetchall()
            conn.commit()
            return [dict(row) for row in rows]
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        rows = self._execute("SELECT value FROM kv WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    def put(self, key: str, value: str):
        self._execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    def delete(self, key: str):
        self._execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> list[str]:
        rows = self._execute("SELECT key FROM kv WHERE key LIKE ?", (f"{prefix}%",))
        return [row["key"] for row in rows]


class PlanRepository:
    """Saves and loads wizard snapshots and trip plans."""

    def __init__(self, store=None):
        self.store = store if store is not None else InMemoryStore()

    def save_wizard(self, snapshot: WizardSnapshot):
        self.store.put(WIZARD_PREFIX + snapshot.session_id, snapshot.model_dump_json())

    def load_wizard(self, session_id: str) -> Optional[WizardSnapshot]:
        raw = self.store.get(WIZARD_PREFIX + session_id)
        if raw is None:
            return None
        return WizardSnapshot.model_validate_json(raw)

    def load_wizard_data(self, session_id: str) -> Optional[dict]:
        """Raw saved wizard data, for lenient restoration."""
        raw = self.store.get(WIZARD_PREFIX + session_id)
        return json.loads(raw) if raw is not None else None

    def delete_wizard(self, session_id: str):
        self.store.delete(WIZARD_PREFIX + session_id)

    def save_plan(self, plan: TripPlan):
        self.store.put(PLAN_PREFIX + plan.trip_id, plan.model_dump_json())
        logger.info(f"Saved plan {plan.trip_id} version {plan.version}")

    def load_plan(self, trip_id: str) -> Optional[TripPlan]:
        raw = self.store.get(PLAN_PREFIX + trip_id)
        if raw is None:
            return None
        return TripPlan.model_validate_json(raw)

    def count_plans(self) -> int:
        return len(self.store.keys(PLAN_PREFIX))

    def save_session_trip(self, session_id: str, trip_id: str):
        """Remember which plan a session produced, so it can be reopened."""
        self.store.put(SESSION_TRIP_PREFIX + session_id, trip_id)

    def load_session_trip(self, session_id: str) -> Optional[str]:
        return self.store.get(SESSION_TRIP_PREFIX + session_id)


def create_store():
    """Build the key-value store selected in settings."""
    if settings.storage_backend == "sqlite":
        logger.info(f"Using SQLite storage at {settings.storage_path}")
        return SQLiteStore(settings.storage_path)
    return InMemoryStore()


# Global repository instance
repository: Optional[PlanRepository] = None


def get_repository() -> PlanRepository:
    """Get or create the global plan repository."""
    global repository
    if repository is None:
        repository = PlanRepository(create_store())
    return repository
