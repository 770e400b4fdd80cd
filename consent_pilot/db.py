"""SQLite storage for consent policies, last actions and the action log."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from .models import ConsentPolicy, LastAction, LogEntry
from .utils import extract_registered_domain, now_iso

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "*"
MAX_LOG_ENTRIES = 500

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS policies (
    scope TEXT PRIMARY KEY,
    essential BOOLEAN NOT NULL DEFAULT 1,
    functional BOOLEAN NOT NULL DEFAULT 0,
    analytics BOOLEAN NOT NULL DEFAULT 0,
    marketing BOOLEAN NOT NULL DEFAULT 0,
    updated_at TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS last_actions (
    domain TEXT PRIMARY KEY,
    functional BOOLEAN NOT NULL,
    analytics BOOLEAN NOT NULL,
    marketing BOOLEAN NOT NULL,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS action_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    domain TEXT NOT NULL,
    cmp_name TEXT,
    functional BOOLEAN NOT NULL,
    analytics BOOLEAN NOT NULL,
    marketing BOOLEAN NOT NULL,
    success BOOLEAN NOT NULL,
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_log_domain ON action_log(domain);
"""


def _policy_from_row(row) -> ConsentPolicy:
    return ConsentPolicy(
        functional=bool(row["functional"]),
        analytics=bool(row["analytics"]),
        marketing=bool(row["marketing"]),
    )


class Database:
    """Async SQLite store. Serves as both preference store and action log."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database connection and create tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("Database connected: %s", self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ─── Policies ────────────────────────────────────────────────────────

    async def _get_policy(self, scope: str) -> ConsentPolicy | None:
        assert self._conn is not None
        cursor = await self._conn.execute(
            "SELECT functional, analytics, marketing FROM policies WHERE scope = ?", (scope,)
        )
        row = await cursor.fetchone()
        return _policy_from_row(row) if row else None

    async def _set_policy(self, scope: str, policy: ConsentPolicy) -> None:
        assert self._conn is not None
        await self._conn.execute(
            """
            INSERT INTO policies (scope, essential, functional, analytics, marketing, updated_at)
            VALUES (?, 1, ?, ?, ?, ?)
            ON CONFLICT(scope) DO UPDATE SET
                functional = excluded.functional,
                analytics = excluded.analytics,
                marketing = excluded.marketing,
                updated_at = excluded.updated_at
            """,
            (scope, policy.functional, policy.analytics, policy.marketing, now_iso()),
        )
        await self._conn.commit()

    async def get_global_policy(self) -> ConsentPolicy | None:
        return await self._get_policy(GLOBAL_SCOPE)

    async def set_global_policy(self, policy: ConsentPolicy) -> None:
        await self._set_policy(GLOBAL_SCOPE, policy)

    async def get_domain_policy(self, domain: str) -> ConsentPolicy | None:
        return await self._get_policy(domain.lower())

    async def set_domain_policy(self, domain: str, policy: ConsentPolicy) -> None:
        await self._set_policy(domain.lower(), policy)

    async def clear_domain_policy(self, domain: str) -> bool:
        assert self._conn is not None
        cursor = await self._conn.execute("DELETE FROM policies WHERE scope = ?", (domain.lower(),))
        await self._conn.commit()
        return cursor.rowcount > 0

    async def list_domain_policies(self) -> dict[str, ConsentPolicy]:
        assert self._conn is not None
        cursor = await self._conn.execute(
            "SELECT scope, functional, analytics, marketing FROM policies WHERE scope != ? ORDER BY scope",
            (GLOBAL_SCOPE,),
        )
        return {row["scope"]: _policy_from_row(row) for row in await cursor.fetchall()}

    async def get_policy_for_domain(self, domain: str) -> ConsentPolicy | None:
        """Hostname override, then registered-domain override, then the global policy."""
        host = domain.lower()
        policy = await self.get_domain_policy(host)
        if policy is None:
            registered = extract_registered_domain(host)
            if registered and registered != host:
                policy = await self.get_domain_policy(registered)
        if policy is None:
            policy = await self.get_global_policy()
        return policy

    # ─── Last action ─────────────────────────────────────────────────────

    async def record_applied_policy(self, domain: str, policy: ConsentPolicy) -> None:
        assert self._conn is not None
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO last_actions (domain, functional, analytics, marketing, applied_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (domain.lower(), policy.functional, policy.analytics, policy.marketing, now_iso()),
        )
        await self._conn.commit()

    async def get_last_action(self, domain: str) -> LastAction | None:
        assert self._conn is not None
        cursor = await self._conn.execute(
            "SELECT * FROM last_actions WHERE domain = ?", (domain.lower(),)
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return LastAction(domain=row["domain"], policy=_policy_from_row(row), applied_at=row["applied_at"])

    # ─── Action log ──────────────────────────────────────────────────────

    async def append_log(self, entry: LogEntry) -> None:
        """Append an entry, keeping only the newest MAX_LOG_ENTRIES rows."""
        assert self._conn is not None
        await self._conn.execute(
            """
            INSERT INTO action_log (domain, cmp_name, functional, analytics, marketing, success, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.domain.lower(),
                entry.cmp_name or "",
                entry.policy.functional,
                entry.policy.analytics,
                entry.policy.marketing,
                entry.success,
                entry.timestamp or now_iso(),
            ),
        )
        await self._conn.execute(
            "DELETE FROM action_log WHERE id NOT IN (SELECT id FROM action_log ORDER BY id DESC LIMIT ?)",
            (MAX_LOG_ENTRIES,),
        )
        await self._conn.commit()
        logger.debug("Logged %s on %s (success=%s)", entry.cmp_name, entry.domain, entry.success)

    async def get_log_entries(self, limit: int = 50, domain: str | None = None) -> list[LogEntry]:
        """Newest entries first, optionally for one domain."""
        assert self._conn is not None
        if domain:
            cursor = await self._conn.execute(
                "SELECT * FROM action_log WHERE domain = ? ORDER BY id DESC LIMIT ?",
                (domain.lower(), limit),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT * FROM action_log ORDER BY id DESC LIMIT ?", (limit,)
            )
        return [
            LogEntry(
                domain=row["domain"],
                cmp_name=row["cmp_name"] or None,
                policy=_policy_from_row(row),
                success=bool(row["success"]),
                timestamp=row["timestamp"],
            )
            for row in await cursor.fetchall()
        ]

    async def get_stats(self) -> dict:
        """Counts for the status summary."""
        assert self._conn is not None
        stats = {}

        cursor = await self._conn.execute("SELECT COUNT(*) FROM action_log")
        stats["log_entries"] = (await cursor.fetchone())[0]

        cursor = await self._conn.execute("SELECT COUNT(*) FROM action_log WHERE success = 1")
        stats["successful"] = (await cursor.fetchone())[0]

        cursor = await self._conn.execute("SELECT COUNT(*) FROM last_actions")
        stats["domains_remembered"] = (await cursor.fetchone())[0]

        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM policies WHERE scope != ?", (GLOBAL_SCOPE,)
        )
        stats["domain_overrides"] = (await cursor.fetchone())[0]

        return stats
