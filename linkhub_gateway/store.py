"""
Storage collaborator for the agent gateway.

The gateway consumes two contracts:

- CredentialStore: hashed API key lookup, last-used touches, key management
- ProfileStore: public profile data reads, inquiry and visit writes

GatewayStore implements both on SQLite. Profile/link/service rows are normally
owned by the dashboard; the seeding helpers here exist for the CLI, the demo
and tests.
"""

from __future__ import annotations

import json
import logging
import secrets
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from .models import (
    AgentVisit,
    ApiKeyRecord,
    Link,
    Profile,
    Service,
    ServiceInquiry,
    SocialEmbed,
)

logger = logging.getLogger("linkhub_gateway.store")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CredentialStore:
    """Lookup contract used by the credential validator."""

    def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKeyRecord]:
        raise NotImplementedError

    def touch_api_key(self, key_id: str, used_at: Optional[str] = None) -> None:
        raise NotImplementedError

    def get_username(self, profile_id: str) -> Optional[str]:
        raise NotImplementedError


class ProfileStore:
    """Read/write contract used by tools, resources and the visit tracker."""

    def get_profile(self, username: str) -> Optional[Profile]:
        raise NotImplementedError

    def get_profile_id(self, username: str) -> Optional[str]:
        raise NotImplementedError

    def list_active_services(self, profile_id: str) -> List[Service]:
        raise NotImplementedError

    def get_service(self, service_id: str) -> Optional[Service]:
        raise NotImplementedError

    def insert_inquiry(
        self,
        service_id: str,
        profile_id: str,
        sender_name: str,
        sender_email: str,
        message: str,
        source: str,
        agent_identifier: Optional[str],
    ) -> ServiceInquiry:
        raise NotImplementedError

    def insert_visit(self, visit: AgentVisit) -> None:
        raise NotImplementedError


class GatewayStore(CredentialStore, ProfileStore):
    """
    SQLite-backed storage for gateway state.

    Storage Properties:
    - One connection per operation; WAL mode for concurrent readers
    - Inquiries and visits are immutable inserts
    """

    def __init__(self, db_path: str = "linkhub_gateway.db", connect_timeout_seconds: float = 5.0):
        self.db_path = db_path
        self.connect_timeout_seconds = float(connect_timeout_seconds)
        self._init_db()

    @contextmanager
    def _db(self, op_name: str) -> Iterator[sqlite3.Connection]:
        start = time.monotonic()
        conn = sqlite3.connect(self.db_path, timeout=self.connect_timeout_seconds)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()
            elapsed_ms = (time.monotonic() - start) * 1000.0
            if elapsed_ms >= 250.0:
                logger.warning("slow store op %s: %.1fms", op_name, elapsed_ms)

    def _init_db(self) -> None:
        with self._db("init") as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA busy_timeout = 5000")

            conn.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                username TEXT NOT NULL UNIQUE,
                display_name TEXT,
                bio TEXT,
                avatar_url TEXT,
                is_premium BOOLEAN NOT NULL DEFAULT FALSE
            )
            """)

            conn.execute("""
            CREATE TABLE IF NOT EXISTS links (
                id TEXT PRIMARY KEY,
                profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                title TEXT NOT NULL,
                url TEXT NOT NULL,
                icon TEXT NOT NULL DEFAULT '',
                position INTEGER NOT NULL DEFAULT 0,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                click_count INTEGER NOT NULL DEFAULT 0
            )
            """)

            conn.execute("""
            CREATE TABLE IF NOT EXISTS social_embeds (
                id TEXT PRIMARY KEY,
                profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                platform TEXT NOT NULL,
                embed_url TEXT NOT NULL,
                position INTEGER NOT NULL DEFAULT 0,
                is_active BOOLEAN NOT NULL DEFAULT TRUE
            )
            """)

            conn.execute("""
            CREATE TABLE IF NOT EXISTS services (
                id TEXT PRIMARY KEY,
                profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                title TEXT NOT NULL,
                description TEXT,
                category TEXT NOT NULL DEFAULT 'other',
                pricing TEXT NOT NULL DEFAULT 'contact',
                price_amount REAL,
                price_currency TEXT NOT NULL DEFAULT 'USD',
                action_type TEXT NOT NULL DEFAULT 'contact_form',
                position INTEGER NOT NULL DEFAULT 0,
                is_active BOOLEAN NOT NULL DEFAULT TRUE
            )
            """)

            conn.execute("""
            CREATE TABLE IF NOT EXISTS api_keys (
                id TEXT PRIMARY KEY,
                profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                key_hash TEXT NOT NULL UNIQUE,
                key_prefix TEXT NOT NULL,
                permissions_json TEXT NOT NULL,
                rate_limit INTEGER NOT NULL,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                last_used_at TEXT,
                created_at TEXT NOT NULL
            )
            """)

            conn.execute("""
            CREATE TABLE IF NOT EXISTS service_inquiries (
                id TEXT PRIMARY KEY,
                service_id TEXT NOT NULL,
                profile_id TEXT NOT NULL,
                sender_name TEXT NOT NULL,
                sender_email TEXT NOT NULL,
                message TEXT NOT NULL,
                source TEXT NOT NULL,
                agent_identifier TEXT,
                created_at TEXT NOT NULL
            )
            """)

            conn.execute("""
            CREATE TABLE IF NOT EXISTS agent_visits (
                visit_id INTEGER PRIMARY KEY AUTOINCREMENT,
                profile_id TEXT NOT NULL,
                agent_identifier TEXT NOT NULL,
                agent_name TEXT NOT NULL,
                user_agent TEXT NOT NULL,
                endpoint TEXT NOT NULL,
                method TEXT NOT NULL,
                country TEXT,
                created_at TEXT NOT NULL
            )
            """)

    # ---------------------------
    # Credentials
    # ---------------------------

    @staticmethod
    def _row_to_key(row: sqlite3.Row) -> ApiKeyRecord:
        try:
            perms = tuple(str(p) for p in json.loads(row["permissions_json"] or "[]"))
        except ValueError:
            # Corrupted row: grant nothing beyond the default.
            perms = ()
        return ApiKeyRecord(
            id=row["id"],
            profile_id=row["profile_id"],
            name=row["name"],
            key_hash=row["key_hash"],
            key_prefix=row["key_prefix"],
            permissions=perms,
            rate_limit=int(row["rate_limit"]),
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            last_used_at=row["last_used_at"],
        )

    def get_api_key_by_hash(self, key_hash: str) -> Optional[ApiKeyRecord]:
        with self._db("get_api_key_by_hash") as conn:
            row = conn.execute("SELECT * FROM api_keys WHERE key_hash = ?", (key_hash,)).fetchone()
        return self._row_to_key(row) if row else None

    def touch_api_key(self, key_id: str, used_at: Optional[str] = None) -> None:
        with self._db("touch_api_key") as conn:
            conn.execute(
                "UPDATE api_keys SET last_used_at = ? WHERE id = ?",
                (used_at or _now_iso(), key_id),
            )

    def get_username(self, profile_id: str) -> Optional[str]:
        with self._db("get_username") as conn:
            row = conn.execute("SELECT username FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        return row["username"] if row else None

    def insert_api_key(self, record: ApiKeyRecord) -> None:
        with self._db("insert_api_key") as conn:
            conn.execute(
                """
                INSERT INTO api_keys
                (id, profile_id, name, key_hash, key_prefix, permissions_json, rate_limit, is_active, last_used_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id, record.profile_id, record.name, record.key_hash, record.key_prefix,
                    json.dumps(list(record.permissions)), int(record.rate_limit), bool(record.is_active),
                    record.last_used_at, record.created_at,
                ),
            )

    def get_api_key(self, profile_id: str, key_id: str) -> Optional[ApiKeyRecord]:
        with self._db("get_api_key") as conn:
            row = conn.execute(
                "SELECT * FROM api_keys WHERE id = ? AND profile_id = ?",
                (key_id, profile_id),
            ).fetchone()
        return self._row_to_key(row) if row else None

    def list_api_keys(self, profile_id: str) -> List[ApiKeyRecord]:
        with self._db("list_api_keys") as conn:
            rows = conn.execute(
                "SELECT * FROM api_keys WHERE profile_id = ? ORDER BY created_at DESC, rowid DESC",
                (profile_id,),
            ).fetchall()
        return [self._row_to_key(r) for r in rows]

    def count_api_keys(self, profile_id: str) -> int:
        with self._db("count_api_keys") as conn:
            row = conn.execute("SELECT COUNT(*) FROM api_keys WHERE profile_id = ?", (profile_id,)).fetchone()
        return int(row[0])

    def update_api_key(self, profile_id: str, key_id: str, updates: Dict[str, Any]) -> Optional[ApiKeyRecord]:
        columns = {
            "name": "name",
            "is_active": "is_active",
            "permissions": "permissions_json",
            "rate_limit": "rate_limit",
        }
        assignments = []
        values: List[Any] = []
        for field_name, value in updates.items():
            column = columns.get(field_name)
            if column is None:
                raise ValueError(f"unsupported api key field: {field_name}")
            if field_name == "permissions":
                value = json.dumps(list(value))
            assignments.append(f"{column} = ?")
            values.append(value)
        if not assignments:
            return self.get_api_key(profile_id, key_id)

        with self._db("update_api_key") as conn:
            cur = conn.execute(
                f"UPDATE api_keys SET {', '.join(assignments)} WHERE id = ? AND profile_id = ?",
                (*values, key_id, profile_id),
            )
            if int(cur.rowcount or 0) == 0:
                return None
        return self.get_api_key(profile_id, key_id)

    def delete_api_key(self, profile_id: str, key_id: str) -> bool:
        with self._db("delete_api_key") as conn:
            cur = conn.execute(
                "DELETE FROM api_keys WHERE id = ? AND profile_id = ?",
                (key_id, profile_id),
            )
            return int(cur.rowcount or 0) > 0

    # ---------------------------
    # Profiles
    # ---------------------------

    def get_profile_id(self, username: str) -> Optional[str]:
        with self._db("get_profile_id") as conn:
            row = conn.execute("SELECT id FROM profiles WHERE username = ?", (username,)).fetchone()
        return row["id"] if row else None

    def get_profile(self, username: str) -> Optional[Profile]:
        with self._db("get_profile") as conn:
            row = conn.execute("SELECT * FROM profiles WHERE username = ?", (username,)).fetchone()
            if not row:
                return None
            link_rows = conn.execute(
                "SELECT * FROM links WHERE profile_id = ? ORDER BY position", (row["id"],)
            ).fetchall()
            social_rows = conn.execute(
                "SELECT * FROM social_embeds WHERE profile_id = ? ORDER BY position", (row["id"],)
            ).fetchall()

        return Profile(
            id=row["id"],
            username=row["username"],
            display_name=row["display_name"],
            bio=row["bio"],
            avatar_url=row["avatar_url"],
            is_premium=bool(row["is_premium"]),
            links=[
                Link(
                    id=r["id"], title=r["title"], url=r["url"], icon=r["icon"],
                    position=int(r["position"]), is_active=bool(r["is_active"]),
                    click_count=int(r["click_count"]),
                )
                for r in link_rows
            ],
            social_embeds=[
                SocialEmbed(
                    id=r["id"], platform=r["platform"], embed_url=r["embed_url"],
                    position=int(r["position"]), is_active=bool(r["is_active"]),
                )
                for r in social_rows
            ],
        )

    @staticmethod
    def _row_to_service(row: sqlite3.Row) -> Service:
        return Service(
            id=row["id"],
            profile_id=row["profile_id"],
            title=row["title"],
            description=row["description"],
            category=row["category"],
            pricing=row["pricing"],
            price_amount=row["price_amount"],
            price_currency=row["price_currency"],
            action_type=row["action_type"],
            position=int(row["position"]),
            is_active=bool(row["is_active"]),
        )

    def list_active_services(self, profile_id: str) -> List[Service]:
        with self._db("list_active_services") as conn:
            rows = conn.execute(
                "SELECT * FROM services WHERE profile_id = ? AND is_active = 1 ORDER BY position",
                (profile_id,),
            ).fetchall()
        return [self._row_to_service(r) for r in rows]

    def get_service(self, service_id: str) -> Optional[Service]:
        with self._db("get_service") as conn:
            row = conn.execute("SELECT * FROM services WHERE id = ?", (service_id,)).fetchone()
        return self._row_to_service(row) if row else None

    def insert_inquiry(
        self,
        service_id: str,
        profile_id: str,
        sender_name: str,
        sender_email: str,
        message: str,
        source: str,
        agent_identifier: Optional[str],
    ) -> ServiceInquiry:
        inquiry = ServiceInquiry(
            id=f"inq_{secrets.token_hex(12)}",
            service_id=service_id,
            profile_id=profile_id,
            sender_name=sender_name,
            sender_email=sender_email,
            message=message,
            source=source,
            agent_identifier=agent_identifier,
            created_at=_now_iso(),
        )
        with self._db("insert_inquiry") as conn:
            conn.execute(
                """
                INSERT INTO service_inquiries
                (id, service_id, profile_id, sender_name, sender_email, message, source, agent_identifier, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    inquiry.id, inquiry.service_id, inquiry.profile_id, inquiry.sender_name,
                    inquiry.sender_email, inquiry.message, inquiry.source, inquiry.agent_identifier,
                    inquiry.created_at,
                ),
            )
        return inquiry

    def list_inquiries(self, profile_id: str) -> List[ServiceInquiry]:
        with self._db("list_inquiries") as conn:
            rows = conn.execute(
                "SELECT * FROM service_inquiries WHERE profile_id = ? ORDER BY created_at",
                (profile_id,),
            ).fetchall()
        return [ServiceInquiry(**{k: r[k] for k in r.keys()}) for r in rows]

    def insert_visit(self, visit: AgentVisit) -> None:
        with self._db("insert_visit") as conn:
            conn.execute(
                """
                INSERT INTO agent_visits
                (profile_id, agent_identifier, agent_name, user_agent, endpoint, method, country, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    visit.profile_id, visit.agent_identifier, visit.agent_name, visit.user_agent,
                    visit.endpoint, visit.method, visit.country, visit.created_at or _now_iso(),
                ),
            )

    def list_visits(self, profile_id: str) -> List[AgentVisit]:
        with self._db("list_visits") as conn:
            rows = conn.execute(
                "SELECT * FROM agent_visits WHERE profile_id = ? ORDER BY visit_id",
                (profile_id,),
            ).fetchall()
        return [
            AgentVisit(
                profile_id=r["profile_id"], agent_identifier=r["agent_identifier"],
                agent_name=r["agent_name"], user_agent=r["user_agent"], endpoint=r["endpoint"],
                method=r["method"], country=r["country"], created_at=r["created_at"],
            )
            for r in rows
        ]

    # ---------------------------
    # Seeding (CLI / demo / tests)
    # ---------------------------

    def save_profile(self, profile: Profile) -> None:
        """Insert or replace a profile together with its links and socials."""
        with self._db("save_profile") as conn:
            conn.execute(
                """
                INSERT INTO profiles (id, username, display_name, bio, avatar_url, is_premium)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username = excluded.username,
                    display_name = excluded.display_name,
                    bio = excluded.bio,
                    avatar_url = excluded.avatar_url,
                    is_premium = excluded.is_premium
                """,
                (profile.id, profile.username, profile.display_name, profile.bio,
                 profile.avatar_url, bool(profile.is_premium)),
            )
            conn.execute("DELETE FROM links WHERE profile_id = ?", (profile.id,))
            conn.execute("DELETE FROM social_embeds WHERE profile_id = ?", (profile.id,))
            conn.executemany(
                """
                INSERT INTO links (id, profile_id, title, url, icon, position, is_active, click_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (l.id, profile.id, l.title, l.url, l.icon, l.position, bool(l.is_active), l.click_count)
                    for l in profile.links
                ],
            )
            conn.executemany(
                """
                INSERT INTO social_embeds (id, profile_id, platform, embed_url, position, is_active)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (s.id, profile.id, s.platform, s.embed_url, s.position, bool(s.is_active))
                    for s in profile.social_embeds
                ],
            )

    def save_service(self, service: Service) -> None:
        with self._db("save_service") as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO services
                (id, profile_id, title, description, category, pricing, price_amount, price_currency,
                 action_type, position, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    service.id, service.profile_id, service.title, service.description, service.category,
                    service.pricing, service.price_amount, service.price_currency, service.action_type,
                    service.position, bool(service.is_active),
                ),
            )
