"""
SQLite database layer for ShopReel.
Thread-safe via check_same_thread=False + explicit locking.

Every statement runs under ``self._lock``; conditional status claims are a
single UPDATE whose row count tells the caller whether it won.
"""

import json
import sqlite3
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from shopreel.core.constants import (
    DB_PATH, DomainStatus, VideoStatus, PublishStatus,
    VIDEO_TRANSITIONS, PUBLISH_TRANSITIONS,
)
from shopreel.core.error_codes import InternalError
from shopreel.core.models_sqlite import Domain, Product, DomainWithProducts

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS domains (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    domain_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    url TEXT NOT NULL,
    images TEXT NOT NULL,
    video_status TEXT NOT NULL DEFAULT 'unavailable',
    video_url TEXT,
    video_task_id TEXT,
    publish_status TEXT NOT NULL DEFAULT 'not_published',
    publish_id TEXT,
    publish_url TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (domain_id) REFERENCES domains(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_domains_created_at ON domains(created_at);
CREATE INDEX IF NOT EXISTS idx_products_domain ON products(domain_id, created_at);
"""

# Columns a caller may change through update_domain / update_product.
_DOMAIN_FIELDS = {'status'}
_PRODUCT_FIELDS = {
    'title', 'description', 'images',
    'video_status', 'video_url', 'video_task_id',
    'publish_status', 'publish_id', 'publish_url',
}

_STATUS_ENUMS = {
    'status': DomainStatus,
    'video_status': VideoStatus,
    'publish_status': PublishStatus,
}

_TRANSITION_TABLES = {
    'video_status': VIDEO_TRANSITIONS,
    'publish_status': PUBLISH_TRANSITIONS,
}


def _coerce_status(column: str, value) -> str:
    """Validate a status value against its closed enum; return the raw string."""
    enum_cls = _STATUS_ENUMS[column]
    try:
        return enum_cls(value).value
    except ValueError:
        raise InternalError(f"Unknown {column} value: {value!r}")


def _sources_of(transitions: dict, target) -> list[str]:
    """Statuses from which the table allows a move to target."""
    return sorted(s.value for s, targets in transitions.items() if target in targets)


class Database:
    """SQLite database wrapper for ShopReel."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = Path(db_path) if db_path else DB_PATH
        self._lock = threading.RLock()
        self._ensure_dirs()
        self.conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._migrate()

    def _ensure_dirs(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _migrate(self):
        with self._lock:
            cur = self.conn.cursor()
            cur.executescript(_CREATE_TABLES)
            cur.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (_SCHEMA_VERSION,),
            )
            self.conn.commit()

    def close(self):
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None

    # ── Helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _row_to_domain(row: sqlite3.Row) -> Domain:
        data = dict(row)
        data['status'] = DomainStatus(_coerce_status('status', data['status']))
        return Domain(**data)

    @staticmethod
    def _row_to_product(row: sqlite3.Row) -> Product:
        data = dict(row)
        data['images'] = json.loads(data['images'] or '[]')
        data['video_status'] = VideoStatus(
            _coerce_status('video_status', data['video_status']))
        data['publish_status'] = PublishStatus(
            _coerce_status('publish_status', data['publish_status']))
        return Product(**data)

    @staticmethod
    def _prepare_fields(fields: dict, allowed: set[str]) -> dict:
        unknown = set(fields) - allowed
        if unknown:
            raise InternalError(f"Cannot update columns: {sorted(unknown)}")
        prepared = {}
        for key, value in fields.items():
            if key in _STATUS_ENUMS:
                value = _coerce_status(key, value)
            elif key == 'images':
                value = json.dumps(list(value))
            prepared[key] = value
        return prepared

    def _update_row(self, table: str, row_id: int, fields: dict) -> bool:
        fields['updated_at'] = self._now()
        sets = ', '.join(f"{k} = ?" for k in fields)
        vals = list(fields.values()) + [row_id]
        with self._lock:
            cur = self.conn.execute(
                f"UPDATE {table} SET {sets} WHERE id = ?", vals
            )
            self.conn.commit()
            return cur.rowcount > 0

    # ── Domain CRUD ───────────────────────────────────────────────────

    def create_domain(self, url: str) -> Domain:
        now = self._now()
        with self._lock:
            cur = self.conn.execute(
                """INSERT INTO domains (url, status, created_at, updated_at)
                   VALUES (?, ?, ?, ?)""",
                (url, DomainStatus.PENDING.value, now, now),
            )
            self.conn.commit()
            domain_id = cur.lastrowid
        return Domain(id=domain_id, url=url, status=DomainStatus.PENDING,
                      created_at=now, updated_at=now)

    def get_domain(self, domain_id: int) -> Domain | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM domains WHERE id = ?", (domain_id,)
            ).fetchone()
        return self._row_to_domain(row) if row else None

    def list_domains(self) -> list[Domain]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM domains ORDER BY created_at, id"
            ).fetchall()
        return [self._row_to_domain(r) for r in rows]

    def get_domain_with_products(self, domain_id: int) -> DomainWithProducts | None:
        with self._lock:
            domain = self.get_domain(domain_id)
            if domain is None:
                return None
            return DomainWithProducts(domain, self.get_products_by_domain(domain_id))

    def update_domain(self, domain_id: int, **fields) -> bool:
        return self._update_row(
            'domains', domain_id, self._prepare_fields(fields, _DOMAIN_FIELDS))

    def delete_domain(self, domain_id: int) -> bool:
        """Delete a domain; its products go with it (ON DELETE CASCADE)."""
        with self._lock:
            cur = self.conn.execute("DELETE FROM domains WHERE id = ?", (domain_id,))
            self.conn.commit()
            return cur.rowcount > 0

    # ── Product CRUD ──────────────────────────────────────────────────

    def insert_products(self, products: list[Product]) -> list[Product]:
        """Bulk insert in one transaction. Returns the rows with ids assigned."""
        now = self._now()
        inserted = []
        with self._lock:
            try:
                for p in products:
                    cur = self.conn.execute(
                        """INSERT INTO products
                           (domain_id, title, description, url, images,
                            video_status, publish_status, created_at, updated_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        (p.domain_id, p.title, p.description, p.url,
                         json.dumps(list(p.images)),
                         _coerce_status('video_status', p.video_status),
                         _coerce_status('publish_status', p.publish_status),
                         now, now),
                    )
                    inserted.append(cur.lastrowid)
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
        return [self.get_product(pid) for pid in inserted]

    def get_product(self, product_id: int) -> Product | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM products WHERE id = ?", (product_id,)
            ).fetchone()
        return self._row_to_product(row) if row else None

    def list_products(self) -> list[Product]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM products ORDER BY created_at, id"
            ).fetchall()
        return [self._row_to_product(r) for r in rows]

    def get_products_by_domain(self, domain_id: int) -> list[Product]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM products WHERE domain_id = ? ORDER BY created_at, id",
                (domain_id,),
            ).fetchall()
        return [self._row_to_product(r) for r in rows]

    def update_product(self, product_id: int, **fields) -> bool:
        return self._update_row(
            'products', product_id, self._prepare_fields(fields, _PRODUCT_FIELDS))

    def delete_product(self, product_id: int) -> bool:
        with self._lock:
            cur = self.conn.execute("DELETE FROM products WHERE id = ?", (product_id,))
            self.conn.commit()
            return cur.rowcount > 0

    # ── Conditional transitions ───────────────────────────────────────

    def claim_video_generation(self, product_id: int) -> bool:
        """
        Atomically move a product to video 'processing' from any status that
        VIDEO_TRANSITIONS allows. Refused while the video is (being) published.
        The previous task id and video URL are cleared so a stale poll or a
        result-less success cannot resurface the old job's video.
        """
        sources = _sources_of(VIDEO_TRANSITIONS, VideoStatus.PROCESSING)
        marks = ', '.join('?' * len(sources))
        with self._lock:
            cur = self.conn.execute(
                f"""UPDATE products
                    SET video_status = ?, video_task_id = NULL, video_url = NULL,
                        updated_at = ?
                    WHERE id = ?
                      AND video_status IN ({marks})
                      AND publish_status NOT IN (?, ?)""",
                (VideoStatus.PROCESSING.value, self._now(), product_id, *sources,
                 PublishStatus.PUBLISHING.value, PublishStatus.PUBLISHED.value),
            )
            self.conn.commit()
            return cur.rowcount == 1

    def claim_publish(self, product_id: int) -> bool:
        """
        Atomically move a product to publish 'publishing' from any status that
        PUBLISH_TRANSITIONS allows. Requires a finished video. A 'published' row
        without an id never completed and may be claimed again.
        """
        sources = _sources_of(PUBLISH_TRANSITIONS, PublishStatus.PUBLISHING)
        marks = ', '.join('?' * len(sources))
        with self._lock:
            cur = self.conn.execute(
                f"""UPDATE products
                    SET publish_status = ?, updated_at = ?
                    WHERE id = ?
                      AND video_status = ?
                      AND video_url IS NOT NULL AND video_url != ''
                      AND (publish_status IN ({marks})
                           OR (publish_status = ? AND publish_id IS NULL))""",
                (PublishStatus.PUBLISHING.value, self._now(), product_id,
                 VideoStatus.FINISH.value, *sources,
                 PublishStatus.PUBLISHED.value),
            )
            self.conn.commit()
            return cur.rowcount == 1

    def transition_product(self, product_id: int, column: str, from_status,
                           to_status, **fields) -> bool:
        """
        Move a product status column from_status → to_status, writing the extra
        fields with it, but only while the row still holds from_status.
        Transitions outside the column's table raise InternalError.
        """
        enum_cls = _STATUS_ENUMS[column]
        from_status, to_status = enum_cls(from_status), enum_cls(to_status)
        if to_status not in _TRANSITION_TABLES[column][from_status]:
            raise InternalError(
                f"Illegal {column} transition {from_status.value} → {to_status.value}")
        fields = self._prepare_fields(fields, _PRODUCT_FIELDS)
        fields[column] = _coerce_status(column, to_status)
        fields['updated_at'] = self._now()
        sets = ', '.join(f"{k} = ?" for k in fields)
        with self._lock:
            cur = self.conn.execute(
                f"UPDATE products SET {sets} WHERE id = ? AND {column} = ?",
                [*fields.values(), product_id, from_status.value],
            )
            self.conn.commit()
            return cur.rowcount == 1

    def apply_video_poll(self, product_id: int, task_id: str,
                         video_status: VideoStatus, video_url: str | None) -> bool:
        """
        Persist a reconciled video status, but only onto the job that was polled
        and only while that job is still in flight.
        """
        video_status = VideoStatus(_coerce_status('video_status', video_status))
        if (video_status != VideoStatus.PROCESSING
                and video_status not in VIDEO_TRANSITIONS[VideoStatus.PROCESSING]):
            raise InternalError(
                f"Illegal video_status transition processing → {video_status.value}")
        with self._lock:
            cur = self.conn.execute(
                """UPDATE products
                   SET video_status = ?, video_url = ?, updated_at = ?
                   WHERE id = ? AND video_task_id = ? AND video_status = ?""",
                (video_status.value, video_url,
                 self._now(), product_id, task_id, VideoStatus.PROCESSING.value),
            )
            self.conn.commit()
            return cur.rowcount == 1
