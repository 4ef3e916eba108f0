"""
order_store.py
--------------
Access to the ev_orders table. ``HostedOrderStore`` talks to the hosted
project's REST endpoint; ``SqliteOrderStore`` keeps the same table in a
local SQLite file for development and tests.
"""

import logging
import os
import sqlite3
import uuid
from typing import Any, Dict, List, Optional

import requests

from orders import ORDER_FIELDS

logger = logging.getLogger(__name__)

ORDER_COLUMNS = ["id"] + ORDER_FIELDS + ["created_at", "updated_at"]
SORTABLE_COLUMNS = set(ORDER_COLUMNS)


class OrderStoreError(Exception):
    """Raised when the order table can't be read or written."""


# ------------------------------------------------------------
# Hosted table (REST)
# ------------------------------------------------------------
class HostedOrderStore:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        table: str = "ev_orders",
        access_token: Optional[str] = None,
        timeout: int = 30,
    ):
        if not base_url or not anon_key:
            raise OrderStoreError("Missing SUPABASE_URL or SUPABASE_ANON_KEY")
        self.endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self.anon_key = anon_key
        self.access_token = access_token
        self.timeout = timeout

    def _headers(self, returning: bool = False) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
            "Content-Type": "application/json",
        }
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    def _request(self, method: str, params=None, json=None, returning=False) -> Any:
        try:
            r = requests.request(
                method,
                self.endpoint,
                headers=self._headers(returning),
                params=params,
                json=json,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.HTTPError as e:
            message = _error_message(e.response)
            logger.warning("Order table %s failed: %s", method, message)
            raise OrderStoreError(message) from e
        except requests.RequestException as e:
            logger.error("Order table unreachable: %s", e)
            raise OrderStoreError("Could not reach the order database") from e
        if not r.content:
            return []
        return r.json()

    def list_orders(self, order_by: Optional[str] = None, descending: bool = False) -> List[dict]:
        params = {"select": "*"}
        if order_by:
            params["order"] = f"{_sort_column(order_by)}.{'desc' if descending else 'asc'}"
        rows = self._request("GET", params=params)
        logger.debug("Fetched %d orders", len(rows))
        return rows

    def get_order(self, order_id: str) -> Optional[dict]:
        rows = self._request("GET", params={"select": "*", "id": f"eq.{order_id}"})
        return rows[0] if rows else None

    def insert_orders(self, rows: List[dict]) -> List[dict]:
        if not rows:
            return []
        created = self._request("POST", json=rows, returning=True)
        logger.info("Inserted %d orders", len(created))
        return created

    def update_order(self, order_id: str, changes: dict) -> Optional[dict]:
        rows = self._request(
            "PATCH", params={"id": f"eq.{order_id}"}, json=_writable(changes), returning=True
        )
        logger.info("Updated order %s", order_id)
        return rows[0] if rows else None


def _error_message(response) -> str:
    if response is None:
        return "Order database request failed"
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("message") or body.get("msg") or body.get("error") or str(body)
    return str(body)


# ------------------------------------------------------------
# Local table (SQLite)
# ------------------------------------------------------------
class SqliteOrderStore:
    def __init__(self, db_path: str, create_schema: bool = True):
        self.db_path = db_path
        if create_schema:
            directory = os.path.dirname(db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            init_db(self)

    def connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def list_orders(self, order_by: Optional[str] = None, descending: bool = False) -> List[dict]:
        query = "SELECT * FROM ev_orders"
        if order_by:
            query += f" ORDER BY {_sort_column(order_by)} {'DESC' if descending else 'ASC'}, rowid"
        else:
            query += " ORDER BY rowid"
        conn = self.connect()
        try:
            rows = conn.execute(query).fetchall()
        except sqlite3.Error as e:
            raise OrderStoreError(str(e)) from e
        finally:
            conn.close()
        logger.debug("Fetched %d orders", len(rows))
        return [dict(row) for row in rows]

    def get_order(self, order_id: str) -> Optional[dict]:
        conn = self.connect()
        try:
            row = conn.execute("SELECT * FROM ev_orders WHERE id = ?", (order_id,)).fetchone()
        except sqlite3.Error as e:
            raise OrderStoreError(str(e)) from e
        finally:
            conn.close()
        return dict(row) if row else None

    def insert_orders(self, rows: List[dict]) -> List[dict]:
        if not rows:
            return []
        ids = []
        conn = self.connect()
        try:
            for row in rows:
                order_id = str(uuid.uuid4())
                # columns left out fall back to the table defaults
                columns = [field for field in ORDER_FIELDS if row.get(field) is not None]
                conn.execute(
                    f"""
                    INSERT INTO ev_orders (id{''.join(', ' + column for column in columns)})
                    VALUES (?{', ?' * len(columns)})
                    """,
                    [order_id] + [row[column] for column in columns],
                )
                ids.append(order_id)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise OrderStoreError(str(e)) from e
        finally:
            conn.close()
        logger.info("Inserted %d orders", len(ids))
        return [self.get_order(order_id) for order_id in ids]

    def update_order(self, order_id: str, changes: dict) -> Optional[dict]:
        changes = _writable(changes)
        if not changes:
            return self.get_order(order_id)
        assignments = ", ".join(f"{column} = ?" for column in changes)
        conn = self.connect()
        try:
            cursor = conn.execute(
                f"UPDATE ev_orders SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                list(changes.values()) + [order_id],
            )
            conn.commit()
            updated = cursor.rowcount
        except sqlite3.Error as e:
            raise OrderStoreError(str(e)) from e
        finally:
            conn.close()
        if updated == 0:
            return None
        logger.info("Updated order %s", order_id)
        return self.get_order(order_id)


def init_db(store: SqliteOrderStore):
    conn = store.connect()
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS ev_orders (
            id TEXT PRIMARY KEY,
            party_name TEXT NOT NULL,
            location TEXT NOT NULL,
            model TEXT NOT NULL,
            type TEXT NOT NULL DEFAULT 'Classic',
            tyre TEXT NOT NULL DEFAULT '',
            motor TEXT NOT NULL DEFAULT '',
            battery TEXT,
            customization TEXT,
            order_date TEXT,
            delivery_date TEXT,
            status TEXT,
            remarks TEXT,
            email TEXT,
            phoneno TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        );
        """
    )
    ensure_column(conn, "ev_orders", "email", "TEXT")
    ensure_column(conn, "ev_orders", "phoneno", "TEXT")
    conn.commit()
    conn.close()


def ensure_column(conn, table_name: str, column_name: str, column_type: str):
    cursor = conn.execute(f"PRAGMA table_info({table_name})")
    columns = {row[1] for row in cursor.fetchall()}
    if column_name not in columns:
        conn.execute(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {column_type}")


def _sort_column(column: str) -> str:
    if column not in SORTABLE_COLUMNS:
        raise OrderStoreError(f"Unknown order column: {column}")
    return column


def _writable(changes: dict) -> dict:
    return {key: value for key, value in changes.items() if key in ORDER_FIELDS}


def create_order_store(settings, access_token: Optional[str] = None):
    """Build the store selected by ``ORDER_BACKEND`` in ``settings``.

    SQLite stores built here skip schema setup; the app creates the tables
    once at startup.
    """
    backend = settings.get("ORDER_BACKEND", "sqlite")
    if backend == "hosted":
        return HostedOrderStore(
            settings.get("SUPABASE_URL", ""),
            settings.get("SUPABASE_ANON_KEY", ""),
            table=settings.get("ORDER_TABLE", "ev_orders"),
            access_token=access_token,
            timeout=settings.get("REQUEST_TIMEOUT", 30),
        )
    if backend == "sqlite":
        return SqliteOrderStore(settings["SQLITE_PATH"], create_schema=False)
    raise OrderStoreError(f"Unknown ORDER_BACKEND: {backend}")
