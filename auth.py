"""
auth.py
-------
Admin sign-in. The hosted backend checks credentials with the project's
auth service; the SQLite backend keeps admin users in an ``admin_users``
table with Werkzeug password hashes.
"""

import logging
import os
import sqlite3
import time
from dataclasses import dataclass
from typing import Optional

import requests
from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger(__name__)

LOCAL_SESSION_SECONDS = 12 * 60 * 60


class AuthError(Exception):
    """Raised when an admin can't be signed in."""


@dataclass
class AdminSession:
    email: str
    access_token: Optional[str]
    expires_at: float

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at

    def to_dict(self):
        return {"email": self.email, "access_token": self.access_token, "expires_at": self.expires_at}

    @classmethod
    def from_dict(cls, data):
        if not data or not data.get("email"):
            return None
        try:
            return cls(data["email"], data.get("access_token"), float(data.get("expires_at", 0)))
        except (TypeError, ValueError):
            return None


class HostedAuth:
    def __init__(self, base_url: str, anon_key: str, timeout: int = 30):
        if not base_url or not anon_key:
            raise AuthError("Missing SUPABASE_URL or SUPABASE_ANON_KEY")
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.timeout = timeout

    def sign_in(self, email: str, password: str) -> AdminSession:
        try:
            r = requests.post(
                f"{self.auth_url}/token",
                params={"grant_type": "password"},
                headers={"apikey": self.anon_key, "Content-Type": "application/json"},
                json={"email": email, "password": password},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Auth service unreachable: %s", e)
            raise AuthError("Could not reach the sign-in service") from e
        if r.status_code in (400, 401, 403):
            raise AuthError("Invalid email or password.")
        if not r.ok:
            logger.warning("Sign-in failed with HTTP %s", r.status_code)
            raise AuthError("Sign-in failed. Try again later.")
        data = r.json()
        user = data.get("user") or {}
        return AdminSession(
            email=user.get("email") or email,
            access_token=data.get("access_token"),
            expires_at=time.time() + float(data.get("expires_in", 3600)),
        )

    def sign_out(self, admin_session: AdminSession):
        if not admin_session.access_token:
            return
        try:
            requests.post(
                f"{self.auth_url}/logout",
                headers={
                    "apikey": self.anon_key,
                    "Authorization": f"Bearer {admin_session.access_token}",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            # the local session is cleared either way
            logger.warning("Sign-out request failed: %s", e)


class SqliteAuth:
    def __init__(
        self,
        db_path: str,
        default_email: str = "",
        default_password: str = "",
        create_schema: bool = True,
    ):
        self.db_path = db_path
        if create_schema:
            directory = os.path.dirname(db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            init_admin_users(self.connect(), default_email, default_password)

    def connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def sign_in(self, email: str, password: str) -> AdminSession:
        email = (email or "").strip().lower()
        conn = self.connect()
        admin_user = conn.execute("SELECT * FROM admin_users WHERE email = ?", (email,)).fetchone()
        conn.close()
        if not admin_user or not check_password_hash(admin_user["password_hash"], password or ""):
            raise AuthError("Invalid email or password.")
        return AdminSession(
            email=admin_user["email"],
            access_token=None,
            expires_at=time.time() + LOCAL_SESSION_SECONDS,
        )

    def sign_out(self, admin_session: AdminSession):
        return None

    def add_admin(self, email: str, password: str):
        conn = self.connect()
        try:
            conn.execute(
                "INSERT INTO admin_users (email, password_hash) VALUES (?, ?)",
                (email.strip().lower(), generate_password_hash(password)),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise AuthError("Email already exists.") from e
        finally:
            conn.close()


def init_admin_users(conn, default_email: str, default_password: str):
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS admin_users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    count = conn.execute("SELECT COUNT(*) FROM admin_users").fetchone()[0]
    if count == 0 and default_email and default_password:
        conn.execute(
            "INSERT INTO admin_users (email, password_hash) VALUES (?, ?)",
            (default_email.strip().lower(), generate_password_hash(default_password)),
        )
    conn.commit()
    conn.close()


def create_authenticator(settings):
    if settings.get("ORDER_BACKEND") == "hosted":
        return HostedAuth(
            settings.get("SUPABASE_URL", ""),
            settings.get("SUPABASE_ANON_KEY", ""),
            timeout=settings.get("REQUEST_TIMEOUT", 30),
        )
    return SqliteAuth(settings["SQLITE_PATH"], create_schema=False)
