"""
Web App Configuration
Settings for the EV order tracker, read from the environment.
"""

import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Flask session
SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "change-this-secret-key")
SECURE_COOKIES = os.environ.get("FLASK_SECURE_COOKIES", "0") == "1"

# Hosted order table
SUPABASE_URL = os.environ.get("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
ORDER_TABLE = os.environ.get("ORDER_TABLE", "ev_orders")
REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", 30))  # seconds

# "hosted" when a project URL is configured, local SQLite otherwise
ORDER_BACKEND = os.environ.get("ORDER_BACKEND") or ("hosted" if SUPABASE_URL else "sqlite")
SQLITE_PATH = os.environ.get("SQLITE_PATH", os.path.join(BASE_DIR, "data", "orders.db"))

# Access
DASHBOARD_PASSWORD = os.environ.get("DASHBOARD_PASSWORD", "sky12")
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")

# Views
ORDERS_PER_PAGE = int(os.environ.get("ORDERS_PER_PAGE", 10))
DASHBOARD_REFRESH_SECONDS = int(os.environ.get("DASHBOARD_REFRESH_SECONDS", 60))

MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB for CSV uploads


def flask_settings():
    """Settings in the shape ``app.config.update`` expects."""
    return {
        "SECRET_KEY": SECRET_KEY,
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": SECURE_COOKIES,
        "MAX_CONTENT_LENGTH": MAX_CONTENT_LENGTH,
        "SUPABASE_URL": SUPABASE_URL,
        "SUPABASE_ANON_KEY": SUPABASE_ANON_KEY,
        "ORDER_TABLE": ORDER_TABLE,
        "REQUEST_TIMEOUT": REQUEST_TIMEOUT,
        "ORDER_BACKEND": ORDER_BACKEND,
        "SQLITE_PATH": SQLITE_PATH,
        "DASHBOARD_PASSWORD": DASHBOARD_PASSWORD,
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "ORDERS_PER_PAGE": ORDERS_PER_PAGE,
        "DASHBOARD_REFRESH_SECONDS": DASHBOARD_REFRESH_SECONDS,
    }
