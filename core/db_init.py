"""Create and return the local SQLite connection and its schema.

All repositories share the connection returned by ``init_db``; the app keeps
one per process via ``st.cache_resource``.
"""
import json
import logging
import os
import shutil
import sqlite3
from datetime import datetime

from core.auth import hash_password
from core.constants import BACKUP_DIR, DB_PATH, DEFAULT_COMPANY_SETTINGS, DEFAULT_PERMISSIONS
from core.models import APP_TZ, now_iso

logger = logging.getLogger(__name__)

# (email, pin, name, role, created_at)
DEFAULT_USERS = [
    ("admin@postpos.com", "123456", "Admin User", "admin", "2024-01-01T00:00:00+00:00"),
    ("manager@postpos.com", "234567", "Store Manager", "manager", "2024-01-15T00:00:00+00:00"),
    ("user@postpos.com", "345678", "John Cashier", "user", "2024-02-01T00:00:00+00:00"),
]


def init_db(path: str = DB_PATH) -> sqlite3.Connection:
    """Open (or create) the database file and make sure the schema exists."""
    conn = _connect_sqlite(path)
    init_schema(conn)
    return conn


def _connect_sqlite(path: str) -> sqlite3.Connection:
    """Create local SQLite connection (ensures data dir exists)."""
    directory = os.path.dirname(path)
    if path != ":memory:" and directory:
        os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _columns(cur: sqlite3.Cursor, table: str) -> list:
    cur.execute(f"PRAGMA table_info({table})")
    return [r[1] for r in cur.fetchall()]


def init_schema(conn: sqlite3.Connection) -> None:
    """Create tables for a new database (safe to run on existing DB)."""
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT DEFAULT '',
            price REAL NOT NULL,
            cost REAL DEFAULT 0,
            stock INTEGER DEFAULT 0,
            category TEXT,
            barcode TEXT UNIQUE,
            image TEXT,
            is_active INTEGER DEFAULT 1,
            created_at TEXT,
            updated_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS orders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            subtotal REAL NOT NULL,
            tax REAL NOT NULL DEFAULT 0,
            total REAL NOT NULL,
            status TEXT NOT NULL CHECK (status IN ('pending', 'paid', 'completed', 'cancelled')),
            payment_method TEXT,
            notes TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            completed_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS order_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            order_id INTEGER NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
            product_id INTEGER NOT NULL,
            product_name TEXT NOT NULL,
            quantity INTEGER NOT NULL,
            unit_price REAL NOT NULL,
            total_price REAL NOT NULL
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS customers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            customer_number TEXT UNIQUE NOT NULL,
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            company_name TEXT,
            email TEXT,
            phone TEXT,
            phone_secondary TEXT,
            address_line1 TEXT,
            address_line2 TEXT,
            city TEXT,
            state TEXT,
            postal_code TEXT,
            country TEXT DEFAULT 'US',
            customer_type TEXT DEFAULT 'individual',
            customer_segment TEXT,
            credit_limit REAL DEFAULT 0,
            current_balance REAL DEFAULT 0,
            tax_exempt INTEGER DEFAULT 0,
            tax_id TEXT,
            loyalty_points INTEGER DEFAULT 0,
            total_purchases REAL DEFAULT 0,
            total_orders INTEGER DEFAULT 0,
            first_purchase_date TEXT,
            last_purchase_date TEXT,
            is_active INTEGER DEFAULT 1,
            notes TEXT,
            tags TEXT,
            custom_fields TEXT,
            created_at TEXT,
            updated_at TEXT,
            created_by INTEGER,
            deleted_at TEXT
        )
        """
    )

    # Users table for authentication
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT UNIQUE NOT NULL,
            password TEXT NOT NULL,
            name TEXT NOT NULL,
            role TEXT NOT NULL CHECK (role IN ('admin', 'manager', 'user')),
            permissions TEXT NOT NULL,
            created_at TEXT,
            last_login TEXT,
            deleted_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS company_settings (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            tax_enabled INTEGER DEFAULT 1,
            tax_percentage REAL DEFAULT 10.0,
            currency_symbol TEXT DEFAULT '$',
            language TEXT DEFAULT 'en',
            logo_url TEXT,
            address TEXT,
            phone TEXT,
            email TEXT,
            website TEXT,
            created_at TEXT,
            updated_at TEXT
        )
        """
    )

    # Schema migrations for databases created by older builds
    if "user_id" not in _columns(cur, "orders"):
        cur.execute("ALTER TABLE orders ADD COLUMN user_id INTEGER")
    if "deleted_at" not in _columns(cur, "users"):
        cur.execute("ALTER TABLE users ADD COLUMN deleted_at TEXT")

    _seed_defaults(cur)
    conn.commit()


def _seed_defaults(cur: sqlite3.Cursor) -> None:
    now = now_iso()
    settings = DEFAULT_COMPANY_SETTINGS
    cur.execute(
        """
        INSERT OR IGNORE INTO company_settings (
            id, name, description, tax_enabled, tax_percentage,
            currency_symbol, language, created_at, updated_at
        ) VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            settings["name"],
            settings["description"],
            1 if settings["tax_enabled"] else 0,
            settings["tax_percentage"],
            settings["currency_symbol"],
            settings["language"],
            now,
            now,
        ),
    )
    for user_id, (email, pin, name, role, created_at) in enumerate(DEFAULT_USERS, start=1):
        cur.execute(
            """
            INSERT OR IGNORE INTO users (id, email, password, name, role, permissions, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (user_id, email, hash_password(pin), name, role, json.dumps(DEFAULT_PERMISSIONS[role]), created_at),
        )


def backup_database(src: str = DB_PATH, backups_dir: str = BACKUP_DIR) -> str:
    """Create a dated copy of the DB in the backups directory."""
    try:
        os.makedirs(backups_dir, exist_ok=True)
        timestamp = datetime.now(APP_TZ).strftime("%Y%m%d_%H%M%S")
        backup_file = os.path.join(backups_dir, f"postpos_backup_{timestamp}.db")
        shutil.copy2(src, backup_file)
        return "Backup created: " + backup_file
    except OSError as e:
        logger.exception("Backup failed: %s", e)
        return "Backup failed: " + str(e)
