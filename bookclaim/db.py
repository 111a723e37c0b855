import sqlite3
from pathlib import Path

DB_PATH = Path('bookclaim.db')
BUSY_TIMEOUT = 30


def get_conn(db_path=None):
    conn = sqlite3.connect(str(db_path or DB_PATH), timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path=None):
    path = Path(db_path or DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = get_conn(path)
    cur = conn.cursor()
    cur.executescript("""
    PRAGMA journal_mode=WAL;
    CREATE TABLE IF NOT EXISTS BookRoots (
        category TEXT PRIMARY KEY,
        root TEXT NOT NULL,
        set_by TEXT,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    CREATE TABLE IF NOT EXISTS Claims (
        identity TEXT NOT NULL,
        category TEXT NOT NULL,
        claimed_at TEXT DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (identity, category)
    );
    """)
    conn.commit()
    conn.close()
