"""Claim ledger: one consumption flag per (identity, category).

Entries only ever go from unclaimed to claimed. `mark_claimed` is a
compare-and-set that raises AlreadyClaimed when the flag is already set, and
`claim_lock` serializes a caller's check-then-mark for a single key without
touching other keys.
"""
import logging
import sqlite3
import threading
from contextlib import contextmanager

from .crypto import canonical_identity
from .errors import AlreadyClaimed
from . import db

logger = logging.getLogger(__name__)


class KeyedLocks:
    """Lazily created lock per key."""

    def __init__(self):
        self._locks = {}
        self._guard = threading.Lock()

    def get(self, key) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class ClaimLedger:
    def __init__(self):
        self._key_locks = KeyedLocks()

    @staticmethod
    def key(identity, category):
        return canonical_identity(identity), category

    @contextmanager
    def claim_lock(self, identity, category):
        with self._key_locks.get(self.key(identity, category)):
            yield

    def has_claimed(self, identity, category) -> bool:
        raise NotImplementedError

    def mark_claimed(self, identity, category):
        raise NotImplementedError


class MemoryClaimLedger(ClaimLedger):
    def __init__(self):
        super().__init__()
        self._claimed = set()
        self._write = threading.Lock()

    def has_claimed(self, identity, category) -> bool:
        return self.key(identity, category) in self._claimed

    def mark_claimed(self, identity, category):
        k = self.key(identity, category)
        with self._write:
            if k in self._claimed:
                raise AlreadyClaimed(f'{k[0]} already claimed category {category}')
            self._claimed.add(k)
        logger.info('Marked %s as claimed for category %s', k[0], category)


class SqliteClaimLedger(ClaimLedger):
    """Ledger persisted in the Claims table; the primary key makes the insert the compare-and-set."""

    def __init__(self, db_path=None):
        super().__init__()
        self.db_path = db_path

    def has_claimed(self, identity, category) -> bool:
        ident, _ = self.key(identity, category)
        conn = db.get_conn(self.db_path)
        try:
            row = conn.execute('SELECT 1 FROM Claims WHERE identity=? AND category=?', (ident, str(category))).fetchone()
        finally:
            conn.close()
        return row is not None

    def mark_claimed(self, identity, category):
        ident, _ = self.key(identity, category)
        conn = db.get_conn(self.db_path)
        try:
            conn.execute("INSERT INTO Claims (identity, category, claimed_at) VALUES (?, ?, datetime('now'))", (ident, str(category)))
            conn.commit()
        except sqlite3.IntegrityError:
            raise AlreadyClaimed(f'{ident} already claimed category {category}')
        finally:
            conn.close()
        logger.info('Marked %s as claimed for category %s', ident, category)

    def claimed_at(self, identity, category):
        ident, _ = self.key(identity, category)
        conn = db.get_conn(self.db_path)
        try:
            row = conn.execute('SELECT claimed_at FROM Claims WHERE identity=? AND category=?', (ident, str(category))).fetchone()
        finally:
            conn.close()
        return row['claimed_at'] if row else None
