"""Category root registry.

Maps a category (book id) to the Merkle root that is currently authoritative
for it. Writes replace the previous root outright; proofs issued against an
older root stop verifying for new claims. Only callers in the registry's
admin set may write.
"""
import logging
import threading
from typing import Iterable

from .crypto import canonical_identity
from .merkle import to_digest, to_hex
from .errors import Unauthorized, NoRootConfigured, InvalidIdentity
from . import db

logger = logging.getLogger(__name__)


class RootRegistry:
    """Admin check shared by the registry back ends."""

    def __init__(self, admins: Iterable = ()):
        self.admins = {canonical_identity(a) for a in admins}

    def is_admin(self, caller) -> bool:
        try:
            return canonical_identity(caller) in self.admins
        except InvalidIdentity:
            return False

    def _check_admin(self, caller):
        if not self.is_admin(caller):
            logger.warning('Rejected root update from non-admin caller %r', caller)
            raise Unauthorized(f'caller {caller!r} may not set category roots')

    def set_root(self, category, root, caller):
        self._check_admin(caller)
        digest = to_digest(root)
        self._store(category, digest, canonical_identity(caller))
        logger.info('Root for category %s set to %s by %s', category, to_hex(digest), caller)

    def get_root(self, category) -> bytes:
        raise NotImplementedError

    def _store(self, category, digest: bytes, caller: str):
        raise NotImplementedError


class MemoryRootRegistry(RootRegistry):
    def __init__(self, admins: Iterable = ()):
        super().__init__(admins)
        self._roots = {}
        self._lock = threading.Lock()

    def _store(self, category, digest, caller):
        with self._lock:
            self._roots[category] = digest

    def get_root(self, category) -> bytes:
        with self._lock:
            root = self._roots.get(category)
        if root is None:
            raise NoRootConfigured(f'category {category} has no Merkle root')
        return root


class SqliteRootRegistry(RootRegistry):
    """Registry persisted in the BookRoots table; categories are stored as text."""

    def __init__(self, admins: Iterable = (), db_path=None):
        super().__init__(admins)
        self.db_path = db_path

    def _store(self, category, digest, caller):
        conn = db.get_conn(self.db_path)
        try:
            conn.execute(
                "INSERT INTO BookRoots (category, root, set_by, updated_at) VALUES (?, ?, ?, datetime('now')) "
                "ON CONFLICT(category) DO UPDATE SET root=excluded.root, set_by=excluded.set_by, updated_at=excluded.updated_at",
                (str(category), to_hex(digest), caller))
            conn.commit()
        finally:
            conn.close()

    def get_root(self, category) -> bytes:
        conn = db.get_conn(self.db_path)
        try:
            row = conn.execute('SELECT root FROM BookRoots WHERE category=?', (str(category),)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NoRootConfigured(f'category {category} has no Merkle root')
        return to_digest(row['root'])
