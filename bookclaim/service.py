"""Claim authorization.

`ClaimAuthorizationService` owns a root registry, a claim ledger and a
minter. A claim is checked in a fixed order (root configured, proof valid,
not yet claimed), recorded, and only then handed to the minter. Every failure
before the ledger write leaves all state untouched.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Optional

from prometheus_client import CollectorRegistry, Counter

from .config import LEAF_SCOPES
from .crypto import canonical_identity, leaf_hash
from .merkle import verify_proof, to_hex
from .errors import BookClaimError, InvalidProof, AlreadyClaimed
from .registry import SqliteRootRegistry
from .ledger import SqliteClaimLedger
from .minter import LoggingMinter, HttpMinter
from . import db

logger = logging.getLogger(__name__)

metrics_registry = CollectorRegistry()
CLAIMS = Counter('bookclaim_claims_total', 'Claim attempts by outcome', ['outcome'], registry=metrics_registry)
ROOT_UPDATES = Counter('bookclaim_root_updates_total', 'Category root updates', registry=metrics_registry)


@dataclass
class AuthorizationResult:
    identity: str
    category: object
    root: str
    minted: bool
    receipt: Optional[dict] = None
    mint_error: Optional[str] = None
    granted: bool = field(default=True, init=False)

    def to_dict(self):
        return asdict(self)


class ClaimAuthorizationService:
    def __init__(self, registry, ledger, minter=None, leaf_scope: str = 'global'):
        if leaf_scope not in LEAF_SCOPES:
            raise ValueError(f'leaf_scope must be one of {LEAF_SCOPES}, got {leaf_scope!r}')
        self.registry = registry
        self.ledger = ledger
        self.minter = minter or LoggingMinter()
        self.leaf_scope = leaf_scope

    def leaf_for(self, identity, category) -> bytes:
        if self.leaf_scope == 'category':
            return leaf_hash(identity, category)
        return leaf_hash(identity)

    def authorize_claim(self, identity, category, proof) -> AuthorizationResult:
        try:
            result = self._authorize(identity, category, proof)
        except BookClaimError as e:
            CLAIMS.labels(outcome=e.code).inc()
            logger.info('Claim by %r for category %s rejected: %s', identity, category, e.code)
            raise
        CLAIMS.labels(outcome='granted' if result.minted else 'granted-mint-failed').inc()
        return result

    def _authorize(self, identity, category, proof) -> AuthorizationResult:
        ident = canonical_identity(identity)
        # one read per attempt; later root updates do not affect this claim
        root = self.registry.get_root(category)
        leaf = self.leaf_for(ident, category)
        if not verify_proof(leaf, proof, root):
            raise InvalidProof(f'proof for {ident} does not match the root of category {category}')
        with self.ledger.claim_lock(ident, category):
            if self.ledger.has_claimed(ident, category):
                raise AlreadyClaimed(f'{ident} already claimed category {category}')
            self.ledger.mark_claimed(ident, category)
        logger.info('Claim by %s for category %s authorized', ident, category)
        try:
            receipt = self.minter.mint(ident, category)
        except Exception as e:
            # the claim stays consumed; the caller sees the mint failure
            logger.exception('Minting failed for %s in category %s after claim was recorded', ident, category)
            return AuthorizationResult(ident, category, to_hex(root), minted=False, mint_error=str(e))
        return AuthorizationResult(ident, category, to_hex(root), minted=True, receipt=receipt)

    def set_book_merkle_root(self, category, root, caller):
        self.registry.set_root(category, root, caller)
        ROOT_UPDATES.inc()

    def get_book_merkle_root(self, category) -> str:
        return to_hex(self.registry.get_root(category))

    def claim(self, caller, category, proof) -> AuthorizationResult:
        return self.authorize_claim(caller, category, proof)

    def has_claimed(self, identity, category) -> bool:
        return self.ledger.has_claimed(identity, category)


def from_settings(settings: dict) -> ClaimAuthorizationService:
    """Build a service backed by the SQLite store described in `settings`."""
    db_path = settings['db_path']
    db.init_db(db_path)
    minter = HttpMinter(settings['minter_url']) if settings.get('minter_url') else LoggingMinter()
    return ClaimAuthorizationService(
        SqliteRootRegistry(settings.get('admins', []), db_path=db_path),
        SqliteClaimLedger(db_path=db_path),
        minter=minter,
        leaf_scope=settings.get('leaf_scope', 'global'),
    )
