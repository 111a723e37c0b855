import threading
import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import pytest
from bookclaim import db
from bookclaim.allowlist import build_allowlist, proof_for
from bookclaim.errors import AlreadyClaimed, NoRootConfigured, Unauthorized
from bookclaim.ledger import SqliteClaimLedger, MemoryClaimLedger
from bookclaim.registry import SqliteRootRegistry
from bookclaim.service import ClaimAuthorizationService, from_settings

ADMIN = '0x2F9e113434aeBDd70bB99cB6505e1F726C578D6d'
ADDR = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'
ROOT = '0x' + 'ab' * 32


def test_sqlite_registry_roundtrip(tmp_path):
    path = tmp_path / 'claims.db'
    db.init_db(path)
    reg = SqliteRootRegistry([ADMIN], db_path=path)
    with pytest.raises(NoRootConfigured):
        reg.get_root(7)
    reg.set_root(7, ROOT, ADMIN)
    assert reg.get_root(7) == bytes.fromhex('ab' * 32)
    reg.set_root(7, '0x' + 'cd' * 32, ADMIN)
    assert reg.get_root(7) == bytes.fromhex('cd' * 32)
    # a new registry over the same file sees the persisted root
    assert SqliteRootRegistry([], db_path=path).get_root(7) == bytes.fromhex('cd' * 32)


def test_sqlite_registry_rejects_non_admin_and_bad_root(tmp_path):
    path = tmp_path / 'claims.db'
    db.init_db(path)
    reg = SqliteRootRegistry([ADMIN], db_path=path)
    with pytest.raises(Unauthorized):
        reg.set_root(1, ROOT, ADDR)
    with pytest.raises(ValueError):
        reg.set_root(1, '0x1234', ADMIN)
    with pytest.raises(NoRootConfigured):
        reg.get_root(1)


@pytest.mark.parametrize('kind', ['memory', 'sqlite'])
def test_ledger_mark_is_monotonic(tmp_path, kind):
    if kind == 'sqlite':
        path = tmp_path / 'claims.db'
        db.init_db(path)
        ledger = SqliteClaimLedger(db_path=path)
    else:
        ledger = MemoryClaimLedger()
    assert not ledger.has_claimed(ADDR, 1)
    ledger.mark_claimed(ADDR, 1)
    assert ledger.has_claimed(ADDR.lower(), 1)
    assert not ledger.has_claimed(ADDR, 2)
    with pytest.raises(AlreadyClaimed):
        ledger.mark_claimed(ADDR.upper().replace('0X', '0x'), 1)
    assert ledger.has_claimed(ADDR, 1)


def test_sqlite_records_claim_time(tmp_path):
    path = tmp_path / 'claims.db'
    db.init_db(path)
    ledger = SqliteClaimLedger(db_path=path)
    assert ledger.claimed_at(ADDR, 1) is None
    ledger.mark_claimed(ADDR, 1)
    assert ledger.claimed_at(ADDR, 1)


def test_sqlite_concurrent_claims_single_winner(tmp_path):
    path = tmp_path / 'claims.db'
    db.init_db(path)
    svc = ClaimAuthorizationService(SqliteRootRegistry([ADMIN], db_path=path), SqliteClaimLedger(db_path=path))
    dist = build_allowlist([ADDR, ADMIN])
    svc.set_book_merkle_root(1, dist['root'], ADMIN)
    proof = proof_for(dist, ADDR)
    barrier = threading.Barrier(6)
    outcomes = []

    def attempt():
        barrier.wait()
        try:
            svc.claim(ADDR, 1, proof)
            outcomes.append('ok')
        except AlreadyClaimed:
            outcomes.append('already')

    threads = [threading.Thread(target=attempt) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(outcomes) == ['already'] * 5 + ['ok']


def test_ledger_compare_and_set_without_service_lock(tmp_path):
    # two ledgers over one file do not share locks; the primary key still decides
    path = tmp_path / 'claims.db'
    db.init_db(path)
    a = SqliteClaimLedger(db_path=path)
    b = SqliteClaimLedger(db_path=path)
    a.mark_claimed(ADDR, 3)
    with pytest.raises(AlreadyClaimed):
        b.mark_claimed(ADDR, 3)


def test_from_settings_uses_sqlite(tmp_path):
    settings = {'db_path': str(tmp_path / 'x' / 'claims.db'), 'admins': [ADMIN], 'leaf_scope': 'global', 'minter_url': None}
    svc = from_settings(settings)
    dist = build_allowlist([ADDR])
    svc.set_book_merkle_root(9, dist['root'], ADMIN)
    assert svc.claim(ADDR, 9, proof_for(dist, ADDR)).minted
    again = from_settings(settings)
    assert again.has_claimed(ADDR, 9)
    assert again.get_book_merkle_root(9) == dist['root']
