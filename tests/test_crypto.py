import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import pytest
from bookclaim import crypto
from bookclaim.errors import InvalidIdentity

ADDR = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'


def test_keccak_empty_vector():
    assert crypto.keccak256(b'').hex() == 'c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470'


def test_canonical_identity_forms():
    lower = ADDR.lower()
    assert crypto.canonical_identity(ADDR) == lower
    assert crypto.canonical_identity(ADDR[2:]) == lower
    assert crypto.canonical_identity('  ' + ADDR.upper().replace('0X', '0x') + ' ') == lower
    assert crypto.canonical_identity(bytes.fromhex(ADDR[2:])) == lower


@pytest.mark.parametrize('bad', ['0x1234', 'not-an-address', '', b'\x00' * 19, 42])
def test_invalid_identity(bad):
    with pytest.raises(InvalidIdentity):
        crypto.canonical_identity(bad)


def test_leaf_hash_matches_packed_address():
    assert crypto.leaf_hash(ADDR) == crypto.keccak256(bytes.fromhex(ADDR[2:]))
    assert crypto.leaf_hash(ADDR) == crypto.leaf_hash(ADDR.lower())


def test_category_scoped_leaf_differs_per_category():
    packed = bytes.fromhex(ADDR[2:]) + (5).to_bytes(32, 'big')
    assert crypto.leaf_hash(ADDR, 5) == crypto.keccak256(packed)
    assert crypto.leaf_hash(ADDR, 5) != crypto.leaf_hash(ADDR, 6)
    assert crypto.leaf_hash(ADDR, 5) != crypto.leaf_hash(ADDR)
    with pytest.raises(ValueError):
        crypto.leaf_hash(ADDR, -1)
    with pytest.raises(ValueError):
        crypto.leaf_hash(ADDR, 'book')


def test_sign_and_verify(tmp_path):
    key = tmp_path / 'k' / 'hmac.key'
    data = b'{"root": "0x00"}'
    sig = crypto.sign_bytes(data, key)
    assert key.exists()
    assert crypto.verify_bytes(data, sig, key)
    assert crypto.verify_bytes(data, sig.upper(), key)
    assert not crypto.verify_bytes(b'other', sig, key)
    assert not crypto.verify_bytes(data, None, key)
    assert not crypto.verify_bytes(data, 'é' * 64, key)
