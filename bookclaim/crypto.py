"""Hashing and signing helpers.

keccak-256 is the single hash used for allowlist leaves and internal tree
nodes, so roots and proofs match what `keccak256(abi.encodePacked(...))`
produces on-chain. Admin requests are authenticated with an HMAC over the
request body, keyed by a deployment secret stored on disk.
"""
import os
import hmac
import hashlib
from pathlib import Path
from eth_utils import keccak, is_hex_address, to_canonical_address

from .errors import InvalidIdentity

KEY_PATH = Path(os.environ.get('BOOKCLAIM_KEY_PATH', 'keys/admin_hmac.key'))
DIGEST_SIZE = 32


def keccak256(data: bytes) -> bytes:
    return keccak(data)


def canonical_identity(identity) -> str:
    """Return the lowercase 0x-hex form of an EVM address.

    Accepts a hex string in any letter case or the raw 20 address bytes.
    """
    if isinstance(identity, (bytes, bytearray)):
        if len(identity) != 20:
            raise InvalidIdentity(f'address must be 20 bytes, got {len(identity)}')
        return '0x' + bytes(identity).hex()
    if not isinstance(identity, str):
        raise InvalidIdentity(f'unsupported identity type: {type(identity).__name__}')
    addr = identity.strip()
    if not addr.startswith(('0x', '0X')):
        addr = '0x' + addr
    if not is_hex_address(addr):
        raise InvalidIdentity(f'invalid address: {identity!r}')
    return addr.lower()


def identity_bytes(identity) -> bytes:
    return to_canonical_address(canonical_identity(identity))


def category_bytes(category) -> bytes:
    # abi.encodePacked(uint256)
    if isinstance(category, bool) or not isinstance(category, int) or category < 0:
        raise ValueError(f'category-scoped leaves need a non-negative integer category, got {category!r}')
    return category.to_bytes(32, 'big')


def leaf_hash(identity, category=None) -> bytes:
    """Leaf digest for an identity.

    Without a category this is keccak256(address), compatible with
    keccak256(abi.encodePacked(msg.sender)). With one, the category is packed
    after the address as a uint256 so a proof only holds for that category.
    """
    data = identity_bytes(identity)
    if category is not None:
        data += category_bytes(category)
    return keccak256(data)


def ensure_key(key_path: Path = None) -> bytes:
    path = Path(key_path) if key_path else KEY_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_bytes(os.urandom(32))
    return path.read_bytes()


def sign_bytes(data: bytes, key_path: Path = None) -> str:
    key = ensure_key(key_path)
    return hmac.new(key, data, hashlib.sha256).hexdigest()


def verify_bytes(data: bytes, sig_hex: str, key_path: Path = None) -> bool:
    if not isinstance(sig_hex, str):
        return False
    key = ensure_key(key_path)
    expected = hmac.new(key, data, hashlib.sha256).hexdigest()
    try:
        return hmac.compare_digest(expected, sig_hex.lower())
    except TypeError:
        # non-ASCII signature text
        return False
