"""Off-line allowlist tooling.

Turns a curated list of addresses into the root an administrator publishes
and the per-address proofs handed out to members. The distribution file is
plain JSON:

    {"root": "0x..", "category": 7, "leaf_scope": "global",
     "claims": {"0xabc..": {"leaf": "0x..", "proof": ["0x..", ...]}}}
"""
import json
import logging
from pathlib import Path
from typing import Iterable, List

from .crypto import canonical_identity, leaf_hash
from .merkle import build_tree, to_hex

logger = logging.getLogger(__name__)


def read_addresses(path) -> List[str]:
    """Read addresses from a text file (one per line, `#` comments) or a JSON list."""
    path = Path(path)
    text = path.read_text(encoding='utf-8')
    if path.suffix == '.json':
        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError(f'{path}: expected a JSON list of addresses')
        return [str(a) for a in data]
    out = []
    for line in text.splitlines():
        line = line.split('#', 1)[0].strip()
        if line:
            out.append(line)
    return out


def build_allowlist(addresses: Iterable, category=None, leaf_scope: str = 'global') -> dict:
    if leaf_scope == 'category' and category is None:
        raise ValueError('category-scoped allowlists need a category')
    members = sorted({canonical_identity(a) for a in addresses})
    scope_category = category if leaf_scope == 'category' else None
    leaves = {addr: leaf_hash(addr, scope_category) for addr in members}
    tree = build_tree(leaves.values())
    proofs = tree.proofs()
    claims = {}
    for addr, leaf in leaves.items():
        claims[addr] = {'leaf': to_hex(leaf), 'proof': [to_hex(p) for p in proofs[leaf]]}
    logger.info('Built allowlist for category %s: %s members, root %s', category, len(tree), tree.root_hex)
    return {'root': tree.root_hex, 'category': category, 'leaf_scope': leaf_scope, 'claims': claims}


def write_distribution(dist: dict, path):
    Path(path).write_text(json.dumps(dist, indent=2), encoding='utf-8')


def load_distribution(path) -> dict:
    dist = json.loads(Path(path).read_text(encoding='utf-8'))
    for key in ('root', 'claims'):
        if key not in dist:
            raise ValueError(f'{path}: distribution file missing {key!r}')
    return dist


def proof_for(dist: dict, address) -> List[str]:
    """Proof for `address`; KeyError if it is not on the allowlist."""
    return dist['claims'][canonical_identity(address)]['proof']
