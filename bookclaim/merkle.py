"""Sorted-pair Merkle tree for allowlist commitments.

Children are ordered by digest value before hashing, so a proof is just the
list of sibling digests with no left/right flags. Leaves are de-duplicated
and sorted before the first level is paired, which makes the root depend only
on the set of leaves. When a level has an odd number of nodes the last one is
promoted unchanged and contributes nothing to the proofs at that level; this
is the same layout merkletreejs produces with `sortPairs` and `sortLeaves`.
"""
import hmac
from typing import Iterable, List

from .crypto import keccak256, DIGEST_SIZE
from .errors import EmptyAllowlist


def to_digest(value) -> bytes:
    """Coerce a 32-byte digest given as bytes or (0x-)hex into bytes."""
    if isinstance(value, (bytes, bytearray)):
        d = bytes(value)
    elif isinstance(value, str):
        s = value[2:] if value[:2] in ('0x', '0X') else value
        try:
            d = bytes.fromhex(s)
        except ValueError:
            raise ValueError(f'digest is not valid hex: {value!r}')
    else:
        raise ValueError(f'unsupported digest type: {type(value).__name__}')
    if len(d) != DIGEST_SIZE:
        raise ValueError(f'digest must be {DIGEST_SIZE} bytes, got {len(d)}')
    return d


def to_hex(digest: bytes) -> str:
    return '0x' + digest.hex()


def hash_pair(a: bytes, b: bytes) -> bytes:
    if a <= b:
        return keccak256(a + b)
    return keccak256(b + a)


class MerkleTree:
    """Binary commitment over a set of leaf digests."""

    def __init__(self, leaves: Iterable):
        self.leaves = sorted({to_digest(l) for l in leaves})
        if not self.leaves:
            raise EmptyAllowlist('cannot build a Merkle tree from an empty leaf set')
        self._index = {leaf: i for i, leaf in enumerate(self.leaves)}
        self.layers = [self.leaves]
        nodes = self.leaves
        while len(nodes) > 1:
            next_nodes = [hash_pair(nodes[i], nodes[i+1]) for i in range(0, len(nodes) - 1, 2)]
            if len(nodes) % 2:
                next_nodes.append(nodes[-1])
            self.layers.append(next_nodes)
            nodes = next_nodes
        self.root = nodes[0]

    @property
    def root_hex(self) -> str:
        return to_hex(self.root)

    def __len__(self):
        return len(self.leaves)

    def __contains__(self, leaf):
        try:
            return to_digest(leaf) in self._index
        except ValueError:
            return False

    def proof(self, leaf) -> List[bytes]:
        """Sibling digests from `leaf` up to the root.

        Raises KeyError if the leaf is not part of the tree.
        """
        idx = self._index[to_digest(leaf)]
        proof = []
        for layer in self.layers[:-1]:
            sibling = idx ^ 1
            if sibling < len(layer):
                proof.append(layer[sibling])
            idx //= 2
        return proof

    def proofs(self) -> dict:
        return {leaf: self.proof(leaf) for leaf in self.leaves}


def build_tree(leaves: Iterable) -> MerkleTree:
    return MerkleTree(leaves)


def verify_proof(leaf, proof, root) -> bool:
    """Recompute the root from `leaf` and `proof` and compare it to `root`.

    Digests may be bytes or hex strings. Malformed input yields False rather
    than an exception, the same as a proof that does not reproduce the root.
    """
    try:
        h = to_digest(leaf)
        expected = to_digest(root)
        siblings = [to_digest(p) for p in proof]
    except (TypeError, ValueError):
        return False
    for sib in siblings:
        h = hash_pair(h, sib)
    return hmac.compare_digest(h, expected)
