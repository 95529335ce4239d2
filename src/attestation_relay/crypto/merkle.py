"""Merkle tree over attestation leaf hashes.

Uses keccak-256 as the hash function so that roots can be checked by an
EVM verifier. Leaves keep their append order (observation order); they
are NOT sorted. Padding rule: when a level has an odd number of nodes the
last node is paired with itself. A single-leaf tree's root is the leaf.
An empty tree's root is ZERO_LEAF.
"""

from __future__ import annotations

from dataclasses import dataclass

from web3 import Web3


ZERO_LEAF = b"\x00" * 32


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single leaf."""
    leaf_hash: bytes
    index: int
    path: list[tuple[bytes, str]]  # List of (sibling_hash, position: "L" | "R")
    root: bytes

    def verify(self) -> bool:
        node = self.leaf_hash
        for sibling, side in self.path:
            node = hash_pair(sibling, node) if side == "L" else hash_pair(node, sibling)
        return node == self.root


class MerkleTree:
    """A deterministic keccak Merkle tree.

    Usage:
        tree = MerkleTree()
        tree.add_leaf(leaf.leaf_hash)
        root = tree.compute_root()
        proof = tree.inclusion_proof(0)
    """

    def __init__(self) -> None:
        self._leaves: list[bytes] = []
        self._tree: list[list[bytes]] = []
        self._computed = False

    @classmethod
    def from_leaves(cls, leaf_hashes: list[bytes]) -> MerkleTree:
        tree = cls()
        for leaf_hash in leaf_hashes:
            tree.add_leaf(leaf_hash)
        tree.compute_root()
        return tree

    def add_leaf(self, leaf_hash: bytes) -> None:
        """Add a 32-byte leaf hash. Must be called before compute_root."""
        if self._computed:
            raise RuntimeError("Tree already computed. Create a new tree.")
        if len(leaf_hash) != 32:
            raise ValueError(f"Leaf hash must be 32 bytes, got {len(leaf_hash)}")
        self._leaves.append(bytes(leaf_hash))

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    def compute_root(self) -> bytes:
        """Compute the Merkle root. Idempotent once computed."""
        if self._computed:
            return self._tree[-1][0]

        if not self._leaves:
            self._tree = [[ZERO_LEAF]]
            self._computed = True
            return ZERO_LEAF

        current_level = list(self._leaves)
        self._tree = [current_level]

        while len(current_level) > 1:
            next_level: list[bytes] = []
            for i in range(0, len(current_level), 2):
                left = current_level[i]
                right = current_level[i + 1] if i + 1 < len(current_level) else left
                next_level.append(hash_pair(left, right))
            self._tree.append(next_level)
            current_level = next_level

        self._computed = True
        return current_level[0]

    @property
    def root(self) -> bytes:
        return self.compute_root()

    @property
    def root_hex(self) -> str:
        return "0x" + self.compute_root().hex()

    def inclusion_proof(self, index: int) -> MerkleProof:
        """Generate an inclusion proof for the leaf at `index`.

        Must call compute_root first.
        """
        if not self._computed:
            raise RuntimeError("Must call compute_root before generating proofs")
        if not 0 <= index < len(self._leaves):
            raise IndexError(f"No leaf at index {index}")

        path: list[tuple[bytes, str]] = []
        current_idx = index
        for level in self._tree[:-1]:
            if current_idx % 2 == 0:
                sibling_idx = current_idx + 1
                if sibling_idx < len(level):
                    path.append((level[sibling_idx], "R"))
                else:
                    path.append((level[current_idx], "R"))  # Duplicate
            else:
                path.append((level[current_idx - 1], "L"))
            current_idx //= 2

        return MerkleProof(
            leaf_hash=self._leaves[index],
            index=index,
            path=path,
            root=self._tree[-1][0],
        )


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Hash two nodes together, left then right."""
    return bytes(Web3.keccak(left + right))
