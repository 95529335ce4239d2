"""Tests for the keccak Merkle tree."""

import pytest
from web3 import Web3

from attestation_relay.crypto.merkle import MerkleTree, ZERO_LEAF, hash_pair


def _leaf(n: int) -> bytes:
    return n.to_bytes(32, "big")


def _keccak(data: bytes) -> bytes:
    return bytes(Web3.keccak(data))


class TestMerkleTree:
    def test_empty_tree(self) -> None:
        tree = MerkleTree()
        assert tree.compute_root() == ZERO_LEAF

    def test_single_leaf_is_root(self) -> None:
        tree = MerkleTree.from_leaves([_leaf(1)])
        assert tree.root == _leaf(1)
        assert tree.root_hex == "0x" + _leaf(1).hex()

    def test_pair(self) -> None:
        tree = MerkleTree.from_leaves([_leaf(1), _leaf(2)])
        assert tree.root == _keccak(_leaf(1) + _leaf(2))

    def test_odd_count_duplicates_last(self) -> None:
        tree = MerkleTree.from_leaves([_leaf(1), _leaf(2), _leaf(3)])
        left = _keccak(_leaf(1) + _leaf(2))
        right = _keccak(_leaf(3) + _leaf(3))
        assert tree.root == _keccak(left + right)

    def test_deterministic(self) -> None:
        leaves = [_leaf(i) for i in range(7)]
        assert MerkleTree.from_leaves(leaves).root == MerkleTree.from_leaves(leaves).root

    def test_append_order_matters(self) -> None:
        """Leaves are not sorted: observation order is part of the commitment."""
        root1 = MerkleTree.from_leaves([_leaf(1), _leaf(2)]).root
        root2 = MerkleTree.from_leaves([_leaf(2), _leaf(1)]).root
        assert root1 != root2

    def test_single_leaf_change_changes_root(self) -> None:
        leaves = [_leaf(i) for i in range(5)]
        base = MerkleTree.from_leaves(leaves).root
        for i in range(len(leaves)):
            changed = list(leaves)
            changed[i] = _leaf(100 + i)
            assert MerkleTree.from_leaves(changed).root != base

    def test_cannot_add_after_compute(self) -> None:
        tree = MerkleTree()
        tree.add_leaf(_leaf(1))
        tree.compute_root()

        with pytest.raises(RuntimeError):
            tree.add_leaf(_leaf(2))

    def test_rejects_wrong_length(self) -> None:
        with pytest.raises(ValueError):
            MerkleTree().add_leaf(b"\x01" * 31)


class TestInclusionProof:
    @pytest.mark.parametrize("count", [1, 2, 3, 5, 8])
    def test_every_leaf_verifies(self, count: int) -> None:
        tree = MerkleTree.from_leaves([_leaf(i) for i in range(count)])
        for i in range(count):
            proof = tree.inclusion_proof(i)
            assert proof.leaf_hash == _leaf(i)
            assert proof.root == tree.root
            assert proof.verify()

    def test_tampered_proof_fails(self) -> None:
        tree = MerkleTree.from_leaves([_leaf(i) for i in range(4)])
        proof = tree.inclusion_proof(2)
        sibling, side = proof.path[0]
        tampered = type(proof)(
            leaf_hash=proof.leaf_hash,
            index=proof.index,
            path=[(hash_pair(sibling, sibling), side)] + proof.path[1:],
            root=proof.root,
        )
        assert not tampered.verify()

    def test_requires_compute(self) -> None:
        tree = MerkleTree()
        tree.add_leaf(_leaf(1))
        with pytest.raises(RuntimeError):
            tree.inclusion_proof(0)

    def test_missing_index(self) -> None:
        tree = MerkleTree.from_leaves([_leaf(1)])
        with pytest.raises(IndexError):
            tree.inclusion_proof(1)
