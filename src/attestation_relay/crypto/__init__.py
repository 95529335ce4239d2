"""Cryptographic primitives — Merkle trees and leaf hashing."""

from attestation_relay.crypto.merkle import MerkleProof, MerkleTree, ZERO_LEAF
from attestation_relay.crypto.leaf_codec import LeafCodec, MOCK_SELECTOR

__all__ = ["MerkleProof", "MerkleTree", "ZERO_LEAF", "LeafCodec", "MOCK_SELECTOR"]
