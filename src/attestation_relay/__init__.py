"""Attestation relay — off-chain companion to the state connector contract."""

__version__ = "0.1.0"
