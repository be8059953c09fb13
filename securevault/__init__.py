"""Encrypted key vault served over HTTP, with classical and quantum-safe envelopes."""

__version__ = "0.1.0"