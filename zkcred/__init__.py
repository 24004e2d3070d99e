"""Zero-knowledge proofs over identity credentials."""

__version__ = "0.1.0"
