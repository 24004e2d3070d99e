"""Protocol constants for credential proof orchestration."""

from __future__ import annotations

import string

WITNESS_TIMEOUT_SECONDS = 60.0
MAX_WITNESS_OUTPUT_BYTES = 10 * 1024 * 1024
BACKEND_TIMEOUT_SECONDS = 120.0

NONCE_LENGTH = 8
NONCE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

DATE_WIDTH = 10
DEFAULT_NAME_WIDTH = 16
LICENSE_WIDTH = 1
LICENSE_CATEGORIES = frozenset({"A", "B", "C"})
ADULT_AGE = 18

# BN254 scalar field order used by circom / snarkjs
BN254_SCALAR_FIELD = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

PROOF_ENVELOPE_VERSION = 1
MAX_PROOF_FILE_BYTES = 1024 * 1024

NODE_SUFFIXES = frozenset({".js", ".cjs", ".mjs"})
PYTHON_SUFFIXES = frozenset({".py"})

DEFAULT_BATCH_CONCURRENCY = 4
