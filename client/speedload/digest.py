"""Content digests as stored in hash files: base64 of a hashlib digest."""

import base64
import hashlib


def compute_digest(data: bytes, algorithm: str = "sha256") -> str:
    """Base64-encoded digest of data. Deterministic; used to record and to verify."""
    h = hashlib.new(algorithm)
    h.update(data)
    return base64.b64encode(h.digest()).decode("ascii")
