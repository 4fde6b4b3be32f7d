"""
Deterministic SHA-256 helpers for content fingerprinting.

Comment bodies are fingerprinted so cached mention classifications can be
invalidated when the text they were computed from changes.
"""

from __future__ import annotations

import hashlib

__all__ = [
    "sha256_hex",
    "compute_comment_body_hash",
    "classification_key",
]


def sha256_hex(value: str | None) -> str:
    """Hex SHA-256 digest of the UTF-8 encoded value (None hashes as '')."""
    return hashlib.sha256((value or "").encode("utf-8")).hexdigest()


def compute_comment_body_hash(body: str | None) -> str:
    """Fingerprint a comment body exactly as stored, without normalization."""
    return sha256_hex(body)


def classification_key(comment_id: str, mentioned_user_id: str) -> str:
    """Composite key identifying one (comment, mentioned user) pair."""
    return f"{comment_id}::{mentioned_user_id}"
