"""
Storage utilities for consistent operations across backends.

Provides the canonical conversion from document keys to Qdrant point IDs.
"""

import hashlib

from ..models.storage import DocumentKey


def document_key_to_point_id(document_key: DocumentKey) -> int:
    """
    Convert a document key to a Qdrant point ID using consistent SHA256 hashing.

    Keys are hashed by their string form, so ``5`` and ``"5"`` address the
    same point.

    Args:
        document_key: Document key to convert (e.g., 42 or "articles-42")

    Returns:
        Integer point ID for Qdrant storage
    """
    hash_digest = hashlib.sha256(str(document_key).encode('utf-8')).digest()
    return int.from_bytes(hash_digest[:8], byteorder='big', signed=False)
