import hashlib
import hmac


def sha256_hex(data: bytes) -> str:
    """SHA-256 of a binary artifact as lowercase hex."""
    return hashlib.sha256(data).hexdigest()


def matches_hash(data: bytes, expected_hash: str) -> bool:
    return hmac.compare_digest(sha256_hex(data), expected_hash or "")
