"""
Credential Hasher

Deterministic one-way digest of a secret. No salt: equal secrets always
produce equal digests, so the digest is only good for credential comparison.
"""
import hashlib
import hmac

DIGEST_HEX_LENGTH = 64


def hash_secret(secret: str) -> str:
    """SHA-256 hex digest of `secret`."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def verify_secret(secret: str, digest: str) -> bool:
    """Recompute the digest of `secret` and compare it to the stored one."""
    return hmac.compare_digest(hash_secret(secret), digest or "")
