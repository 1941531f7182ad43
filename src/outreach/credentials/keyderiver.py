import hashlib


def derive_key(secret: str) -> bytes:
    """Derives a 256-bit symmetric key from an arbitrary configuration secret.

    The key is the SHA-256 digest of the UTF-8 encoded secret. The empty string is not rejected; callers are expected
    to skip encryption entirely when no secret is configured.
    """
    return hashlib.sha256(secret.encode("utf-8")).digest()
