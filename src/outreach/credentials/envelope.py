"""Encrypts credentials into self-describing text envelopes.

An envelope is: enc:v1:BASE64(NONCE):BASE64(TAG):BASE64(CIPHERTEXT)

The cipher is AES-256-GCM keyed by keyderiver.derive_key(secret), with a random 96-bit nonce per call and a 128-bit
authentication tag. The envelope carries everything needed to decrypt except the key.
"""

import base64
import binascii
import math

import nacl.utils
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from outreach.credentials.constants import (
    ENVELOPE_FIELD_COUNT,
    ENVELOPE_PREFIX,
    ENVELOPE_SEPARATOR,
    NONCE_SIZE,
    TAG_SIZE,
)
from outreach.credentials.exceptions import IntegrityError, MalformedEnvelopeError
from outreach.credentials.keyderiver import derive_key


def _encode(raw: bytes) -> str:
    return base64.standard_b64encode(raw).decode()


def _decode(encoded: str) -> bytes:
    """Equivalent to base64.standard_b64decode, except passes validate=True to b64decode()."""
    try:
        return base64.b64decode(encoded.encode(), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise MalformedEnvelopeError("Envelope field is not valid base64") from None


def is_envelope(value: str) -> bool:
    """Returns True when value carries the prefix of the current envelope format."""
    return value.startswith(ENVELOPE_PREFIX)


def encrypt(plaintext: str, secret: str) -> str:
    """Encrypts plaintext under a key derived from secret and returns the envelope."""
    nonce = nacl.utils.random(NONCE_SIZE)
    sealed = AESGCM(derive_key(secret)).encrypt(nonce, plaintext.encode("utf-8"), None)
    # AESGCM appends the tag to the ciphertext; the envelope stores them as separate fields.
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return ENVELOPE_PREFIX + ENVELOPE_SEPARATOR.join([_encode(nonce), _encode(tag), _encode(ciphertext)])


def decrypt(envelope: str, secret: str) -> str:
    """Decrypts an envelope produced by encrypt().

    Values that do not start with the envelope prefix are assumed to have been stored before encryption was enabled
    and are returned as-is. Values that start with the prefix but do not have the expected number of fields are also
    returned as-is.

    Raises:
        MalformedEnvelopeError when a field is not valid base64 or the nonce has the wrong size.
        IntegrityError when the tag does not verify (wrong key, tampering, or corruption).
    """
    if not is_envelope(envelope):
        return envelope
    parts = envelope.split(ENVELOPE_SEPARATOR)
    if len(parts) != ENVELOPE_FIELD_COUNT:
        return envelope

    nonce, tag, ciphertext = (_decode(part) for part in parts[2:])
    if len(nonce) != NONCE_SIZE:
        raise MalformedEnvelopeError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    if len(tag) != TAG_SIZE:
        raise IntegrityError(f"Tag must be {TAG_SIZE} bytes, got {len(tag)}")

    try:
        plaintext = AESGCM(derive_key(secret)).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag:
        raise IntegrityError("Envelope failed authentication") from None
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedEnvelopeError("Decrypted value is not valid UTF-8") from None


def _encoded_length(size: int) -> int:
    return 4 * math.ceil(size / 3)


def envelope_length(plaintext_size: int) -> int:
    """Returns the length of the envelope that encrypt() produces for a plaintext of plaintext_size UTF-8 bytes."""
    return (
        len(ENVELOPE_PREFIX)
        + _encoded_length(NONCE_SIZE)
        + len(ENVELOPE_SEPARATOR)
        + _encoded_length(TAG_SIZE)
        + len(ENVELOPE_SEPARATOR)
        + _encoded_length(plaintext_size)
    )


def max_plaintext_size(envelope_width: int) -> int:
    """Returns the largest plaintext, in UTF-8 bytes, whose envelope fits in envelope_width characters."""
    overhead = envelope_length(0)
    return max(0, (envelope_width - overhead) // 4 * 3)
