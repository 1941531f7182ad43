class EnvelopeError(Exception):
    """Base class for failures to open a credential envelope."""


class IntegrityError(EnvelopeError):
    """Raised when the authentication tag of an envelope does not verify.

    This happens when the envelope was encrypted under a different key, or when the nonce, tag, or ciphertext were
    modified after encryption.
    """


class MalformedEnvelopeError(EnvelopeError):
    """Raised when an envelope carries the expected prefix but its fields cannot be decoded."""


class InvalidCredentialsConfigurationError(Exception):
    pass
