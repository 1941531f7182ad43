import base64

import pytest

from outreach.credentials import credentialservice, envelope
from outreach.credentials.constants import ENV_IG_CREDENTIALS_KEY
from outreach.credentials.credentialservice import (
    CredentialService,
    decrypt_maybe,
    encrypt_maybe,
)
from outreach.credentials.exceptions import IntegrityError, InvalidCredentialsConfigurationError

STORED_VALUES = [
    "plainOldPassword",
    "",
    "enc:v1:",
    "enc:v1:a:b:c:d",
    "enc:v1:not base64!:b:c",
    "enc:v1:AAAA:AAAAAAAAAAAAAAAAAAAAAA==:AA==",
    "enc:v1:AAAAAAAAAAAAAAAA:AAAAAAAAAAAAAAAAAAAAAA==:AA==",
]


@pytest.mark.parametrize("absent", [None, ""])
def test_no_secret_is_passthrough(absent):
    assert encrypt_maybe("hunter2", absent) == "hunter2"
    assert decrypt_maybe("hunter2", absent) == "hunter2"
    sealed = envelope.encrypt("hunter2", "k1")
    assert decrypt_maybe(sealed, absent) == sealed


def test_hunter2_scenario():
    sealed = encrypt_maybe("hunter2", "k1")
    assert sealed.startswith("enc:v1:")
    assert len(sealed.split(":")) == 5
    assert decrypt_maybe(sealed, "k1") == "hunter2"
    # The wrong key yields the stored envelope rather than an error or garbage.
    assert decrypt_maybe(sealed, "k2") == sealed


def test_legacy_plaintext_is_returned_unchanged():
    assert decrypt_maybe("plainOldPassword", "k1") == "plainOldPassword"


@pytest.mark.parametrize("stored", STORED_VALUES)
def test_decrypt_maybe_never_raises(stored):
    assert decrypt_maybe(stored, "k1") == stored


@pytest.mark.parametrize("field", [2, 3, 4], ids=["nonce", "tag", "ciphertext"])
def test_decrypt_maybe_absorbs_tampering(field):
    parts = encrypt_maybe("hunter2", "k1").split(":")
    raw = bytearray(base64.b64decode(parts[field]))
    raw[0] ^= 0x01
    parts[field] = base64.standard_b64encode(raw).decode()
    tampered = ":".join(parts)

    # The tampered envelope is well formed, so it fails authentication rather than decoding.
    with pytest.raises(IntegrityError):
        envelope.decrypt(tampered, "k1")
    assert decrypt_maybe(tampered, "k1") == tampered


def test_encrypt_maybe_falls_back_to_plaintext_on_failure(monkeypatch):
    def broken(plaintext, secret):
        raise RuntimeError("no entropy")

    monkeypatch.setattr(envelope, "encrypt", broken)
    assert encrypt_maybe("hunter2", "k1") == "hunter2"


def test_credential_service():
    service = CredentialService("k1")
    assert service.enabled
    sealed = service.seal("hunter2")
    assert sealed != "hunter2"
    assert service.reveal(sealed) == "hunter2"
    assert service.reveal("legacy") == "legacy"
    assert "k1" not in repr(service)

    disabled = CredentialService("")
    assert not disabled.enabled
    assert disabled.seal("hunter2") == "hunter2"
    assert disabled.reveal(sealed) == sealed


def test_setup_reads_environment(monkeypatch):
    monkeypatch.setattr(credentialservice, "_SERVICE", None)
    with pytest.raises(InvalidCredentialsConfigurationError):
        credentialservice.get_credential_service()

    monkeypatch.setenv(ENV_IG_CREDENTIALS_KEY, "k1")
    credentialservice.setup()
    service = credentialservice.get_credential_service()
    assert service.enabled
    assert decrypt_maybe(service.seal("pw"), "k1") == "pw"

    monkeypatch.delenv(ENV_IG_CREDENTIALS_KEY)
    credentialservice.setup()
    assert not credentialservice.get_credential_service().enabled
