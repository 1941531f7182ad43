# Holds the secret used to encrypt third-party account credentials at rest. When unset or empty, credentials are
# stored as provided.
ENV_IG_CREDENTIALS_KEY = "IG_CREDENTIALS_KEY"

# Envelopes look like enc:v1:<nonce>:<tag>:<ciphertext>, each part being standard base64.
ENVELOPE_MAGIC = "enc"
ENVELOPE_VERSION = "v1"
ENVELOPE_SEPARATOR = ":"
ENVELOPE_PREFIX = f"{ENVELOPE_MAGIC}{ENVELOPE_SEPARATOR}{ENVELOPE_VERSION}{ENVELOPE_SEPARATOR}"
ENVELOPE_FIELD_COUNT = 5

# AES-256-GCM parameters.
KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
