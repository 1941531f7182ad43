API_PREFIX_V1 = "/v1"

# Accounts created without a usable daily limit send at most this many messages per day.
DEFAULT_DAILY_LIMIT = 50

# Width of platform_accounts.password. Stored envelopes must fit within it.
PASSWORD_COLUMN_LENGTH = 1024

# Campaign message listings return at most this many messages, newest first.
CAMPAIGN_MESSAGES_LIMIT = 500
