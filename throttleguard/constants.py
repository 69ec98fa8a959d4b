"""Shared constants for ThrottleGuard.

Window lengths, ceilings, header names and denial messages used across
modules are defined here. No magic numbers in other modules — import from here.
"""

# ─── Window lengths (milliseconds) ────────────────────────────────────────────

FIFTEEN_MINUTES_MS: int = 15 * 60 * 1000
ONE_MINUTE_MS: int = 60 * 1000

# ─── Route policy defaults ────────────────────────────────────────────────────

# General IP limiter: applied to every route.
GENERAL_WINDOW_MS: int = FIFTEEN_MINUTES_MS
GENERAL_MAX_REQUESTS: int = 100

# Strict IP limiter for sensitive auth endpoints (registration).
# Successful requests are refunded, so only failed attempts accumulate.
STRICT_WINDOW_MS: int = FIFTEEN_MINUTES_MS
STRICT_MAX_REQUESTS: int = 5

# Per-identity login limiter: failed attempts per email address.
LOGIN_WINDOW_MS: int = FIFTEEN_MINUTES_MS
LOGIN_MAX_ATTEMPTS: int = 5

# Heavy-operation API limiter.
API_WINDOW_MS: int = ONE_MINUTE_MS
API_MAX_REQUESTS: int = 10

# Status codes an outcome-gated policy treats as a chargeable failure.
DEFAULT_FAILURE_STATUSES: frozenset[int] = frozenset({400, 401})

# HTTP status for denied requests.
THROTTLED_STATUS_CODE: int = 429

# ─── Reaper ───────────────────────────────────────────────────────────────────

# Interval between expired-record sweeps.
REAPER_INTERVAL_MS: int = ONE_MINUTE_MS

# ─── Denial messages ──────────────────────────────────────────────────────────

DEFAULT_IP_MESSAGE: str = "Too many requests, please try again later"
DEFAULT_IDENTITY_MESSAGE: str = (
    "Too many failed attempts for this account, please try again later"
)
GENERAL_MESSAGE: str = "Too many requests from this IP, please try again later"
STRICT_MESSAGE: str = "Too many attempts, please try again later"
LOGIN_MESSAGE: str = (
    "Too many failed login attempts for this account, please try again later"
)
API_MESSAGE: str = "API rate limit exceeded, please slow down"

# ─── Response headers ─────────────────────────────────────────────────────────

HEADER_LIMIT: str = "X-RateLimit-Limit"
HEADER_REMAINING: str = "X-RateLimit-Remaining"
HEADER_RESET: str = "X-RateLimit-Reset"
HEADER_RETRY_AFTER: str = "Retry-After"

# ─── Key strategies ───────────────────────────────────────────────────────────

# Key used when the client address cannot be determined.
UNKNOWN_CLIENT_KEY: str = "unknown"

# Prefix of identity-based limiting keys ("email:" + lowercased address).
EMAIL_KEY_PREFIX: str = "email:"

# ─── Accounts ─────────────────────────────────────────────────────────────────

MIN_PASSWORD_LENGTH: int = 6
DEFAULT_BCRYPT_ROUNDS: int = 12
