"""In-memory account directory for the companion backend.

Implements:
  - AccountDirectory.register()     — validate, bcrypt-hash, store
  - AccountDirectory.authenticate() — lookup by email + bcrypt verify

Accounts live in process memory only and are keyed by the lowercased email,
matching the login limiter's ``email:<lowercased>`` keys. Ids are ULIDs.
No tokens are issued; callers get the public account profile.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import bcrypt

from throttleguard.constants import DEFAULT_BCRYPT_ROUNDS, MIN_PASSWORD_LENGTH
from throttleguard.utils.logger import get_logger
from throttleguard.utils.ulid import generate_ulid

logger = get_logger(__name__)


# ─── Exceptions ───────────────────────────────────────────────────────────────


class AccountError(Exception):
    """Base class for account failures; ``status_code`` is the HTTP mapping."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AccountValidationError(AccountError):
    """Missing or malformed registration/login fields. HTTP 400."""


class AccountExistsError(AccountError):
    """An account with this email already exists. HTTP 400."""

    def __init__(self, message: str = "User with this email already exists") -> None:
        super().__init__(message)


class InvalidCredentialsError(AccountError):
    """Unknown email or wrong password. HTTP 401."""

    status_code = 401

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


# ─── Account ──────────────────────────────────────────────────────────────────


@dataclass
class Account:
    id: str
    email: str
    name: str
    password_hash: bytes = field(repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_public(self) -> dict[str, Any]:
        """Profile returned to clients (never includes the hash)."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "createdAt": self.created_at.isoformat(),
        }


def _normalise_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class AccountDirectory:
    """Email → Account mapping with bcrypt-hashed passwords.

    Args:
        bcrypt_rounds: bcrypt cost factor (4-31). Tests use the minimum.
    """

    def __init__(self, bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self._accounts: dict[str, Account] = {}
        self._rounds = bcrypt_rounds

    def __len__(self) -> int:
        return len(self._accounts)

    def get(self, email: str) -> Optional[Account]:
        return self._accounts.get(_normalise_email(email))

    async def register(
        self,
        email: Optional[str],
        password: Optional[str],
        name: Optional[str],
    ) -> Account:
        """Create an account.

        Raises:
            AccountValidationError: Missing field or password shorter than
                                    MIN_PASSWORD_LENGTH.
            AccountExistsError:     Email already registered.
        """
        normalised = _normalise_email(email)
        if not normalised or not password or not name:
            raise AccountValidationError("Email, password, and name are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AccountValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if normalised in self._accounts:
            raise AccountExistsError()

        salt = bcrypt.gensalt(rounds=self._rounds)
        password_hash = bcrypt.hashpw(password.encode(), salt)

        account = Account(
            id=generate_ulid(),
            email=normalised,
            name=name.strip(),
            password_hash=password_hash,
        )
        self._accounts[normalised] = account
        logger.info("Account registered", account_id=account.id)
        return account

    async def authenticate(self, email: Optional[str], password: Optional[str]) -> Account:
        """Verify credentials.

        Raises:
            AccountValidationError:  Missing email or password.
            InvalidCredentialsError: Unknown email or wrong password (same message).
        """
        normalised = _normalise_email(email)
        if not normalised or not password:
            raise AccountValidationError("Email and password are required")

        account = self._accounts.get(normalised)
        if account is None:
            raise InvalidCredentialsError()
        if not bcrypt.checkpw(password.encode(), account.password_hash):
            logger.info("Login rejected: wrong password", account_id=account.id)
            raise InvalidCredentialsError()
        return account
