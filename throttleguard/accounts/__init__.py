"""In-memory accounts for the companion backend (the routes the limiter guards)."""

from __future__ import annotations

from throttleguard.accounts.directory import (
    Account,
    AccountDirectory,
    AccountError,
    AccountExistsError,
    AccountValidationError,
    InvalidCredentialsError,
)

__all__ = [
    "Account",
    "AccountDirectory",
    "AccountError",
    "AccountExistsError",
    "AccountValidationError",
    "InvalidCredentialsError",
]
