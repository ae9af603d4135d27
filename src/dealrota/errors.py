"""Exception hierarchy for dealrota.

All errors raised by the coordination core derive from DealRotaError so
callers can catch the whole family at the process boundary.
"""

from __future__ import annotations


class DealRotaError(Exception):
    """Base error for dealrota."""


class ConfigurationError(DealRotaError):
    """Raised when required configuration is missing or invalid."""


class StoreError(DealRotaError):
    """Raised when the shared document store cannot complete an operation."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class TransactionConflictError(StoreError):
    """Raised when a transaction keeps conflicting with concurrent writers."""

    def __init__(self, key: str, attempts: int) -> None:
        super().__init__(f"Transaction on '{key}' aborted after {attempts} conflicts", key=key)
        self.attempts = attempts


class RegistrationError(DealRotaError):
    """Raised when a server id cannot be registered in the rotation."""

    def __init__(self, server_id: str, reason: str) -> None:
        super().__init__(f"Could not register server {server_id}: {reason}")
        self.server_id = server_id
        self.reason = reason
