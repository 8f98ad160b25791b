"""Errors raised by the key-value store layer."""


class StoreError(Exception):
    """Hard failure talking to the store (network, permissions, validation)."""


class NotFound(StoreError):
    """No item matched the requested key or query."""

    def __init__(self, message: str = "Item not found"):
        super().__init__(message)


class RetryLimitExceeded(StoreError):
    """The store kept returning unprocessed items/keys after every allowed retry."""

    def __init__(self, operation: str, attempts: int, remaining: int):
        self.operation = operation
        self.attempts = attempts
        self.remaining = remaining
        super().__init__(
            f"{operation}: {remaining} item(s) still unprocessed after {attempts} attempts"
        )


class DeserializationError(StoreError):
    """A stored item could not be converted into the expected record."""
