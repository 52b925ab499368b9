"""Custom exceptions for the identity bridge."""


class IdentityBridgeError(Exception):
    """Base exception for identity bridge operations."""

    pass


class InvalidIdentifierError(IdentityBridgeError):
    """Raised when a participant identifier cannot be parsed."""

    def __init__(self, value: object, message: str = ""):
        self.value = value
        super().__init__(message or f"Invalid participant identifier: {value!r}")


class SnapshotError(IdentityBridgeError):
    """Raised when a persisted snapshot cannot be read or written."""

    def __init__(self, path: str, message: str = ""):
        self.path = path
        super().__init__(message or f"Snapshot error: {path}")


class TransportError(IdentityBridgeError):
    """Raised when the messaging transport fails to answer a fetch."""

    def __init__(self, context_id: str, message: str = ""):
        self.context_id = context_id
        super().__init__(message or f"Transport fetch failed for context {context_id}")
