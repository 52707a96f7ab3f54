from typing import Any, Optional


class FHEGateError(Exception):
    """Base class for all errors raised by the fhegate client."""


class Uninitialized(FHEGateError):
    """Raised when an operation is attempted before the provider is ready."""

    def __init__(self, message: str = "FHE provider not initialized; call initialize() first."):
        super().__init__(message)


class AlreadyInitialized(FHEGateError):
    """Raised on a duplicate or concurrent initialize() without an explicit reset()."""


class ValidationError(FHEGateError):
    """A plaintext value is outside the range or format of its declared kind."""

    def __init__(self, message: str, kind: Optional[Any] = None, value: Any = None):
        self.kind = kind
        self.value = value
        super().__init__(message)


class UnsupportedKind(ValidationError):
    """The requested value kind is not one the engine can encrypt."""


class EngineError(FHEGateError):
    """The external encryption engine failed to produce a ciphertext (or to start)."""


class PermissionDenied(FHEGateError):
    """Public decryption was attempted on a handle without read permission."""

    def __init__(self, handle: int):
        self.handle = handle
        super().__init__(f"Public decryption not allowed for handle {handle}")


class DecryptionTimeout(FHEGateError, TimeoutError):
    """No matching confirmation event arrived before the decryption deadline."""

    def __init__(self, handle: int, timeout: float):
        self.handle = handle
        self.timeout = timeout
        super().__init__(f"Decryption of handle {handle} timed out after {timeout} seconds")


class ProtocolError(FHEGateError):
    """A malformed handle, address or hex input was caught before any network call."""


class DuplicateDecryptionRequest(ProtocolError):
    """A user decryption for this handle is already awaiting its confirmation."""

    def __init__(self, handle: int):
        self.handle = handle
        super().__init__(f"A decryption request for handle {handle} is already pending")


class LedgerError(FHEGateError):
    """A gateway read or transaction failed on the ledger side."""
