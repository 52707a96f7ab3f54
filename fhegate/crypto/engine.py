from abc import ABC, abstractmethod
from typing import Callable, Union

from twisted.internet.defer import Deferred

from fhegate.config.networks import ProviderConfig
from fhegate.crypto.kinds import CiphertextKind

CiphertextBytes = Union[bytes, Deferred]


class EncryptionEngine(ABC):
    """
    The external homomorphic-encryption engine.

    One encrypt operation per supported kind. Implementations may return the raw ciphertext
    bytes directly or a Deferred that fires with them; either way the engine is treated
    as stateless and may be called concurrently.
    """

    @abstractmethod
    def encrypt_bool(self, value: bool) -> CiphertextBytes:
        raise NotImplementedError

    @abstractmethod
    def encrypt_uint8(self, value: int) -> CiphertextBytes:
        raise NotImplementedError

    @abstractmethod
    def encrypt_uint16(self, value: int) -> CiphertextBytes:
        raise NotImplementedError

    @abstractmethod
    def encrypt_uint32(self, value: int) -> CiphertextBytes:
        raise NotImplementedError

    @abstractmethod
    def encrypt_uint64(self, value: int) -> CiphertextBytes:
        raise NotImplementedError

    @abstractmethod
    def encrypt_uint128(self, value: int) -> CiphertextBytes:
        raise NotImplementedError

    @abstractmethod
    def encrypt_uint256(self, value: int) -> CiphertextBytes:
        raise NotImplementedError

    @abstractmethod
    def encrypt_address(self, value: str) -> CiphertextBytes:
        raise NotImplementedError

    def close(self) -> None:
        """Release any resources held by the engine; called on provider reset."""

    def operation_for(self, kind: CiphertextKind) -> Callable[..., CiphertextBytes]:
        return getattr(self, f"encrypt_{kind.label}")


# Builds an engine for a configuration; may return the engine or a Deferred firing with it.
EngineFactory = Callable[[ProviderConfig], Union[EncryptionEngine, Deferred]]
