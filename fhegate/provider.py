from enum import Enum
from typing import Any, Iterable, Optional, Union

from twisted.internet.defer import Deferred, maybeDeferred
from twisted.python.failure import Failure

from fhegate.blockchain.eth.eip712 import TypedAuthorizationMessage, build_decrypt_authorization
from fhegate.blockchain.eth.signers.base import Signer
from fhegate.blockchain.eth.trackers.decryption import DecryptionResponseTracker
from fhegate.config.networks import ProviderConfig
from fhegate.crypto.encryption import EncryptionDispatcher, EncryptOptions
from fhegate.crypto.engine import EncryptionEngine, EngineFactory
from fhegate.crypto.kinds import CiphertextKind
from fhegate.exceptions import AlreadyInitialized, EngineError, ProtocolError, Uninitialized
from fhegate.network.batch import BatchCoordinator, EncryptItem
from fhegate.network.decryption import DecryptionClient, DecryptRequest
from fhegate.types import HandleLike
from fhegate.utilities.logging import Logger


class ProviderState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ProviderStateMachine:
    """
    Owns the engine and the network configuration and gates everything else on READY.

    uninitialized --initialize--> initializing --> ready
                                               \\-> failed --initialize--> initializing ...

    initialize() is rejected while initializing or ready; reset() returns the machine to
    uninitialized from any state and releases the engine. An engine that finishes
    constructing after a reset is closed and discarded.
    """

    def __init__(self, engine_factory: EngineFactory):
        self.log = Logger(self.__class__.__name__)
        self._engine_factory = engine_factory
        self._state = ProviderState.UNINITIALIZED
        self._config: Optional[ProviderConfig] = None
        self._engine: Optional[EncryptionEngine] = None
        self._generation = 0

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self._state.value}>"

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ProviderState.READY and self._engine is not None

    def require_ready(self) -> None:
        if not self.is_ready:
            raise Uninitialized()

    @property
    def config(self) -> ProviderConfig:
        self.require_ready()
        return self._config

    @property
    def engine(self) -> EncryptionEngine:
        self.require_ready()
        return self._engine

    def initialize(self, config: ProviderConfig) -> Deferred:
        if self._state in (ProviderState.INITIALIZING, ProviderState.READY):
            raise AlreadyInitialized(f"FHE provider is already {self._state.value}; reset() it first")
        if not isinstance(config, ProviderConfig):
            raise ProtocolError(f"Expected a ProviderConfig, got {type(config).__name__}")

        self._generation += 1
        generation = self._generation
        self._state = ProviderState.INITIALIZING
        self._config = config
        self.log.info(f"Initializing FHE engine for network {config.network_id}")

        d = maybeDeferred(self._engine_factory, config)
        d.addCallbacks(
            callback=self._engine_ready,
            callbackArgs=(generation,),
            errback=self._engine_failed,
            errbackArgs=(generation,),
        )
        return d

    def _engine_ready(self, engine: EncryptionEngine, generation: int) -> EncryptionEngine:
        if generation != self._generation:
            engine.close()
            raise Uninitialized("FHE provider was reset while initializing")
        self._engine = engine
        self._state = ProviderState.READY
        self.log.info(f"FHE provider ready on network {self._config.network_id}")
        return engine

    def _engine_failed(self, failure: Failure, generation: int) -> Failure:
        if generation == self._generation:
            self._state = ProviderState.FAILED
            self._config = None
        self.log.warn(f"FHE engine construction failed: {failure.getErrorMessage()}")
        if failure.check(EngineError):
            return failure
        raise EngineError(f"FHE engine construction failed: {failure.getErrorMessage()}") from failure.value

    def reset(self) -> None:
        self._generation += 1
        engine, self._engine = self._engine, None
        self._config = None
        self._state = ProviderState.UNINITIALIZED
        if engine is not None:
            engine.close()
        self.log.info("FHE provider reset")


class FHEProvider:
    """
    Entry point of the client: encryption through the engine, decryption through the gateway.

    Every operation requires a READY provider and raises :class:`Uninitialized` otherwise,
    before doing anything else. Operations that suspend return Deferreds.
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        agent=None,
        clock=None,
        decryption_timeout: Optional[float] = None,
    ):
        self.log = Logger(self.__class__.__name__)
        self.state_machine = ProviderStateMachine(engine_factory=engine_factory)
        self.clock = clock
        self.decryption_timeout = decryption_timeout
        self._agent = agent
        self._dispatcher: Optional[EncryptionDispatcher] = None
        self._decryption_client: Optional[DecryptionClient] = None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.state.value}>"

    #
    # Lifecycle
    #

    @property
    def state(self) -> ProviderState:
        return self.state_machine.state

    @property
    def is_ready(self) -> bool:
        return self.state_machine.is_ready

    @property
    def config(self) -> ProviderConfig:
        return self.state_machine.config

    @property
    def agent(self):
        if self._agent is None:
            raise Uninitialized("No gateway agent set; call set_agent() first.")
        return self._agent

    def initialize(self, config: ProviderConfig, agent=None) -> Deferred:
        agent = agent if agent is not None else self._agent
        if agent is not None:
            self._check_gateway(config, agent)
        d = self.state_machine.initialize(config)
        self._agent = agent
        d.addCallback(self._build_components)
        return d

    def _build_components(self, engine: EncryptionEngine) -> "FHEProvider":
        self._dispatcher = EncryptionDispatcher(engine=engine)
        self._decryption_client = None
        return self

    def set_agent(self, agent) -> None:
        if self.is_ready:
            self._check_gateway(self.config, agent)
        if self._decryption_client is not None:
            self._decryption_client.tracker.purge_all()
        self._agent = agent
        self._decryption_client = None

    @staticmethod
    def _check_gateway(config: ProviderConfig, agent) -> None:
        agent_address = getattr(agent, "contract_address", None)
        if agent_address is not None and agent_address != config.gateway_address:
            raise ProtocolError(
                f"Gateway agent targets {agent_address} but the configuration names {config.gateway_address}"
            )

    def reset(self) -> None:
        if self._decryption_client is not None:
            self._decryption_client.tracker.purge_all()
        self._dispatcher = None
        self._decryption_client = None
        self.state_machine.reset()

    #
    # Components
    #

    @property
    def dispatcher(self) -> EncryptionDispatcher:
        self.state_machine.require_ready()
        return self._dispatcher

    @property
    def decryption_client(self) -> DecryptionClient:
        self.state_machine.require_ready()
        if self._decryption_client is None:
            self._decryption_client = DecryptionClient(
                config=self.config,
                agent=self.agent,
                tracker=DecryptionResponseTracker(agent=self.agent, clock=self.clock),
                timeout=self.decryption_timeout,
            )
        return self._decryption_client

    @property
    def batch(self) -> BatchCoordinator:
        self.state_machine.require_ready()
        decryption_client = self.decryption_client if self._agent is not None else None
        return BatchCoordinator(dispatcher=self._dispatcher, decryption_client=decryption_client)

    #
    # Encryption
    #

    def encrypt(
        self,
        value: Any,
        kind: Union[CiphertextKind, str],
        options: Optional[EncryptOptions] = None,
    ) -> Deferred:
        return self.dispatcher.encrypt(value, kind, options)

    def encrypt_bool(self, value: bool, options: Optional[EncryptOptions] = None) -> Deferred:
        return self.encrypt(value, CiphertextKind.BOOL, options)

    def encrypt_uint8(self, value: int, options: Optional[EncryptOptions] = None) -> Deferred:
        return self.encrypt(value, CiphertextKind.UINT8, options)

    def encrypt_uint16(self, value: int, options: Optional[EncryptOptions] = None) -> Deferred:
        return self.encrypt(value, CiphertextKind.UINT16, options)

    def encrypt_uint32(self, value: int, options: Optional[EncryptOptions] = None) -> Deferred:
        return self.encrypt(value, CiphertextKind.UINT32, options)

    def encrypt_uint64(self, value: int, options: Optional[EncryptOptions] = None) -> Deferred:
        return self.encrypt(value, CiphertextKind.UINT64, options)

    def encrypt_uint128(self, value: int, options: Optional[EncryptOptions] = None) -> Deferred:
        return self.encrypt(value, CiphertextKind.UINT128, options)

    def encrypt_uint256(self, value: int, options: Optional[EncryptOptions] = None) -> Deferred:
        return self.encrypt(value, CiphertextKind.UINT256, options)

    def encrypt_address(self, value: str, options: Optional[EncryptOptions] = None) -> Deferred:
        return self.encrypt(value, CiphertextKind.ADDRESS, options)

    def encrypt_batch(self, items: Iterable[EncryptItem], options: Optional[EncryptOptions] = None) -> Deferred:
        return self.batch.encrypt_batch(items, options)

    #
    # Decryption
    #

    def build_authorization(self, handle: HandleLike, contract_address: str, user_address: str) -> TypedAuthorizationMessage:
        return build_decrypt_authorization(
            network_id=self.config.network_id,
            gateway_address=self.config.gateway_address,
            handle=handle,
            contract_address=contract_address,
            user_address=user_address,
        )

    def decrypt(self, request: DecryptRequest, timeout: Optional[float] = None) -> Deferred:
        return self.decryption_client.decrypt(request, timeout=timeout)

    def request_user_decrypt(self, request: DecryptRequest) -> Deferred:
        return self.decryption_client.request_user_decrypt(request)

    def wait_for_result(self, handle: HandleLike, timeout: Optional[float] = None) -> Deferred:
        return self.decryption_client.wait_for_result(handle, timeout=timeout)

    def public_decrypt(self, handle: HandleLike) -> Deferred:
        return self.decryption_client.public_decrypt(handle)

    def decrypt_batch(
        self,
        handles: Iterable[HandleLike],
        signer: Signer,
        contract_address: str,
        timeout: Optional[float] = None,
    ) -> Deferred:
        self.state_machine.require_ready()
        return BatchCoordinator(
            dispatcher=self._dispatcher,
            decryption_client=self.decryption_client,
        ).decrypt_batch(handles, signer, contract_address, timeout=timeout)

    def get_gateway_info(self) -> Deferred:
        return self.decryption_client.get_gateway_info()
