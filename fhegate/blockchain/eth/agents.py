import json
from typing import Optional

from constant_sorrow.constants import CONTRACT_CALL, TRANSACTION
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from twisted.internet.defer import Deferred, inlineCallbacks, maybeDeferred
from web3 import HTTPProvider, Web3
from web3.contract.contract import Contract
from web3.exceptions import BadFunctionCallOutput, ContractLogicError
from web3.types import TxReceipt

from fhegate.blockchain.eth.decorators import contract_api
from fhegate.blockchain.eth.events import DecryptionResponsePoller, ResponseCallback
from fhegate.blockchain.eth.models import GatewayInfo
from fhegate.blockchain.eth.signers.base import Signer
from fhegate.exceptions import LedgerError
from fhegate.utilities.concurrency import run_blocking
from fhegate.utilities.logging import Logger

GATEWAY_ABI = json.loads("""[
    {
        "inputs": [{"internalType": "uint256", "name": "handle", "type": "uint256"}],
        "name": "isPublicDecryptAllowed",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "handle", "type": "uint256"}],
        "name": "getDecryptedValue",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "handle", "type": "uint256"},
            {"internalType": "address", "name": "contractAddress", "type": "address"},
            {"internalType": "address", "name": "userAddress", "type": "address"},
            {"internalType": "bytes", "name": "signature", "type": "bytes"}
        ],
        "name": "requestDecryption",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "NUM_PAUSERS",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "kmsGeneration",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "anonymous": false,
        "inputs": [
            {"indexed": true, "internalType": "uint256", "name": "handle", "type": "uint256"},
            {"indexed": false, "internalType": "uint256", "name": "value", "type": "uint256"}
        ],
        "name": "DecryptionResponse",
        "type": "event"
    }
]""")


class GatewayAgent:
    """
    Wrapper around the gateway contract: permission predicate, value getter,
    decryption requests and the DecryptionResponse event stream.

    Every ledger method returns a Deferred. JSON-RPC round trips, including the wait
    for a transaction receipt, run in the reactor's thread pool; signers are only
    ever called on the reactor thread.
    """

    contract_name: str = "Gateway"

    # gateways without the introspection functions revert or return empty data
    _MISSING_FUNCTION_ERRORS = (ContractLogicError, BadFunctionCallOutput, ValueError)

    def __init__(
        self,
        w3: Web3,
        gateway_address: ChecksumAddress,
        contract: Optional[Contract] = None,
        poll_interval: Optional[float] = None,
        threaded: bool = True,
    ):
        self.log = Logger(self.__class__.__name__)
        self.w3 = w3
        if not contract:
            contract = w3.eth.contract(address=gateway_address, abi=GATEWAY_ABI)
        self.__contract = contract
        self.poll_interval = poll_interval
        self.threaded = threaded

        self.log.info(
            "Initialized new {} for {}".format(self.__class__.__name__, self.contract.address)
        )

    @classmethod
    def from_endpoint(cls, endpoint: str, gateway_address: ChecksumAddress, **kwargs) -> "GatewayAgent":
        w3 = Web3(HTTPProvider(endpoint))
        return cls(w3=w3, gateway_address=gateway_address, **kwargs)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(contract={self.contract_address})"

    @property
    def contract(self) -> Contract:
        return self.__contract

    @property
    def contract_address(self) -> ChecksumAddress:
        return self.__contract.address

    def _blocking(self, func, *args, **kwargs) -> Deferred:
        return run_blocking(func, *args, threaded=self.threaded, **kwargs)

    #
    # Reads
    #

    @contract_api(CONTRACT_CALL)
    def is_public_decrypt_allowed(self, handle: int) -> Deferred:
        d = self._blocking(self.contract.functions.isPublicDecryptAllowed(handle).call)
        d.addCallback(bool)
        return d

    @contract_api(CONTRACT_CALL)
    def get_decrypted_value(self, handle: int) -> Deferred:
        return self._blocking(self.contract.functions.getDecryptedValue(handle).call)

    @contract_api(CONTRACT_CALL)
    def num_pausers(self) -> Deferred:
        return self._blocking(self.contract.functions.NUM_PAUSERS().call)

    @contract_api(CONTRACT_CALL)
    def kms_generation(self) -> Deferred:
        return self._blocking(self.contract.functions.kmsGeneration().call)

    @inlineCallbacks
    def get_gateway_info(self):
        try:
            num_pausers = yield self.num_pausers()
            kms_generation = yield self.kms_generation()
        except self._MISSING_FUNCTION_ERRORS as e:
            self.log.info(f"Gateway {self.contract_address} does not expose introspection calls ({e})")
            return GatewayInfo(address=self.contract_address)
        return GatewayInfo(
            address=self.contract_address,
            num_pausers=int(num_pausers),
            kms_generation=int(kms_generation),
        )

    #
    # Transactions
    #

    @contract_api(TRANSACTION)
    def request_decryption(
        self,
        handle: int,
        contract_address: ChecksumAddress,
        user_address: ChecksumAddress,
        signature: bytes,
        signer: Signer,
    ) -> Deferred:
        """
        Records a signed user-decryption request on the gateway; the KMS nodes pick it up from there.
        Fires with the transaction receipt, or fails with LedgerError if the transaction reverted.
        """
        contract_function = self.contract.functions.requestDecryption(
            handle, contract_address, user_address, bytes(HexBytes(signature))
        )
        return self._transact(contract_function, user_address, signer, handle)

    @inlineCallbacks
    def _transact(self, contract_function, sender: ChecksumAddress, signer: Signer, handle: int):
        transaction = yield self._blocking(self._build_transaction, contract_function, sender)
        raw_transaction = yield maybeDeferred(signer.sign_transaction, transaction)
        receipt = yield self._blocking(self._broadcast, raw_transaction, handle)
        self.log.info(f"Decryption request for handle {handle} recorded in block {receipt['blockNumber']}")
        return receipt

    def _build_transaction(self, contract_function, sender: ChecksumAddress) -> dict:
        return contract_function.build_transaction(
            {
                "from": sender,
                "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
                "chainId": self.w3.eth.chain_id,
            }
        )

    def _broadcast(self, raw_transaction: bytes, handle: int) -> TxReceipt:
        txhash = self.w3.eth.send_raw_transaction(raw_transaction)
        receipt = self.w3.eth.wait_for_transaction_receipt(txhash)
        if receipt["status"] == 0:
            raise LedgerError(f"Decryption request for handle {handle} reverted (tx {HexBytes(txhash).hex()})")
        return receipt

    #
    # Events
    #

    def subscribe_decryption_responses(self, callback: ResponseCallback, clock=None) -> DecryptionResponsePoller:
        poller = DecryptionResponsePoller(
            contract=self.contract,
            callback=callback,
            interval=self.poll_interval,
            clock=clock,
            threaded=self.threaded,
        )
        poller.start(now=False)
        return poller

    def unsubscribe(self, subscription: DecryptionResponsePoller) -> None:
        subscription.stop()
