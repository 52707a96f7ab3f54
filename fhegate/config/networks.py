from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from cytoolz.functoolz import memoize
from eth_utils import is_address, to_checksum_address

from fhegate.config.constants import NULL_ADDRESS
from fhegate.exceptions import ProtocolError


class UnrecognizedNetwork(Exception):
    """Raised when a named network profile is not recognized."""


def _checksum_or_none(name: str, address: Optional[str]) -> Optional[str]:
    if address is None:
        return None
    if not isinstance(address, str) or not is_address(address):
        raise ProtocolError(f"Invalid {name}: {address!r} is not an Ethereum address")
    return to_checksum_address(address)


@dataclass(frozen=True)
class ProviderConfig:
    """
    Network configuration owned by the provider once it is initialized.

    Addresses are normalized to EIP-55 checksum form on construction.
    """

    network_id: int
    gateway_address: str
    acl_address: Optional[str] = None
    kms_verifier_address: Optional[str] = None

    # camelCase keys as used by browser-side configuration objects
    _ALIASES = {
        "chainId": "network_id",
        "networkId": "network_id",
        "gatewayAddress": "gateway_address",
        "aclAddress": "acl_address",
        "accessControlAddress": "acl_address",
        "kmsVerifierAddress": "kms_verifier_address",
        "verifierAddress": "kms_verifier_address",
    }

    def __post_init__(self):
        if isinstance(self.network_id, bool) or not isinstance(self.network_id, int) or self.network_id <= 0:
            raise ProtocolError(f"Invalid network id: {self.network_id!r}")
        object.__setattr__(self, "gateway_address", _checksum_or_none("gateway address", self.gateway_address))
        if self.gateway_address is None:
            raise ProtocolError("A gateway address is required")
        object.__setattr__(self, "acl_address", _checksum_or_none("ACL address", self.acl_address))
        object.__setattr__(
            self, "kms_verifier_address", _checksum_or_none("KMS verifier address", self.kms_verifier_address)
        )

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProviderConfig":
        fields = dict()
        for key, value in payload.items():
            field_name = cls._ALIASES.get(key, key)
            if field_name not in cls.__dataclass_fields__:
                raise ProtocolError(f"Unknown configuration field '{key}'")
            fields[field_name] = value
        try:
            return cls(**fields)
        except TypeError as e:
            raise ProtocolError(f"Incomplete provider configuration: {e}")

    def to_dict(self) -> Dict[str, Any]:
        payload = {"chainId": self.network_id, "gatewayAddress": self.gateway_address}
        if self.acl_address:
            payload["aclAddress"] = self.acl_address
        if self.kms_verifier_address:
            payload["kmsVerifierAddress"] = self.kms_verifier_address
        return payload

    def with_gateway(self, gateway_address: str) -> "ProviderConfig":
        return replace(self, gateway_address=gateway_address)


class NetworkProfile:
    def __init__(self, name: str, network_id: int, gateway_address: str = NULL_ADDRESS):
        self.name = name
        self.network_id = network_id
        self.gateway_address = gateway_address

    def __repr__(self) -> str:
        return f"<NetworkProfile {self.name} ({self.network_id})>"

    def __str__(self) -> str:
        return self.name

    @property
    def is_local(self) -> bool:
        return self.network_id == HARDHAT.network_id

    def config(self, **overrides) -> ProviderConfig:
        fields = dict(network_id=self.network_id, gateway_address=self.gateway_address)
        fields.update(overrides)
        return ProviderConfig(**fields)


# The gateway addresses are placeholders until a deployment is configured.
SEPOLIA = NetworkProfile(name="sepolia", network_id=11155111)
HARDHAT = NetworkProfile(name="hardhat", network_id=31337)

SUPPORTED_NETWORKS: Dict[str, NetworkProfile] = {
    str(network): network for network in (SEPOLIA, HARDHAT)
}


@memoize
def get_network(name: Any) -> NetworkProfile:
    if not isinstance(name, str):
        raise TypeError(f"network name must be a string, not {type(name)}")
    try:
        return SUPPORTED_NETWORKS[name]
    except KeyError:
        raise UnrecognizedNetwork(f"{name} is not a recognized network.")


def get_network_config(name: str, **overrides) -> ProviderConfig:
    return get_network(name).config(**overrides)
