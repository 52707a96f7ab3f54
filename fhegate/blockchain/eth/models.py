from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class GatewayInfo:
    """Introspection record of a gateway; optional fields stay None on gateways that lack them."""

    address: str
    num_pausers: Optional[int] = None
    kms_generation: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return self.num_pausers is not None and self.kms_generation is not None

    def to_dict(self) -> Dict[str, Any]:
        payload = {"address": self.address}
        if self.num_pausers is not None:
            payload["numPausers"] = self.num_pausers
        if self.kms_generation is not None:
            payload["kmsGeneration"] = self.kms_generation
        return payload


@dataclass(frozen=True)
class DecryptionResponse:
    """A DecryptionResponse(handle, value) event as delivered to subscribers."""

    handle: int
    value: int
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
