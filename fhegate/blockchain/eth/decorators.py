import functools
import inspect
from typing import Any, Callable, Optional, Tuple, Union

import eth_utils
from constant_sorrow.constants import (
    CONTRACT_CALL,
    TRANSACTION,
    UNKNOWN_CONTRACT_INTERFACE,
)

ContractInterfaces = Union[
    CONTRACT_CALL,
    TRANSACTION,
    UNKNOWN_CONTRACT_INTERFACE
]

ADDRESS_PARAMETER_SUFFIX = "_address"
ADDRESS_PARAMETER_NAMES = ("account", "address")


class InvalidChecksumAddress(eth_utils.exceptions.ValidationError):
    pass


def _address_parameters(signature: inspect.Signature) -> Tuple[str, ...]:
    return tuple(
        name for name in signature.parameters
        if name.endswith(ADDRESS_PARAMETER_SUFFIX) or name in ADDRESS_PARAMETER_NAMES
    )


def _check_address(parameter_name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise TypeError(f'{type(value).__name__} is an invalid type for parameter "{parameter_name}".')
    if not eth_utils.is_checksum_address(value):
        raise InvalidChecksumAddress(f'"{value}" is not a valid EIP-55 checksum address.')


def validate_checksum_address(func: Callable) -> Callable:
    """
    Rejects calls whose address arguments are not EIP-55 checksummed.

    Arguments are picked by parameter name: ``account``, ``address`` and anything ending
    in ``_address``. ``None`` is accepted where the parameter defaults to ``None``.
    Raises TypeError for non-string addresses and InvalidChecksumAddress otherwise.
    """
    signature = inspect.signature(func)
    checked = _address_parameters(signature)
    nullable = {name for name in checked if signature.parameters[name].default is None}

    @functools.wraps(func)
    def wrapped(*args, **kwargs):
        arguments = signature.bind(*args, **kwargs).arguments
        for name in checked:
            if name not in arguments:
                continue
            value = arguments[name]
            if value is None and name in nullable:
                continue
            _check_address(name, value)
        return func(*args, **kwargs)

    return wrapped


def contract_api(interface: Optional[ContractInterfaces] = UNKNOWN_CONTRACT_INTERFACE) -> Callable:
    """
    Marks an agent method as a contract call or transaction (``method.contract_api``)
    and checks its outbound addresses with :func:`validate_checksum_address`.
    """

    def decorator(agent_method: Callable) -> Callable:
        agent_method.contract_api = interface
        return validate_checksum_address(func=agent_method)

    return decorator
