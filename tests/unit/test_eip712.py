import pytest
from eth_account.messages import encode_typed_data

from fhegate.blockchain.eth.eip712 import DECRYPT_PRIMARY_TYPE, build_decrypt_authorization
from fhegate.exceptions import ProtocolError
from tests.constants import HANDLE_1, TESTERCHAIN_CHAIN_ID


@pytest.fixture(scope="function")
def authorization(gateway_address, contract_address, signer):
    return build_decrypt_authorization(
        network_id=TESTERCHAIN_CHAIN_ID,
        gateway_address=gateway_address,
        handle=HANDLE_1,
        contract_address=contract_address,
        user_address=signer.address,
    )


def test_authorization_domain_and_schema(authorization, gateway_address, contract_address, signer):
    assert authorization.domain == {
        "name": "FHE Gateway",
        "version": "2.0",
        "chainId": TESTERCHAIN_CHAIN_ID,
        "verifyingContract": gateway_address,
    }
    assert [field["name"] for field in authorization.schema] == ["handle", "contractAddress", "userAddress"]
    assert [field["type"] for field in authorization.schema] == ["uint256", "address", "address"]
    assert authorization.message == {
        "handle": HANDLE_1,
        "contractAddress": contract_address,
        "userAddress": signer.address,
    }

    typed_data = authorization.to_dict()
    assert typed_data["primaryType"] == DECRYPT_PRIMARY_TYPE
    assert set(typed_data["types"]) == {"EIP712Domain", DECRYPT_PRIMARY_TYPE}

    # mutating the exported payload does not touch the message
    typed_data["message"]["handle"] = 0
    typed_data["types"][DECRYPT_PRIMARY_TYPE].pop()
    assert authorization.handle == HANDLE_1
    assert len(authorization.schema) == 3


def test_authorization_is_deterministic(authorization, gateway_address, contract_address, signer):
    again = build_decrypt_authorization(
        network_id=TESTERCHAIN_CHAIN_ID,
        gateway_address=gateway_address.lower(),
        handle=hex(HANDLE_1),
        contract_address=contract_address,
        user_address=signer.address,
    )
    assert again == authorization
    assert again.to_dict() == authorization.to_dict()
    assert again.signable() == authorization.signable()
    assert authorization.signable() == encode_typed_data(full_message=authorization.to_dict())


def test_sign_and_recover(authorization, signer):
    signature = signer.sign_typed_data(account=signer.address, typed_data=authorization.to_dict())
    assert len(signature) == 65
    assert authorization.recover(signature) == signer.address
    assert authorization.verify(signature, signer.address)
    assert authorization.verify(signature, signer.address.lower())

    # signing is deterministic (RFC 6979)
    assert signer.sign_typed_data(account=signer.address, typed_data=authorization.to_dict()) == signature


def test_domain_separation(authorization, signer, get_random_checksum_address, contract_address):
    signature = signer.sign_typed_data(account=signer.address, typed_data=authorization.to_dict())

    other_gateway = build_decrypt_authorization(
        network_id=TESTERCHAIN_CHAIN_ID,
        gateway_address=get_random_checksum_address(),
        handle=HANDLE_1,
        contract_address=contract_address,
        user_address=signer.address,
    )
    other_network = build_decrypt_authorization(
        network_id=TESTERCHAIN_CHAIN_ID + 1,
        gateway_address=authorization.domain["verifyingContract"],
        handle=HANDLE_1,
        contract_address=contract_address,
        user_address=signer.address,
    )
    other_handle = build_decrypt_authorization(
        network_id=TESTERCHAIN_CHAIN_ID,
        gateway_address=authorization.domain["verifyingContract"],
        handle=HANDLE_1 + 1,
        contract_address=contract_address,
        user_address=signer.address,
    )
    for replay_target in (other_gateway, other_network, other_handle):
        assert replay_target.signable() != authorization.signable()
        assert not replay_target.verify(signature, signer.address)


def test_invalid_signature(authorization):
    with pytest.raises(ProtocolError, match="Invalid EIP712 signature"):
        authorization.recover(b"\x00" * 12)


@pytest.mark.parametrize(
    "field,value,message",
    (
        ("gateway_address", "0xdeadbeef", "Invalid gateway address"),
        ("contract_address", None, "Invalid contract address"),
        ("user_address", "0x" + "g" * 40, "Invalid user address"),
        ("handle", "handle-1", "Invalid handle"),
        ("handle", 2 ** 256, "out of uint256 range"),
    ),
)
def test_malformed_inputs_are_protocol_errors(field, value, message, gateway_address, contract_address, signer):
    arguments = dict(
        network_id=TESTERCHAIN_CHAIN_ID,
        gateway_address=gateway_address,
        handle=HANDLE_1,
        contract_address=contract_address,
        user_address=signer.address,
    )
    arguments[field] = value
    with pytest.raises(ProtocolError, match=message):
        build_decrypt_authorization(**arguments)
