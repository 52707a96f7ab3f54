import os

import pytest
from eth_utils import to_checksum_address
from twisted.internet.task import Clock

from fhegate.blockchain.eth.signers import InMemorySigner
from fhegate.blockchain.eth.trackers.decryption import DecryptionResponseTracker
from fhegate.config.networks import ProviderConfig
from fhegate.crypto.encryption import EncryptionDispatcher
from fhegate.network.decryption import DecryptionClient
from fhegate.provider import FHEProvider
from fhegate.utilities.logging import GlobalLoggerSettings
from tests.constants import MOCK_PRIVATE_KEY, TEST_DECRYPTION_TIMEOUT, TESTERCHAIN_CHAIN_ID
from tests.mock.agents import MockGatewayAgent
from tests.mock.engine import StubEncryptionEngine
from tests.utils.deferreds import success_result_of

#
# Pytest configuration
#


def pytest_collection_modifyitems(config, items):
    log_level_name = config.getoption("--log-level", "info", skip=True)
    GlobalLoggerSettings.set_log_level(log_level_name)


@pytest.fixture(scope="session")
def get_random_checksum_address():
    def _get_random_checksum_address():
        canonical_address = os.urandom(20)
        checksum_address = to_checksum_address(canonical_address)
        return checksum_address

    return _get_random_checksum_address


#
# Time
#


@pytest.fixture(scope="function")
def clock():
    return Clock()


#
# Configuration
#


@pytest.fixture(scope="function")
def gateway_address(get_random_checksum_address):
    return get_random_checksum_address()


@pytest.fixture(scope="function")
def contract_address(get_random_checksum_address):
    return get_random_checksum_address()


@pytest.fixture(scope="function")
def config(gateway_address):
    return ProviderConfig(network_id=TESTERCHAIN_CHAIN_ID, gateway_address=gateway_address)


#
# Collaborators
#


@pytest.fixture(scope="function")
def engine():
    return StubEncryptionEngine()


@pytest.fixture(scope="function")
def dispatcher(engine):
    return EncryptionDispatcher(engine=engine)


@pytest.fixture(scope="function")
def signer():
    return InMemorySigner(private_key=MOCK_PRIVATE_KEY)


@pytest.fixture(scope="function")
def mock_agent(gateway_address):
    return MockGatewayAgent(contract_address=gateway_address)


@pytest.fixture(scope="function")
def tracker(mock_agent, clock):
    return DecryptionResponseTracker(agent=mock_agent, clock=clock)


@pytest.fixture(scope="function")
def decryption_client(config, mock_agent, tracker):
    return DecryptionClient(config=config, agent=mock_agent, tracker=tracker, timeout=TEST_DECRYPTION_TIMEOUT)


#
# Provider
#


@pytest.fixture(scope="function")
def engine_factory(engine):
    def _engine_factory(config):
        engine.config = config
        return engine

    return _engine_factory


@pytest.fixture(scope="function")
def provider(engine_factory, mock_agent, clock):
    return FHEProvider(engine_factory=engine_factory, agent=mock_agent, clock=clock,
                       decryption_timeout=TEST_DECRYPTION_TIMEOUT)


@pytest.fixture(scope="function")
def ready_provider(provider, config):
    success_result_of(provider.initialize(config))
    return provider
