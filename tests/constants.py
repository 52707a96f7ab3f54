from fhegate.config.networks import HARDHAT

#
# Network
#

TESTERCHAIN_CHAIN_ID = HARDHAT.network_id

# Deterministic key so signatures in tests are reproducible.
MOCK_PRIVATE_KEY = "0x" + "4c" * 32

#
# Handles
#

HANDLE_1 = 0x01 << 248 | 0xA1
HANDLE_2 = 0x01 << 248 | 0xA2
HANDLE_3 = 0x01 << 248 | 0xA3

#
# Timeouts (seconds, simulated on a Clock)
#

TEST_DECRYPTION_TIMEOUT = 10
