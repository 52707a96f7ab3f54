import os
from pathlib import Path

from appdirs import AppDirs

import fhegate

# Environment variables
FHEGATE_ENVVAR_DECRYPTION_TIMEOUT = "FHEGATE_DECRYPTION_TIMEOUT"
FHEGATE_ENVVAR_EVENT_POLL_INTERVAL = "FHEGATE_EVENT_POLL_INTERVAL"
FHEGATE_ENVVAR_USER_LOG_DIR = "FHEGATE_USER_LOG_DIR"

# User Application Filepaths
APP_DIR = AppDirs(fhegate.__title__, fhegate.__author__)
USER_LOG_DIR = Path(os.getenv(FHEGATE_ENVVAR_USER_LOG_DIR, default=APP_DIR.user_log_dir))
DEFAULT_LOG_FILENAME = "fhegate.log"
DEFAULT_JSON_LOG_FILENAME = "fhegate.json"

# Decryption
DEFAULT_DECRYPTION_TIMEOUT = float(os.environ.get(FHEGATE_ENVVAR_DECRYPTION_TIMEOUT, 30))  # seconds
DEFAULT_EVENT_POLL_INTERVAL = float(os.environ.get(FHEGATE_ENVVAR_EVENT_POLL_INTERVAL, 2))  # seconds

# EIP-712 gateway domain
GATEWAY_EIP712_NAME = "FHE Gateway"
GATEWAY_EIP712_VERSION = "2.0"

NULL_ADDRESS = "0x" + "0" * 40

# JavaScript Number.MAX_SAFE_INTEGER; decrypted scalars beyond this only get a big integer reading
MAX_SAFE_INTEGER = 2 ** 53 - 1
