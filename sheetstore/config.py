"""
Spreadsheet store configuration
Environment-aware configuration based on APP_ENV
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Environment modes
EnvironmentMode = Literal["development", "test", "production"]

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


class ReadFailurePolicy(str, Enum):
    """
    What a plain read does when the backing store fails.

    DEGRADE logs the failure and returns no rows, so an unreachable store,
    a missing sheet and an empty sheet look the same to the caller.
    RAISE lets the StoreError propagate.
    """
    DEGRADE = "degrade"
    RAISE = "raise"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReadFailurePolicy":
        if not value:
            return cls.DEGRADE
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning("Unknown read failure policy %r, using 'degrade'", value)
            return cls.DEGRADE


def load_app_environment(mode: Optional[str] = None) -> str:
    """
    Load environment variables from the appropriate .env file.

    Priority:
    1. Explicit 'mode' argument
    2. APP_ENV environment variable
    3. Default to 'development'

    Loads .env.{mode} if it exists, falling back to .env
    """
    if not mode:
        mode = os.getenv('APP_ENV', 'development')

    base_path = Path.cwd()
    env_file = base_path / f'.env.{mode}'

    if env_file.exists():
        logger.info("Loading config from %s", env_file)
        # Host environment wins over file values
        load_dotenv(env_file, override=False)
    elif (base_path / '.env').exists():
        load_dotenv(base_path / '.env', override=False)
    else:
        logger.debug("No config file found for mode '%s' in %s", mode, base_path)

    return mode


@dataclass
class SheetsConfig:
    """Google Sheets backing-store configuration"""

    spreadsheet_id: str

    # Credentials: service-account JSON text, service-account file, or authorized-user token file
    credentials_json: Optional[str] = None
    credentials_file: Optional[str] = None
    token_file: Optional[str] = None

    value_input_option: str = "RAW"
    request_timeout: float = 30.0  # seconds
    num_retries: int = 2

    read_failure_policy: ReadFailurePolicy = ReadFailurePolicy.DEGRADE

    @classmethod
    def from_environment(cls, mode: Optional[EnvironmentMode] = None) -> 'SheetsConfig':
        """
        Load configuration from environment variables

        Environment variables:
        - APP_ENV: Environment mode (development, test, production)
        - SPREADSHEET_ID: Target spreadsheet
        - GOOGLE_CREDENTIALS: Service-account key as JSON text
        - GOOGLE_APPLICATION_CREDENTIALS: Path to a service-account key file
        - GOOGLE_TOKEN_FILE: Path to an authorized-user token.json
        - SHEETS_VALUE_INPUT_OPTION: RAW or USER_ENTERED (default: RAW)
        - SHEETS_REQUEST_TIMEOUT: Seconds per API request (default: 30)
        - SHEETS_NUM_RETRIES: Retries for idempotent requests (default: 2)
        - SHEETSTORE_READ_FAILURE_POLICY: degrade or raise (default: degrade)
        """
        load_app_environment(mode)

        return cls(
            spreadsheet_id=os.getenv('SPREADSHEET_ID', ''),
            credentials_json=os.getenv('GOOGLE_CREDENTIALS') or None,
            credentials_file=os.getenv('GOOGLE_APPLICATION_CREDENTIALS') or None,
            token_file=os.getenv('GOOGLE_TOKEN_FILE') or None,
            value_input_option=os.getenv('SHEETS_VALUE_INPUT_OPTION', 'RAW'),
            request_timeout=float(os.getenv('SHEETS_REQUEST_TIMEOUT', '30')),
            num_retries=int(os.getenv('SHEETS_NUM_RETRIES', '2')),
            read_failure_policy=ReadFailurePolicy.parse(os.getenv('SHEETSTORE_READ_FAILURE_POLICY')),
        )

    def validate(self):
        """Ensure the configuration can reach a spreadsheet"""
        if not self.spreadsheet_id:
            raise ValueError("SPREADSHEET_ID is not set")
        if self.value_input_option not in ("RAW", "USER_ENTERED"):
            raise ValueError(
                f"SHEETS_VALUE_INPUT_OPTION must be RAW or USER_ENTERED, got '{self.value_input_option}'"
            )
        if self.request_timeout <= 0:
            raise ValueError("SHEETS_REQUEST_TIMEOUT must be positive")


def get_environment_mode() -> EnvironmentMode:
    """Get current environment mode from APP_ENV variable"""
    mode = os.getenv('APP_ENV', 'development').lower()
    if mode not in ('development', 'test', 'production'):
        mode = 'development'
    return mode  # type: ignore


def configure_logging(level: int = logging.INFO, filename: Optional[str] = None):
    """Apply the package log format to the root logger."""
    logging.basicConfig(level=level, filename=filename, format=LOG_FORMAT)


ENV_TEMPLATE = """
# Application Environment
# Options: development, test, production
APP_ENV=development

# Spreadsheet holding one tab per collection (users, departments, roles)
SPREADSHEET_ID=your_spreadsheet_id_here

# Credentials (pick one)
# GOOGLE_CREDENTIALS={"type": "service_account", ...}
# GOOGLE_APPLICATION_CREDENTIALS=/path/to/service-account.json
# GOOGLE_TOKEN_FILE=/path/to/token.json

# Request behaviour
SHEETS_VALUE_INPUT_OPTION=RAW
SHEETS_REQUEST_TIMEOUT=30
SHEETS_NUM_RETRIES=2

# degrade: failed reads return no rows; raise: failed reads raise StoreError
SHEETSTORE_READ_FAILURE_POLICY=degrade
"""


def create_env_file(filepath: str = ".env"):
    """Create a template .env file"""
    with open(filepath, 'w') as f:
        f.write(ENV_TEMPLATE)
    logger.info("Created template .env file at %s", filepath)
