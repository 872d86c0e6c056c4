"""
Google credentials for the Sheets API.
Supports service-account keys (inline JSON or file) and authorized-user tokens.
"""

import json
import logging
import threading
from pathlib import Path

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from .config import SheetsConfig
from .errors import StoreAuthError

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']


class GoogleAuth:
    """Thread-safe credential manager that caches the Sheets service client."""

    def __init__(self, config: SheetsConfig):
        self.config = config
        self._creds = None
        self._services: dict = {}  # Keyed by (api_name, api_version)
        self._lock = threading.Lock()
        self._healthy = True
        self._error_msg = None

    @property
    def healthy(self) -> bool:
        return self._healthy

    @property
    def error_msg(self) -> str:
        return self._error_msg

    def _fail(self, message: str, cause: Exception = None):
        self._healthy = False
        self._error_msg = message
        raise StoreAuthError(message) from cause

    def _load_creds(self):
        """Build credentials from whichever source the config names. Must be called under lock."""
        cfg = self.config
        try:
            if cfg.credentials_json:
                info = json.loads(cfg.credentials_json)
                return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
            if cfg.credentials_file:
                return service_account.Credentials.from_service_account_file(cfg.credentials_file, scopes=SCOPES)
            if cfg.token_file and Path(cfg.token_file).exists():
                return Credentials.from_authorized_user_file(cfg.token_file, SCOPES)
        except (ValueError, OSError, GoogleAuthError) as e:
            self._fail(f"Could not load Google credentials: {e}", e)

        self._fail(
            "No Google credentials configured. Set GOOGLE_CREDENTIALS, "
            "GOOGLE_APPLICATION_CREDENTIALS or GOOGLE_TOKEN_FILE."
        )

    def _get_creds(self):
        """Get valid credentials, refreshing user tokens if needed. Must be called under lock."""
        creds = self._creds or self._load_creds()

        if _needs_refresh(creds):
            if creds.expired and creds.refresh_token:
                try:
                    creds.refresh(Request())
                    Path(self.config.token_file).write_text(creds.to_json())
                    logger.info("Access token refreshed (expires: %s)", creds.expiry)
                except RefreshError as e:
                    self._fail(f"Refresh token invalid/revoked ({e}).", e)
            else:
                self._fail("Credentials invalid and no refresh token.")

        self._healthy = True
        self._error_msg = None
        self._creds = creds
        return creds

    def get_service(self, api_name: str = 'sheets', api_version: str = 'v4'):
        """
        Get an authenticated Google API service client.
        Caches service objects per (api_name, version).
        """
        key = (api_name, api_version)

        with self._lock:
            # Fast path: cached service with usable creds
            if key in self._services and self._creds is not None and not _needs_refresh(self._creds):
                return self._services[key]

            creds = self._get_creds()
            service = build(api_name, api_version, credentials=creds, cache_discovery=False)
            self._services[key] = service
            return service

    def invalidate_services(self):
        """Force all cached services to be rebuilt on next access."""
        with self._lock:
            self._services.clear()
            self._creds = None


def _needs_refresh(creds) -> bool:
    # Service-account credentials refresh themselves on each request
    return isinstance(creds, Credentials) and not creds.valid
