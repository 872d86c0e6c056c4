"""Google Sheets backing store."""

import asyncio
import logging
from functools import partial
from typing import Any, Optional, Sequence

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from ..auth import GoogleAuth
from ..config import SheetsConfig
from ..errors import (
    CollectionNotFoundError,
    StoreAuthError,
    StoreReadError,
    StoreTimeoutError,
    StoreWriteError,
    enhance_error_message,
    is_missing_range_error,
)
from .base import BaseStore

logger = logging.getLogger(__name__)

# Failures to reach the API at all (DNS, sockets, TLS, auth transport)
TRANSPORT_ERRORS = (OSError, httplib2.HttpLib2Error, TransportError)


def column_letter(index: int) -> str:
    """1-based column index to A1 letters (1 -> A, 27 -> AA)."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord('A') + rem) + letters
    return letters


def quote_sheet_name(collection: str) -> str:
    """Quote a tab name for A1 notation when it needs it."""
    if collection.replace('_', '').isalnum():
        return collection
    return "'" + collection.replace("'", "''") + "'"


class SheetsStore(BaseStore):
    """
    One spreadsheet, one tab per collection.

    googleapiclient is blocking, so every execute() runs in the default
    executor and is bounded by config.request_timeout.
    """

    def __init__(self, config: SheetsConfig, service=None):
        super().__init__()
        self.config = config
        self._service = service
        self._auth = None if service is not None else GoogleAuth(config)

    def _values(self):
        service = self._service if self._service is not None else self._auth.get_service('sheets', 'v4')
        return service.spreadsheets().values()

    async def _execute(self, collection: str, request, retries: int = 0):
        loop = asyncio.get_running_loop()
        call = partial(request.execute, num_retries=retries)
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, call),
                timeout=self.config.request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise StoreTimeoutError(
                collection, f"request timed out after {self.config.request_timeout}s"
            ) from e
        except RefreshError as e:
            raise StoreAuthError(f"Refresh token invalid/revoked ({e}).") from e

    async def fetch_rows(self, collection: str):
        try:
            request = self._values().get(
                spreadsheetId=self.config.spreadsheet_id,
                range=quote_sheet_name(collection),
            )
            result = await self._execute(collection, request, retries=self.config.num_retries)
        except HttpError as e:
            message = enhance_error_message(e, collection)
            if is_missing_range_error(e):
                raise CollectionNotFoundError(collection, message) from e
            raise StoreReadError(collection, message) from e
        except TRANSPORT_ERRORS as e:
            raise StoreReadError(collection, f"{type(e).__name__}: {e}") from e

        values = result.get('values', [])
        if not values:
            return [], []

        headers = [str(h) for h in values[0]]
        logger.debug("Fetched %d rows from %s", len(values) - 1, collection)
        return headers, values[1:]

    async def _write(self, collection: str, request, retries: int = 0):
        try:
            return await self._execute(collection, request, retries=retries)
        except HttpError as e:
            raise StoreWriteError(collection, enhance_error_message(e, collection)) from e
        except TRANSPORT_ERRORS as e:
            raise StoreWriteError(collection, f"{type(e).__name__}: {e}") from e

    async def append_row(self, collection: str, values: Sequence[Any]) -> None:
        request = self._values().append(
            spreadsheetId=self.config.spreadsheet_id,
            range=quote_sheet_name(collection),
            valueInputOption=self.config.value_input_option,
            insertDataOption='INSERT_ROWS',
            body={'values': [list(values)]},
        )
        # Not idempotent: never retried
        await self._write(collection, request)

    async def overwrite_range(self, collection: str, row_index: int, values: Sequence[Any]) -> None:
        sheet_row = row_index + 2  # 1-based, after the header
        last_col = column_letter(max(len(values), 1))
        a1 = f"{quote_sheet_name(collection)}!A{sheet_row}:{last_col}{sheet_row}"
        request = self._values().update(
            spreadsheetId=self.config.spreadsheet_id,
            range=a1,
            valueInputOption=self.config.value_input_option,
            body={'values': [list(values)]},
        )
        await self._write(collection, request, retries=self.config.num_retries)

    async def overwrite_all(self, collection: str, headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        sheet = quote_sheet_name(collection)
        # Clear first so a shorter table leaves no stale trailing rows
        clear = self._values().clear(spreadsheetId=self.config.spreadsheet_id, range=sheet, body={})
        await self._write(collection, clear, retries=self.config.num_retries)

        request = self._values().update(
            spreadsheetId=self.config.spreadsheet_id,
            range=f"{sheet}!A1",
            valueInputOption=self.config.value_input_option,
            body={'values': [list(headers)] + [list(r) for r in rows]},
        )
        await self._write(collection, request, retries=self.config.num_retries)

    @classmethod
    def from_environment(cls, config: Optional[SheetsConfig] = None) -> "SheetsStore":
        config = config or SheetsConfig.from_environment()
        config.validate()
        return cls(config)
