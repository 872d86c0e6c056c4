"""
Errors and Error Message Utilities

Exception hierarchy for the sheet store plus human-readable messages for
Google Sheets API failures (missing tabs, permissions, quota).
"""

import json
import re
from typing import Optional


class SheetStoreError(Exception):
    """Base class for every error raised by sheetstore."""


class StoreError(SheetStoreError):
    """A backing-store request failed."""

    def __init__(self, collection: str, message: str):
        self.collection = collection
        super().__init__(f"[{collection}] {message}")


class StoreReadError(StoreError):
    """Fetching a collection failed."""


class CollectionNotFoundError(StoreReadError):
    """The collection (sheet tab) does not exist."""


class StoreWriteError(StoreError):
    """Appending or overwriting rows failed."""


class StoreTimeoutError(StoreError):
    """A backing-store request did not finish within the configured timeout."""


class StoreAuthError(SheetStoreError):
    """Google credentials are missing or invalid."""


class SchemaError(SheetStoreError):
    """The collection header cannot support the requested operation."""


class DuplicateIdError(SheetStoreError):
    """A row with the requested id already exists."""

    def __init__(self, collection: str, row_id: str):
        self.collection = collection
        self.row_id = row_id
        super().__init__(f"[{collection}] a row with id '{row_id}' already exists")


# Human-readable explanations keyed by HTTP status from the Sheets API
STATUS_MESSAGES = {
    400: "Bad request.",
    401: "Credentials were rejected. Check GOOGLE_CREDENTIALS or the token file.",
    403: "Permission denied. Share the spreadsheet with the service account email.",
    404: "Spreadsheet not found. Check SPREADSHEET_ID.",
    429: "Sheets API quota exceeded. Retry later or raise the quota.",
}


def _error_status(error: Exception) -> Optional[int]:
    """Pull the HTTP status off a googleapiclient HttpError (or anything shaped like one)."""
    resp = getattr(error, "resp", None)
    status = getattr(resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _error_reason(error: Exception) -> str:
    """Best-effort extraction of the API's own error message."""
    content = getattr(error, "content", None)
    if content:
        if isinstance(content, bytes):
            content = content.decode("utf-8", errors="replace")
        try:
            payload = json.loads(content)
            return payload.get("error", {}).get("message", "") or str(error)
        except (ValueError, AttributeError):
            pass
    return str(error)


def is_missing_range_error(error: Exception) -> bool:
    """True when the API rejected the request because the sheet tab does not exist."""
    return _error_status(error) == 400 and bool(
        re.search(r"Unable to parse range", _error_reason(error), re.IGNORECASE)
    )


def enhance_error_message(error: Exception, collection: Optional[str] = None) -> str:
    """
    Enhance Google Sheets API error messages with human-readable explanations.

    Handles:
    - Missing sheet tab ("Unable to parse range")
    - Authentication / permission failures
    - Quota exhaustion

    Returns the enhanced error message string.
    """
    reason = _error_reason(error)

    if is_missing_range_error(error):
        name = collection or "requested collection"
        return f"Collection '{name}' does not exist (no sheet tab with that name)."

    status = _error_status(error)
    explanation = STATUS_MESSAGES.get(status) if status is not None else None
    if explanation:
        return f"{explanation} ({status}: {reason})"

    return reason
