"""
SheetsStore tests against a mocked googleapiclient service.

The service is a MagicMock shaped like
service.spreadsheets().values().get(...).execute().
"""

import logging
import time
from unittest.mock import MagicMock, Mock

import httplib2
import pytest
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError

from sheetstore import (
    CollectionNotFoundError,
    ReadFailurePolicy,
    RepositoryContainer,
    SheetsConfig,
    SheetsStore,
    StoreAuthError,
    StoreReadError,
    StoreTimeoutError,
    StoreWriteError,
)
from sheetstore.store.sheets import column_letter, quote_sheet_name


def http_error(status, message):
    content = ('{"error": {"message": "%s"}}' % message).encode()
    return HttpError(resp=Mock(status=status, reason="error"), content=content)


@pytest.fixture
def config():
    return SheetsConfig(spreadsheet_id="sheet-1", request_timeout=2.0, num_retries=3)


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def values(service):
    return service.spreadsheets.return_value.values.return_value


@pytest.fixture
def sheets(config, service):
    return SheetsStore(config, service=service)


class TestFetch:

    @pytest.mark.asyncio
    async def test_splits_header_from_rows(self, sheets, values):
        values.get.return_value.execute.return_value = {
            "values": [["id", "name"], ["u1", "John"], ["u2"]],
        }

        headers, rows = await sheets.fetch_rows("users")

        assert headers == ["id", "name"]
        assert rows == [["u1", "John"], ["u2"]]
        values.get.assert_called_once_with(spreadsheetId="sheet-1", range="users")
        values.get.return_value.execute.assert_called_once_with(num_retries=3)

    @pytest.mark.asyncio
    async def test_empty_sheet(self, sheets, values):
        values.get.return_value.execute.return_value = {}
        assert await sheets.fetch_rows("users") == ([], [])

    @pytest.mark.asyncio
    async def test_missing_tab_is_collection_not_found(self, sheets, values):
        values.get.return_value.execute.side_effect = http_error(400, "Unable to parse range: ghosts")

        with pytest.raises(CollectionNotFoundError) as exc:
            await sheets.fetch_rows("ghosts")

        assert exc.value.collection == "ghosts"
        assert "does not exist" in str(exc.value)

    @pytest.mark.asyncio
    async def test_permission_error_is_read_error(self, sheets, values):
        values.get.return_value.execute.side_effect = http_error(403, "The caller does not have permission")

        with pytest.raises(StoreReadError) as exc:
            await sheets.fetch_rows("users")

        assert not isinstance(exc.value, CollectionNotFoundError)
        assert "Permission denied" in str(exc.value)

    @pytest.mark.asyncio
    async def test_network_error_is_read_error(self, sheets, values):
        values.get.return_value.execute.side_effect = ConnectionError("connection reset")
        with pytest.raises(StoreReadError, match="connection reset"):
            await sheets.fetch_rows("users")

    @pytest.mark.asyncio
    async def test_slow_request_times_out(self, service, values):
        store = SheetsStore(SheetsConfig(spreadsheet_id="sheet-1", request_timeout=0.05), service=service)
        values.get.return_value.execute.side_effect = lambda **kwargs: time.sleep(0.5)

        with pytest.raises(StoreTimeoutError, match="timed out"):
            await store.fetch_rows("users")

    @pytest.mark.parametrize("error", [
        httplib2.ServerNotFoundError("Unable to find the server at sheets.googleapis.com"),
        httplib2.HttpLib2Error("Redirected but the response is missing a Location: header."),
        TransportError("TLS handshake failed"),
    ])
    @pytest.mark.asyncio
    async def test_transport_errors_are_read_errors(self, sheets, values, error):
        values.get.return_value.execute.side_effect = error

        with pytest.raises(StoreReadError, match=type(error).__name__):
            await sheets.fetch_rows("users")

    @pytest.mark.asyncio
    async def test_revoked_token_is_auth_error(self, sheets, values):
        values.get.return_value.execute.side_effect = RefreshError("invalid_grant")
        with pytest.raises(StoreAuthError, match="invalid_grant"):
            await sheets.fetch_rows("users")


class TestWrites:

    @pytest.mark.asyncio
    async def test_append_inserts_rows_without_retry(self, sheets, values):
        await sheets.append_row("users", ["u9", "Zed"])

        values.append.assert_called_once_with(
            spreadsheetId="sheet-1",
            range="users",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [["u9", "Zed"]]},
        )
        values.append.return_value.execute.assert_called_once_with(num_retries=0)

    @pytest.mark.asyncio
    async def test_overwrite_range_targets_one_row(self, sheets, values):
        await sheets.overwrite_range("users", 1, ["u2", "Jane", "inactive"])

        kwargs = values.update.call_args.kwargs
        assert kwargs["range"] == "users!A3:C3"
        assert kwargs["body"] == {"values": [["u2", "Jane", "inactive"]]}

    @pytest.mark.asyncio
    async def test_overwrite_range_past_column_z(self, sheets, values):
        await sheets.overwrite_range("wide", 0, ["x"] * 28)
        assert values.update.call_args.kwargs["range"] == "wide!A2:AB2"

    @pytest.mark.asyncio
    async def test_overwrite_all_clears_then_writes(self, sheets, values):
        order = []
        values.clear.return_value.execute.side_effect = lambda **kwargs: order.append("clear")
        values.update.return_value.execute.side_effect = lambda **kwargs: order.append("update")

        await sheets.overwrite_all("users", ["id", "name"], [["u1", "John"]])

        assert order == ["clear", "update"]
        values.clear.assert_called_once_with(spreadsheetId="sheet-1", range="users", body={})
        kwargs = values.update.call_args.kwargs
        assert kwargs["range"] == "users!A1"
        assert kwargs["body"] == {"values": [["id", "name"], ["u1", "John"]]}

    @pytest.mark.asyncio
    async def test_user_entered_input_option(self, service, values):
        store = SheetsStore(SheetsConfig(spreadsheet_id="sheet-1", value_input_option="USER_ENTERED"), service=service)
        await store.append_row("users", ["u9"])
        assert values.append.call_args.kwargs["valueInputOption"] == "USER_ENTERED"

    @pytest.mark.asyncio
    async def test_http_error_is_write_error(self, sheets, values):
        values.append.return_value.execute.side_effect = http_error(429, "Quota exceeded")

        with pytest.raises(StoreWriteError, match="quota"):
            await sheets.append_row("users", ["u9"])

    @pytest.mark.parametrize("error", [
        httplib2.ServerNotFoundError("Unable to find the server at sheets.googleapis.com"),
        TransportError("connection aborted"),
        ConnectionResetError("connection reset"),
    ])
    @pytest.mark.asyncio
    async def test_transport_errors_are_write_errors(self, sheets, values, error):
        values.update.return_value.execute.side_effect = error

        with pytest.raises(StoreWriteError, match=type(error).__name__):
            await sheets.overwrite_range("users", 0, ["u1"])


class TestThroughRepositories:

    @pytest.mark.asyncio
    async def test_relation_query_over_sheets(self, sheets, values):
        tables = {
            "users": {"values": [["id", "name", "department_id"], ["u1", "John", "d1"], ["u2", "Jane"]]},
            "departments": {"values": [["id", "name"], ["d1", "Eng"]]},
        }

        def get(spreadsheetId, range):
            request = MagicMock()
            request.execute.return_value = tables[range]
            return request

        values.get.side_effect = get
        repos = RepositoryContainer(sheets)

        rows = await repos.users.with_("department").order_by("name").get()

        assert rows == [
            {"id": "u2", "name": "Jane", "department_id": "", "department": None},
            {"id": "u1", "name": "John", "department_id": "d1", "department": {"id": "d1", "name": "Eng"}},
        ]

    @pytest.mark.asyncio
    async def test_unreachable_api_degrades_to_no_rows(self, sheets, values, caplog):
        values.get.return_value.execute.side_effect = httplib2.ServerNotFoundError(
            "Unable to find the server at sheets.googleapis.com"
        )
        repos = RepositoryContainer(sheets)

        with caplog.at_level(logging.ERROR, logger="sheetstore.repositories"):
            assert await repos.users.all() == []
            assert await repos.users.where("name", "John").get() == []

        assert "ServerNotFoundError" in caplog.text

    @pytest.mark.asyncio
    async def test_unreachable_api_raises_under_raise_policy(self, sheets, values):
        values.get.return_value.execute.side_effect = TransportError("connection refused")
        repos = RepositoryContainer(sheets, read_failure_policy=ReadFailurePolicy.RAISE)

        with pytest.raises(StoreReadError):
            await repos.users.all()


class TestA1Helpers:

    @pytest.mark.parametrize("index,letters", [
        (1, "A"),
        (3, "C"),
        (26, "Z"),
        (27, "AA"),
        (52, "AZ"),
        (703, "AAA"),
    ])
    def test_column_letter(self, index, letters):
        assert column_letter(index) == letters

    def test_column_letter_rejects_zero(self):
        with pytest.raises(ValueError):
            column_letter(0)

    def test_quote_sheet_name(self):
        assert quote_sheet_name("users") == "users"
        assert quote_sheet_name("user_roles") == "user_roles"
        assert quote_sheet_name("My Users") == "'My Users'"
        assert quote_sheet_name("bob's") == "'bob''s'"
