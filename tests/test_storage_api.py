"""Tests for the storage API client."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pj_summary.errors import StorageError, StorageRateLimitError
from pj_summary.models import BankSummarySnapshot, LedgerGroup
from pj_summary.storage.api import StorageAPIClient


@pytest.fixture
def client():
    """Create a StorageAPIClient instance."""
    return StorageAPIClient(
        base_url="http://localhost:5000", token="secret", max_retries=2
    )


def json_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.content = b"x"
    response.json.return_value = payload
    response.headers = {}
    return response


class TestStorageAPIClientInit:
    """Tests for StorageAPIClient initialization."""

    def test_init_strips_trailing_slash(self):
        client = StorageAPIClient(base_url="http://localhost:5000/", token="t")

        assert client.base_url == "http://localhost:5000"

    def test_token_from_settings(self):
        client = StorageAPIClient()

        assert client._get_headers()["Authorization"] == "Bearer test-token"

    def test_no_token_no_header(self, client):
        client._token = None

        assert "Authorization" not in client._get_headers()


class TestRequests:
    """Tests for request handling."""

    @pytest.mark.asyncio
    async def test_decodes_transactions(self, client, mock_httpx_client):
        mock_httpx_client.request.return_value = json_response(
            [
                {
                    "bankTxId": "tx-1",
                    "date": "05/01/2024",
                    "desc": "PIX recebido",
                    "amount": "1000.50",
                    "bankAccountId": "acct-1",
                    "categorizedAs": {"group": "RECEITA", "auto": True},
                }
            ]
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            transactions = await client.get_bank_transactions("client-1", "acct-1")

        assert transactions[0].date == date(2024, 1, 5)
        assert transactions[0].amount == 1000.5
        assert transactions[0].categorized_as.group == LedgerGroup.RECEITA
        kwargs = mock_httpx_client.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "/api/pj/clients/client-1/bank-accounts/acct-1/transactions"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_wrapped_items(self, client, mock_httpx_client):
        mock_httpx_client.request.return_value = json_response(
            {"items": [{"organizationId": "org-1", "clientId": "c-1"}, "junk"]}
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            clients = await client.get_clients()

        assert len(clients) == 1
        assert clients[0].organization_id == "org-1"

    @pytest.mark.asyncio
    async def test_put_snapshots(self, client, mock_httpx_client):
        mock_httpx_client.request.return_value = json_response({})
        snapshot = BankSummarySnapshot(
            organization_id="org-1",
            client_id="c-1",
            bank_account_id="a-1",
            window="30d",
            totals={"totalIn": 1},
            refreshed_at="2024-01-31T00:00:00+00:00",
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            await client.set_bank_summary_snapshots("org-1", "c-1", "a-1", [snapshot])

        kwargs = mock_httpx_client.request.call_args.kwargs
        assert kwargs["method"] == "PUT"
        assert kwargs["url"].endswith("/bank-accounts/a-1/summary-snapshots")
        assert kwargs["json"]["snapshots"][0]["window"] == "30d"
        assert kwargs["json"]["snapshots"][0]["totals"] == {"totalIn": 1}

    @pytest.mark.asyncio
    async def test_http_error(self, client, mock_httpx_client):
        mock_httpx_client.request.return_value = json_response(
            {"error": "boom"}, status_code=500
        )

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            with pytest.raises(StorageError) as exc_info:
                await client.get_sale_legs("c-1")

        assert exc_info.value.status_code == 500
        assert exc_info.value.details == {"error": "boom"}

    @pytest.mark.asyncio
    async def test_rate_limited(self, client, mock_httpx_client):
        response = json_response({}, status_code=429)
        response.headers = {"Retry-After": "5"}
        mock_httpx_client.request.return_value = response

        with patch.object(client, "_get_client", return_value=mock_httpx_client):
            with pytest.raises(StorageRateLimitError) as exc_info:
                await client.get_clients()

        assert exc_info.value.details == {"retry_after": 5}

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, client, mock_httpx_client):
        mock_httpx_client.request.side_effect = [
            httpx.ConnectError("refused"),
            json_response([]),
        ]

        with (
            patch.object(client, "_get_client", return_value=mock_httpx_client),
            patch("pj_summary.storage.api.asyncio.sleep", new=AsyncMock()) as sleep,
        ):
            result = await client.get_sale_legs("c-1")

        assert result == []
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, client, mock_httpx_client):
        mock_httpx_client.request.side_effect = httpx.ConnectError("refused")

        with (
            patch.object(client, "_get_client", return_value=mock_httpx_client),
            patch("pj_summary.storage.api.asyncio.sleep", new=AsyncMock()),
        ):
            with pytest.raises(StorageError, match="Request failed"):
                await client.get_sale_legs("c-1")

        assert mock_httpx_client.request.await_count == 3


class TestLifecycle:
    """Tests for client lifecycle."""

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, client, mock_httpx_client):
        client._client = mock_httpx_client

        async with client:
            pass

        mock_httpx_client.aclose.assert_awaited_once()
        assert client._client is None
