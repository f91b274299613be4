"""Storage collaborator backed by the platform REST API."""

import asyncio
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from pj_summary.config import get_settings
from pj_summary.errors import StorageError, StorageRateLimitError
from pj_summary.models import (
    BankAccount,
    BankSummarySnapshot,
    BankTransaction,
    CategoryLike,
    Client,
    SaleLeg,
)

logger = structlog.get_logger(__name__)


class StorageAPIClient:
    """Async :class:`StorageProvider` talking to the platform API."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.storage_api_url).rstrip("/")
        if token is None and settings.storage_api_token is not None:
            token = settings.storage_api_token.get_secret_value()
        self._token = token
        self._timeout = timeout if timeout is not None else settings.storage_timeout
        self._max_retries = (
            max_retries if max_retries is not None else settings.storage_max_retries
        )
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "StorageAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    # === Generic Request Methods ===

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        retry_count: int = 0,
    ) -> Any:
        """Make a request, retrying transport failures with backoff."""
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                json=json,
                headers=self._get_headers(),
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                logger.warning(
                    "storage_request_retry",
                    method=method,
                    path=path,
                    attempt=retry_count + 1,
                    error=str(e),
                )
                await asyncio.sleep(2**retry_count)
                return await self._request(method, path, json, retry_count + 1)
            raise StorageError(f"Request failed: {e}") from e

        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", "60"))
            raise StorageRateLimitError(
                f"Rate limited, retry after {retry_after}s",
                status_code=429,
                details={"retry_after": retry_after},
            )

        if response.status_code >= 400:
            try:
                error_detail = response.json() if response.content else {}
            except ValueError:
                error_detail = {"raw": response.text[:500] if response.text else "empty response"}
            raise StorageError(
                f"Storage API error: {response.status_code}",
                status_code=response.status_code,
                details=error_detail,
            )

        return response.json() if response.content else {}

    @staticmethod
    def _extract_items(result: Any) -> list[dict[str, Any]]:
        """Return list of items from a list or wrapped response."""
        if isinstance(result, list):
            items = result
        elif isinstance(result, dict) and isinstance(result.get("items"), list):
            items = result["items"]
        else:
            return []
        return [item for item in items if isinstance(item, dict)]

    async def _get_items(self, path: str) -> list[dict[str, Any]]:
        return self._extract_items(await self._request("GET", path))

    # === Raw records ===

    async def get_bank_transactions(
        self, client_id: str, bank_account_id: str
    ) -> list[BankTransaction]:
        items = await self._get_items(
            f"/api/pj/clients/{client_id}/bank-accounts/{bank_account_id}/transactions"
        )
        return [BankTransaction.from_dict(item) for item in items]

    async def get_sale_legs(self, client_id: str) -> list[SaleLeg]:
        items = await self._get_items(f"/api/pj/clients/{client_id}/sale-legs")
        return [SaleLeg.from_dict(item) for item in items]

    async def get_pj_client_categories(
        self, org_id: str, client_id: str
    ) -> list[CategoryLike]:
        items = await self._get_items(
            f"/api/organizations/{org_id}/clients/{client_id}/pj-categories"
        )
        return [CategoryLike.from_dict(item) for item in items]

    # === Snapshots ===

    @staticmethod
    def _snapshots_path(org_id: str, client_id: str, bank_account_id: str) -> str:
        return (
            f"/api/organizations/{org_id}/clients/{client_id}"
            f"/bank-accounts/{bank_account_id}/summary-snapshots"
        )

    async def get_bank_summary_snapshots(
        self, org_id: str, client_id: str, bank_account_id: str
    ) -> list[BankSummarySnapshot]:
        items = await self._get_items(
            self._snapshots_path(org_id, client_id, bank_account_id)
        )
        return [BankSummarySnapshot.from_dict(item) for item in items]

    async def set_bank_summary_snapshots(
        self,
        org_id: str,
        client_id: str,
        bank_account_id: str,
        snapshots: Sequence[BankSummarySnapshot],
    ) -> None:
        await self._request(
            "PUT",
            self._snapshots_path(org_id, client_id, bank_account_id),
            json={"snapshots": [snapshot.to_dict() for snapshot in snapshots]},
        )
        logger.debug(
            "snapshots_stored",
            client_id=client_id,
            bank_account_id=bank_account_id,
            count=len(snapshots),
        )

    # === Tenants ===

    async def get_clients(self) -> list[Client]:
        items = await self._get_items("/api/clients")
        return [Client.from_dict(item) for item in items]

    async def get_bank_accounts(self, org_id: str, client_id: str) -> list[BankAccount]:
        items = await self._get_items(
            f"/api/organizations/{org_id}/clients/{client_id}/bank-accounts"
        )
        return [BankAccount.from_dict(item) for item in items]
