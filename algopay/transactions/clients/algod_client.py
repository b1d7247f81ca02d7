"""
algod REST API client.

Talks to an Algorand node (or a public API such as AlgoNode) over httpx.
Reads are retried with exponential backoff; raw submission is not, since
a lost response does not tell us whether the node accepted the payment.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from algopay.core.config import Settings
from algopay.transactions.clients.base import BaseLedgerClient
from algopay.transactions.config import LifecycleConfig, RetryConfig
from algopay.transactions.errors import (
    NetworkError,
    RejectedByNetwork,
    TransactionNotFound,
)
from algopay.transactions.models import AccountInfo, NetworkParams, PendingTransactionInfo
from algopay.transactions.retry import retry_with_backoff

logger = structlog.get_logger()

# algod holds wait-for-block-after requests for up to a minute
ROUND_WAIT_TIMEOUT = 65.0


class AlgodLedgerClient(BaseLedgerClient):
    """Ledger client for the algod v2 REST API."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        retry: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Node URL including port, e.g. https://testnet-api.algonode.cloud
            token: API token sent as X-Algo-API-Token
            timeout: Request timeout in seconds
            retry: Retry policy for reads
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry = retry or RetryConfig()
        self._token = token
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, config: Optional[LifecycleConfig] = None
    ) -> "AlgodLedgerClient":
        config = config or LifecycleConfig.from_settings(settings)
        return cls(
            base_url=settings.get_algod_url(),
            token=settings.ALGOD_TOKEN,
            timeout=config.ledger_timeout,
            retry=config.retry,
        )

    def get_node_name(self) -> str:
        return "algod"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["X-Algo-API-Token"] = self._token
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Send one request; transport failures and 5xx become NetworkError."""
        request_headers = self._headers()
        if headers:
            request_headers.update(headers)

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=timeout or self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    content=content,
                    headers=request_headers,
                    params=params,
                )
        except httpx.TimeoutException as e:
            raise NetworkError(f"algod request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"algod unreachable: {e}") from e

        if response.status_code >= 500:
            raise NetworkError(
                f"algod returned HTTP {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        return response

    async def _get(
        self,
        path: str,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        async def call() -> httpx.Response:
            return await self._request("GET", path, params=params, timeout=timeout)

        return await retry_with_backoff(
            call, self.retry, operation_name=operation, retry_on=(NetworkError,)
        )

    async def get_suggested_params(self) -> NetworkParams:
        response = await self._get("/v2/transactions/params", "get_suggested_params")
        _raise_for_client_error(response)
        data = response.json()
        return NetworkParams(
            fee=data["fee"],
            min_fee=data.get("min-fee", 1000),
            last_round=data["last-round"],
            genesis_id=data["genesis-id"],
            genesis_hash=data["genesis-hash"],
            consensus_version=data.get("consensus-version"),
        )

    async def submit_raw(self, signed_txn: bytes) -> str:
        response = await self._request(
            "POST",
            "/v2/transactions",
            content=signed_txn,
            headers={"Content-Type": "application/x-binary"},
        )
        if response.status_code >= 400:
            reason = _error_message(response)
            logger.warning(
                "algod.submit_rejected",
                status_code=response.status_code,
                reason=reason,
            )
            raise RejectedByNetwork(reason, status_code=response.status_code)

        tx_id = response.json().get("txId")
        if not tx_id:
            raise NetworkError("algod accepted the transaction but returned no txId")
        return tx_id

    async def pending_info(self, tx_id: str) -> PendingTransactionInfo:
        response = await self._get(
            f"/v2/transactions/pending/{tx_id}",
            "pending_info",
            params={"format": "json"},
        )
        if response.status_code in (400, 404):
            raise TransactionNotFound(tx_id, _error_message(response))
        _raise_for_client_error(response)
        return PendingTransactionInfo.model_validate(response.json())

    async def current_round(self) -> int:
        response = await self._get("/v2/status", "current_round")
        _raise_for_client_error(response)
        return int(response.json()["last-round"])

    async def wait_for_round_advance(self, round_number: int) -> int:
        response = await self._get(
            f"/v2/status/wait-for-block-after/{round_number}",
            "wait_for_round_advance",
            timeout=max(self.timeout, ROUND_WAIT_TIMEOUT),
        )
        _raise_for_client_error(response)
        return int(response.json()["last-round"])

    async def account_info(self, address: str) -> AccountInfo:
        response = await self._get(
            f"/v2/accounts/{address}", "account_info", params={"exclude": "all"}
        )
        _raise_for_client_error(response)
        data = response.json()
        return AccountInfo(
            address=data.get("address", address),
            amount=data["amount"],
            min_balance=data.get("min-balance"),
            status=data.get("status"),
            round=data.get("round"),
        )


def _error_message(response: httpx.Response) -> str:
    """Extract algod's error message, falling back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text[:200]


def _raise_for_client_error(response: httpx.Response) -> None:
    if response.status_code >= 400:
        raise NetworkError(
            f"algod returned HTTP {response.status_code}: {_error_message(response)}",
            status_code=response.status_code,
        )
