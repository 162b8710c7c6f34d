"""
Solana JSON-RPC adapter for ledger access.

Provides ledger access via a Solana node's HTTP JSON-RPC interface.
"""

import asyncio
import base64
import itertools
from typing import Any, List, Optional

import httpx
import structlog
from solders.pubkey import Pubkey

from solbatch.config import BatcherConfig, Commitment, get_config
from solbatch.node.interface import (
    Checkpoint,
    LedgerGateway,
    NodeConnectionError,
    TokenAmount,
    TransactionSubmitError,
)

logger = structlog.get_logger(__name__)

_COMMITMENT_RANK = {
    Commitment.PROCESSED.value: 0,
    Commitment.CONFIRMED.value: 1,
    Commitment.FINALIZED.value: 2,
}


class RpcResponseError(NodeConnectionError):
    """Raised when the RPC answers with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class SolanaRpcAdapter(LedgerGateway):
    """
    Solana JSON-RPC adapter.

    Implements the LedgerGateway over HTTP. A single httpx.AsyncClient is shared
    by every concurrent call.
    """

    def __init__(
        self,
        config: Optional[BatcherConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the RPC adapter.

        Args:
            config: Batcher configuration. Uses global config if not provided.
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.endpoint = self.config.rpc_endpoint
        self.commitment = self.config.commitment
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        if not self.endpoint:
            raise NodeConnectionError("RPC endpoint not configured")

        self._client = httpx.AsyncClient(
            timeout=self.config.request_timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )

        # Test connection
        try:
            health = await self._request("getHealth")
            logger.info("rpc_connected", endpoint=self.endpoint, health=health)
        except RpcResponseError as e:
            # The node answered, it is just lagging behind the cluster
            logger.warning("rpc_unhealthy", endpoint=self.endpoint, error=str(e))
        except NodeConnectionError:
            await self.disconnect()
            raise

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("rpc_disconnected")

    async def _request(self, method: str, params: Optional[list] = None) -> Any:
        """Send a JSON-RPC request and return its result."""
        if not self._client:
            await self.connect()

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
        }
        if params is not None:
            payload["params"] = params

        try:
            response = await self._client.post(self.endpoint, json=payload)
        except httpx.RequestError as e:
            logger.error("rpc_request_error", method=method, error=str(e))
            raise NodeConnectionError(f"RPC request failed: {method}: {e}")

        if response.status_code != 200:
            logger.error(
                "rpc_request_failed",
                method=method,
                status=response.status_code,
                error=response.text,
            )
            raise NodeConnectionError(
                f"RPC error {response.status_code} for {method}: {response.text}"
            )

        try:
            data = response.json()
        except ValueError:
            raise NodeConnectionError(f"RPC returned invalid JSON for {method}")

        if not isinstance(data, dict):
            raise NodeConnectionError(f"RPC returned a non-object response for {method}")

        if data.get("error"):
            error = data["error"]
            raise RpcResponseError(
                error.get("message", "Unknown RPC error"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return data.get("result")

    def _commitment(self, commitment: Optional[Commitment] = None) -> str:
        return (commitment or self.commitment).value

    async def get_balance(self, address: Pubkey) -> int:
        """Get the lamport balance of an account."""
        result = await self._request(
            "getBalance",
            [str(address), {"commitment": self._commitment()}],
        )
        return int(result["value"])

    async def get_latest_checkpoint(self) -> Checkpoint:
        """Get the latest blockhash."""
        result = await self._request(
            "getLatestBlockhash",
            [{"commitment": self._commitment()}],
        )
        value = result["value"]
        checkpoint = Checkpoint(
            blockhash=value["blockhash"],
            last_valid_block_height=int(value["lastValidBlockHeight"]),
        )
        logger.debug(
            "checkpoint_fetched",
            blockhash=checkpoint.blockhash,
            last_valid_block_height=checkpoint.last_valid_block_height,
        )
        return checkpoint

    async def get_block_height(self) -> int:
        """Get the current block height."""
        result = await self._request(
            "getBlockHeight",
            [{"commitment": self._commitment()}],
        )
        return int(result)

    async def submit_transaction(
        self,
        raw_tx: bytes,
        commitment: Optional[Commitment] = None,
        last_valid_block_height: Optional[int] = None,
    ) -> str:
        """Submit a signed transaction and wait for confirmation."""
        commitment = commitment or self.commitment

        try:
            signature = await self._request(
                "sendTransaction",
                [
                    base64.b64encode(raw_tx).decode("ascii"),
                    {
                        "encoding": "base64",
                        "maxRetries": self.config.send_max_retries,
                        "preflightCommitment": commitment.value,
                    },
                ],
            )
        except RpcResponseError as e:
            logger.error("tx_submit_failed", error=str(e), code=e.code)
            raise TransactionSubmitError(
                f"Transaction submission failed: {e}",
                error_code=str(e.code) if e.code is not None else None,
            )
        except NodeConnectionError as e:
            raise TransactionSubmitError(f"Transaction submission request failed: {e}")

        logger.info("tx_submitted", signature=signature)

        await self.await_transaction_confirmation(
            signature,
            commitment=commitment,
            last_valid_block_height=last_valid_block_height,
        )
        return signature

    async def await_transaction_confirmation(
        self,
        signature: str,
        commitment: Optional[Commitment] = None,
        last_valid_block_height: Optional[int] = None,
    ) -> None:
        """
        Wait for a transaction to reach a commitment level.

        Raises:
            TransactionSubmitError: If the transaction failed on-chain, its
                blockhash expired, or the timeout elapsed
        """
        commitment = commitment or self.commitment
        target = _COMMITMENT_RANK[commitment.value]
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            try:
                result = await self._request(
                    "getSignatureStatuses",
                    [[signature], {"searchTransactionHistory": False}],
                )
                status = result["value"][0]

                if status is not None:
                    if status.get("err") is not None:
                        logger.warning("tx_failed_on_chain", signature=signature, error=status["err"])
                        raise TransactionSubmitError(
                            f"Transaction {signature} failed: {status['err']}",
                            error_code="transaction_error",
                        )

                    reached = _COMMITMENT_RANK.get(status.get("confirmationStatus"), -1)
                    if reached >= target:
                        logger.info(
                            "tx_confirmed",
                            signature=signature,
                            commitment=status.get("confirmationStatus"),
                        )
                        return

                if last_valid_block_height is not None:
                    block_height = await self.get_block_height()
                    if block_height > last_valid_block_height:
                        logger.warning("tx_blockhash_expired", signature=signature)
                        raise TransactionSubmitError(
                            f"Transaction {signature} expired: block height exceeded",
                            error_code="blockhash_expired",
                        )

            except NodeConnectionError as e:
                # Polling errors are transient until the timeout says otherwise
                logger.warning("tx_status_poll_failed", signature=signature, error=str(e))

            elapsed = loop.time() - start_time
            if elapsed > self.config.confirm_timeout_seconds:
                logger.warning("tx_confirmation_timeout", signature=signature)
                raise TransactionSubmitError(
                    f"Transaction {signature} was not confirmed in "
                    f"{self.config.confirm_timeout_seconds} seconds",
                    error_code="timeout",
                )

            await asyncio.sleep(self.config.confirm_poll_interval_seconds)

    async def get_token_sub_account(
        self,
        owner: Pubkey,
        mint: Pubkey,
    ) -> Optional[Pubkey]:
        """Find the first token account of an owner for a mint."""
        result = await self._request(
            "getTokenAccountsByOwner",
            [
                str(owner),
                {"mint": str(mint)},
                {"encoding": "jsonParsed", "commitment": self._commitment()},
            ],
        )
        accounts: List[dict] = result.get("value") or []
        if not accounts:
            return None
        if len(accounts) > 1:
            logger.debug("multiple_token_accounts", owner=str(owner), count=len(accounts))
        return Pubkey.from_string(accounts[0]["pubkey"])

    async def get_token_balance(self, token_account: Pubkey) -> TokenAmount:
        """Get the balance of a token account."""
        result = await self._request(
            "getTokenAccountBalance",
            [str(token_account), {"commitment": self._commitment()}],
        )
        value = result["value"]
        return TokenAmount(amount=int(value["amount"]), decimals=int(value["decimals"]))
