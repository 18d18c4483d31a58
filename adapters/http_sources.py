# PATH: adapters/http_sources.py
"""
HTTP-backed collaborators.

- HttpVenueSource: venue quotes from a JSON quote API
- RpcGasPriceSource: gas price via JSON-RPC eth_gasPrice

Both share a lazily created httpx.AsyncClient per instance. API keys are
read from the environment (.env supported).
"""

import os
import time
from typing import Any, Dict, Optional, Tuple, Union

import httpx
from dotenv import load_dotenv

from core.exceptions import ProviderUnavailableError
from core.logging import get_logger
from core.models import QuoteUnavailable, SourceQuote

logger = get_logger(__name__)

# Load environment variables
load_dotenv()


class _HttpClientMixin:
    timeout_seconds: float
    _client: Optional[httpx.AsyncClient]
    _transport: Optional[httpx.AsyncBaseTransport]

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


class HttpVenueSource(_HttpClientMixin):
    """
    Venue backed by a JSON quote endpoint.

    Request:  GET {base_url}/quote?tokenIn=..&tokenOut=..&amount=..[&feeTier=..]
    Response: {"amountOut": "123", "estimatedGas": 150000,
               "feeBps": 30, "liquidity": "1000", "route": {...}}
              or {"error": "reason"}

    Amounts may be JSON strings or integers.
    """

    def __init__(
        self,
        venue_id: str,
        base_url: str,
        fee_tiers: Optional[Tuple[int, ...]] = None,
        timeout_seconds: float = 5.0,
        api_key_env: str = "FLASHROUTE_QUOTE_API_KEY",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.venue_id = venue_id
        self.base_url = base_url.rstrip("/")
        self.fee_tiers = fee_tiers
        self.timeout_seconds = timeout_seconds
        self.api_key = os.getenv(api_key_env, "")
        self._client = None
        self._transport = transport
        self.last_latency_ms = 0

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def _parse(body: Dict[str, Any]) -> Union[SourceQuote, QuoteUnavailable]:
        if "error" in body:
            return QuoteUnavailable(str(body["error"]))
        try:
            return SourceQuote(
                amount_out=int(body["amountOut"]),
                estimated_gas=int(body.get("estimatedGas", 0)),
                route_data=dict(body.get("route") or {}),
                fee_bps=int(body.get("feeBps", 0)),
                liquidity=int(body.get("liquidity", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            return QuoteUnavailable(f"malformed response: {e}")

    async def quote(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        fee_tier: Optional[int] = None,
    ) -> Union[SourceQuote, QuoteUnavailable]:
        params: Dict[str, Any] = {
            "tokenIn": token_in,
            "tokenOut": token_out,
            "amount": str(amount_in),
        }
        if fee_tier is not None:
            params["feeTier"] = fee_tier

        client = await self._get_client()
        start_ms = int(time.time() * 1000)
        try:
            resp = await client.get(
                f"{self.base_url}/quote", params=params, headers=self._headers()
            )
        except httpx.TimeoutException:
            logger.debug(f"Quote timeout for {self.venue_id}")
            return QuoteUnavailable("timeout")
        except httpx.HTTPError as e:
            logger.debug(f"Quote request failed for {self.venue_id}: {e}")
            return QuoteUnavailable(f"http error: {e}")

        self.last_latency_ms = int(time.time() * 1000) - start_ms
        logger.debug(
            "Quote response",
            extra={
                "context": {
                    "venue_id": self.venue_id,
                    "status": resp.status_code,
                    "latency_ms": self.last_latency_ms,
                }
            },
        )

        if resp.status_code >= 400:
            return QuoteUnavailable(f"http {resp.status_code}")

        try:
            body = resp.json()
        except ValueError:
            return QuoteUnavailable("malformed response: not JSON")
        if not isinstance(body, dict):
            return QuoteUnavailable("malformed response: not an object")
        return self._parse(body)


class RpcGasPriceSource(_HttpClientMixin):
    """
    Gas price from an Ethereum JSON-RPC endpoint (wei per gas).

    `${ALCHEMY_API_KEY}` in the URL is replaced from the environment.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_key = os.getenv("ALCHEMY_API_KEY", "")
        self.rpc_url = rpc_url.replace("${ALCHEMY_API_KEY}", api_key)
        self.timeout_seconds = timeout_seconds
        self._client = None
        self._transport = transport
        self._request_id = 0

    async def gas_price(self) -> int:
        """
        Current gas price.

        Raises:
            ProviderUnavailableError: On transport or RPC error
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": "eth_gasPrice",
            "params": [],
            "id": self._request_id,
        }

        client = await self._get_client()
        try:
            resp = await client.post(self.rpc_url, json=payload)
            result = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderUnavailableError(
                f"Gas price request failed: {e}",
                provider_id="rpc",
                details={"url": self.rpc_url},
            ) from e

        if not isinstance(result, dict):
            raise ProviderUnavailableError(
                "Malformed RPC response: not an object",
                provider_id="rpc",
                details={"url": self.rpc_url},
            )
        if "error" in result:
            error = result["error"]
            error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise ProviderUnavailableError(
                f"RPC error: {error_msg}",
                provider_id="rpc",
                details={"url": self.rpc_url},
            )
        try:
            return int(result["result"], 16)
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailableError(
                f"Malformed RPC response: {e}",
                provider_id="rpc",
                details={"url": self.rpc_url},
            ) from e
