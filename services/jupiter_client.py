#!/usr/bin/env python3
"""Thin async client for the Jupiter quote and swap-build endpoints."""
import asyncio
import logging
from typing import Optional

import aiohttp

from analysis.models import Quote
from constants import JUPITER_API_BASE_URL, QUOTE_TIMEOUT, SWAP_BUILD_TIMEOUT
from errors import QuoteUnavailable

logger = logging.getLogger(__name__)


class JupiterClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = JUPITER_API_BASE_URL,
        quote_timeout: float = QUOTE_TIMEOUT,
        swap_timeout: float = SWAP_BUILD_TIMEOUT,
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip('/')
        self._quote_timeout = aiohttp.ClientTimeout(total=quote_timeout)
        self._swap_timeout = aiohttp.ClientTimeout(total=swap_timeout)

    async def get_quote(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        *,
        slippage_bps: int,
        max_accounts: int = 64,
    ) -> Quote:
        """
        Fetches a best-route quote for ``amount`` atomic units of ``input_asset``.

        Raises:
            QuoteUnavailable: on transport, HTTP or parse failure, or when the
                response carries no output amount.
        """
        params = {
            'inputMint': input_asset,
            'outputMint': output_asset,
            'amount': str(int(amount)),
            'slippageBps': str(slippage_bps),
            'maxAccounts': str(max_accounts),
        }
        url = f"{self.base_url}/quote"
        try:
            async with self.session.get(url, params=params, timeout=self._quote_timeout) as response:
                response.raise_for_status()
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise QuoteUnavailable(f"quote {input_asset[:6]}->{output_asset[:6]} failed: {exc}") from exc

        if not isinstance(data, dict) or not data.get('outAmount'):
            raise QuoteUnavailable(f"quote {input_asset[:6]}->{output_asset[:6]} returned no outAmount")

        try:
            out_amount = int(data['outAmount'])
            in_amount = int(data.get('inAmount') or amount)
        except (TypeError, ValueError) as exc:
            raise QuoteUnavailable(f"unparseable quote amounts: {exc}") from exc

        raw_impact = data.get('priceImpactPct')
        try:
            price_impact_pct = float(raw_impact) if raw_impact is not None else 999.0
        except (TypeError, ValueError):
            price_impact_pct = 999.0

        return Quote(
            input_asset=input_asset,
            output_asset=output_asset,
            in_amount=in_amount,
            out_amount=out_amount,
            price_impact_pct=price_impact_pct,
            raw=data,
        )

    async def get_swap_transaction(self, quote: Quote, user_public_key: str) -> Optional[str]:
        """Returns the base64 serialized swap transaction, or None when Jupiter cannot build one."""
        body = {
            'quoteResponse': quote.raw,
            'userPublicKey': user_public_key,
            'wrapAndUnwrapSol': True,
            'dynamicComputeUnitLimit': True,
            'prioritizationFeeLamports': 'auto',
        }
        url = f"{self.base_url}/swap"
        try:
            async with self.session.post(url, json=body, timeout=self._swap_timeout) as response:
                response.raise_for_status()
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.debug("Swap build failed for %s: %s", quote.output_asset, exc)
            return None
        if not isinstance(data, dict):
            return None
        return data.get('swapTransaction') or None
