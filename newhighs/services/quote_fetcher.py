# newhighs/services/quote_fetcher.py
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import httpx

from newhighs.logging_config import get_logger
from newhighs.models import RawQuote
from newhighs.services.oauth import AccessCredentials, RequestSigner

logger = get_logger("quote_fetcher")


class NotAuthorizedError(RuntimeError):
    """Raised inside a batch fetch when no access credentials exist yet."""


@dataclass
class BatchResult:
    index: int
    symbols: List[str]
    quotes: List[RawQuote] = field(default_factory=list)
    ok: bool = True
    error: Optional[str] = None
    ms: float = 0.0


def parse_quote_response(payload: Any) -> List[RawQuote]:
    """
    {"QuoteResponse": {"QuoteData": [ {...}, ... ]}} -> [RawQuote, ...]
    A missing QuoteResponse/QuoteData means zero quotes; a non-object body is an error.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"unexpected quote payload type: {type(payload).__name__}")
    resp = payload.get("QuoteResponse") or {}
    if not isinstance(resp, dict):
        raise ValueError("QuoteResponse is not an object")
    data = resp.get("QuoteData") or []
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError("QuoteData is not a list")
    return [RawQuote.from_provider(item) for item in data]


class QuoteBatchFetcher:
    """
    One signed multi-symbol quote request per batch.

    fetch_batch never raises: transport errors, non-2xx replies, timeouts,
    bad JSON and missing credentials all become an empty, ok=False BatchResult.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        signer: RequestSigner,
        base_url: str,
        timeout_sec: float = 15.0,
    ):
        self.client = client
        self.signer = signer
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = float(timeout_sec)

    def batch_url(self, symbols: Sequence[str]) -> str:
        return f"{self.base_url}/{','.join(symbols)}.json?overrideSymbolCount=true"

    async def _request(self, url: str, credentials: Optional[AccessCredentials]) -> List[RawQuote]:
        if credentials is None:
            raise NotAuthorizedError("no access token; run the OAuth handshake first")
        headers = self.signer.headers("GET", url, credentials=credentials)
        resp = await self.client.get(url, headers=headers, timeout=self.timeout_sec)
        resp.raise_for_status()
        return parse_quote_response(resp.json())

    async def fetch_batch(
        self,
        index: int,
        symbols: Sequence[str],
        credentials: Optional[AccessCredentials],
    ) -> BatchResult:
        batch = list(symbols)
        url = self.batch_url(batch)
        logger.info("quote_batch_start | batch=%s size=%s", index + 1, len(batch))

        t0 = time.perf_counter()
        try:
            quotes = await asyncio.wait_for(self._request(url, credentials), timeout=self.timeout_sec)
        except Exception as e:
            ms = (time.perf_counter() - t0) * 1000.0
            err = f"{type(e).__name__}: {e}"
            logger.warning("quote_batch_failed | batch=%s size=%s ms=%.1f err=%s", index + 1, len(batch), ms, err)
            return BatchResult(index=index, symbols=batch, ok=False, error=err, ms=ms)

        ms = (time.perf_counter() - t0) * 1000.0
        logger.info("quote_batch_ok | batch=%s size=%s quotes=%s ms=%.1f", index + 1, len(batch), len(quotes), ms)
        return BatchResult(index=index, symbols=batch, quotes=quotes, ms=ms)

    async def fetch_all(
        self,
        batches: Sequence[Sequence[str]],
        credentials: Optional[AccessCredentials],
    ) -> List[BatchResult]:
        """Fan out every batch at once and wait for all of them. Results come back in batch order."""
        if not batches:
            return []
        tasks = [self.fetch_batch(i, b, credentials) for i, b in enumerate(batches)]
        return list(await asyncio.gather(*tasks))
