from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Optional, Sequence

import httpx

from .config import Config
from .errors import DecodeError, FetchError
from .logs import get_site_logger
from .models import Corpus, UrlOutcome, UrlState
from .normalize import NormalizePolicy, normalize
from .urls import derive_site_slug, is_fetchable, normalize_url

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.8",
    "Accept-Language": "en;q=0.7, *;q=0.5",
}


# ------------------------ Rate Limiter & Retries --------------------------- #


class RateLimiter:
    def __init__(self, delay: float):
        self.delay = max(0.0, delay)
        self._lock = asyncio.Lock()
        self._last_time: float = 0.0

    async def wait(self) -> None:
        if self.delay <= 0:
            return
        jitter = random.uniform(0, self.delay * 0.3)
        min_interval = self.delay + jitter
        async with self._lock:
            now = time.monotonic()
            wait_for = self._last_time + min_interval - now
            if wait_for > 0:
                await asyncio.sleep(wait_for)
            self._last_time = time.monotonic()


RETRIABLE = (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError)


async def fetch_with_retries(
    client: httpx.AsyncClient,
    url: str,
    *,
    logger: logging.LoggerAdapter,
    rate_limiter: RateLimiter,
    max_attempts: int = 3,
    backoff_factor: float = 0.5,
    timeout: float = 20.0,
    allowed_statuses: Sequence[int] = (),
) -> httpx.Response:
    """GET ``url``; retry connection errors, timeouts and 5xx with exponential backoff.

    Every attempt has its own ``timeout`` deadline. Raises FetchError once the
    attempts are exhausted, or straight away for a non-retriable failure.
    """
    attempt = 0
    failure = "no attempt made"
    status: Optional[int] = None
    while attempt < max_attempts:
        attempt += 1
        try:
            await rate_limiter.wait()
            resp = await asyncio.wait_for(client.get(url, follow_redirects=True), timeout=timeout)
        except asyncio.TimeoutError:
            failure, status = f"timed out after {timeout:g}s", None
        except RETRIABLE as e:
            failure, status = f"{type(e).__name__}: {e}", None
        except httpx.HTTPError as e:
            raise FetchError(url, f"{type(e).__name__}: {e}") from e
        else:
            if resp.is_success or resp.status_code in allowed_statuses:
                return resp
            failure, status = f"HTTP {resp.status_code}", resp.status_code
            if resp.status_code < 500:
                raise FetchError(url, failure, status)
        if attempt < max_attempts:
            wait = (2 ** (attempt - 1)) * backoff_factor
            logger.warning(f"Attempt {attempt} failed for {url}: {failure}. Retrying in {wait:.1f}s")
            await asyncio.sleep(wait)
    raise FetchError(url, failure if max_attempts == 1 else f"{failure} (after {attempt} attempts)", status)


# ------------------------------ Pipeline ----------------------------------- #


class FetchPipeline:
    """Fetch a fixed list of URLs with bounded concurrency and assemble the corpus.

    Failures are recorded against their URL and never affect other fetches.
    The corpus follows the input order whatever order the fetches finish in.
    """

    def __init__(self, cfg: Config, client: Optional[httpx.AsyncClient] = None) -> None:
        self.cfg = cfg
        self.client = client
        self.policy = NormalizePolicy(strip_non_alnum=cfg.strip_non_alnum, drop_page_chrome=cfg.drop_page_chrome)
        self.rate_limiter = RateLimiter(cfg.delay)
        self.logger = get_site_logger("ALL")

    def _make_client(self) -> httpx.AsyncClient:
        headers = dict(DEFAULT_HEADERS, **{"User-Agent": self.cfg.user_agent})
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=max(self.cfg.concurrency, 10))
        return httpx.AsyncClient(
            headers=headers,
            limits=limits,
            timeout=httpx.Timeout(self.cfg.timeout),
            follow_redirects=True,
        )

    # --------------------------- Public API -------------------------------- #

    async def run(
        self, urls: Sequence[str], concurrency_limit: Optional[int] = None
    ) -> tuple[Corpus, list[UrlOutcome]]:
        limit = self.cfg.concurrency if concurrency_limit is None else concurrency_limit
        if limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {limit}")
        outcomes = self._plan(urls)
        pending = [o for o in outcomes if o.state is UrlState.PENDING]
        self.logger.info(f"Fetching {len(pending)} URL(s) with concurrency {limit}")

        sem = asyncio.Semaphore(limit)
        if self.client is not None:
            await self._fetch_all(self.client, pending, sem)
        else:
            async with self._make_client() as client:
                await self._fetch_all(client, pending, sem)

        corpus = assemble_corpus(outcomes)
        excluded = sum(1 for o in outcomes if o.state is UrlState.EXCLUDED)
        self.logger.info(f"Corpus assembled: {len(corpus)} document(s) included, {excluded} excluded")
        return corpus, outcomes

    # --------------------------- Internal ---------------------------------- #

    def _plan(self, urls: Sequence[str]) -> list[UrlOutcome]:
        outcomes: list[UrlOutcome] = []
        first_seen: dict[str, int] = {}
        for position, raw in enumerate(urls):
            url = normalize_url(raw)
            outcome = UrlOutcome(url=url, position=position)
            if not is_fetchable(url):
                outcome.advance(UrlState.EXCLUDED, reason="unsupported URL")
                self.logger.warning(f"Skipping unsupported URL: {raw!r}")
            elif url in first_seen:
                outcome.advance(UrlState.EXCLUDED, reason=f"duplicate of #{first_seen[url]}")
                self.logger.info(f"Skipping duplicate URL: {url}")
            else:
                first_seen[url] = position
            outcomes.append(outcome)
        return outcomes

    async def _fetch_all(self, client: httpx.AsyncClient, outcomes: list[UrlOutcome], sem: asyncio.Semaphore) -> None:
        tasks = [asyncio.create_task(self._process(client, o, sem)) for o in outcomes]
        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _process(self, client: httpx.AsyncClient, outcome: UrlOutcome, sem: asyncio.Semaphore) -> None:
        logger = self.logger
        started = time.monotonic()
        try:
            logger = get_site_logger(derive_site_slug(outcome.url))
            async with sem:
                outcome.advance(UrlState.FETCHING)
                resp = await fetch_with_retries(
                    client,
                    outcome.url,
                    logger=logger,
                    rate_limiter=self.rate_limiter,
                    max_attempts=self.cfg.max_attempts,
                    backoff_factor=self.cfg.backoff_factor,
                    timeout=self.cfg.timeout,
                    allowed_statuses=self.cfg.allowed_statuses,
                )
        except FetchError as e:
            outcome.status_code = e.status_code
            outcome.advance(UrlState.FETCH_FAILED, reason=e.reason)
            outcome.advance(UrlState.EXCLUDED)
            logger.error(f"Fetch failed for {outcome.url}: {e.reason}")
            return
        except Exception as e:
            self._fail_unexpected(outcome, e, logger)
            return
        finally:
            outcome.elapsed = time.monotonic() - started

        outcome.status_code = resp.status_code
        outcome.content_type = resp.headers.get("Content-Type")
        outcome.final_url = str(resp.url)
        outcome.advance(UrlState.FETCHED)
        try:
            document = normalize(resp.content, outcome.content_type, doc_id=outcome.url, policy=self.policy)
        except DecodeError as e:
            outcome.advance(UrlState.NORMALIZE_FAILED, reason=f"decode error: {e}")
            outcome.advance(UrlState.EXCLUDED)
            logger.error(f"Could not normalize {outcome.url}: {e}")
            return
        except Exception as e:
            self._fail_unexpected(outcome, e, logger)
            return
        outcome.document = document
        outcome.advance(UrlState.NORMALIZED)
        logger.info(f"Fetched {outcome.url} ({resp.status_code}, {document.kind.value}, {document.length} chars)")

    @staticmethod
    def _fail_unexpected(outcome: UrlOutcome, exc: Exception, logger: logging.LoggerAdapter) -> None:
        logger.exception(f"Unhandled error processing {outcome.url}: {exc}")
        failed = UrlState.FETCH_FAILED if outcome.state is UrlState.FETCHING else UrlState.NORMALIZE_FAILED
        if outcome.state in (UrlState.FETCHING, UrlState.FETCHED):
            outcome.advance(failed, reason=f"unexpected error: {type(exc).__name__}: {exc}")
        else:
            outcome.reason = f"unexpected error: {type(exc).__name__}: {exc}"
        outcome.advance(UrlState.EXCLUDED)


def assemble_corpus(outcomes: Sequence[UrlOutcome]) -> Corpus:
    """Single writer of the corpus: normalized documents in input order, everything else excluded."""
    documents = []
    for outcome in sorted(outcomes, key=lambda o: o.position):
        if outcome.state is UrlState.NORMALIZED and outcome.document is not None:
            outcome.advance(UrlState.INCLUDED)
            documents.append(outcome.document)
        elif not outcome.state.terminal:
            outcome.advance(UrlState.EXCLUDED, reason=outcome.reason or f"incomplete ({outcome.state.value})")
    return Corpus(tuple(documents))
