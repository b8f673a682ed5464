"""
Debounced quick search over the catalogue.

Each keystroke gets a new token. A dispatch still waiting out its debounce
window is cancelled by the next keystroke; a request already sent to the
store is left to finish, and its results are dropped unless its token is
still the latest.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from errors import CollaboratorError
from schemas import Product

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.3
MIN_QUERY_LENGTH = 2

Fetch = Callable[[str], Awaitable[List[Product]]]


class QuickSearch:
    def __init__(self, fetch: Fetch, delay: float = DEBOUNCE_SECONDS, min_length: int = MIN_QUERY_LENGTH):
        self._fetch = fetch
        self.delay = delay
        self.min_length = min_length
        self.query = ""
        self.results: List[Product] = []
        self.loading = False
        self.error: Optional[str] = None
        self._token = 0
        self._timer: Optional[asyncio.Task] = None
        self._requests: List[asyncio.Task] = []

    @classmethod
    def for_store(cls, store, **kwargs) -> "QuickSearch":
        async def fetch(query: str) -> List[Product]:
            return await asyncio.to_thread(store.search, query)

        return cls(fetch, **kwargs)

    @property
    def token(self) -> int:
        return self._token

    def type(self, query: str) -> asyncio.Task:
        """Register a keystroke; must be called from a running event loop."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._token += 1
        self.query = query
        self._timer = asyncio.ensure_future(self._debounce(query, self._token))
        return self._timer

    async def _debounce(self, query: str, token: int) -> None:
        await asyncio.sleep(self.delay)
        if len(query.strip()) < self.min_length:
            self.results = []
            self.loading = False
            return
        # past the debounce window the request is no longer cancellable
        request = asyncio.ensure_future(self._request(query, token))
        self._requests.append(request)
        request.add_done_callback(self._requests.remove)

    async def _request(self, query: str, token: int) -> None:
        self.loading = True
        try:
            results = await self._fetch(query.strip())
        except CollaboratorError as exc:
            logger.warning("Quick search failed", extra={"query": query, "error": str(exc)})
            if token == self._token:
                self.loading = False
                self.error = "Search is unavailable, please try again."
            return
        if token != self._token:
            logger.debug("Discarding stale search results", extra={"query": query, "token": token})
            return
        self.results = results
        self.error = None
        self.loading = False

    async def settle(self) -> List[Product]:
        """Wait for the pending dispatch and any in-flight requests."""
        if self._timer is not None:
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
        pending = [t for t in self._requests if not t.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [t for t in self._requests if not t.done()]
        return self.results

    def reset(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._token += 1
        self.query = ""
        self.results = []
        self.loading = False
        self.error = None
