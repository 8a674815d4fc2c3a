"""Refresh scheduler for read requests: debounce, polling, last response wins.

A search box fires ``trigger`` on every keystroke; the request goes out
once input has been quiet for ``debounce`` seconds.  ``start_polling``
re-issues the latest request every ``poll_interval`` seconds.  Each issued
request gets its own ``CancellationToken``; issuing a new one cancels the
previous token and task, and a result that arrives for anything but the
latest request is dropped and counted in ``discarded``.

Only reads go through here.  Status actions and other writes are single
calls made directly on the client.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from warebook.config import settings

logger = logging.getLogger("warebook.refresh")

T = TypeVar("T")


class RequestCancelled(Exception):
    """Raised by ``CancellationToken.raise_if_cancelled``."""


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise RequestCancelled()


Fetch = Callable[[CancellationToken], Awaitable[T]]


class RefreshScheduler(Generic[T]):
    """Schedules one logical read and delivers only its newest result.

    Args:
        on_result: called (or awaited) with each delivered result
        on_error: called with the exception of a failed latest request;
            failures are logged and otherwise dropped when omitted
        debounce: quiet period in seconds before a trigger is issued
        poll_interval: seconds between automatic re-issues while polling
    """

    def __init__(
        self,
        on_result: Callable[[T], Any],
        *,
        on_error: Optional[Callable[[Exception], Any]] = None,
        debounce: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ):
        self.on_result = on_result
        self.on_error = on_error
        self.debounce = settings.refresh_debounce_seconds if debounce is None else debounce
        self.poll_interval = settings.refresh_poll_seconds if poll_interval is None else poll_interval

        self.latest: Optional[T] = None
        self.issued = 0
        self.delivered = 0
        self.discarded = 0

        self._fetch: Optional[Fetch] = None
        self._generation = 0
        self._token: Optional[CancellationToken] = None
        self._inflight: Optional[asyncio.Task] = None
        self._debounce_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    # ── Scheduling ───────────────────────────────────────────

    def trigger(self, fetch: Fetch) -> None:
        """Issue ``fetch`` after the debounce window; a new trigger restarts it."""
        self._fetch = fetch
        if self._debounce_task and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._issue_after_quiet(fetch))

    async def _issue_after_quiet(self, fetch: Fetch) -> None:
        await asyncio.sleep(self.debounce)
        self.issue(fetch)

    def issue(self, fetch: Fetch) -> asyncio.Task:
        """Issue ``fetch`` now, superseding whatever is in flight."""
        self._fetch = fetch
        if self._token is not None:
            self._token.cancel()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
            self.discarded += 1
            logger.debug("Superseded an in-flight request")

        self._generation += 1
        self.issued += 1
        self._token = CancellationToken()
        self._inflight = asyncio.create_task(self._run(fetch, self._token, self._generation))
        return self._inflight

    def start_polling(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll())

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if self._fetch is not None:
                self.issue(self._fetch)

    # ── Delivery ─────────────────────────────────────────────

    def _is_current(self, token: CancellationToken, generation: int) -> bool:
        return not token.cancelled and generation == self._generation

    async def _run(self, fetch: Fetch, token: CancellationToken, generation: int) -> None:
        try:
            result = await fetch(token)
        except RequestCancelled:
            return
        except Exception as e:
            if not self._is_current(token, generation):
                self.discarded += 1
                return
            logger.warning(f"Refresh request failed: {e}")
            if self.on_error is not None:
                outcome = self.on_error(e)
                if inspect.isawaitable(outcome):
                    await outcome
            return

        if not self._is_current(token, generation):
            self.discarded += 1
            logger.debug(f"Discarded stale result (generation {generation} < {self._generation})")
            return

        self.latest = result
        self.delivered += 1
        outcome = self.on_result(result)
        if inspect.isawaitable(outcome):
            await outcome

    # ── Lifecycle ────────────────────────────────────────────

    async def wait(self) -> None:
        """Wait for a pending debounce and the in-flight request to settle."""
        if self._debounce_task is not None:
            await asyncio.gather(self._debounce_task, return_exceptions=True)
        if self._inflight is not None:
            await asyncio.gather(self._inflight, return_exceptions=True)

    async def stop(self) -> None:
        if self._token is not None:
            self._token.cancel()
        tasks = [t for t in (self._debounce_task, self._inflight, self._poll_task) if t and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._poll_task = None
