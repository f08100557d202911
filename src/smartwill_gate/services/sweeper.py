"""Background removal of expired challenges and verification codes.

The sweeper is owned by the application lifecycle: it is started on startup,
stopped on shutdown, and bounds memory independently of verification traffic.
"""

from __future__ import annotations

import asyncio
import logging

from smartwill_gate.services.otp import OneTimeCodeStore
from smartwill_gate.services.wallet_auth import WalletAuthService

# Configure logger for this module
logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 0.01


class ExpirySweeper:
    """Periodically sweeps the challenge and code stores."""

    def __init__(
        self,
        wallet_auth: WalletAuthService,
        codes: OneTimeCodeStore,
        interval_seconds: float = 1800.0,
    ) -> None:
        self.wallet_auth = wallet_auth
        self.codes = codes
        self.interval_seconds = max(MIN_INTERVAL_SECONDS, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop and wait for it to finish."""

        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    def run_once(self) -> tuple[int, int]:
        """Sweep both stores once; return (challenges removed, codes removed)."""
        return self.wallet_auth.sweep_expired(), self.codes.cleanup_expired()

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                pass
            else:
                return

            try:
                challenges, codes = self.run_once()
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error("ExpirySweeper failed to sweep stores: %s", e, exc_info=True)
                continue
            logger.debug("ExpirySweeper removed %d challenges and %d codes", challenges, codes)
