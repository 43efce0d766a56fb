# simplechain/service.py

import asyncio
import logging
import threading
from typing import Any, Optional

from simplechain.ledger import GENESIS_BODY, Ledger
from simplechain.storage import Storage

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Hosts a Ledger on a background event loop so synchronous code (Flask
    views, scripts) can call it.

    - `start()` spins up the loop thread and waits for the genesis block.
    - `call("append", block)` blocks until the queued operation finishes and
      returns its result or raises its exception.
    - `stop()` closes the ledger and joins the thread. Safe to call twice.
    """

    def __init__(self, storage: Storage, genesis_body: str = GENESIS_BODY,
                 call_timeout: float = 30.0):
        self.storage = storage
        self.genesis_body = genesis_body
        self.call_timeout = call_timeout
        self.ledger: Optional[Ledger] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            logger.info("▶️ Starting ledger event loop thread...")
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._run_loop, daemon=True, name="LedgerLoop"
            )
            self._thread.start()

        try:
            self.ledger = self._run(Ledger.open(self.storage, genesis_body=self.genesis_body))
        except Exception:
            logger.error("🚨 Ledger failed to open; stopping loop thread.", exc_info=True)
            self._shutdown_loop()
            raise
        logger.info("✅ LedgerService started.")

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()
        self._loop.close()

    def _run(self, coro) -> Any:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout=self.call_timeout)

    def call(self, operation: str, *args) -> Any:
        """Runs `ledger.<operation>(*args)` on the loop and waits for its result."""
        if self.ledger is None or not self.running:
            raise RuntimeError("LedgerService is not running.")

        async def _invoke():
            return await getattr(self.ledger, operation)(*args)

        return self._run(_invoke())

    def stop(self) -> None:
        if not self.running:
            return
        logger.info("🛑 Stopping LedgerService...")
        if self.ledger is not None and not self.ledger.closed:
            try:
                self.call("close")
            except Exception:
                logger.error("Error closing ledger during shutdown.", exc_info=True)
        self._shutdown_loop()
        logger.info("✅ LedgerService stopped.")

    def _shutdown_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._thread = None
        self.ledger = None
