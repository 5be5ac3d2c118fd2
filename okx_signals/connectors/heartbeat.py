"""
Heartbeat Monitor for the OKX WebSocket connection.

Periodically pings the server and waits for the pong. After too many missed
pongs the transport is closed, which the connector handles exactly like an
unexpected disconnect.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from ..core.constants import (
    HEARTBEAT_INTERVAL_SECONDS, HEARTBEAT_MAX_FAILURES, HEARTBEAT_TIMEOUT_SECONDS,
)


logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    """
    Background task that monitors WebSocket connection health.

    Sends periodic transport-level pings and tracks pong latency.
    """

    def __init__(
        self,
        ws: Any,
        interval_seconds: float = HEARTBEAT_INTERVAL_SECONDS,
        timeout_seconds: float = HEARTBEAT_TIMEOUT_SECONDS,
        max_failures: int = HEARTBEAT_MAX_FAILURES
    ):
        """
        Initialize heartbeat monitor.

        Args:
            ws: Open websockets connection to monitor
            interval_seconds: How often to send a ping
            timeout_seconds: How long to wait for the pong
            max_failures: Missed pongs tolerated before closing the transport
        """
        self.ws = ws
        self.interval = interval_seconds
        self.timeout = timeout_seconds
        self.max_failures = max_failures

        self.task: Optional[asyncio.Task] = None
        self.last_successful_heartbeat: Optional[datetime] = None
        self.last_latency: Optional[float] = None
        self.consecutive_failures = 0
        self.timed_out = False

        logger.debug(
            "HeartbeatMonitor initialized: interval=%.1fs, timeout=%.1fs, max_failures=%d",
            interval_seconds, timeout_seconds, max_failures
        )

    def start(self) -> None:
        """Start heartbeat monitoring as a task on the running loop."""
        if self.task is not None and not self.task.done():
            logger.warning("Heartbeat monitor already running, ignoring start() call")
            return

        self.timed_out = False
        self.consecutive_failures = 0
        self.task = asyncio.ensure_future(self._run())
        logger.debug("Heartbeat monitor started")

    async def stop(self) -> None:
        """Stop heartbeat monitoring and wait for the task to finish."""
        task, self.task = self.task, None
        if task is None:
            return

        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Heartbeat monitor stopped")

    async def _run(self) -> None:
        """Main heartbeat loop."""
        while True:
            await asyncio.sleep(self.interval)

            loop = asyncio.get_running_loop()
            sent_at = loop.time()
            try:
                pong_waiter = await self.ws.ping()
                await asyncio.wait_for(pong_waiter, timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("No pong within %.1fs", self.timeout)
                if await self._handle_heartbeat_failure():
                    return
                continue
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # The connection is already going away; the receive loop sees it too
                logger.debug("Ping failed: %s", e)
                return

            self.last_latency = loop.time() - sent_at
            self.last_successful_heartbeat = datetime.now(timezone.utc)
            self.consecutive_failures = 0
            logger.debug("Pong received in %.1fms", self.last_latency * 1000)

    async def _handle_heartbeat_failure(self) -> bool:
        """Count a missed pong; returns True once the transport was closed."""
        self.consecutive_failures += 1

        logger.warning(
            "Heartbeat failure #%d (max: %d)",
            self.consecutive_failures,
            self.max_failures
        )

        if self.consecutive_failures < self.max_failures:
            return False

        logger.error(
            "Connection lost after %d consecutive heartbeat failures",
            self.consecutive_failures
        )
        self.timed_out = True
        await self.ws.close(code=1011, reason="heartbeat timeout")
        return True

    def is_healthy(self) -> bool:
        """
        Check if connection is currently healthy.

        Returns:
            True if no pong is overdue
        """
        if self.timed_out:
            return False
        if self.last_successful_heartbeat is None:
            # Nothing sent yet
            return self.consecutive_failures == 0

        age = (datetime.now(timezone.utc) - self.last_successful_heartbeat).total_seconds()
        return age < self.interval + self.timeout

    def get_status(self) -> dict:
        """
        Get current heartbeat status.

        Returns:
            {
                'healthy': bool,
                'last_success': datetime,
                'latency_ms': float,
                'consecutive_failures': int
            }
        """
        return {
            'healthy': self.is_healthy(),
            'last_success': self.last_successful_heartbeat,
            'latency_ms': self.last_latency * 1000 if self.last_latency is not None else None,
            'consecutive_failures': self.consecutive_failures
        }
