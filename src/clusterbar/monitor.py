"""Refresh orchestration for cluster state.

``ClusterMonitor.refresh`` fetches the node and job listings concurrently and
publishes a new Snapshot only when both succeed. A failed refresh leaves the
previous snapshot in place and records the error in ``last_error``.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from clusterbar.models import LogKind, Snapshot
from clusterbar.parsers import parse_jobs, parse_nodes
from clusterbar.slurm_commands import SlurmCommands
from clusterbar.ssh_client import TransportError

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[Snapshot], Union[None, Awaitable[None]]]


class ClusterMonitor:
    """Holds the published snapshot and serializes refreshes.

    Example usage:
        monitor = ClusterMonitor(SlurmCommands(ssh_client, settings), user="alice")
        snapshot = await monitor.refresh()
    """

    def __init__(self, slurm: SlurmCommands, user: Optional[str] = None):
        self.slurm = slurm
        self.user = user
        self._snapshot: Optional[Snapshot] = None
        self._last_error: Optional[BaseException] = None
        self._last_attempt: Optional[datetime] = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """The last successfully built snapshot, None before the first success."""
        return self._snapshot

    @property
    def last_error(self) -> Optional[BaseException]:
        """Error from the most recent refresh, None if it succeeded."""
        return self._last_error

    @property
    def last_attempt(self) -> Optional[datetime]:
        return self._last_attempt

    @property
    def is_refreshing(self) -> bool:
        return self._lock.locked()

    async def refresh(self) -> Snapshot:
        """Fetch nodes and jobs concurrently and publish a new snapshot.

        A refresh started while another is running waits for it to finish.

        Returns:
            The newly published snapshot.

        Raises:
            TransportError: If either fetch fails. The node-listing error is
                raised when both fail.
        """
        async with self._lock:
            self._last_attempt = datetime.now()

            node_result, job_result = await asyncio.gather(
                self.slurm.fetch_node_listing(),
                self.slurm.fetch_job_listing(),
                return_exceptions=True,
            )

            errors = [r for r in (node_result, job_result) if isinstance(r, BaseException)]
            if errors:
                self._last_error = errors[0]
                logger.error(f"Cluster refresh failed, keeping previous state: {errors[0]}")
                raise errors[0]

            snapshot = Snapshot(
                nodes=parse_nodes(node_result),
                jobs=parse_jobs(job_result),
                user=self.user,
            )

            self._snapshot = snapshot
            self._last_error = None
            logger.info(f"Refreshed cluster state: {len(snapshot.nodes)} nodes, {len(snapshot.jobs)} jobs")
            return snapshot

    async def refresh_if_idle(self) -> Optional[Snapshot]:
        """Refresh unless a refresh is already running.

        Returns:
            The new snapshot, or None if the refresh was skipped.
        """
        if self.is_refreshing:
            logger.debug("Refresh already in progress, skipping")
            return None
        return await self.refresh()

    async def cancel_job(self, job_id: str) -> None:
        """Cancel a job. The snapshot is not touched until the next refresh."""
        await self.slurm.cancel_job(job_id)

    async def fetch_log(self, job_id: str, kind: LogKind = LogKind.STDOUT) -> str:
        """Read a job's stdout or stderr."""
        return await self.slurm.fetch_log(job_id, kind)


class RefreshPoller:
    """Periodically refreshes a ClusterMonitor in the background.

    Ticks that arrive while a refresh is still running are skipped. Failed
    cycles are logged and polling continues.
    """

    def __init__(
        self,
        monitor: ClusterMonitor,
        interval: float,
        on_refresh: Optional[RefreshCallback] = None,
    ):
        if interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval}")
        self.monitor = monitor
        self.interval = interval
        self.on_refresh = on_refresh
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started polling every {self.interval} seconds")

    async def stop(self) -> None:
        """Stop polling, cancelling any in-flight refresh."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped polling")

    async def tick(self) -> Optional[Snapshot]:
        """Run one poll cycle."""
        try:
            snapshot = await self.monitor.refresh_if_idle()
            if snapshot is not None and self.on_refresh is not None:
                result = self.on_refresh(snapshot)
                if asyncio.iscoroutine(result):
                    await result
        except TransportError as e:
            logger.warning(f"Scheduled refresh failed: {e}")
            return None
        except Exception:
            logger.exception("Scheduled refresh failed unexpectedly")
            return None
        return snapshot

    async def _run(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self.interval)
