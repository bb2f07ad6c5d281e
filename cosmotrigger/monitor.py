"""Upgrade monitor: watches the chain's upgrade plan and triggers the update pipeline."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from dataclasses import dataclass

from .config import Config
from .cosmos import ChainIdentity, CosmosClient
from .gitlab import GitlabClient
from .notifications import NotificationManager
from . import metrics

logger = logging.getLogger(__name__)

LONG_POLL_INTERVAL = 10  # seconds, used while the node is unreachable
POST_UPGRADE_WAIT = 600  # seconds of quiet after every pipeline run
ERROR_RETRY_INTERVAL = 5  # seconds before retrying a cycle that raised

DelayFunc = Callable[[float, Optional[asyncio.Event]], Awaitable[None]]


async def cancellable_delay(seconds: float, stop_event: Optional[asyncio.Event] = None):
    """Sleep for ``seconds`` or until ``stop_event`` is set, whichever comes first."""
    if stop_event is None:
        await asyncio.sleep(seconds)
        return

    if stop_event.is_set():
        return

    try:
        # wait_for cancels the pending event wait when the timeout fires
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass


@dataclass
class MonitorState:
    """Mutable state carried between monitoring cycles."""
    upgrade_plan_height: Optional[int] = None
    chain_identity: Optional[ChainIdentity] = None
    node_down: bool = False
    last_block_height: Optional[int] = None

    def reset(self):
        """Reset all fields to their initial values."""
        self.upgrade_plan_height = None
        self.chain_identity = None
        self.node_down = False
        self.last_block_height = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'chain_identity': self.chain_identity.to_dict() if self.chain_identity else None,
            'upgrade_plan_height': self.upgrade_plan_height,
            'node_down': self.node_down,
            'last_block_height': self.last_block_height,
        }


class CosmosMonitor:
    """Runs the monitoring cycle for a single node and update pipeline."""

    def __init__(self, config: Config,
                 cosmos: Optional[CosmosClient] = None,
                 gitlab: Optional[GitlabClient] = None,
                 notifier: Optional[NotificationManager] = None,
                 delay: DelayFunc = cancellable_delay,
                 state: Optional[MonitorState] = None):
        self.config = config
        self.cosmos = cosmos or CosmosClient(config.cosmos_node_rest_url, timeout=config.request_timeout)
        self.gitlab = gitlab or GitlabClient(config)
        self.notifier = notifier or NotificationManager(
            discord_webhook=config.notifications.discord_webhook,
            telegram_bot_token=config.notifications.telegram_bot_token,
            telegram_chat_id=config.notifications.telegram_chat_id
        )
        self.delay = delay
        self.state = state or MonitorState()

    def reset(self):
        self.state.reset()

    @staticmethod
    async def _run_blocking(func: Callable, *args):
        # Gateway calls use requests; keep them off the event loop
        return await asyncio.to_thread(func, *args)

    async def _notify(self, func: Callable, *args):
        if not self.notifier.enabled:
            return
        try:
            await self._run_blocking(func, *args)
        except Exception as e:
            logger.error(f"Failed to send notification: {e}")

    def _log_chain_identity(self, identity: ChainIdentity):
        logger.info(f"Node ID: {identity.node_id}")
        logger.info(f"Listen Address: {identity.listen_addr}")
        logger.info(f"Network: {identity.network}")
        logger.info(f"Moniker: {identity.moniker}")
        logger.info(f"Version: {identity.version}")
        logger.info(f"RPC Address: {identity.rpc_address}")

    async def ensure_chain_identity(self) -> Optional[ChainIdentity]:
        """Return the cached chain identity, fetching it first if needed."""
        if self.state.chain_identity is not None:
            return self.state.chain_identity

        self.state.chain_identity = await self._run_blocking(self.cosmos.get_chain_identity)
        if self.state.chain_identity is None:
            logger.warning(
                f"Node {self.config.cosmos_node_rest_url} is not reachable or not ready to accept requests"
            )
            return None

        self._log_chain_identity(self.state.chain_identity)
        return self.state.chain_identity

    async def check_node_liveness(self) -> Optional[int]:
        """Fetch the current block height and track node down / back online transitions.

        Returns the height, or None when the node did not answer.
        """
        identity = self.state.chain_identity
        current_height = await self._run_blocking(self.cosmos.get_block_height)

        if not current_height:
            metrics.node_up.set(0)
            if not self.state.node_down:
                self.state.node_down = True
                await self._notify(self.notifier.send_node_down, identity)
            logger.warning(f"Waiting for node with identity {identity.moniker}")
            return None

        metrics.node_up.set(1)
        metrics.node_block_height.set(current_height)
        self.state.last_block_height = current_height

        if self.state.node_down:
            logger.info(f"Node with identity {identity.moniker} is back online")
            self._log_chain_identity(identity)
            self.state.node_down = False
            await self._notify(self.notifier.send_node_recovered, identity)

        return current_height

    async def detect_upgrade_plan(self):
        """Fetch the upgrade plan unless one is already cached."""
        if self.state.upgrade_plan_height is not None:
            return

        self.state.upgrade_plan_height = await self._run_blocking(self.cosmos.get_upgrade_plan_height)

        if self.state.upgrade_plan_height is not None:
            identity = self.state.chain_identity
            metrics.upgrade_plan_height.set(self.state.upgrade_plan_height)
            logger.info(
                f"Upgrade plan detected for {identity.moniker} ({identity.network}): "
                f"Height {self.state.upgrade_plan_height}"
            )
            await self._notify(self.notifier.send_upgrade_detected, identity, self.state.upgrade_plan_height)

    async def handle_upgrade_execution(self, current_height: int,
                                       stop_event: Optional[asyncio.Event] = None) -> bool:
        """Trigger the update pipeline if the upgrade height has been reached.

        Returns True when a pipeline was triggered, whatever its outcome.
        """
        plan_height = self.state.upgrade_plan_height
        if not plan_height or current_height < plan_height:
            return False

        identity = self.state.chain_identity
        pipeline_succeeded = await self._run_blocking(self.gitlab.trigger_update_pipeline)

        if pipeline_succeeded:
            metrics.pipeline_runs_total.labels(result='success').inc()
            logger.info(
                f"Pipeline finished successfully. Pause monitoring for {POST_UPGRADE_WAIT // 60} minutes."
            )
            self.state.upgrade_plan_height = None
            metrics.upgrade_plan_height.set(0)
            await self._notify(self.notifier.send_pipeline_result, identity, plan_height, True)
            await self.delay(POST_UPGRADE_WAIT, stop_event)
            logger.info(f"Upgrade completed for {identity.moniker} ({identity.network}). Monitoring resumed.")
            # Version changes with the upgrade; stored as returned
            self.state.chain_identity = await self._run_blocking(self.cosmos.get_chain_identity)
        else:
            metrics.pipeline_runs_total.labels(result='failure').inc()
            logger.critical("Failed to trigger pipeline! Upgrade will be re-attempted next cycle.")
            await self._notify(self.notifier.send_pipeline_result, identity, plan_height, False)
            await self.delay(POST_UPGRADE_WAIT, stop_event)

        return True

    async def monitor_chain(self, stop_event: Optional[asyncio.Event] = None) -> Optional[float]:
        """Run one monitoring cycle.

        Returns the delay in seconds before the next cycle, or None if
        ``stop_event`` was already set.
        """
        if stop_event is not None and stop_event.is_set():
            return None

        if await self.ensure_chain_identity() is None:
            return LONG_POLL_INTERVAL

        current_height = await self.check_node_liveness()
        if current_height is None:
            return LONG_POLL_INTERVAL

        await self.detect_upgrade_plan()

        if not self.state.upgrade_plan_height:
            return self.config.poll_interval

        await self.handle_upgrade_execution(current_height, stop_event)
        return self.config.poll_interval

    async def start_monitoring(self, stop_event: Optional[asyncio.Event] = None):
        """Run monitoring cycles until ``stop_event`` is set."""
        if stop_event is None:
            stop_event = asyncio.Event()

        logger.info(f"Starting chain monitoring for {self.config.cosmos_node_rest_url}")

        while not stop_event.is_set():
            try:
                delay = await self.monitor_chain(stop_event)
                if delay is not None:
                    await self.delay(delay, stop_event)
            except Exception as e:
                metrics.monitor_cycle_errors_total.inc()
                logger.error(f"Monitor loop error: {e}")
                await self.delay(ERROR_RETRY_INTERVAL, stop_event)

        logger.info("Chain monitoring stopped")
