"""HTTP API endpoints for readiness, status and metrics."""

import logging
from datetime import datetime
from typing import Optional
from aiohttp import web
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from .config import Config
from .monitor import CosmosMonitor

logger = logging.getLogger(__name__)


class HealthAPI:
    """HTTP API for readiness checks, monitor status and metrics."""

    def __init__(self, config: Config, monitor: Optional[CosmosMonitor] = None,
                 host: Optional[str] = None, port: Optional[int] = None):
        self.config = config
        self.monitor = monitor
        self.host = host or config.api_host
        self.port = port or config.application_port
        self.ready = True
        self.app = web.Application()
        self._runner: Optional[web.AppRunner] = None
        self.setup_routes()

    def setup_routes(self):
        """Setup HTTP routes."""
        self.app.router.add_get('/ready', self.ready_handler)
        self.app.router.add_get('/metrics', self.metrics_handler)
        self.app.router.add_get('/status', self.status_handler)
        self.app.router.add_get('/version', self.version_handler)

    def set_ready(self):
        self.ready = True

    def set_not_ready(self):
        self.ready = False

    async def ready_handler(self, request):
        """Readiness check: 204 when ready, 503 otherwise."""
        return web.Response(status=204 if self.ready else 503)

    async def metrics_handler(self, request):
        """Prometheus metrics endpoint."""
        try:
            return web.Response(
                body=generate_latest(),
                headers={'Content-Type': CONTENT_TYPE_LATEST}
            )
        except Exception as e:
            logger.error(f"Metrics generation error: {e}")
            return web.Response(text=f"# Error generating metrics: {e}\n", status=500)

    async def status_handler(self, request):
        """Current monitor state."""
        response_data = {
            'timestamp': datetime.now().isoformat(),
            'ready': self.ready,
            'node': self.config.cosmos_node_rest_url,
            'poll_interval': self.config.poll_interval,
            'monitor': self.monitor.state.to_dict() if self.monitor else None,
        }
        return web.json_response(response_data)

    async def version_handler(self, request):
        """Version information endpoint."""
        from cosmotrigger import __version__

        return web.json_response({
            'name': 'CosmoTrigger',
            'version': __version__,
            'api_version': '1.0.0'
        })

    async def start(self):
        """Start the API server."""
        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        logger.info(f"Health server listening on http://{self.host}:{self.port}")

    async def stop(self):
        """Stop the API server."""
        if self._runner is None:
            return
        logger.info("Shutting down health server...")
        await self._runner.cleanup()
        self._runner = None
        logger.info("Health server shutdown complete")
