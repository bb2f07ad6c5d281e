"""Tests for the readiness / status HTTP API."""

import pytest
from unittest.mock import MagicMock
from aiohttp.test_utils import TestClient, TestServer

from cosmotrigger import __version__
from cosmotrigger.api import HealthAPI
from cosmotrigger.cosmos import ChainIdentity
from cosmotrigger.monitor import CosmosMonitor


class TestHealthAPI:
    """Test HTTP endpoints."""

    @pytest.fixture
    def monitor(self, config):
        return CosmosMonitor(config, cosmos=MagicMock(), gitlab=MagicMock(), notifier=MagicMock())

    @pytest.fixture
    def api(self, config, monitor):
        return HealthAPI(config, monitor)

    def test_defaults_from_config(self, api):
        assert api.host == "0.0.0.0"
        assert api.port == 8080
        assert api.ready is True

    @pytest.mark.asyncio
    async def test_ready(self, api):
        async with TestClient(TestServer(api.app)) as client:
            resp = await client.get('/ready')
            assert resp.status == 204

            api.set_not_ready()
            resp = await client.get('/ready')
            assert resp.status == 503

            api.set_ready()
            resp = await client.get('/ready')
            assert resp.status == 204

    @pytest.mark.asyncio
    async def test_unknown_path(self, api):
        async with TestClient(TestServer(api.app)) as client:
            resp = await client.get('/nope')
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_status(self, api, monitor):
        monitor.state.chain_identity = ChainIdentity('id', 'addr', 'testnet', 'node-a', 'v1', 'rpc')
        monitor.state.upgrade_plan_height = 15000
        monitor.state.last_block_height = 14990

        async with TestClient(TestServer(api.app)) as client:
            resp = await client.get('/status')
            assert resp.status == 200
            data = await resp.json()

        assert data['ready'] is True
        assert data['node'] == "http://node.example:1317"
        assert data['monitor']['upgrade_plan_height'] == 15000
        assert data['monitor']['last_block_height'] == 14990
        assert data['monitor']['chain_identity']['moniker'] == 'node-a'

    @pytest.mark.asyncio
    async def test_metrics(self, api):
        async with TestClient(TestServer(api.app)) as client:
            resp = await client.get('/metrics')
            assert resp.status == 200
            body = await resp.text()

        assert 'cosmotrigger_node_block_height' in body
        assert 'cosmotrigger_pipeline_runs_total' in body

    @pytest.mark.asyncio
    async def test_version(self, api):
        async with TestClient(TestServer(api.app)) as client:
            resp = await client.get('/version')
            data = await resp.json()

        assert data['name'] == 'CosmoTrigger'
        assert data['version'] == __version__
