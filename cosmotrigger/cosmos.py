"""Chain data gateway for Cosmos SDK nodes (REST / gRPC-gateway API)."""

import logging
import requests
from typing import Any, Dict, Optional, Sequence
from dataclasses import dataclass, asdict

logger = logging.getLogger(__name__)

NODE_INFO_PATH = "/cosmos/base/tendermint/v1beta1/node_info"
LATEST_BLOCK_PATH = "/cosmos/base/tendermint/v1beta1/blocks/latest"
CURRENT_PLAN_PATH = "/cosmos/upgrade/v1beta1/current_plan"


@dataclass(frozen=True)
class ChainIdentity:
    """Identity metadata reported by a Cosmos node."""
    node_id: str
    listen_addr: str
    network: str
    moniker: str
    version: str
    rpc_address: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def safe_get(obj: Any, path: Sequence[str]) -> Any:
    """Walk nested dictionaries, returning None as soon as a step is missing."""
    current = obj
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def fetch_json(session: requests.Session, url: str, **kwargs) -> Optional[Dict[str, Any]]:
    """GET ``url`` and decode the JSON body.

    HTTP error statuses, transport errors and undecodable bodies are logged
    and reported as None so callers can treat them as "no data".
    """
    try:
        response = session.get(url, **kwargs)
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to fetch from {url}: {e}")
        return None

    if not response.ok:
        logger.debug(f"HTTP error from {url}: {response.status_code}")
        return None

    try:
        return response.json()
    except ValueError as e:
        logger.error(f"Invalid JSON response from {url}: {e}")
        return None


def _parse_height(value: Any) -> Optional[int]:
    """Parse a positive block height; anything else counts as absent."""
    if not value:
        return None
    try:
        height = int(str(value).strip())
    except ValueError:
        return None
    return height if height > 0 else None


class CosmosClient:
    """Read-only client for the chain data the monitor needs."""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'CosmoTrigger/1.0'
        })

    def _get(self, path: str) -> Optional[Dict[str, Any]]:
        return fetch_json(self.session, f"{self.base_url}{path}", timeout=self.timeout)

    def get_chain_identity(self) -> Optional[ChainIdentity]:
        """Fetch node identity. Returns None if unreachable or moniker/network are missing."""
        data = self._get(NODE_INFO_PATH)
        if data is None:
            return None

        node_info = safe_get(data, ["default_node_info"])
        if not isinstance(node_info, dict):
            return None

        moniker = safe_get(node_info, ["moniker"]) or ""
        network = safe_get(node_info, ["network"]) or ""
        if not moniker or not network:
            return None

        return ChainIdentity(
            node_id=safe_get(node_info, ["default_node_id"]) or "",
            listen_addr=safe_get(node_info, ["listen_addr"]) or "",
            network=network,
            moniker=moniker,
            version=safe_get(node_info, ["version"]) or "",
            rpc_address=safe_get(node_info, ["other", "rpc_address"]) or ""
        )

    def get_block_height(self) -> Optional[int]:
        """Fetch the latest block height."""
        data = self._get(LATEST_BLOCK_PATH)
        if data is None:
            return None
        return _parse_height(safe_get(data, ["block", "header", "height"]))

    def get_upgrade_plan_height(self) -> Optional[int]:
        """Fetch the height of the current upgrade plan, None when no plan is scheduled."""
        data = self._get(CURRENT_PLAN_PATH)
        if data is None:
            return None
        return _parse_height(safe_get(data, ["plan", "height"]))
