"""CosmoTrigger - Trigger CI/CD upgrade pipelines at Cosmos chain upgrade heights."""

__version__ = "1.0.0"
__author__ = "CosmoTrigger Team"
__description__ = "Upgrade-height monitor that drives GitLab CI/CD node upgrades"

from .config import Config, ConfigurationError
from .cosmos import ChainIdentity, CosmosClient
from .gitlab import GitlabClient, PipelineRun
from .monitor import CosmosMonitor, MonitorState, cancellable_delay

__all__ = [
    "Config",
    "ConfigurationError",
    "ChainIdentity",
    "CosmosClient",
    "GitlabClient",
    "PipelineRun",
    "CosmosMonitor",
    "MonitorState",
    "cancellable_delay"
]
