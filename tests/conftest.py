"""Shared fixtures for CosmoTrigger tests."""

import pytest

from cosmotrigger.config import Config

ENV_VARS = {
    "COSMOS_NODE_REST_URL": "http://node.example:1317",
    "CICD_TRIGGER_TOKEN": "trigger-token",
    "CICD_PERSONAL_ACCESS_TOKEN": "access-token",
    "CICD_UPDATE_BRANCH": "main",
    "CICD_PROJECT_API_URL": "https://gitlab.example/api/v4/projects/42",
}

OPTIONAL_ENV_VARS = [
    "CICD_VARIABLES", "APPLICATION_PORT", "API_HOST", "POLL_INTERVAL_MS",
    "REQUEST_TIMEOUT", "LOG_LEVEL", "LOG_FILE", "DISCORD_WEBHOOK",
    "TG_BOT_TOKEN", "TG_CHAT_ID",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every CosmoTrigger setting from the environment."""
    for name in list(ENV_VARS) + OPTIONAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def env(clean_env):
    """Environment with all required settings present."""
    for name, value in ENV_VARS.items():
        clean_env.setenv(name, value)
    return clean_env


@pytest.fixture
def config(env, tmp_path):
    """Config built from the test environment, ignoring any local files."""
    return Config(
        config_path=tmp_path / "missing.yaml",
        env_path=tmp_path / "missing.env"
    )


@pytest.fixture
def config_factory(tmp_path):
    """Build a Config with an optional YAML file body."""
    def factory(yaml_content: str = None) -> Config:
        config_path = tmp_path / "config.yaml"
        if yaml_content is not None:
            config_path.write_text(yaml_content)
        return Config(config_path=config_path, env_path=tmp_path / "missing.env")
    return factory
