"""Configuration management for CosmoTrigger."""

import os
import json
import yaml
import logging
from pathlib import Path
from typing import Callable, Dict, Any, Optional, List
from dataclasses import dataclass
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required settings are missing or invalid."""

    def __init__(self, message: str, missing_keys: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_keys = missing_keys or []


@dataclass
class CicdConfig:
    """GitLab CI/CD pipeline settings."""
    trigger_token: str = ""
    personal_access_token: str = ""
    update_branch: str = ""
    project_api_url: str = ""
    variables_raw: str = ""


@dataclass
class NotificationConfig:
    """Notification configuration."""
    discord_webhook: Optional[str] = None
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None


# Attribute path -> environment variable for every required setting
REQUIRED_SETTINGS = {
    'cosmos_node_rest_url': "COSMOS_NODE_REST_URL",
    'cicd.trigger_token': "CICD_TRIGGER_TOKEN",
    'cicd.personal_access_token': "CICD_PERSONAL_ACCESS_TOKEN",
    'cicd.update_branch': "CICD_UPDATE_BRANCH",
    'cicd.project_api_url': "CICD_PROJECT_API_URL",
}


class Config:
    """Main configuration class for CosmoTrigger."""

    DEFAULT_CONFIG_PATH = Path.home() / ".cosmotrigger" / "config.yaml"
    DEFAULT_ENV_PATH = Path(".env")

    def __init__(self, config_path: Optional[Path] = None, env_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self.env_path = env_path or self.DEFAULT_ENV_PATH

        # Load environment variables
        if self.env_path.exists():
            load_dotenv(self.env_path)

        self.cosmos_node_rest_url = os.getenv("COSMOS_NODE_REST_URL", "").rstrip('/')

        self.cicd = CicdConfig(
            trigger_token=os.getenv("CICD_TRIGGER_TOKEN", ""),
            personal_access_token=os.getenv("CICD_PERSONAL_ACCESS_TOKEN", ""),
            update_branch=os.getenv("CICD_UPDATE_BRANCH", ""),
            project_api_url=os.getenv("CICD_PROJECT_API_URL", "").rstrip('/'),
            variables_raw=os.getenv("CICD_VARIABLES", "")
        )

        self.notifications = NotificationConfig(
            discord_webhook=os.getenv("DISCORD_WEBHOOK"),
            telegram_bot_token=os.getenv("TG_BOT_TOKEN"),
            telegram_chat_id=os.getenv("TG_CHAT_ID")
        )

        # General settings with environment priority
        self.application_port = self._parse_int("APPLICATION_PORT", "8080")
        self.api_host = os.getenv("API_HOST", "0.0.0.0")
        poll_interval_ms = self._parse_int("POLL_INTERVAL_MS", "2000")
        self.poll_interval = poll_interval_ms / 1000 if poll_interval_ms is not None else None
        self.request_timeout = self._parse_float("REQUEST_TIMEOUT", "10")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        log_file = os.getenv("LOG_FILE")
        self.log_file = Path(log_file) if log_file else None

        # Load YAML config if exists
        if self.config_path.exists():
            self.load_yaml_config()

    @staticmethod
    def _coerce(value: Any, name: str, cast: Callable[[Any], Any]) -> Optional[Any]:
        """Convert a raw setting with ``cast``, returning None when it is not a number."""
        try:
            return cast(value)
        except (TypeError, ValueError):
            logger.error(f"Invalid {name}: \"{value}\"")
            return None

    @classmethod
    def _parse_int(cls, env_var: str, default: str) -> Optional[int]:
        """Read an integer setting, returning None when it is not a number."""
        return cls._coerce(os.getenv(env_var, default), env_var, int)

    @classmethod
    def _parse_float(cls, env_var: str, default: str) -> Optional[float]:
        return cls._coerce(os.getenv(env_var, default), env_var, float)

    def load_yaml_config(self):
        """Load configuration from YAML file."""
        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f) or {}

            # YAML values only fill settings not provided by the environment
            if 'cosmos' in data:
                cosmos_data = data['cosmos']
                if not os.getenv("COSMOS_NODE_REST_URL"):
                    self.cosmos_node_rest_url = str(
                        cosmos_data.get('rest_url', self.cosmos_node_rest_url)
                    ).rstrip('/')

            if 'cicd' in data:
                cicd_data = data['cicd']
                if not os.getenv("CICD_UPDATE_BRANCH"):
                    self.cicd.update_branch = cicd_data.get('update_branch', self.cicd.update_branch)
                if not os.getenv("CICD_PROJECT_API_URL"):
                    self.cicd.project_api_url = str(
                        cicd_data.get('project_api_url', self.cicd.project_api_url)
                    ).rstrip('/')
                if not os.getenv("CICD_VARIABLES") and 'variables' in cicd_data:
                    variables = cicd_data['variables']
                    self.cicd.variables_raw = (
                        variables if isinstance(variables, str) else json.dumps(variables)
                    )

            if 'monitor' in data:
                monitor_data = data['monitor']
                if not os.getenv("POLL_INTERVAL_MS") and 'poll_interval_ms' in monitor_data:
                    poll_interval_ms = self._coerce(monitor_data['poll_interval_ms'], "POLL_INTERVAL_MS", int)
                    self.poll_interval = poll_interval_ms / 1000 if poll_interval_ms is not None else None
                if not os.getenv("REQUEST_TIMEOUT") and 'request_timeout' in monitor_data:
                    self.request_timeout = self._coerce(monitor_data['request_timeout'], "REQUEST_TIMEOUT", float)

            if 'server' in data:
                server_data = data['server']
                if not os.getenv("APPLICATION_PORT") and 'port' in server_data:
                    self.application_port = self._coerce(server_data['port'], "APPLICATION_PORT", int)
                if not os.getenv("API_HOST"):
                    self.api_host = server_data.get('host', self.api_host)

            logger.info(f"Loaded configuration from {self.config_path}")

        except Exception as e:
            logger.error(f"Failed to load YAML config: {e}")

    def missing_settings(self) -> List[str]:
        """Return the environment variable names of required settings that are empty."""
        missing = []
        for attr_path, env_var in REQUIRED_SETTINGS.items():
            value: Any = self
            for attr in attr_path.split('.'):
                value = getattr(value, attr)
            if not value:
                missing.append(env_var)
        return missing

    def cicd_variables(self) -> Dict[str, str]:
        """Parse CICD_VARIABLES as a JSON object of extra pipeline variables."""
        if not self.cicd.variables_raw:
            return {}

        try:
            variables = json.loads(self.cicd.variables_raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid CICD_VARIABLES JSON format: {e}")

        if not isinstance(variables, dict):
            raise ConfigurationError("CICD_VARIABLES must be a JSON object")

        return {str(key): str(value) for key, value in variables.items()}

    def pipeline_variables(self) -> Dict[str, str]:
        """Wrap each CI/CD variable name as ``variables[NAME]`` for the trigger form."""
        return {f"variables[{key}]": value for key, value in self.cicd_variables().items()}

    def validate(self) -> bool:
        """Validate configuration."""
        errors = []

        missing = self.missing_settings()
        if missing:
            errors.append("Missing or empty required environment variables: " + ", ".join(missing))

        if self.application_port is None or self.application_port <= 0:
            errors.append(f"Invalid APPLICATION_PORT: {self.application_port}")

        if self.poll_interval is None or self.poll_interval <= 0:
            errors.append(f"Invalid POLL_INTERVAL_MS: {self.poll_interval}")

        if self.request_timeout is None or self.request_timeout <= 0:
            errors.append(f"Invalid REQUEST_TIMEOUT: {self.request_timeout}")

        try:
            self.cicd_variables()
        except ConfigurationError as e:
            errors.append(str(e))

        # Log errors
        if errors:
            for error in errors:
                logger.error(error)
            return False

        return True

    def validate_or_raise(self):
        """Validate configuration, raising ConfigurationError on the first class of problem."""
        missing = self.missing_settings()
        if missing:
            env_var_list = "\n".join(f"  - {env_var}" for env_var in missing)
            raise ConfigurationError(
                f"Missing or empty required environment variables:\n{env_var_list}",
                missing_keys=missing
            )

        if self.application_port is None or self.application_port <= 0:
            raise ConfigurationError(f"Invalid APPLICATION_PORT: \"{self.application_port}\"")

        if self.poll_interval is None or self.poll_interval <= 0:
            raise ConfigurationError(f"Invalid POLL_INTERVAL_MS: \"{self.poll_interval}\"")

        if self.request_timeout is None or self.request_timeout <= 0:
            raise ConfigurationError(f"Invalid REQUEST_TIMEOUT: \"{self.request_timeout}\"")

        self.cicd_variables()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary with secrets masked."""
        def mask(secret: Optional[str]) -> Optional[str]:
            return "***" if secret else secret

        try:
            variable_names = sorted(self.cicd_variables().keys())
        except ConfigurationError:
            variable_names = ["<invalid>"]

        return {
            'cosmos_node_rest_url': self.cosmos_node_rest_url,
            'cicd': {
                'project_api_url': self.cicd.project_api_url,
                'update_branch': self.cicd.update_branch,
                'trigger_token': mask(self.cicd.trigger_token),
                'personal_access_token': mask(self.cicd.personal_access_token),
                'variables': variable_names,
            },
            'notifications': {
                'discord': bool(self.notifications.discord_webhook),
                'telegram': bool(self.notifications.telegram_bot_token and self.notifications.telegram_chat_id),
            },
            'application_port': self.application_port,
            'api_host': self.api_host,
            'poll_interval': self.poll_interval,
            'request_timeout': self.request_timeout,
            'log_level': self.log_level,
        }
