"""GitLab CI/CD pipeline trigger and status polling."""

import time
import logging
import requests
from enum import Enum
from typing import Any, Dict, Optional, Callable
from dataclasses import dataclass

from .config import Config, ConfigurationError
from .cosmos import fetch_json, safe_get

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("success", "failed", "canceled", "skipped")
NON_TERMINAL_STATUSES = ("pending", "running", "manual", "created")
POLL_INTERVAL = 10  # seconds between pipeline status checks


class PipelineStatusClassification(Enum):
    """Classification categories for pipeline statuses."""
    TERMINAL = "terminal"
    NON_TERMINAL = "non-terminal"
    UNKNOWN = "unknown"


@dataclass
class PipelineRun:
    """A triggered pipeline as returned by the trigger API."""
    id: int
    project_id: Optional[int]
    ref: str
    status: str
    web_url: str = ""
    username: Optional[str] = None
    user_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineRun':
        """Create from the trigger response. Raises KeyError/ValueError/TypeError on malformed data."""
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        user = data.get('user') or {}
        if not isinstance(user, dict):
            raise TypeError(f"expected 'user' to be an object, got {type(user).__name__}")
        return cls(
            id=int(data['id']),
            project_id=data.get('project_id'),
            ref=data.get('ref', ''),
            status=data.get('status', ''),
            web_url=data.get('web_url', ''),
            username=user.get('username'),
            user_name=user.get('name')
        )


def classify_pipeline_status(status: str) -> PipelineStatusClassification:
    """Classify a pipeline status as terminal, non-terminal or unknown."""
    if status in TERMINAL_STATUSES:
        return PipelineStatusClassification.TERMINAL
    if status in NON_TERMINAL_STATUSES:
        return PipelineStatusClassification.NON_TERMINAL
    return PipelineStatusClassification.UNKNOWN


class GitlabClient:
    """Triggers the update pipeline and waits for it to finish."""

    def __init__(self, config: Config, session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.session = session or requests.Session()
        self.sleep = sleep

    @property
    def trigger_url(self) -> str:
        return f"{self.config.cicd.project_api_url}/trigger/pipeline"

    def pipeline_url(self, pipeline_id: int) -> str:
        return f"{self.config.cicd.project_api_url}/pipelines/{pipeline_id}"

    def _trigger_body(self) -> Dict[str, str]:
        body = {
            'token': self.config.cicd.trigger_token,
            'ref': self.config.cicd.update_branch,
        }
        body.update(self.config.pipeline_variables())
        return body

    def trigger_update_pipeline(self) -> bool:
        """Trigger the update pipeline and block until it reaches a terminal status.

        Returns True only when the pipeline finished with status ``success``.
        """
        logger.info("Triggering update pipeline")

        try:
            body = self._trigger_body()
        except ConfigurationError as e:
            logger.error(f"Cannot build pipeline trigger request: {e}")
            return False

        try:
            # requests form-encodes a dict body as application/x-www-form-urlencoded
            response = self.session.post(
                self.trigger_url,
                data=body,
                timeout=self.config.request_timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error triggering update pipeline for api url: {self.trigger_url}: {e}")
            return False

        if not response.ok:
            logger.error(f"GitLab API error! status: {response.status_code} - {response.text}")
            return False

        try:
            pipeline = PipelineRun.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to parse GitLab API response as JSON: {e}")
            return False

        self._log_pipeline_info(pipeline)

        final_status = self.fetch_pipeline_status(pipeline.id)

        if final_status == "success":
            logger.info(f"Pipeline with id {pipeline.id} succeeded.")
            return True

        logger.error(f"Pipeline with id {pipeline.id} finished with status: {final_status}")
        return False

    def check_pipeline_status(self, pipeline_id: int) -> Optional[str]:
        """Fetch the current status of a pipeline, None on any failure."""
        data = fetch_json(
            self.session,
            self.pipeline_url(pipeline_id),
            headers={'PRIVATE-TOKEN': self.config.cicd.personal_access_token},
            timeout=self.config.request_timeout
        )
        if data is None:
            logger.error(f"Failed to fetch status of pipeline {pipeline_id}")
            return None

        status = safe_get(data, ["status"])
        if not status:
            logger.error("Pipeline status not found in response")
            return None

        logger.info(f"Pipeline status: {status}")
        return status

    def fetch_pipeline_status(self, pipeline_id: int) -> str:
        """Poll a pipeline until it reaches a terminal status.

        Unknown statuses are treated as non-terminal. There is no attempt
        limit; the call returns ``"failed"`` as soon as a status fetch fails.
        """
        while True:
            status = self.check_pipeline_status(pipeline_id)
            if not status:
                return "failed"

            classification = classify_pipeline_status(status)
            if classification is PipelineStatusClassification.TERMINAL:
                return status

            if classification is PipelineStatusClassification.UNKNOWN:
                logger.warning(f"Unknown pipeline status: {status}, treating as non-terminal")

            self.sleep(POLL_INTERVAL)

    def _log_pipeline_info(self, pipeline: PipelineRun):
        logger.info(
            "Pipeline Details:\n"
            f"  - Pipeline ID: {pipeline.id}\n"
            f"  - Project ID: {pipeline.project_id}\n"
            f"  - Branch: {pipeline.ref}\n"
            f"  - Status: {pipeline.status}\n"
            f"  - Triggered by: {pipeline.username} ({pipeline.user_name})\n"
            f"  - Pipeline URL: {pipeline.web_url}"
        )
