"""Notification system for Discord and Telegram."""

import logging
import requests
from typing import Optional
from datetime import datetime

from .cosmos import ChainIdentity

logger = logging.getLogger(__name__)


def _describe(identity: Optional[ChainIdentity]) -> str:
    if identity is None:
        return "unknown node"
    return f"{identity.moniker} ({identity.network})"


class NotificationManager:
    """Manages notifications to Discord and Telegram."""

    def __init__(self, discord_webhook: Optional[str] = None,
                 telegram_bot_token: Optional[str] = None,
                 telegram_chat_id: Optional[str] = None):
        self.discord_webhook = discord_webhook
        self.telegram_bot_token = telegram_bot_token
        self.telegram_chat_id = telegram_chat_id

    @property
    def enabled(self) -> bool:
        return bool(self.discord_webhook or (self.telegram_bot_token and self.telegram_chat_id))

    def send_upgrade_detected(self, identity: Optional[ChainIdentity], height: int):
        """Send notification when a new upgrade plan is found."""
        message = f"🔔 **Upgrade Plan Detected**\n\n" \
                  f"🔗 Node: {_describe(identity)}\n" \
                  f"📏 Upgrade height: {height}\n" \
                  f"⏰ Time: {self._now()}\n\n" \
                  f"The update pipeline will be triggered once the chain reaches this height."

        self._send_notification("CosmoTrigger - Upgrade Detected", message)

    def send_node_down(self, identity: Optional[ChainIdentity]):
        """Send alert when the node stops answering liveness checks."""
        message = f"❌ **Node Unreachable**\n\n" \
                  f"🔗 Node: {_describe(identity)}\n" \
                  f"⏰ Time: {self._now()}"

        self._send_notification("CosmoTrigger - Node Down", message)

    def send_node_recovered(self, identity: Optional[ChainIdentity]):
        """Send notification when the node is back online."""
        message = f"✅ **Node Back Online**\n\n" \
                  f"🔗 Node: {_describe(identity)}\n" \
                  f"⏰ Time: {self._now()}"

        self._send_notification("CosmoTrigger - Node Recovered", message)

    def send_pipeline_result(self, identity: Optional[ChainIdentity], height: int, success: bool):
        """Send upgrade pipeline outcome."""
        emoji = "✅" if success else "❌"
        status = "Succeeded" if success else "Failed"

        message = f"{emoji} **Upgrade Pipeline {status}**\n\n" \
                  f"🔗 Node: {_describe(identity)}\n" \
                  f"📏 Upgrade height: {height}\n" \
                  f"⏰ Time: {self._now()}"
        if not success:
            message += "\n\n⚠️ The pipeline will be re-triggered after the quiet period."

        self._send_notification(f"CosmoTrigger - Upgrade {status}", message)

    @staticmethod
    def _now() -> str:
        return datetime.now().strftime('%Y-%m-%d %H:%M:%S')

    def _send_notification(self, title: str, message: str):
        """Send notification to all configured channels."""
        if self.discord_webhook:
            self._send_discord(title, message)

        if self.telegram_bot_token and self.telegram_chat_id:
            self._send_telegram(title, message)

    def _send_discord(self, title: str, message: str):
        """Send notification to Discord webhook."""
        try:
            payload = {
                "embeds": [{
                    "title": title,
                    "description": message,
                    "color": 3447003,  # Blue color
                    "timestamp": datetime.now().isoformat()
                }]
            }

            response = requests.post(
                self.discord_webhook,
                json=payload,
                timeout=10
            )

            if response.status_code == 204:
                logger.info("Discord notification sent successfully")
            else:
                logger.warning(f"Discord notification failed: {response.status_code}")

        except Exception as e:
            logger.error(f"Failed to send Discord notification: {e}")

    def _send_telegram(self, title: str, message: str):
        """Send notification to Telegram chat."""
        try:
            telegram_message = f"*{title}*\n\n{message}"

            url = f"https://api.telegram.org/bot{self.telegram_bot_token}/sendMessage"
            payload = {
                "chat_id": self.telegram_chat_id,
                "text": telegram_message,
                "parse_mode": "Markdown",
                "disable_web_page_preview": True
            }

            response = requests.post(url, json=payload, timeout=10)

            if response.status_code == 200:
                logger.info("Telegram notification sent successfully")
            else:
                logger.warning(f"Telegram notification failed: {response.status_code}")

        except Exception as e:
            logger.error(f"Failed to send Telegram notification: {e}")

    def test_notifications(self):
        """Test both notification channels."""
        test_message = f"🧪 **CosmoTrigger Test**\n\n" \
                       f"✅ Notification system is working correctly\n" \
                       f"⏰ Time: {self._now()}"

        self._send_notification("CosmoTrigger - Test Notification", test_message)
        logger.info("Test notifications sent")
