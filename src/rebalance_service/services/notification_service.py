"""Notification Service - Sends ntfy notifications for portfolios that drifted out of band"""

import logging
from typing import List, Optional

import aiohttp

from app_config import NotificationsConfig
from wallet_connector_base import Deviation


class NotificationService:
    """Handles sending notifications via ntfy for sweep results"""

    def __init__(self, notifications_config: NotificationsConfig, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.enabled = notifications_config.enabled
        self.channel_name = notifications_config.channel
        self.ntfy_url = notifications_config.ntfy_url.rstrip('/')

    def _can_send(self) -> bool:
        if not self.enabled:
            self.logger.debug("Notifications disabled, skipping")
            return False
        if not self.channel_name:
            self.logger.warning("Notification channel not set, skipping notification")
            return False
        return True

    async def send_attention_notification(self, owner_id: str, total_value: float,
                                          deviations: List[Deviation]):
        """Tell the owner their portfolio is outside its tolerance bands"""
        if not self._can_send():
            return

        message_lines = [
            f"Wallet: {owner_id}",
            f"Portfolio Value: ${total_value:,.2f}",
            "",
            "Out of band:",
        ]
        for d in deviations:
            if d.needs_rebalance:
                message_lines.append(
                    f"{d.symbol}: {d.current_percentage:.2f}% (target {d.target_percentage:.2f}%, "
                    f"{d.deviation:+.2f}%)"
                )

        try:
            await self._send_ntfy(
                title="⚠️ Portfolio Needs Rebalancing",
                message="\n".join(message_lines),
                priority="default",
                tags=["warning"]
            )
            self.logger.info(f"Attention notification sent for {owner_id}")
        except Exception as e:
            self.logger.error(f"Failed to send notification for {owner_id}: {e}")

    async def send_sweep_failure(self, owner_id: str, error: str):
        """Report a wallet that could not be checked during a sweep"""
        if not self._can_send():
            return

        try:
            await self._send_ntfy(
                title="❌ Portfolio Check Failed",
                message=f"Wallet: {owner_id}\n\nError: {error or 'Unknown error'}",
                priority="default",
                tags=["x"]
            )
        except Exception as e:
            self.logger.error(f"Failed to send failure notification for {owner_id}: {e}")

    async def _send_ntfy(
        self,
        title: str,
        message: str,
        priority: str = "default",
        tags: Optional[list] = None
    ):
        """Send notification via ntfy"""
        url = f"{self.ntfy_url}/{self.channel_name}"

        headers = {
            "Title": title,
            "Priority": priority,
        }
        if tags:
            headers["Tags"] = ",".join(tags)

        async with aiohttp.ClientSession() as session:
            async with session.post(url, data=message.encode('utf-8'), headers=headers) as response:
                self.logger.debug(f"ntfy response status: {response.status}")
                if response.status != 200:
                    error_text = await response.text()
                    self.logger.error(f"Failed to send notification: {response.status} - {error_text}")
