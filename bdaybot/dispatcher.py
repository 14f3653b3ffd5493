"""
Fan-out of notifications across channels and recipients
"""

import logging
from typing import Dict, Iterable, List, Optional

from bdaybot.channels import Channel
from bdaybot.models import SendResult

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Sends a message over one or more channels and collects per-recipient results"""

    def __init__(self, max_concurrency: int = 4):
        self.max_concurrency = max(1, max_concurrency)

    def send(self, message: str, channel: Channel, recipient: Optional[str] = None) -> SendResult:
        try:
            return channel.send(message, recipient)
        except Exception as e:
            logger.error(f"Error sending via {channel.get_metadata()['name']}: {e}")
            return SendResult.failed(recipient, e)

    def send_to_multiple(self, message: str, channel: Channel, recipients: List[str]) -> List[SendResult]:
        """One result per recipient, in recipient order; a failure never stops the rest"""
        recipients = list(recipients)
        try:
            results = channel.send_to_multiple(message, recipients, max_workers=self.max_concurrency)
        except Exception as e:
            logger.error(f"Batch send via {channel.get_metadata()['name']} failed: {e}")
            return [SendResult.failed(recipient, e) for recipient in recipients]

        if len(results) != len(recipients):
            logger.error(f"{channel.get_metadata()['name']} returned {len(results)} results "
                         f"for {len(recipients)} recipients")
            return [SendResult.failed(recipient, "Missing result from channel") for recipient in recipients]
        return results

    def send_to_all(self, message: str, channels: Iterable[Channel]) -> Dict[str, List[SendResult]]:
        """Send to every available channel; unavailable ones are skipped"""
        results = {}
        for channel in channels:
            name = channel.get_metadata()['name']
            if not channel.is_available():
                logger.warning(f"Channel '{name}' is not available, skipping it")
                continue

            if channel.recipients:
                channel_results = self.send_to_multiple(message, channel, channel.recipients)
            else:
                channel_results = [self.send(message, channel)]

            delivered = sum(1 for result in channel_results if result.success)
            logger.info(f"Channel '{name}': {delivered}/{len(channel_results)} delivered")
            results[name] = channel_results
        return results


def any_delivered(results: Dict[str, List[SendResult]]) -> bool:
    return any(result.success for channel_results in results.values() for result in channel_results)
