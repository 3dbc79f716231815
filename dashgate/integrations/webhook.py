"""
Webhook Notifier — publish notification, simulated.

Fire-and-forget: the pipeline only consumes a success flag and a display
string. A failure never rolls back the publish that triggered it.
"""

import random
from typing import Optional

from dashgate.core.logging import get_logger
from dashgate.models.publish import WebhookResult
from dashgate.models.version import Version

logger = get_logger(__name__)


class WebhookNotifier:
    def __init__(
        self,
        success_rate: float = 0.85,
        rng: Optional[random.Random] = None,
    ):
        self.success_rate = success_rate
        self._rng = rng or random.Random()

    def notify(self, version: Version) -> WebhookResult:
        if self._rng.random() < self.success_rate:
            result = WebhookResult(success=True, message=f"Webhook delivered for {version.id}")
        else:
            result = WebhookResult(
                success=False,
                message=f"Webhook delivery failed for {version.id}; publish kept",
            )
        logger.info("webhook_notified", version_id=version.id, success=result.success)
        return result
