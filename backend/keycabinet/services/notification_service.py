import logging
from typing import Optional

import httpx

from keycabinet.config import settings
from keycabinet.models.loan import Loan

logger = logging.getLogger(__name__)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


class OverdueNotifier:
    """Delivers "loan became overdue" events to the notification channel.

    The channel is a webhook; without one configured, events are only logged.
    Delivery is best-effort: failures are logged and reported as False.
    """

    def __init__(self, webhook_url: Optional[str] = None, timeout: Optional[float] = None,
                 client: Optional[httpx.Client] = None):
        self.webhook_url = webhook_url if webhook_url is not None else settings.overdue_webhook_url
        self.timeout = timeout if timeout is not None else settings.overdue_webhook_timeout_seconds
        self._client = client

    def build_event(self, loan: Loan) -> dict:
        return {
            "event": "loan_overdue",
            "loan_id": loan.id,
            "key_id": loan.key_id,
            "key_name": loan.key_name,
            "user_id": loan.user_id,
            "borrowed_at": _iso(loan.borrowed_at),
            "expected_return_at": _iso(loan.expected_return_at),
        }

    def notify_overdue(self, loan: Loan) -> bool:
        event = self.build_event(loan)
        if not self.webhook_url:
            logger.info(f"Loan {loan.id} overdue (key {loan.key_name or loan.key_id}, user {loan.user_id})")
            return False

        try:
            if self._client is not None:
                response = self._client.post(self.webhook_url, json=event, timeout=self.timeout)
            else:
                with httpx.Client() as client:
                    response = client.post(self.webhook_url, json=event, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(f"Overdue notification for loan {loan.id} failed: {exc}")
            return False

        logger.info(f"Overdue notification sent for loan {loan.id}")
        return True
