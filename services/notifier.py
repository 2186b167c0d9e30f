# services/notifier.py
"""
Best-effort email notification for accepted date plans

notify() never raises. It renders the email, tries the transport up to
`max_attempts` times with exponential backoff between attempts, and returns a
NotificationDelivered or NotificationFailed for the gateway to report.
"""

import time
import logging
from typing import Callable, Optional

from core.models import (
    NotificationDelivered,
    NotificationFailed,
    NotificationResult,
    PlanSubmission,
)
from core.template_engine import PlanEmailRenderer
from services.email_transport import EmailMessage, EmailTransport

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """An attempt whose transport reported a non-success outcome"""
    pass


class PlanNotifier:
    """
    Sends the plan notification email with bounded retries
    """

    def __init__(self,
                 transport: Optional[EmailTransport],
                 from_address: str,
                 to_address: str,
                 renderer: Optional[PlanEmailRenderer] = None,
                 max_attempts: int = 3,
                 backoff_base: float = 2.0,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            transport: Email transport, or None when email is not configured
            from_address: Sender address
            to_address: Recipient of plan notifications
            renderer: Email renderer (a default PlanEmailRenderer if omitted)
            max_attempts: Total number of send attempts
            backoff_base: Sleep after failed attempt n is backoff_base ** n seconds
            sleep: Sleep function, replaceable in tests
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.transport = transport
        self.from_address = from_address
        self.to_address = to_address
        self.renderer = renderer or PlanEmailRenderer()
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return self.transport is not None and bool(self.from_address) and bool(self.to_address)

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)"""
        return self.backoff_base ** attempt if self.backoff_base > 0 else 0.0

    def notify(self, submission: PlanSubmission,
               submission_id: Optional[str] = None) -> NotificationResult:
        start_time = time.monotonic()

        if not self.configured:
            logger.warning("Email notification skipped: transport or addresses not configured")
            return NotificationFailed(attempts=0, error='Email notification is not configured',
                                      duration_ms=0.0)

        try:
            rendered = self.renderer.render(submission, submission_id)
        except Exception as e:
            logger.error(f"Notification email rendering failed: {str(e)}", exc_info=True)
            return NotificationFailed(attempts=0, error=f'Rendering failed: {str(e)}',
                                      duration_ms=self._elapsed_ms(start_time))

        message = EmailMessage(
            from_address=self.from_address,
            to=self.to_address,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text
        )

        last_error = 'No attempt made'
        for attempt in range(1, self.max_attempts + 1):
            logger.info(f"Attempting to send email notification (attempt {attempt}/{self.max_attempts})")
            try:
                outcome = self.transport.send(message)
                if not outcome.success:
                    raise NotificationError(
                        f"Email send failed: {outcome.error or outcome.response or 'unknown error'}"
                    )
            except Exception as e:
                last_error = str(e) or e.__class__.__name__
                logger.warning(f"Email send attempt {attempt} failed: {last_error}")

                if attempt < self.max_attempts:
                    delay = self.backoff_delay(attempt)
                    logger.debug(f"Retrying email send in {delay:.1f}s")
                    self._sleep(delay)
                continue

            duration_ms = self._elapsed_ms(start_time)
            logger.info(f"Email notification sent successfully in {duration_ms:.0f}ms "
                        f"(message id {outcome.message_id}, attempts {attempt})")
            return NotificationDelivered(attempts=attempt, message_id=outcome.message_id,
                                         duration_ms=duration_ms)

        duration_ms = self._elapsed_ms(start_time)
        logger.error(f"All {self.max_attempts} email send attempts failed after "
                     f"{duration_ms:.0f}ms: {last_error}")
        return NotificationFailed(attempts=self.max_attempts, error=last_error,
                                  duration_ms=duration_ms)

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.monotonic() - start_time) * 1000
