"""
Fire-and-forget dispatch of pass confirmation emails.

Issuance hands a PassEmail to the dispatcher after its transaction commits
and returns immediately. Delivery runs on a small thread pool; its outcome
is never awaited by, or propagated to, the issuing call.

Failures are logged and swallowed:
- UnavailableError (provider down, refused, or timed out) -> warning
- anything else -> error with traceback

Outbound calls are bounded by the sender's HTTP timeout.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Optional

from gymaccess.config.pass_policy import get_pass_policy
from gymaccess.platform.errors import UnavailableError
from gymaccess.services.email_sender import EmailSender, PassEmail, get_email_sender

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Submits pass emails to a background thread pool."""

    def __init__(self, sender: EmailSender, max_workers: int = 4):
        self.sender = sender
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="pass-notify",
        )

    def submit(self, message: PassEmail) -> Future:
        """
        Queue a pass email for delivery.

        Returns:
            Future resolving to True when delivered, False otherwise. Callers
            on the request path must not wait on it.
        """
        return self._executor.submit(self._deliver, message)

    def _deliver(self, message: PassEmail) -> bool:
        try:
            self.sender.send_pass_email(message)
            return True
        except UnavailableError as e:
            logger.warning(
                "Pass email not delivered",
                extra={
                    "pass_code": message.pass_code,
                    "to_email": message.to_email,
                    "error": e.message,
                    "details": e.details,
                },
            )
        except Exception as e:
            logger.error(
                "Pass email delivery failed",
                extra={
                    "pass_code": message.pass_code,
                    "to_email": message.to_email,
                    "error": str(e),
                },
                exc_info=True,
            )
        return False

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_dispatcher: Optional[NotificationDispatcher] = None
_dispatcher_lock = Lock()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Return the process-wide dispatcher, creating it from the pass policy."""
    global _dispatcher
    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                policy = get_pass_policy()
                _dispatcher = NotificationDispatcher(
                    sender=get_email_sender(timeout=policy.notification_timeout_seconds),
                    max_workers=policy.notification_workers,
                )
    return _dispatcher


def reset_notification_dispatcher() -> None:
    """Shut down and drop the process-wide dispatcher (for tests only)."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is not None:
            _dispatcher.shutdown(wait=False)
        _dispatcher = None
