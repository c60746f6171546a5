"""Retrying instruction dispatch."""

import logging
import threading
from typing import Optional

from pydantic import BaseModel

from cli_task_chain.channels.base import BaseChannel

logger = logging.getLogger(__name__)


class DispatchResult(BaseModel):
    success: bool
    attempts: int
    error: Optional[str] = None
    # True when a stop request interrupted the retry sequence
    cancelled: bool = False


class RetryingDispatcher:
    """Sends text to a session, retrying channel failures.

    Failures are not inspected: any error reported or raised by the channel
    is retried until ``retry_attempts`` sends have been made. The wait between
    attempts ends early when ``cancel_event`` is set, and no further attempt
    is started after that.
    """

    def __init__(
        self,
        channel: BaseChannel,
        session_id: str,
        retry_attempts: int,
        retry_delay: float,
        cancel_event: Optional[threading.Event] = None,
    ):
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self.channel = channel
        self.session_id = session_id
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.cancel_event = cancel_event or threading.Event()

    def dispatch(self, text: str) -> DispatchResult:
        last_error = None
        for attempt in range(1, self.retry_attempts + 1):
            if self.cancel_event.is_set():
                return DispatchResult(
                    success=False, attempts=attempt - 1, error=last_error, cancelled=True
                )

            logger.info(f"Sending instruction (attempt {attempt}/{self.retry_attempts})")
            try:
                result = self.channel.send(self.session_id, text)
                if result.ok:
                    logger.info("Instruction sent successfully")
                    return DispatchResult(success=True, attempts=attempt)
                last_error = result.error or "unknown channel error"
                logger.error(f"Send failed: {last_error}")
            except Exception as e:
                last_error = str(e)
                logger.error(f"Send error (attempt {attempt}): {e}")

            if attempt < self.retry_attempts:
                logger.info(f"Waiting {self.retry_delay}s before retry...")
                self.cancel_event.wait(self.retry_delay)

        return DispatchResult(success=False, attempts=self.retry_attempts, error=last_error)
