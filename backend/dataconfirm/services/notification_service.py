"""
Notification Dispatcher
=======================

Emails a submission report (HTML body + PDF attachment) after the
submission has been committed. Delivery is best effort:

- retried with exponential backoff: delay = min(base * 2**attempt, max)
- awaited for at most NOTIFICATION_TIMEOUT_SECONDS by the request; past
  that the task keeps running and the status reads "background"
- never raises and never touches the stored submission

Delivery state is kept per submission in a NotificationStatusStore.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from dataconfirm.core.config import settings
from dataconfirm.core.exceptions import NotificationError
from dataconfirm.core.logging_config import logger
from dataconfirm.services.email_service import EmailService, email_service
from dataconfirm.services.pdf_report import render_html, render_pdf, render_text


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
    BACKGROUND = "background"


@dataclass
class NotificationRecord:
    submission_uuid: str
    status: NotificationStatus
    attempts: int = 0
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_uuid": self.submission_uuid,
            "status": self.status.value,
            "attempts": self.attempts,
            "detail": self.detail,
            "updated_at": self.updated_at,
        }


class NotificationStatusStore(ABC):
    """Key-value store of delivery state, keyed by submission UUID"""

    @abstractmethod
    def get(self, submission_uuid: str) -> Optional[NotificationRecord]:
        ...

    @abstractmethod
    def set(self, record: NotificationRecord) -> None:
        ...

    @abstractmethod
    def all(self) -> List[NotificationRecord]:
        ...


class InMemoryNotificationStatusStore(NotificationStatusStore):
    """
    Process-local store; state is lost on restart.

    Holds at most max_records entries. The least recently updated record is
    evicted first, so an in-flight delivery outlives older finished ones.
    """

    def __init__(self, max_records: Optional[int] = None):
        if max_records is None:
            max_records = settings.NOTIFICATION_STATUS_MAX_RECORDS
        self.max_records = max(1, max_records)
        self._records: "OrderedDict[str, NotificationRecord]" = OrderedDict()

    def get(self, submission_uuid: str) -> Optional[NotificationRecord]:
        return self._records.get(submission_uuid)

    def set(self, record: NotificationRecord) -> None:
        record.updated_at = datetime.utcnow()
        self._records[record.submission_uuid] = record
        self._records.move_to_end(record.submission_uuid)
        while len(self._records) > self.max_records:
            self._records.popitem(last=False)

    def all(self) -> List[NotificationRecord]:
        return list(self._records.values())


class NotificationDispatcher:
    """Sends submission reports and tracks their delivery state"""

    def __init__(
        self,
        email: Optional[EmailService] = None,
        store: Optional[NotificationStatusStore] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.email = email or email_service
        self.store = store or InMemoryNotificationStatusStore()
        self.max_retries = max(1, max_retries if max_retries is not None else settings.NOTIFICATION_MAX_RETRIES)
        self.base_delay = base_delay if base_delay is not None else settings.NOTIFICATION_RETRY_BASE_DELAY
        self.max_delay = max_delay if max_delay is not None else settings.NOTIFICATION_RETRY_MAX_DELAY
        self.timeout = timeout if timeout is not None else settings.NOTIFICATION_TIMEOUT_SECONDS
        self._tasks: Set[asyncio.Task] = set()

    def status(self, submission_uuid: str) -> Optional[NotificationRecord]:
        return self.store.get(submission_uuid)

    def _mark(self, submission_uuid: str, status: NotificationStatus,
              attempts: int = 0, detail: Optional[str] = None) -> NotificationRecord:
        record = NotificationRecord(submission_uuid, status, attempts, detail)
        self.store.set(record)
        logger.log_notification_event(submission_uuid, status.value, attempt=attempts, reason=detail)
        return record

    def mark_failed(self, submission_uuid: str, detail: str) -> NotificationStatus:
        """Record a delivery that could not be started"""
        self._mark(submission_uuid, NotificationStatus.FAILED, detail=detail)
        return NotificationStatus.FAILED

    def _retry_delay(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def _deliver(self, report: Dict[str, Any], recipients: List[str]) -> NotificationStatus:
        submission_uuid = report["submission_uuid"]

        try:
            pdf = await asyncio.to_thread(render_pdf, report)
        except Exception as e:
            raise NotificationError(f"PDF rendering failed: {e}") from e

        subject = f"[{settings.APP_NAME}] {report.get('system_name')} / {report.get('api_name')}"
        html_body = render_html(report)
        text_body = render_text(report)
        attachments = [(f"submission_{submission_uuid}.pdf", pdf, "pdf")]

        for attempt in range(self.max_retries):
            sent = await self.email.send_email(recipients, subject, html_body, text_body, attachments)
            if sent:
                self._mark(submission_uuid, NotificationStatus.SENT, attempts=attempt + 1)
                return NotificationStatus.SENT

            if attempt < self.max_retries - 1:
                delay = self._retry_delay(attempt)
                logger.warning(
                    f"[Notification] Attempt {attempt + 1}/{self.max_retries} failed for "
                    f"{submission_uuid}. Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        raise NotificationError(f"All {self.max_retries} delivery attempts failed")

    async def dispatch(
        self, report: Dict[str, Any], recipients: Optional[List[str]] = None
    ) -> NotificationStatus:
        """Deliver one report; returns the final status and never raises"""
        submission_uuid = report["submission_uuid"]
        recipients = list(recipients) if recipients is not None else settings.NOTIFICATION_RECIPIENTS

        if not self.email.is_configured:
            self._mark(submission_uuid, NotificationStatus.SKIPPED, detail="email not configured")
            return NotificationStatus.SKIPPED
        if not recipients:
            self._mark(submission_uuid, NotificationStatus.SKIPPED, detail="no recipients")
            return NotificationStatus.SKIPPED

        self._mark(submission_uuid, NotificationStatus.PENDING)
        try:
            return await self._deliver(report, recipients)
        except NotificationError as e:
            self._mark(submission_uuid, NotificationStatus.FAILED, attempts=self.max_retries, detail=e.message)
            return NotificationStatus.FAILED
        except Exception as e:
            logger.log_error_with_context(e, "notification_dispatch", submission_uuid=submission_uuid)
            self._mark(submission_uuid, NotificationStatus.FAILED, detail=str(e))
            return NotificationStatus.FAILED

    async def dispatch_with_timeout(
        self, report: Dict[str, Any], recipients: Optional[List[str]] = None
    ) -> NotificationStatus:
        """
        Start delivery and wait for it up to the configured timeout.

        On timeout the delivery task keeps running; its final status
        replaces "background" when it completes.
        """
        submission_uuid = report["submission_uuid"]
        task = asyncio.create_task(self.dispatch(report, recipients))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout)
        except asyncio.TimeoutError:
            record = self.store.get(submission_uuid)
            if record is None or record.status == NotificationStatus.PENDING:
                self._mark(
                    submission_uuid,
                    NotificationStatus.BACKGROUND,
                    detail=f"still sending after {self.timeout}s",
                )
            return NotificationStatus.BACKGROUND

    async def drain(self) -> None:
        """Wait for background deliveries (used on shutdown)"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


notification_dispatcher = NotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency"""
    return notification_dispatcher
