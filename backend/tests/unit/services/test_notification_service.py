"""
Unit Tests for submission report notifications
"""
import asyncio
from datetime import datetime
from typing import List

import pytest

from dataconfirm.services.notification_service import (
    InMemoryNotificationStatusStore,
    NotificationDispatcher,
    NotificationStatus,
)


class FakeEmailService:
    """Stands in for EmailService; send results are scripted"""

    def __init__(self, results: List[bool] = None, configured: bool = True, delay: float = 0):
        self.results = list(results or [True])
        self.configured = configured
        self.delay = delay
        self.calls = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def send_email(self, to_email, subject, html_content, text_content=None, attachments=None):
        self.calls.append({"to": to_email, "subject": subject, "attachments": attachments})
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.results.pop(0) if self.results else False


@pytest.fixture
def report() -> dict:
    return {
        "submission_uuid": "7d3c2a9e-0000-4000-8000-000000000001",
        "agency": "Jabatan Perkhidmatan Awam",
        "system_name": "Sistem Pengurusan Meja Bantuan (SPMB)",
        "module_name": "HantarMaklumatAduan",
        "api_name": "HantarMaklumatAduan",
        "created_at": datetime(2026, 3, 1, 9, 30),
        "answers": [{"question_id": "integrationMethod", "question_text": "Integration method", "answer": "API"}],
        "grid": [{
            "data_element": "Nama", "group_name": "Pegawai", "field_name": "nama_pegawai",
            "data_type": "VARCHAR", "size": "100", "nullable": "No", "rules": "-",
        }],
        "duplicate_names": [],
    }


def _dispatcher(email, **kwargs) -> NotificationDispatcher:
    options = {"max_retries": 3, "base_delay": 0, "max_delay": 0, "timeout": 5}
    options.update(kwargs)
    return NotificationDispatcher(email=email, store=InMemoryNotificationStatusStore(), **options)


class TestDispatch:

    async def test_sent_with_pdf_attachment(self, report):
        email = FakeEmailService([True])
        dispatcher = _dispatcher(email)

        status = await dispatcher.dispatch(report, ["pentadbir@jpa.gov.my"])

        assert status == NotificationStatus.SENT
        record = dispatcher.status(report["submission_uuid"])
        assert record.status == NotificationStatus.SENT
        assert record.attempts == 1

        filename, content, subtype = email.calls[0]["attachments"][0]
        assert filename.endswith(".pdf")
        assert subtype == "pdf"
        assert content.startswith(b"%PDF")
        assert "HantarMaklumatAduan" in email.calls[0]["subject"]

    async def test_retried_until_success(self, report):
        email = FakeEmailService([False, False, True])
        dispatcher = _dispatcher(email)

        status = await dispatcher.dispatch(report, ["pentadbir@jpa.gov.my"])

        assert status == NotificationStatus.SENT
        assert len(email.calls) == 3
        assert dispatcher.status(report["submission_uuid"]).attempts == 3

    async def test_failed_after_all_attempts(self, report):
        email = FakeEmailService([False, False, False])
        dispatcher = _dispatcher(email)

        status = await dispatcher.dispatch(report, ["pentadbir@jpa.gov.my"])

        assert status == NotificationStatus.FAILED
        assert len(email.calls) == 3
        assert dispatcher.status(report["submission_uuid"]).status == NotificationStatus.FAILED

    async def test_skipped_when_email_not_configured(self, report):
        email = FakeEmailService(configured=False)
        dispatcher = _dispatcher(email)

        status = await dispatcher.dispatch(report, ["pentadbir@jpa.gov.my"])

        assert status == NotificationStatus.SKIPPED
        assert email.calls == []

    async def test_skipped_without_recipients(self, report):
        dispatcher = _dispatcher(FakeEmailService())

        assert await dispatcher.dispatch(report, []) == NotificationStatus.SKIPPED

    async def test_unexpected_error_is_contained(self, report):
        class BrokenEmail(FakeEmailService):
            async def send_email(self, *args, **kwargs):
                raise RuntimeError("smtp exploded")

        dispatcher = _dispatcher(BrokenEmail())

        status = await dispatcher.dispatch(report, ["pentadbir@jpa.gov.my"])

        assert status == NotificationStatus.FAILED
        assert "smtp exploded" in dispatcher.status(report["submission_uuid"]).detail

    def test_backoff_is_capped(self):
        dispatcher = _dispatcher(FakeEmailService(), base_delay=2, max_delay=5)

        assert [dispatcher._retry_delay(n) for n in range(4)] == [2, 4, 5, 5]


class TestDispatchWithTimeout:

    async def test_fast_delivery_returns_final_status(self, report):
        dispatcher = _dispatcher(FakeEmailService([True]))

        status = await dispatcher.dispatch_with_timeout(report, ["pentadbir@jpa.gov.my"])

        assert status == NotificationStatus.SENT

    async def test_slow_delivery_continues_in_background(self, report):
        dispatcher = _dispatcher(FakeEmailService([True], delay=0.5), timeout=0.05)

        status = await dispatcher.dispatch_with_timeout(report, ["pentadbir@jpa.gov.my"])

        assert status == NotificationStatus.BACKGROUND
        assert dispatcher.status(report["submission_uuid"]).status == NotificationStatus.BACKGROUND

        await dispatcher.drain()

        assert dispatcher.status(report["submission_uuid"]).status == NotificationStatus.SENT


class TestStatusStore:

    def test_oldest_records_evicted_past_cap(self):
        store = InMemoryNotificationStatusStore(max_records=2)
        dispatcher = NotificationDispatcher(email=FakeEmailService(), store=store)

        for index in range(3):
            dispatcher.mark_failed(f"uuid-{index}", "report could not be built")

        assert dispatcher.status("uuid-0") is None
        assert [r.submission_uuid for r in store.all()] == ["uuid-1", "uuid-2"]

    def test_updated_record_moves_to_newest(self):
        store = InMemoryNotificationStatusStore(max_records=2)
        dispatcher = NotificationDispatcher(email=FakeEmailService(), store=store)

        dispatcher.mark_failed("uuid-0", "x")
        dispatcher.mark_failed("uuid-1", "x")
        dispatcher.mark_failed("uuid-0", "retry")
        dispatcher.mark_failed("uuid-2", "x")

        assert dispatcher.status("uuid-1") is None
        assert dispatcher.status("uuid-0").detail == "retry"

    def test_mark_failed(self):
        dispatcher = _dispatcher(FakeEmailService())

        status = dispatcher.mark_failed("uuid-9", "report could not be built")

        assert status == NotificationStatus.FAILED
        assert dispatcher.status("uuid-9").status == NotificationStatus.FAILED
