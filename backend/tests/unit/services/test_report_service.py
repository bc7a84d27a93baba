"""
Unit Tests for reporting, exports and maintenance
"""
import csv
import io
import json
import zipfile
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from dataconfirm.core.exceptions import PersistenceError, SubmissionNotFoundError, ValidationError
from dataconfirm.models import Confirmation, GridRow, Submission, User
from dataconfirm.schemas.confirmation import ConfirmationCreate
from dataconfirm.schemas.submission import GridRowIn, SubmissionPayload
from dataconfirm.services.confirmation_service import ConfirmationService
from dataconfirm.services.file_store import FileStore
from dataconfirm.services.report_service import GRID_CSV_HEADERS, ReportService
from dataconfirm.services.submission_service import SubmissionService

SPMB = "Sistem Pengurusan Meja Bantuan (SPMB)"


@pytest.fixture
def store(tmp_path) -> FileStore:
    return FileStore(tmp_path / "uploads", allowed_extensions=["pdf"], max_size=1024 * 1024)


async def _submit(db_session, system=SPMB, module="HantarMaklumatAduan", grid=None, uploaded_files=None):
    rows = grid or [
        {"dataElement": "Nama", "groupName": "Pegawai", "nama": "nama_pegawai", "jenis": "VARCHAR"},
        {"dataElement": "Nama", "groupName": "Pengadu", "nama": "nama_pengadu", "jenis": "VARCHAR"},
    ]
    payload = SubmissionPayload(
        agency="Jabatan Perkhidmatan Awam",
        system=system,
        module=module,
        answers={"integrationMethod": "API"},
        grid_rows=[GridRowIn.model_validate(r) for r in rows],
        uploaded_files=uploaded_files or {},
    )
    return await SubmissionService(db_session).reconcile(payload)


async def _count(db_session, model) -> int:
    return (await db_session.execute(select(func.count()).select_from(model))).scalar_one()


class TestQueries:

    async def test_detail_hides_marker_and_flags_duplicates(self, db_session, store):
        result = await _submit(db_session)

        detail = await ReportService(db_session, store).get_submission(result.submission_uuid)

        assert [a["question_id"] for a in detail["answers"]] == ["integrationMethod"]
        assert len(detail["grid"]) == 2
        assert detail["duplicate_names"] == ["Nama"]

    async def test_unknown_submission(self, db_session, store):
        with pytest.raises(SubmissionNotFoundError):
            await ReportService(db_session, store).get_submission("00000000-0000-0000-0000-000000000000")

    async def test_list_grouped_filters_by_system(self, db_session, store):
        await _submit(db_session)
        await _submit(db_session, system="HRMIS", module="KemaskiniRekod")

        service = ReportService(db_session, store)

        assert len(await service.list_grouped()) == 2
        assert [s["system_name"] for s in await service.list_grouped(system="HRMIS")] == ["HRMIS"]

    async def test_list_answers_carries_grid(self, db_session, store):
        await _submit(db_session)

        answers = await ReportService(db_session, store).list_answers()

        assert len(answers) == 1
        assert answers[0]["question_id"] == "integrationMethod"
        assert len(answers[0]["grid"]) == 2


class TestExports:

    async def test_grid_csv(self, db_session, store):
        result = await _submit(db_session)

        content = await ReportService(db_session, store).export_grid_csv()
        rows = list(csv.reader(io.StringIO(content)))

        assert rows[0] == GRID_CSV_HEADERS
        assert len(rows) == 3
        assert {r[7] for r in rows[1:]} == {"Pegawai", "Pengadu"}
        assert all(r[0] == result.submission_uuid for r in rows[1:])

    async def test_bundle_contents(self, db_session, store):
        stored_name = await store.save("request", "contoh.pdf", b"%PDF-1.4 contoh")
        result = await _submit(db_session, uploaded_files={"request": stored_name})

        bundle = await ReportService(db_session, store).build_submission_bundle(result.submission_uuid)

        with zipfile.ZipFile(io.BytesIO(bundle)) as zipf:
            names = set(zipf.namelist())
            assert {"submission.json", "grid.csv", "report.pdf", f"uploads/{stored_name}"} <= names
            data = json.loads(zipf.read("submission.json"))
            assert data["submission_uuid"] == result.submission_uuid
            assert zipf.read("report.pdf").startswith(b"%PDF")

    async def test_bundle_skips_missing_upload(self, db_session, store):
        result = await _submit(db_session, uploaded_files={"request": "gone.pdf"})

        bundle = await ReportService(db_session, store).build_submission_bundle(result.submission_uuid)

        with zipfile.ZipFile(io.BytesIO(bundle)) as zipf:
            assert not any(n.startswith("uploads/") for n in zipf.namelist())


class TestMaintenance:

    async def test_cleanup_matches_pattern_only(self, db_session, store):
        stored_name = await store.save("request", "a.pdf", b"%PDF")
        await _submit(db_session, system="Test System", uploaded_files={"request": stored_name})
        kept = await _submit(db_session)
        await ConfirmationService(db_session).record(ConfirmationCreate.model_validate({
            "system": "Test System", "module": "Demo", "elements": ["No Aduan"],
        }))

        counts = await ReportService(db_session, store).cleanup("%Test%")

        assert counts["submissions"] == 1
        assert counts["grid_rows"] == 2
        assert counts["confirmations"] == 1
        assert counts["files"] == 1
        remaining = (await db_session.execute(select(Submission.submission_uuid))).scalars().all()
        assert remaining == [kept.submission_uuid]

    @pytest.mark.parametrize("pattern", ["%", "%%", "_%_"])
    async def test_cleanup_rejects_match_all_patterns(self, db_session, store, pattern):
        with pytest.raises(ValidationError):
            await ReportService(db_session, store).cleanup(pattern)

    async def test_hard_reset_keeps_users(self, db_session, store, agency_user):
        await _submit(db_session)
        await _submit(db_session, system="HRMIS", module="KemaskiniRekod")

        counts = await ReportService(db_session, store).hard_reset()

        assert counts["submissions"] == 2
        assert await _count(db_session, Submission) == 0
        assert await _count(db_session, GridRow) == 0
        assert await _count(db_session, Confirmation) == 0
        assert await _count(db_session, User) == 1

    async def test_failed_cleanup_keeps_uploads(self, db_session, store, monkeypatch):
        stored_name = await store.save("request", "a.pdf", b"%PDF")
        await _submit(db_session, system="Test System", uploaded_files={"request": stored_name})
        monkeypatch.setattr(db_session, "commit", AsyncMock(side_effect=SQLAlchemyError("database is locked")))

        with pytest.raises(PersistenceError):
            await ReportService(db_session, store).cleanup("%Test%")

        monkeypatch.undo()
        assert await _count(db_session, Submission) == 1
        assert store.resolve(stored_name).is_file()

    async def test_failed_reset_keeps_uploads(self, db_session, store, monkeypatch):
        stored_name = await store.save("request", "a.pdf", b"%PDF")
        await _submit(db_session, uploaded_files={"request": stored_name})
        monkeypatch.setattr(db_session, "commit", AsyncMock(side_effect=SQLAlchemyError("database is locked")))

        with pytest.raises(PersistenceError):
            await ReportService(db_session, store).hard_reset()

        monkeypatch.undo()
        assert await _count(db_session, Submission) == 1
        assert store.resolve(stored_name).is_file()

    async def test_hard_reset_removes_uploads(self, db_session, store):
        stored_name = await store.save("request", "a.pdf", b"%PDF")
        await _submit(db_session, uploaded_files={"request": stored_name})

        counts = await ReportService(db_session, store).hard_reset()

        assert counts["files"] == 1
        assert not (store.base_dir / stored_name).exists()
