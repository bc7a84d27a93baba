"""
API Tests for questionnaire submissions
"""
import json
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from dataconfirm.main import app
from dataconfirm.models import GridRow, RequirementAnswer, Submission
from dataconfirm.services.file_store import FileStore, get_file_store
from dataconfirm.services.report_service import ReportService

SPMB = "Sistem Pengurusan Meja Bantuan (SPMB)"
URL = "/api/v1/submissions"


def _form(grid, **extra) -> dict:
    data = {
        "system": SPMB,
        "module": "HantarMaklumatAduan",
        "integrationMethod": "API",
        "dataGrid": json.dumps(grid),
    }
    data.update(extra)
    return data


async def _count(db_session, model) -> int:
    return (await db_session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
def upload_store(tmp_path):
    store = FileStore(tmp_path / "uploads", allowed_extensions=["pdf"], max_size=1024 * 1024)
    app.dependency_overrides[get_file_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_file_store, None)


class TestCreateSubmission:
    """POST /api/v1/submissions"""

    async def test_multipart_submission(self, client: AsyncClient, db_session, auth_headers, spmb_grid):
        response = await client.post(URL, data=_form(spmb_grid), headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["answer_count"] == 1
        assert data["grid_row_count"] == 1
        assert data["duplicate_names"] == []
        # SMTP is not configured in tests
        assert data["notification_status"] == "skipped"

        submission = await db_session.get(Submission, data["submission_uuid"])
        assert submission.agency == "Jabatan Perkhidmatan Awam"
        assert submission.system_name == SPMB

    async def test_json_submission(self, client: AsyncClient, auth_headers, spmb_grid):
        body = {
            "system": SPMB,
            "module": "HantarMaklumatAduan",
            "integrationMethod": "API",
            "remarks": "Ujian",
            "dataGrid": spmb_grid,
        }

        response = await client.post(URL, json=body, headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["answer_count"] == 2

    async def test_json_answers_object_and_grid_rows(self, client: AsyncClient, db_session, auth_headers):
        body = {
            "system": "SPMB",
            "api": "HantarMaklumatAduan",
            "answers": {"integrationMethod": "REST API"},
            "gridRows": [{"name": "Nama", "group": "Pegawai", "jenis": "varchar", "saiz": "150"}],
        }

        response = await client.post(URL, json=body, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["answer_count"] == 1
        assert data["grid_row_count"] == 1
        stored = (await db_session.execute(
            select(RequirementAnswer).where(RequirementAnswer.question_id == "integrationMethod")
        )).scalar_one()
        assert stored.answer == "REST API"
        row = (await db_session.execute(select(GridRow))).scalar_one()
        assert (row.data_element, row.group_name, row.data_type, row.size) == ("Nama", "Pegawai", "varchar", "150")

    async def test_json_snake_case_grid_key(self, client: AsyncClient, auth_headers, spmb_grid):
        body = {"system": SPMB, "module": "HantarMaklumatAduan", "answers": {"remarks": "Tiada"}, "grid_rows": spmb_grid}

        response = await client.post(URL, json=body, headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["answer_count"] == 1

    async def test_json_answers_must_be_object(self, client: AsyncClient, db_session, auth_headers, spmb_grid):
        body = {"system": SPMB, "module": "HantarMaklumatAduan", "answers": ["API"], "dataGrid": spmb_grid}

        response = await client.post(URL, json=body, headers=auth_headers)

        assert response.status_code == 400
        assert await _count(db_session, Submission) == 0

    async def test_failed_save_removes_uploads(
        self, client: AsyncClient, db_session, auth_headers, spmb_grid, upload_store, monkeypatch
    ):
        monkeypatch.setattr(db_session, "commit", AsyncMock(side_effect=SQLAlchemyError("disk I/O error")))
        files = {"request": ("contoh.pdf", b"%PDF-1.4 contoh", "application/pdf")}

        response = await client.post(URL, data=_form(spmb_grid), files=files, headers=auth_headers)

        monkeypatch.undo()
        assert response.status_code == 500
        assert response.json()["error"] == "PERSISTENCE_ERROR"
        assert list(upload_store.base_dir.glob("*")) == []

    async def test_report_failure_does_not_fail_submission(
        self, client: AsyncClient, db_session, auth_headers, spmb_grid, monkeypatch
    ):
        monkeypatch.setattr(ReportService, "get_submission", AsyncMock(side_effect=RuntimeError("render bug")))

        response = await client.post(URL, data=_form(spmb_grid), headers=auth_headers)

        monkeypatch.undo()
        assert response.status_code == 201
        data = response.json()
        assert data["notification_status"] == "failed"
        assert await _count(db_session, Submission) == 1

        status_response = await client.get(f"{URL}/{data['submission_uuid']}/notification", headers=auth_headers)
        assert status_response.json()["status"] == "failed"

    async def test_upload_is_stored_and_downloadable(self, client: AsyncClient, db_session, auth_headers, spmb_grid):
        files = {"request": ("contoh request.pdf", b"%PDF-1.4 contoh", "application/pdf")}

        response = await client.post(URL, data=_form(spmb_grid), files=files, headers=auth_headers)

        assert response.status_code == 201
        answer = (await db_session.execute(
            select(RequirementAnswer).where(RequirementAnswer.question_id == "request")
        )).scalar_one()
        assert answer.file_path.endswith("_request.pdf")

        download = await client.get(f"/api/v1/files/{answer.file_path}", headers=auth_headers)
        assert download.status_code == 200
        assert download.content == b"%PDF-1.4 contoh"

    async def test_other_agency_cannot_download_upload(
        self, client: AsyncClient, db_session, auth_headers, other_auth_headers, spmb_grid
    ):
        files = {"request": ("contoh.pdf", b"%PDF-1.4", "application/pdf")}
        await client.post(URL, data=_form(spmb_grid), files=files, headers=auth_headers)
        stored_name = (await db_session.execute(select(RequirementAnswer.file_path).where(
            RequirementAnswer.question_id == "request"
        ))).scalar_one()

        response = await client.get(f"/api/v1/files/{stored_name}", headers=other_auth_headers)

        assert response.status_code == 403

    async def test_disallowed_upload_rejected(self, client: AsyncClient, db_session, auth_headers, spmb_grid):
        files = {"request": ("payload.exe", b"MZ", "application/octet-stream")}

        response = await client.post(URL, data=_form(spmb_grid), files=files, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_FILE_TYPE"
        assert await _count(db_session, Submission) == 0

    async def test_duplicate_names_reported(self, client: AsyncClient, auth_headers):
        grid = [
            {"dataElement": "Nama", "groupName": "Pegawai", "nama": "nama_pegawai", "jenis": "VARCHAR"},
            {"dataElement": "Nama", "groupName": "Pengadu", "nama": "nama_pengadu", "jenis": "VARCHAR"},
        ]

        response = await client.post(URL, data=_form(grid), headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["duplicate_names"] == ["Nama"]
        assert "Nama" in response.json()["message"]

    async def test_invalid_grid_json(self, client: AsyncClient, db_session, auth_headers):
        data = _form([])
        data["dataGrid"] = "{not json"

        response = await client.post(URL, data=data, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_GRID_FORMAT"
        assert await _count(db_session, Submission) == 0

    async def test_all_blank_grid(self, client: AsyncClient, db_session, auth_headers):
        grid = [{"dataElement": "Nama", "groupName": "Pegawai", "nama": "", "jenis": ""}]

        response = await client.post(URL, data=_form(grid), headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "INCOMPLETE_GRID"
        assert await _count(db_session, GridRow) == 0

    async def test_missing_system(self, client: AsyncClient, auth_headers, spmb_grid):
        response = await client.post(URL, data=_form(spmb_grid, system=""), headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["details"]["missing"] == ["system"]

    async def test_duplicate_row_same_group(self, client: AsyncClient, auth_headers, spmb_grid):
        response = await client.post(URL, data=_form(spmb_grid * 2), headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "DUPLICATE_GRID_ROW"

    async def test_requires_authentication(self, client: AsyncClient, spmb_grid):
        response = await client.post(URL, data=_form(spmb_grid))

        assert response.status_code in (401, 403)

    async def test_agency_field_ignored_for_agency_users(self, client: AsyncClient, db_session, auth_headers, spmb_grid):
        response = await client.post(
            URL, data=_form(spmb_grid, agency="Kumpulan Wang Simpanan Pekerja"), headers=auth_headers
        )

        submission = await db_session.get(Submission, response.json()["submission_uuid"])
        assert submission.agency == "Jabatan Perkhidmatan Awam"


class TestReadSubmission:
    """GET /api/v1/submissions/{uuid}"""

    async def _create(self, client, headers, grid) -> str:
        response = await client.post(URL, data=_form(grid), headers=headers)
        return response.json()["submission_uuid"]

    async def test_owner_reads_detail(self, client: AsyncClient, auth_headers, spmb_grid):
        submission_uuid = await self._create(client, auth_headers, spmb_grid)

        response = await client.get(f"{URL}/{submission_uuid}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["grid"][0]["group_name"] == "Pegawai"
        assert [a["question_id"] for a in data["answers"]] == ["integrationMethod"]

    async def test_other_agency_forbidden(self, client: AsyncClient, auth_headers, other_auth_headers, spmb_grid):
        submission_uuid = await self._create(client, auth_headers, spmb_grid)

        response = await client.get(f"{URL}/{submission_uuid}", headers=other_auth_headers)

        assert response.status_code == 403

    async def test_admin_reads_any(self, client: AsyncClient, auth_headers, admin_auth_headers, spmb_grid):
        submission_uuid = await self._create(client, auth_headers, spmb_grid)

        response = await client.get(f"{URL}/{submission_uuid}", headers=admin_auth_headers)

        assert response.status_code == 200

    async def test_unknown_submission(self, client: AsyncClient, auth_headers):
        response = await client.get(f"{URL}/00000000-0000-0000-0000-000000000000", headers=auth_headers)

        assert response.status_code == 404

    async def test_notification_status(self, client: AsyncClient, auth_headers, spmb_grid):
        submission_uuid = await self._create(client, auth_headers, spmb_grid)

        response = await client.get(f"{URL}/{submission_uuid}/notification", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "skipped"
