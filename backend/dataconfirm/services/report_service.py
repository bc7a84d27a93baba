"""
Reporting / Export
==================

Read side of the submission store plus admin maintenance:

- grouped submission listing and single-submission detail
- flat answer listing (each answer carries its submission's grid)
- confirmation listing
- CSV export of every grid row
- per-submission zip bundle (JSON + CSV + PDF + uploaded files)
- SQLite backup path, pattern cleanup and hard reset
"""

import csv
import io
import json
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dataconfirm.core.config import settings
from dataconfirm.core.exceptions import (
    PersistenceError,
    StoredFileNotFoundError,
    SubmissionNotFoundError,
    ValidationError,
)
from dataconfirm.core.logging_config import logger
from dataconfirm.models import Confirmation, GridRow, RequirementAnswer, Submission
from dataconfirm.services.element_keys import find_duplicate_names
from dataconfirm.services.file_store import FileStore, get_file_store
from dataconfirm.services.pdf_report import render_pdf

GRID_CSV_HEADERS = [
    "submission_uuid", "agency", "system_name", "module_name", "api_name", "created_at",
    "data_element", "group_name", "nama", "jenis", "saiz", "nullable", "rules",
]


def answer_to_dict(answer: RequirementAnswer) -> Dict[str, Any]:
    return {
        "question_id": answer.question_id,
        "question_text": answer.question_text,
        "answer": answer.answer,
        "file_path": answer.file_path,
    }


def grid_row_to_dict(row: GridRow) -> Dict[str, Any]:
    return {
        "data_element": row.data_element,
        "group_name": row.group_name,
        "field_name": row.field_name,
        "data_type": row.data_type,
        "size": row.size,
        "nullable": row.nullable,
        "rules": row.rules,
    }


def submission_to_dict(submission: Submission) -> Dict[str, Any]:
    """Detail shape shared by the API, the PDF renderer and the zip bundle"""
    grid = [grid_row_to_dict(row) for row in submission.grid_rows]
    return {
        "submission_uuid": submission.submission_uuid,
        "agency": submission.agency,
        "system_name": submission.system_name,
        "module_name": submission.module_name,
        "api_name": submission.api_name,
        "created_at": submission.created_at,
        "answers": [answer_to_dict(a) for a in submission.answers if not a.is_marker],
        "grid": grid,
        "duplicate_names": find_duplicate_names(submission.grid_rows),
    }


class ReportService:

    def __init__(self, db: AsyncSession, file_store: Optional[FileStore] = None):
        self.db = db
        self.file_store = file_store or get_file_store()

    def _submission_query(self):
        # populate_existing: rows written earlier in this session load their collections too
        return select(Submission).options(
            selectinload(Submission.answers),
            selectinload(Submission.grid_rows),
        ).execution_options(populate_existing=True)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def list_grouped(self, system: Optional[str] = None) -> List[Dict[str, Any]]:
        """All submissions, newest first, with answers and grid"""
        query = self._submission_query().order_by(Submission.created_at.desc())
        if system:
            query = query.where(Submission.system_name == system)
        result = await self.db.execute(query)
        return [submission_to_dict(s) for s in result.scalars().all()]

    async def get_submission(self, submission_uuid: str) -> Dict[str, Any]:
        submission = await self.get_submission_model(submission_uuid)
        return submission_to_dict(submission)

    async def get_submission_model(self, submission_uuid: str) -> Submission:
        result = await self.db.execute(
            self._submission_query().where(Submission.submission_uuid == submission_uuid)
        )
        submission = result.scalar_one_or_none()
        if not submission:
            raise SubmissionNotFoundError(submission_uuid)
        return submission

    async def list_answers(self) -> List[Dict[str, Any]]:
        """Every answer row, newest submission first, each with its submission's grid"""
        submissions = await self.list_grouped()
        rows = []
        for sub in submissions:
            for answer in sub["answers"]:
                rows.append({
                    "submission_uuid": sub["submission_uuid"],
                    "system_name": sub["system_name"],
                    "module_name": sub["module_name"],
                    "api_name": sub["api_name"],
                    "created_at": sub["created_at"],
                    **answer,
                    "grid": sub["grid"],
                })
        return rows

    async def list_confirmations(self, flow_type: Optional[str] = None) -> List[Confirmation]:
        query = select(Confirmation).order_by(Confirmation.created_at.desc(), Confirmation.id)
        if flow_type:
            query = query.where(Confirmation.flow_type == flow_type)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    @staticmethod
    def _write_grid_csv(writer, submission: Dict[str, Any]) -> None:
        created = submission["created_at"]
        for row in submission["grid"]:
            writer.writerow([
                submission["submission_uuid"],
                submission.get("agency") or "",
                submission["system_name"],
                submission["module_name"],
                submission["api_name"],
                created.isoformat() if created else "",
                row["data_element"],
                row["group_name"] or "",
                row["field_name"] or "",
                row["data_type"] or "",
                row["size"] or "",
                row["nullable"] or "",
                row["rules"] or "",
            ])

    async def export_grid_csv(self) -> str:
        """One CSV line per grid row, joined with its submission metadata"""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(GRID_CSV_HEADERS)
        for submission in await self.list_grouped():
            self._write_grid_csv(writer, submission)
        return output.getvalue()

    async def build_submission_bundle(self, submission_uuid: str) -> bytes:
        """Zip archive with submission.json, grid.csv, report.pdf and uploads/"""
        report = await self.get_submission(submission_uuid)

        grid_csv = io.StringIO()
        writer = csv.writer(grid_csv)
        writer.writerow(GRID_CSV_HEADERS)
        self._write_grid_csv(writer, report)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zipf:
            zipf.writestr("submission.json", json.dumps(report, indent=2, default=str, ensure_ascii=False))
            zipf.writestr("grid.csv", grid_csv.getvalue())
            zipf.writestr("report.pdf", render_pdf(report))

            for answer in report["answers"]:
                stored_name = answer.get("file_path")
                if not stored_name:
                    continue
                try:
                    path = self.file_store.resolve(stored_name)
                except StoredFileNotFoundError:
                    logger.warning(f"[Report] Upload {stored_name} missing from bundle {submission_uuid}")
                    continue
                zipf.write(path, arcname=f"uploads/{stored_name}")

        logger.info(f"[Report] Built bundle for {submission_uuid}")
        return buffer.getvalue()

    @staticmethod
    def database_backup_path() -> Path:
        """Path of the SQLite database file for download"""
        path = settings.SQLITE_FILE
        if path is None or not path.is_file():
            raise StoredFileNotFoundError("database")
        return path

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def _stored_uploads(self, uuids: Optional[List[str]]) -> List[str]:
        """Stored file names referenced by answers (all answers when uuids is None)"""
        if uuids is not None and not uuids:
            return []
        stmt = select(RequirementAnswer.file_path).where(RequirementAnswer.file_path.isnot(None))
        if uuids is not None:
            stmt = stmt.where(RequirementAnswer.submission_uuid.in_(uuids))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _remove_files(self, stored_names: List[str]) -> int:
        removed = 0
        for stored_name in stored_names:
            try:
                if await self.file_store.delete(stored_name):
                    removed += 1
            except OSError as e:
                logger.warning(f"[Maintenance] Could not remove {stored_name}: {e}")
        return removed

    async def _delete_submissions(self, uuids: Optional[List[str]]) -> Dict[str, int]:
        """Delete grid rows, answers and submissions (all when uuids is None)"""
        grid_stmt = delete(GridRow)
        answer_stmt = delete(RequirementAnswer)
        submission_stmt = delete(Submission)
        if uuids is not None:
            grid_stmt = grid_stmt.where(GridRow.submission_uuid.in_(uuids))
            answer_stmt = answer_stmt.where(RequirementAnswer.submission_uuid.in_(uuids))
            submission_stmt = submission_stmt.where(Submission.submission_uuid.in_(uuids))

        grid = await self.db.execute(grid_stmt)
        answers = await self.db.execute(answer_stmt)
        submissions = await self.db.execute(submission_stmt)
        return {
            "grid_rows": grid.rowcount or 0,
            "answers": answers.rowcount or 0,
            "submissions": submissions.rowcount or 0,
        }

    async def cleanup(self, pattern: Optional[str] = None) -> Dict[str, int]:
        """
        Delete submissions and confirmations whose system, module or API
        name matches a SQL LIKE pattern (default CLEANUP_DEFAULT_PATTERN).
        """
        pattern = (pattern or settings.CLEANUP_DEFAULT_PATTERN).strip()
        if not pattern or pattern.strip("%_") == "":
            raise ValidationError("Cleanup pattern must contain literal text", field="pattern")

        result = await self.db.execute(
            select(Submission.submission_uuid).where(or_(
                Submission.system_name.like(pattern),
                Submission.module_name.like(pattern),
                Submission.api_name.like(pattern),
            ))
        )
        uuids = list(result.scalars().all())

        # Files go only after the rows referencing them are committed
        try:
            stored_names = await self._stored_uploads(uuids)
            counts = await self._delete_submissions(uuids) if uuids else {
                "grid_rows": 0, "answers": 0, "submissions": 0,
            }
            confirmations = await self.db.execute(
                delete(Confirmation).where(or_(
                    Confirmation.system_name.like(pattern),
                    Confirmation.module_name.like(pattern),
                ))
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.log_error_with_context(e, "maintenance_cleanup", pattern=pattern)
            raise PersistenceError("Cleanup failed; nothing was deleted")

        counts["confirmations"] = confirmations.rowcount or 0
        counts["files"] = await self._remove_files(stored_names)
        for uuid in uuids:
            logger.log_submission_event("deleted", uuid, reason="cleanup", pattern=pattern)
        logger.info(f"[Maintenance] Cleanup '{pattern}': {counts}")
        return counts

    async def hard_reset(self) -> Dict[str, int]:
        """Clear every submission and confirmation table; users are kept"""
        try:
            stored_names = await self._stored_uploads(None)
            counts = await self._delete_submissions(None)
            confirmations = await self.db.execute(delete(Confirmation))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.log_error_with_context(e, "maintenance_reset")
            raise PersistenceError("Reset failed; nothing was deleted")

        counts["confirmations"] = confirmations.rowcount or 0
        counts["files"] = await self._remove_files(stored_names)
        logger.warning(f"[Maintenance] Hard reset: {counts}")
        return counts
