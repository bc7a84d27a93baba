"""
Submission Reconciler
=====================

Turns one normalised questionnaire payload into three record sets written in
a single transaction:

1. ``submissions``          identifying metadata under a fresh UUID
2. ``inbound_requirements`` marker row + one row per answered question
3. ``inbound_data_grid``    one row per data element definition

Every precondition is checked before the first write; a rejected payload
leaves no rows behind. A database failure rolls everything back and surfaces
as PersistenceError. Submissions are never merged or updated: sending the
same payload twice yields two submissions.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dataconfirm.core.exceptions import (
    DuplicateGridRowError,
    IncompleteGridError,
    InvalidGridFormatError,
    MissingIdentifierError,
    PersistenceError,
)
from dataconfirm.core.logging_config import logger, set_submission_id
from dataconfirm.core.types import generate_uuid
from dataconfirm.models import GridRow, RequirementAnswer, Submission
from dataconfirm.schemas.submission import (
    DESCRIPTIVE_FIELDS,
    GridRowIn,
    SubmissionPayload,
    SubmissionResult,
)
from dataconfirm.services.element_keys import find_duplicate_keys, find_duplicate_names
from dataconfirm.services.questionnaire import (
    GRID_QUESTION_ID,
    MARKER_QUESTION_ID,
    is_reserved,
    question_text,
)

PLACEHOLDER = "-"


class SubmissionService:
    """Validates and atomically persists questionnaire submissions"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, payload: SubmissionPayload) -> None:
        """Raise the first precondition the payload violates"""
        missing = []
        if not (payload.system or "").strip():
            missing.append("system")
        if not payload.module_name:
            missing.append("module")
        if missing:
            raise MissingIdentifierError(missing)

        for index, row in enumerate(payload.grid_rows):
            if not row.data_element:
                raise InvalidGridFormatError(f"row {index} has no data element name")

        duplicates = find_duplicate_keys(payload.grid_rows)
        if duplicates:
            raise DuplicateGridRowError(duplicates[0].name, duplicates[0].group)

        if payload.grid_rows:
            if all(row.is_blank() for row in payload.grid_rows):
                raise IncompleteGridError(
                    "Every data element definition is empty; fill in at least one field"
                )
        elif not payload.legacy_elements:
            raise IncompleteGridError("No data elements were provided")

    # ------------------------------------------------------------------
    # Row builders
    # ------------------------------------------------------------------

    @staticmethod
    def _answer_items(payload: SubmissionPayload) -> List[tuple]:
        """(question_id, answer, file_path) in arrival order, reserved keys dropped"""
        items = []
        seen = set()
        for question_id, answer in payload.answers.items():
            if is_reserved(question_id):
                continue
            text = "" if answer is None else str(answer).strip()
            file_path = payload.uploaded_files.get(question_id)
            if not text and not file_path:
                continue
            items.append((question_id, text, file_path))
            seen.add(question_id)

        for question_id, file_path in payload.uploaded_files.items():
            if question_id not in seen and not is_reserved(question_id):
                items.append((question_id, "", file_path))
        return items

    @staticmethod
    def _grid_values(row: GridRowIn) -> Dict[str, str]:
        return {name: getattr(row, name) or PLACEHOLDER for name in DESCRIPTIVE_FIELDS}

    @staticmethod
    def _legacy_rows(names: List[str]) -> List[GridRowIn]:
        unique = list(dict.fromkeys(names))
        return [GridRowIn(data_element=name) for name in unique]

    # ------------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------------

    async def reconcile(
        self, payload: SubmissionPayload, created_by: Optional[str] = None
    ) -> SubmissionResult:
        """
        Validate and persist one submission.

        Returns a SubmissionResult carrying the new UUID and the names that
        appear under more than one group (a warning, not an error).
        """
        try:
            self.validate(payload)
        except (MissingIdentifierError, InvalidGridFormatError,
                DuplicateGridRowError, IncompleteGridError) as e:
            logger.warning(
                f"[Submission] Rejected {payload.system}/{payload.module_name}: {e.message}",
                extra={"event_type": "submission_rejected", "error_code": e.code},
            )
            raise

        submission_uuid = generate_uuid()
        set_submission_id(submission_uuid)
        created_at = datetime.utcnow()

        use_legacy = not payload.grid_rows
        grid_rows = self._legacy_rows(payload.legacy_elements) if use_legacy else payload.grid_rows
        answer_items = self._answer_items(payload)

        try:
            submission = Submission(
                submission_uuid=submission_uuid,
                agency=payload.agency,
                system_name=payload.system.strip(),
                module_name=payload.module_name,
                api_name=payload.api_name,
                created_by=created_by,
                created_at=created_at,
            )
            self.db.add(submission)

            marker = RequirementAnswer(
                submission_uuid=submission_uuid,
                position=0,
                question_id=MARKER_QUESTION_ID,
                question_text="Submission",
                answer=submission_uuid,
                is_marker=True,
                created_at=created_at,
            )
            self.db.add(marker)

            grid_owner = None
            for position, (question_id, answer, file_path) in enumerate(answer_items, start=1):
                row = RequirementAnswer(
                    submission_uuid=submission_uuid,
                    position=position,
                    question_id=question_id,
                    question_text=question_text(question_id),
                    answer=answer,
                    file_path=file_path,
                    created_at=created_at,
                )
                self.db.add(row)
                if question_id == GRID_QUESTION_ID:
                    grid_owner = row

            # ids are needed to link grid rows to their answer
            await self.db.flush()
            requirement_id = (grid_owner or marker).id

            for position, row in enumerate(grid_rows):
                if use_legacy:
                    values = {name: "" for name in DESCRIPTIVE_FIELDS}
                else:
                    values = self._grid_values(row)
                self.db.add(GridRow(
                    submission_uuid=submission_uuid,
                    requirement_id=requirement_id,
                    position=position,
                    data_element=row.data_element,
                    group_name=row.group_name,
                    **values,
                ))

            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.log_error_with_context(e, "submission_persist", submission_uuid=submission_uuid)
            raise PersistenceError()

        duplicate_names = find_duplicate_names(grid_rows)
        logger.log_submission_event(
            "saved",
            submission_uuid,
            system=submission.system_name,
            module=submission.module_name,
            answer_count=len(answer_items),
            grid_row_count=len(grid_rows),
            duplicate_names=duplicate_names,
        )
        if duplicate_names:
            logger.warning(
                f"[Submission] {submission_uuid} uses names in several groups: {', '.join(duplicate_names)}"
            )

        return SubmissionResult(
            submission_uuid=submission_uuid,
            created_at=created_at,
            answer_count=len(answer_items),
            grid_row_count=len(grid_rows),
            duplicate_names=duplicate_names,
        )
