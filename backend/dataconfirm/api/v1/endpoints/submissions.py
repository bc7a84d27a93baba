"""
Submission endpoints.

POST accepts the questionnaire either as multipart/form-data (answers as
fields, dataGrid as a JSON string, supporting documents as files keyed by
question id) or as a JSON object. A JSON body may carry its answers flat
or under an "answers" object, and its grid under dataGrid or gridRows. The payload is
normalised here, once, before it reaches the reconciler.
"""
import json
from typing import Any, Dict, Tuple

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from dataconfirm.core.database import get_db
from dataconfirm.core.exceptions import (
    AuthorizationError,
    ResourceNotFoundError,
    ValidationError,
)
from dataconfirm.core.logging_config import logger
from dataconfirm.models.user import User
from dataconfirm.modules.auth.dependencies import get_current_user
from dataconfirm.schemas.submission import (
    NotificationStatusResponse,
    SubmissionCreatedResponse,
    SubmissionDetailResponse,
    SubmissionPayload,
    parse_grid_payload,
    parse_legacy_elements,
)
from dataconfirm.services.file_store import FileStore, get_file_store
from dataconfirm.services.notification_service import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from dataconfirm.services.report_service import ReportService
from dataconfirm.services.submission_service import SubmissionService

router = APIRouter()


async def _read_submission_body(request: Request) -> Tuple[Dict[str, Any], Dict[str, UploadFile]]:
    """Split the request body into plain fields and uploaded files"""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        body = await request.json()
        if not isinstance(body, dict):
            raise ValidationError("Submission body must be a JSON object")
        return body, {}

    form = await request.form()
    fields: Dict[str, Any] = {}
    files: Dict[str, UploadFile] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if value.filename:
                files[key] = value
        else:
            fields[key] = value
    return fields, files


# Keys the grid may arrive under; the form sends dataGrid, API clients gridRows
GRID_KEYS = ("dataGrid", "gridRows", "grid_rows")


def _answer_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ", ".join(str(item) for item in value if item is not None)
    return str(value)


def _collect_answers(fields: Dict[str, Any]) -> Dict[str, str]:
    """Flat scalar fields plus a nested answers object, the latter winning"""
    answers = {
        key: _answer_text(value)
        for key, value in fields.items()
        if value is not None and not isinstance(value, (list, dict))
    }
    nested = fields.get("answers")
    if isinstance(nested, str) and nested.strip().startswith("{"):
        try:
            nested = json.loads(nested)
        except json.JSONDecodeError:
            raise ValidationError("answers is not valid JSON", field="answers")
    if nested is not None and not isinstance(nested, (dict, str)):
        raise ValidationError("answers must be an object", field="answers")
    if isinstance(nested, dict):
        for key, value in nested.items():
            if value is not None:
                answers[str(key)] = _answer_text(value)
    return answers


def _first_present(fields: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = fields.get(key)
        if value is not None and value != "":
            return value
    return None


def _build_payload(fields: Dict[str, Any], user: User) -> SubmissionPayload:
    agency = fields.get("agency") if user.is_admin and fields.get("agency") else user.agency
    return SubmissionPayload(
        agency=agency,
        system=str(_first_present(fields, "system", "agencySystem") or "").strip(),
        module=str(fields.get("module") or "").strip(),
        api=str(_first_present(fields, "api", "apiOrModuleName") or "").strip(),
        answers=_collect_answers(fields),
        grid_rows=parse_grid_payload(_first_present(fields, *GRID_KEYS)),
        legacy_elements=parse_legacy_elements(fields.get("elements")),
    )


async def _discard_uploads(file_store: FileStore, stored_names) -> None:
    """Remove files saved for a submission that was not persisted"""
    for stored_name in stored_names:
        try:
            await file_store.delete(stored_name)
        except OSError as e:
            logger.warning(f"[Submissions] Could not remove orphan upload {stored_name}: {e}")


def _check_access(submission: Dict[str, Any], user: User) -> None:
    if user.is_admin:
        return
    if not user.agency or submission.get("agency") != user.agency:
        raise AuthorizationError("This submission belongs to another agency")


@router.post("", response_model=SubmissionCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    file_store: FileStore = Depends(get_file_store),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """
    Persist a questionnaire submission and email its report.

    The submission is committed before the notification starts; a slow or
    failed email never affects it. notification_status reports how far
    delivery got within the request.
    """
    fields, files = await _read_submission_body(request)
    payload = _build_payload(fields, current_user)

    service = SubmissionService(db)
    # Reject before any upload touches the disk
    service.validate(payload)

    try:
        for question_id, upload in files.items():
            content = await upload.read()
            payload.uploaded_files[question_id] = await file_store.save(
                question_id, upload.filename, content
            )
        result = await service.reconcile(payload, created_by=str(current_user.id))
    except Exception:
        await _discard_uploads(file_store, payload.uploaded_files.values())
        raise
    request.state.submission_uuid = result.submission_uuid

    # The submission is committed from here on; nothing below may fail the request
    try:
        report = await ReportService(db, file_store).get_submission(result.submission_uuid)
    except Exception as e:
        logger.log_error_with_context(e, "submission_report", submission_uuid=result.submission_uuid)
        notification_status = dispatcher.mark_failed(
            result.submission_uuid, f"report could not be built: {e}"
        )
    else:
        notification_status = await dispatcher.dispatch_with_timeout(report)

    message = "Submission saved"
    if result.duplicate_names:
        message += f"; names used in more than one group: {', '.join(result.duplicate_names)}"

    return SubmissionCreatedResponse(
        message=message,
        submission_uuid=result.submission_uuid,
        created_at=result.created_at,
        answer_count=result.answer_count,
        grid_row_count=result.grid_row_count,
        duplicate_names=result.duplicate_names,
        notification_status=notification_status.value,
    )


@router.get("/{submission_uuid}", response_model=SubmissionDetailResponse)
async def get_submission(
    submission_uuid: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    submission = await ReportService(db).get_submission(submission_uuid)
    _check_access(submission, current_user)
    return submission


@router.get("/{submission_uuid}/notification", response_model=NotificationStatusResponse)
async def get_notification_status(
    submission_uuid: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher)
):
    """Delivery state of the report email for one submission"""
    submission = await ReportService(db).get_submission(submission_uuid)
    _check_access(submission, current_user)

    record = dispatcher.status(submission_uuid)
    if record is None:
        logger.info(f"[Notification] No delivery record for {submission_uuid}")
        raise ResourceNotFoundError("Notification", submission_uuid)
    return record.to_dict()
