from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dataconfirm.core.database import get_db
from dataconfirm.core.exceptions import AuthorizationError, StoredFileNotFoundError
from dataconfirm.models import RequirementAnswer, Submission
from dataconfirm.models.user import User
from dataconfirm.modules.auth.dependencies import get_current_user
from dataconfirm.services.file_store import FileStore, get_file_store

router = APIRouter()


@router.get("/{stored_name}")
async def download_file(
    stored_name: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    file_store: FileStore = Depends(get_file_store)
):
    """Download a supporting document attached to a submission answer"""
    result = await db.execute(
        select(Submission.agency)
        .join(RequirementAnswer, RequirementAnswer.submission_uuid == Submission.submission_uuid)
        .where(RequirementAnswer.file_path == stored_name)
    )
    owners = result.scalars().all()
    if not owners:
        raise StoredFileNotFoundError(stored_name)
    if not current_user.is_admin and current_user.agency not in owners:
        raise AuthorizationError("This file belongs to another agency")

    path = file_store.resolve(stored_name)
    return FileResponse(path, filename=stored_name)
