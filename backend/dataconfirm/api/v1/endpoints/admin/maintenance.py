from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional

from dataconfirm.core.database import get_db
from dataconfirm.core.exceptions import ValidationError
from dataconfirm.core.logging_config import logger
from dataconfirm.models.user import User
from dataconfirm.modules.auth.dependencies import get_current_admin
from dataconfirm.schemas.report import CleanupResponse
from dataconfirm.services.report_service import ReportService

router = APIRouter()


@router.get("/backup")
async def download_backup(
    current_admin: User = Depends(get_current_admin)
):
    """Download the SQLite database file"""
    path = ReportService.database_backup_path()
    filename = f"backup_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.db"
    logger.info(f"[Maintenance] Backup downloaded by {current_admin.email}")
    return FileResponse(path, filename=filename, media_type="application/octet-stream")


@router.delete("/cleanup", response_model=CleanupResponse)
async def cleanup(
    pattern: Optional[str] = Query(None, description="SQL LIKE pattern, e.g. %test%"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Delete submissions and confirmations whose system/module/API matches the pattern"""
    counts = await ReportService(db).cleanup(pattern)
    return CleanupResponse(message="Cleanup completed", deleted=counts)


@router.delete("/reset", response_model=CleanupResponse)
async def hard_reset(
    confirm: bool = Query(False, description="Must be true"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Delete every submission and confirmation; user accounts are kept"""
    if not confirm:
        raise ValidationError("Pass confirm=true to reset all submission data", field="confirm")
    logger.warning(f"[Maintenance] Hard reset requested by {current_admin.email}")
    counts = await ReportService(db).hard_reset()
    return CleanupResponse(message="All submission data deleted", deleted=counts)
