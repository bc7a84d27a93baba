from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import List, Optional, Literal

from dataconfirm.core.database import get_db
from dataconfirm.models.user import User
from dataconfirm.modules.auth.dependencies import get_current_admin
from dataconfirm.schemas.confirmation import ConfirmationResponse
from dataconfirm.schemas.report import AnswerRowResponse
from dataconfirm.schemas.submission import SubmissionDetailResponse
from dataconfirm.services.report_service import ReportService

router = APIRouter()


@router.get("/submissions", response_model=List[SubmissionDetailResponse])
async def list_submissions(
    system: Optional[str] = Query(None, description="Only this system"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Submissions newest first, each with its answers, grid and duplicate names"""
    return await ReportService(db).list_grouped(system=system)


@router.get("/answers", response_model=List[AnswerRowResponse])
async def list_answers(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Flat answer listing; every row carries its submission's grid"""
    return await ReportService(db).list_answers()


@router.get("/confirmations", response_model=List[ConfirmationResponse])
async def list_confirmations(
    flow_type: Optional[Literal["Inbound", "Outbound"]] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await ReportService(db).list_confirmations(flow_type)


@router.get("/export/grid.csv")
async def export_grid_csv(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Export every grid row to CSV"""
    content = await ReportService(db).export_grid_csv()
    filename = f"data_grid_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.csv"

    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/submissions/{submission_uuid}/bundle")
async def download_submission_bundle(
    submission_uuid: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Zip with submission.json, grid.csv, report.pdf and uploaded files"""
    content = await ReportService(db).build_submission_bundle(submission_uuid)

    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename=submission_{submission_uuid}.zip"}
    )
