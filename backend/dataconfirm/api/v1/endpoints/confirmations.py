from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dataconfirm.core.database import get_db
from dataconfirm.models.user import User
from dataconfirm.modules.auth.dependencies import get_current_user
from dataconfirm.schemas.confirmation import ConfirmationCreate, ConfirmationResult
from dataconfirm.services.confirmation_service import ConfirmationService

router = APIRouter()


@router.post("", response_model=ConfirmationResult, status_code=status.HTTP_201_CREATED)
async def record_confirmation(
    data: ConfirmationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Record which catalog elements the agency confirmed for a module.

    Agency users always record under their own agency.
    """
    if not current_user.is_admin or not data.agency:
        data.agency = current_user.agency
    return await ConfirmationService(db).record(data, created_by=str(current_user.id))
