from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from dataconfirm.schemas.submission import GridRowResponse


class AnswerRowResponse(BaseModel):
    """One answer with its submission metadata and grid"""
    submission_uuid: str
    system_name: str
    module_name: str
    api_name: str
    created_at: datetime
    question_id: str
    question_text: Optional[str] = None
    answer: Optional[str] = None
    file_path: Optional[str] = None
    grid: List[GridRowResponse] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    success: bool = True
    message: str
    deleted: Dict[str, int]
