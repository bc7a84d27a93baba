from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
from pydantic import ValidationError as PydanticValidationError
from typing import Optional, List, Dict, Any
from datetime import datetime
import json

from dataconfirm.core.exceptions import InvalidGridFormatError
from dataconfirm.services.element_keys import normalize_group


DESCRIPTIVE_FIELDS = ("field_name", "data_type", "size", "nullable", "rules")
# A row counts as filled in only when one of these is set; nama alone does not
DEFINITION_FIELDS = ("data_type", "size", "nullable", "rules")


class GridRowIn(BaseModel):
    """
    One data element definition as sent by the questionnaire.

    Accepts the camelCase keys of the browser grid, the snake_case column
    names and the original Malay column keys (nama/jenis/saiz).
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    data_element: str = Field(
        "", validation_alias=AliasChoices("dataElement", "data_element", "name")
    )
    group_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("groupName", "group_name", "group")
    )
    field_name: str = Field("", validation_alias=AliasChoices("nama", "field_name", "fieldName"))
    data_type: str = Field("", validation_alias=AliasChoices("jenis", "type", "data_type", "dataType"))
    size: str = Field("", validation_alias=AliasChoices("saiz", "size"))
    nullable: str = Field("", validation_alias=AliasChoices("nullable", "isNullable"))
    rules: str = Field("", validation_alias=AliasChoices("rules", "rule"))

    @field_validator("data_element", "field_name", "data_type", "size", "nullable", "rules", mode="before")
    @classmethod
    def coerce_text(cls, v):
        if v is None:
            return ""
        if isinstance(v, bool):
            return "Yes" if v else "No"
        if isinstance(v, (int, float)):
            return str(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("group_name", mode="before")
    @classmethod
    def coerce_group(cls, v):
        return normalize_group(v)

    def is_blank(self) -> bool:
        """True when type, size, nullable and rules are all empty"""
        return not any(getattr(self, name) for name in DEFINITION_FIELDS)


def parse_grid_payload(raw: Any) -> List[GridRowIn]:
    """
    Parse the dataGrid form value.

    Accepts a JSON string or an already decoded list. Anything that is not an
    array of objects raises InvalidGridFormatError.
    """
    if raw is None or raw == "":
        return []

    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidGridFormatError(f"not valid JSON: {e.msg if hasattr(e, 'msg') else e}")

    if not isinstance(data, list):
        raise InvalidGridFormatError("expected a JSON array")

    rows = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise InvalidGridFormatError(f"row {index} is not an object")
        try:
            rows.append(GridRowIn.model_validate(item))
        except PydanticValidationError as e:
            raise InvalidGridFormatError(f"row {index}: {e.errors()[0]['msg']}")
    return rows


def parse_legacy_elements(raw: Any) -> List[str]:
    """Flat element list from the older form (JSON array or comma-separated)"""
    if raw is None or raw == "":
        return []
    items = raw
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except json.JSONDecodeError:
                raise InvalidGridFormatError("elements is not valid JSON")
        else:
            items = text.split(",")
    if not isinstance(items, list):
        raise InvalidGridFormatError("elements must be a list")
    names = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("name", "")
        name = str(item).strip()
        if name:
            names.append(name)
    return names


class SubmissionPayload(BaseModel):
    """Normalised questionnaire submission handed to the reconciler"""
    agency: Optional[str] = None
    system: str = ""
    module: str = ""
    api: str = ""
    answers: Dict[str, str] = Field(default_factory=dict)
    grid_rows: List[GridRowIn] = Field(default_factory=list)
    legacy_elements: List[str] = Field(default_factory=list)
    uploaded_files: Dict[str, str] = Field(default_factory=dict)

    @property
    def module_name(self) -> str:
        return (self.module or self.api or "").strip()

    @property
    def api_name(self) -> str:
        """API identifier; falls back to the module name"""
        return (self.api or self.module or "").strip()


class SubmissionResult(BaseModel):
    submission_uuid: str
    created_at: datetime
    answer_count: int
    grid_row_count: int
    duplicate_names: List[str] = Field(default_factory=list)


# ==========================================
# Response models
# ==========================================

class AnswerResponse(BaseModel):
    question_id: str
    question_text: Optional[str] = None
    answer: Optional[str] = None
    file_path: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class GridRowResponse(BaseModel):
    data_element: str
    group_name: Optional[str] = None
    field_name: Optional[str] = None
    data_type: Optional[str] = None
    size: Optional[str] = None
    nullable: Optional[str] = None
    rules: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SubmissionCreatedResponse(BaseModel):
    success: bool = True
    message: str
    submission_uuid: str
    created_at: datetime
    answer_count: int
    grid_row_count: int
    duplicate_names: List[str] = Field(default_factory=list)
    notification_status: str


class SubmissionDetailResponse(BaseModel):
    submission_uuid: str
    agency: Optional[str] = None
    system_name: str
    module_name: str
    api_name: str
    created_at: datetime
    answers: List[AnswerResponse] = Field(default_factory=list)
    grid: List[GridRowResponse] = Field(default_factory=list)
    duplicate_names: List[str] = Field(default_factory=list)


class NotificationStatusResponse(BaseModel):
    submission_uuid: str
    status: str
    attempts: int = 0
    detail: Optional[str] = None
    updated_at: Optional[datetime] = None
