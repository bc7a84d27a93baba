from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Literal, Any
from datetime import datetime

from dataconfirm.services.element_keys import normalize_group


class ConfirmedElementIn(BaseModel):
    """A confirmed element; bare strings are accepted as {name: <str>}"""
    name: str
    group: Optional[str] = None
    confirmed: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("group", mode="before")
    @classmethod
    def coerce_group(cls, v):
        return normalize_group(v)


def _element_from_raw(item: Any) -> Any:
    if isinstance(item, str):
        return {"name": item}
    return item


class ConfirmationCreate(BaseModel):
    flow_type: Literal["Inbound", "Outbound"] = Field("Inbound", alias="flowType")
    agency: Optional[str] = None
    system: str
    module: str
    remarks: Optional[str] = None
    elements: List[ConfirmedElementIn] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("elements", mode="before")
    @classmethod
    def normalise_elements(cls, v):
        if v is None:
            return []
        return [_element_from_raw(item) for item in v]


class ConfirmedKey(BaseModel):
    name: str
    group: Optional[str] = None


class ConfirmationResult(BaseModel):
    success: bool = True
    message: str
    count: int
    confirmed: List[ConfirmedKey] = Field(default_factory=list)
    duplicate_names: List[str] = Field(default_factory=list)


class ConfirmationResponse(BaseModel):
    id: int
    flow_type: str
    agency: Optional[str] = None
    system_name: str
    module_name: str
    data_element: str
    group_name: Optional[str] = None
    is_confirmed: bool
    remarks: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
