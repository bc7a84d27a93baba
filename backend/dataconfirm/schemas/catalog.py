from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any

from dataconfirm.services.element_keys import normalize_group


class ElementKeyResponse(BaseModel):
    name: str
    group: Optional[str] = None


class CatalogEntryResponse(BaseModel):
    kind: str
    name: Optional[str] = None
    group: Optional[str] = None
    fields: List[str] = Field(default_factory=list)


class ModuleElementsResponse(BaseModel):
    flow: str
    agency: str
    system: str
    module: str
    entries: List[CatalogEntryResponse]
    keys: List[ElementKeyResponse]


class SystemListResponse(BaseModel):
    flow: str
    agency: str
    systems: List[str]


class ModuleListResponse(BaseModel):
    flow: str
    agency: str
    system: str
    modules: List[str]


class GridKeyIn(BaseModel):
    """A grid row reduced to its identity"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., alias="dataElement")
    group: Optional[str] = Field(None, alias="groupName")

    @field_validator("group", mode="before")
    @classmethod
    def coerce_group(cls, v):
        return normalize_group(v)


class AvailableElementsRequest(BaseModel):
    flow: str = Field("Inbound", alias="flowType")
    agency: str
    system: str
    module: str
    grid: List[GridKeyIn] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class AvailableElementsResponse(BaseModel):
    available: List[ElementKeyResponse]
    used: List[ElementKeyResponse]
    duplicate_names: List[str] = Field(default_factory=list)


class QuestionResponse(BaseModel):
    id: str
    label: str
    tooltip: Optional[str] = None
    type: str
    options: Optional[List[str]] = None


class QuestionnaireResponse(BaseModel):
    questions: List[QuestionResponse]
    legacy: Dict[str, Any] = Field(default_factory=dict)
