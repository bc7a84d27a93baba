"""
Catalog endpoints: systems, modules and selectable data elements.

Read-only and public; the browser needs them before login completes.
"""
from fastapi import APIRouter, Depends

from dataconfirm.schemas.catalog import (
    AvailableElementsRequest,
    AvailableElementsResponse,
    ElementKeyResponse,
    ModuleElementsResponse,
    ModuleListResponse,
    QuestionnaireResponse,
    SystemListResponse,
)
from dataconfirm.services.catalog_service import CatalogService, entry_to_dict, get_catalog_service
from dataconfirm.services.element_keys import available_elements, find_duplicate_names, make_key
from dataconfirm.services.questionnaire import LEGACY_QUESTIONS, QUESTIONS

router = APIRouter()


@router.get("/systems")
async def get_systems(catalog: CatalogService = Depends(get_catalog_service)):
    """Whole catalog as stored"""
    return catalog.raw()


@router.get("/flows/{flow}/agencies/{agency}/systems", response_model=SystemListResponse)
async def list_systems(
    flow: str,
    agency: str,
    catalog: CatalogService = Depends(get_catalog_service)
):
    agency_key = catalog.resolve_agency(flow, agency)
    return SystemListResponse(
        flow=flow,
        agency=agency_key,
        systems=catalog.list_systems(flow, agency_key),
    )


@router.get("/flows/{flow}/agencies/{agency}/systems/{system}/modules", response_model=ModuleListResponse)
async def list_modules(
    flow: str,
    agency: str,
    system: str,
    catalog: CatalogService = Depends(get_catalog_service)
):
    agency_key = catalog.resolve_agency(flow, agency)
    return ModuleListResponse(
        flow=flow,
        agency=agency_key,
        system=system,
        modules=catalog.list_modules(flow, agency_key, system),
    )


@router.get(
    "/flows/{flow}/agencies/{agency}/systems/{system}/modules/{module}/elements",
    response_model=ModuleElementsResponse,
)
async def get_module_elements(
    flow: str,
    agency: str,
    system: str,
    module: str,
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Catalog entries for a module plus their flattened (name, group) keys"""
    agency_key = catalog.resolve_agency(flow, agency)
    entries = catalog.get_module_elements(flow, agency_key, system, module)
    keys = catalog.module_keys(flow, agency_key, system, module)
    return {
        "flow": flow,
        "agency": agency_key,
        "system": system,
        "module": module,
        "entries": [entry_to_dict(e) for e in entries],
        "keys": [k.to_dict() for k in keys],
    }


@router.post("/available-elements", response_model=AvailableElementsResponse)
async def get_available_elements(
    data: AvailableElementsRequest,
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Catalog elements not yet present in the questionnaire grid"""
    entries = catalog.get_module_elements(data.flow, data.agency, data.system, data.module)
    used = [make_key(row.name, row.group) for row in data.grid]
    return AvailableElementsResponse(
        available=[ElementKeyResponse(**k.to_dict()) for k in available_elements(entries, used)],
        used=[ElementKeyResponse(**k.to_dict()) for k in dict.fromkeys(used)],
        duplicate_names=find_duplicate_names(used),
    )


@router.get("/questions", response_model=QuestionnaireResponse)
async def get_questions():
    return {"questions": QUESTIONS, "legacy": LEGACY_QUESTIONS}
