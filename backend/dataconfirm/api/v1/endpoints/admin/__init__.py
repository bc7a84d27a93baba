"""
Admin API endpoints: reporting, exports and maintenance.
All endpoints require the admin role.
"""
from fastapi import APIRouter

from dataconfirm.api.v1.endpoints.admin import reports, maintenance

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(reports.router, prefix="/reports", tags=["Admin Reports"])
admin_router.include_router(maintenance.router, prefix="/maintenance", tags=["Admin Maintenance"])
