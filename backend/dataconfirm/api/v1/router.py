from fastapi import APIRouter
from dataconfirm.api.v1.endpoints import auth, catalog, confirmations, submissions, files, health
from dataconfirm.api.v1.endpoints.admin import admin_router

api_router = APIRouter()

# Health checks (use /health/ready for load balancers)
api_router.include_router(health.router)

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])
api_router.include_router(confirmations.router, prefix="/confirmations", tags=["Confirmations"])
api_router.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
api_router.include_router(files.router, prefix="/files", tags=["Files"])

api_router.include_router(admin_router)
