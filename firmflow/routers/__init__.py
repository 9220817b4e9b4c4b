"""API routers."""

from firmflow.routers.metadata import router as metadata_router
from firmflow.routers.service_requests import router as service_requests_router
from firmflow.routers.services import router as services_router

__all__ = ["metadata_router", "service_requests_router", "services_router"]
