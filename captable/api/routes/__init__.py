"""Top level API router registration."""
from fastapi import APIRouter, FastAPI

from captable.api.routes import cap_table, health, option_grants, reports, transactions


def register_routes(application: FastAPI) -> None:
    """Register all API routers with the FastAPI application."""
    api_router = APIRouter(prefix="/api")

    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(transactions.router, tags=["transactions"])
    api_router.include_router(cap_table.router, tags=["cap-table"])
    api_router.include_router(reports.router, tags=["reports"])
    api_router.include_router(option_grants.router, tags=["option-grants"])

    application.include_router(api_router)


__all__ = ["register_routes"]
