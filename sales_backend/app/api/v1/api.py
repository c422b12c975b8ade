from fastapi import APIRouter

from sales_backend.app.api.v1.endpoints import sales

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(sales.router, prefix="/sales", tags=["sales"])
