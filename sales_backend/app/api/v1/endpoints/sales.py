from __future__ import annotations

from datetime import date, datetime, time, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from sales_backend.app.api.deps import get_current_user, get_inventory_client, require_role
from sales_backend.app.core.config import settings
from sales_backend.app.core.database import get_db
from sales_backend.app.core.exceptions import (
    InvalidStatusTransition,
    PricingUnavailableError,
    SaleNotFoundError,
    SaleValidationError,
)
from sales_backend.app.models.sale import Sale, SaleStatus
from sales_backend.app.schemas.auth import CurrentUser
from sales_backend.app.schemas.sales import (
    PricingErrorOut,
    PricingErrorResponse,
    SaleCreateRequest,
    SaleCreateResponse,
    SaleOut,
    StockErrorResponse,
    StockUpdateOut,
    WarningOut,
)
from sales_backend.app.services.inventory_client import InventoryClient
from sales_backend.app.services.sale_store import SaleFilter
from sales_backend.app.services.sales import (
    cancel_sale,
    create_sale,
    get_visible_sale,
    list_sales,
)

router = APIRouter()


def _build_filter(
    start_date: date | None, end_date: date | None, user_id: str | None
) -> SaleFilter:
    """Whole days, inclusive on both ends, in UTC."""
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate must not be after endDate",
        )
    return SaleFilter(
        owner_id=user_id or None,
        start=datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None,
        end=datetime.combine(end_date, time.max, tzinfo=timezone.utc) if end_date else None,
    )


# ─── Listing ──────────────────────────────────────────────────────────────────


@router.get("", response_model=list[SaleOut])
def get_sales(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    user_id: str | None = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[Sale]:
    return list_sales(
        db,
        caller_id=current_user.id,
        caller_role=current_user.role,
        filters=_build_filter(start_date, end_date, user_id),
    )


@router.get("/filters", response_model=list[SaleOut])
def get_sales_with_filters(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    user_id: str | None = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(*settings.SALES_FILTER_ROLES)),
) -> list[Sale]:
    return list_sales(
        db,
        caller_id=current_user.id,
        caller_role=current_user.role,
        filters=_build_filter(start_date, end_date, user_id),
    )


@router.get("/{sale_id}", response_model=SaleOut)
def get_sale(
    sale_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Sale:
    try:
        return get_visible_sale(
            db, sale_id=sale_id, caller_id=current_user.id, caller_role=current_user.role
        )
    except SaleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ─── Creation ─────────────────────────────────────────────────────────────────


@router.post(
    "",
    response_model=SaleCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {
            "model": StockErrorResponse,
            "description": "Stock update failed (strict policy) or products could not be priced",
        }
    },
)
async def post_sale(
    payload: SaleCreateRequest,
    db: Session = Depends(get_db),
    inventory: InventoryClient = Depends(get_inventory_client),
    current_user: CurrentUser = Depends(get_current_user),
) -> SaleCreateResponse | JSONResponse:
    try:
        result = await create_sale(
            db,
            inventory,
            caller_id=current_user.id,
            items=payload.products,
            authorization=current_user.authorization,
            notes=payload.notes,
            client_name=payload.client,
        )
    except SaleValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "field": e.field},
        )
    except PricingUnavailableError as e:
        body = PricingErrorResponse(
            detail=str(e),
            pricing_errors=[PricingErrorOut(**f) for f in e.failures],
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content=jsonable_encoder(body)
        )

    sale_out = SaleOut.model_validate(result.sale)
    if result.sale.status == SaleStatus.FAILED:
        body = StockErrorResponse(
            detail="Stock could not be updated for some products",
            sale=sale_out,
            stock_errors=[StockUpdateOut.model_validate(o) for o in result.stock_errors],
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content=jsonable_encoder(body)
        )

    return SaleCreateResponse(
        sale=sale_out,
        stock_updates=[StockUpdateOut.model_validate(o) for o in result.stock_updates],
        warnings=[WarningOut.model_validate(w) for w in result.warnings] or None,
    )


@router.post("/{sale_id}/cancel", response_model=SaleOut)
def post_cancel_sale(
    sale_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Sale:
    try:
        return cancel_sale(
            db, sale_id=sale_id, caller_id=current_user.id, caller_role=current_user.role
        )
    except SaleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
