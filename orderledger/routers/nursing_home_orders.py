"""
Nursing home weekly order endpoints
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging
import math

from orderledger.auth.auth_handler import Actor, nursing_home_orders_required
from orderledger.database import get_db
from orderledger.limiter import limiter
from orderledger.models.nursing_home import OrderStatus
from orderledger.schemas.nursing_home_order import OrderCreate, OrderUpdate, OrderResponse, OrderListResponse
from orderledger.services.nursing_home_orders import NursingHomeOrderService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_order_service(db: Session = Depends(get_db)) -> NursingHomeOrderService:
    return NursingHomeOrderService(db)


@router.post("/orders", response_model=OrderResponse, status_code=201)
@limiter.limit("10/minute")
async def create_order(
    request: Request,
    order: OrderCreate,
    actor: Actor = Depends(nursing_home_orders_required),
    service: NursingHomeOrderService = Depends(get_order_service)
):
    """Create a draft weekly order"""
    return service.create(
        facility_id=order.facility_id,
        week_start_date=order.week_start_date,
        week_end_date=order.week_end_date,
        resident_meals=order.resident_meals,
        delivery_address=order.delivery_address,
        actor=actor
    )


@router.get("/orders", response_model=OrderListResponse)
@limiter.limit("30/minute")
async def get_orders(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    facility_id: Optional[str] = Query(None, description="Filter by facility (platform admins only)"),
    week_start_date: Optional[date] = Query(None, description="Filter by service week"),
    actor: Actor = Depends(nursing_home_orders_required),
    service: NursingHomeOrderService = Depends(get_order_service)
):
    """Get paginated list of the orders visible to the caller"""
    orders, total = service.list_orders(
        actor,
        status=status.value if status else None,
        facility_id=facility_id,
        week_start_date=week_start_date,
        page=page,
        page_size=page_size
    )
    return OrderListResponse(
        orders=orders,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size)
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
@limiter.limit("30/minute")
async def get_order(
    request: Request,
    order_id: str,
    actor: Actor = Depends(nursing_home_orders_required),
    service: NursingHomeOrderService = Depends(get_order_service)
):
    """Get a specific order by ID"""
    return service.get(order_id, actor)


@router.put("/orders/{order_id}", response_model=OrderResponse)
@limiter.limit("10/minute")
async def update_order(
    request: Request,
    order_id: str,
    order_update: OrderUpdate,
    actor: Actor = Depends(nursing_home_orders_required),
    service: NursingHomeOrderService = Depends(get_order_service)
):
    """Edit resident meals or the delivery address"""
    return service.update(order_id, order_update, actor)


@router.post("/orders/{order_id}/submit", response_model=OrderResponse)
@limiter.limit("10/minute")
async def submit_order(
    request: Request,
    order_id: str,
    actor: Actor = Depends(nursing_home_orders_required),
    service: NursingHomeOrderService = Depends(get_order_service)
):
    """Submit a draft order before the Sunday noon deadline"""
    return service.submit(order_id, actor)


@router.delete("/orders/{order_id}")
@limiter.limit("10/minute")
async def cancel_order(
    request: Request,
    order_id: str,
    actor: Actor = Depends(nursing_home_orders_required),
    service: NursingHomeOrderService = Depends(get_order_service)
):
    """Cancel an order (administrators only)"""
    service.cancel(order_id, actor)
    return {"message": "Order cancelled successfully"}
