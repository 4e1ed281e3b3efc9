import math
from typing import Annotated, Optional
from fastapi import APIRouter, Query, Request
from starlette import status
from models.enums import OrderStatus
from schemas.order_schemas import CreateOrderRequest, UpdateOrderStatusRequest, serialize_order
from services.order_service import OrderService
from middleware.rate_limiter import limiter
from utils.deps import db_dependency, user_dependency, admin_dependency
from utils.logger import get_logger
from utils.responses import success_response

logger = get_logger(__name__)


router = APIRouter(
    prefix="/orders",
    tags=["orders"]
)


@router.get("", status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
async def list_orders(request: Request, user: user_dependency, db: db_dependency,
                      page: Annotated[int, Query(ge=1)] = 1,
                      limit: Annotated[int, Query(ge=1, le=100)] = 10,
                      order_status: Annotated[Optional[OrderStatus], Query(alias="status")] = None):
    """
    Order history of the current user, newest first.
    """
    orders, total = OrderService.list_orders(db, user.get("user_id"), page, limit, order_status)

    return success_response(data={
        "orders": [serialize_order(order) for order in orders],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit)
        }
    })


@router.get("/{order_id}", status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
async def get_order(request: Request, order_id: int, user: user_dependency, db: db_dependency):
    order = OrderService.get_order(db, order_id, user.get("user_id"))
    return success_response(data={"order": serialize_order(order)})


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_order(request: Request, body: CreateOrderRequest, user: user_dependency, db: db_dependency):
    """
    Creates a Pending order from the cart.

    Prices come from the catalog at this moment and are frozen on the order;
    totals are computed server-side.
    """
    order = OrderService.create_order(body, user.get("user_id"), db)
    return success_response(data={"order": serialize_order(order)}, message="Order created successfully")


@router.patch("/{order_id}/status", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
async def update_order_status(request: Request, order_id: int, body: UpdateOrderStatusRequest,
                              admin: admin_dependency, db: db_dependency):
    order = OrderService.update_status(db, order_id, body.status)

    logger.info(
        "Order status changed by admin",
        extra={"admin_id": admin.get("user_id"), "order_id": order.id, "status": order.status.value}
    )

    return success_response(data={"order": serialize_order(order)}, message="Order status updated")
