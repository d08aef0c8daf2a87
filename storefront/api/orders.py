# storefront/api/orders.py
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from .dependencies import get_current_user, get_order_service, require_admin
from .schemas import OrderStatusRequest, PaymentStatusRequest, PlaceOrderRequest
from ..models.order import OrderFilter, OrderMeta, OrderStatus
from ..services.order_service import OrderService
from ..utils.security import TokenClaims

router = APIRouter(prefix="/orders", tags=["orders"])

def _page(orders, total, page, limit):
    return {"success": True, "data": {"orders": orders, "total": total, "page": page, "limit": limit}}

@router.post("", status_code=201)
async def place_order(body: PlaceOrderRequest, user: TokenClaims = Depends(get_current_user),
                      orders: OrderService = Depends(get_order_service)):
    """Place an order for the signed-in user"""
    order = await orders.place_order(
        user_id=user.user_id,
        items=[line.model_dump() for line in body.items],
        shipping_address=body.shipping_address,
        payment_method=body.payment_method,
        shipping_fee=body.shipping_fee,
        discount=body.discount,
        meta=OrderMeta(notes=body.notes, coupon=body.coupon)
    )
    return {"success": True, "data": order}

@router.get("", dependencies=[Depends(require_admin)])
async def search_orders(status: Optional[OrderStatus] = None,
                        user_id: Optional[int] = None,
                        date_from: Optional[datetime] = None,
                        date_to: Optional[datetime] = None,
                        page: int = Query(1, ge=1),
                        limit: int = Query(20, ge=1, le=100),
                        orders: OrderService = Depends(get_order_service)):
    order_filter = OrderFilter(status=status, user_id=user_id, date_from=date_from, date_to=date_to)
    items, total = await orders.search_orders(order_filter, page=page, limit=limit)
    return _page(items, total, page, limit)

@router.get("/my")
async def my_orders(page: int = Query(1, ge=1),
                    limit: int = Query(20, ge=1, le=100),
                    user: TokenClaims = Depends(get_current_user),
                    orders: OrderService = Depends(get_order_service)):
    items, total = await orders.list_user_orders(user.user_id, page=page, limit=limit)
    return _page(items, total, page, limit)

@router.post("/restocks/retry", dependencies=[Depends(require_admin)])
async def retry_restocks(orders: OrderService = Depends(get_order_service)):
    """Re-apply stock restorations left pending by cancellations"""
    applied = await orders.process_pending_restocks()
    return {"success": True, "data": {"applied": applied}}

@router.get("/{order_id}")
async def get_order(order_id: int, user: TokenClaims = Depends(get_current_user),
                    orders: OrderService = Depends(get_order_service)):
    order = await orders.get_order(order_id, user.user_id, requester_is_admin=user.is_admin)
    return {"success": True, "data": order}

@router.patch("/{order_id}/cancel")
async def cancel_order(order_id: int, user: TokenClaims = Depends(get_current_user),
                       orders: OrderService = Depends(get_order_service)):
    order = await orders.cancel_order(order_id, user.user_id, requester_is_admin=user.is_admin)
    return {"success": True, "data": order}

@router.patch("/{order_id}/status")
async def update_status(order_id: int, body: OrderStatusRequest,
                        user: TokenClaims = Depends(get_current_user),
                        orders: OrderService = Depends(get_order_service)):
    order = await orders.update_order_status(
        order_id, body.status, requester_id=user.user_id, requester_is_admin=user.is_admin
    )
    return {"success": True, "data": order}

@router.patch("/{order_id}/payment")
async def update_payment(order_id: int, body: PaymentStatusRequest,
                         user: TokenClaims = Depends(get_current_user),
                         orders: OrderService = Depends(get_order_service)):
    order = await orders.update_payment_status(order_id, body.payment_status, requester_is_admin=user.is_admin)
    return {"success": True, "data": order}
