# storefront/api/coupons.py
from typing import Literal, Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from .dependencies import get_coupon_service, get_current_user, get_optional_user, require_admin
from .schemas import ApplyCouponRequest, CouponCartRequest, CouponUpdateRequest
from ..models.coupon import CouponDraft
from ..services.coupon_service import CouponService
from ..utils.security import TokenClaims

router = APIRouter(prefix="/coupons", tags=["coupons"])

@router.post("/preview")
async def preview_coupon(body: CouponCartRequest,
                         user: Optional[TokenClaims] = Depends(get_optional_user),
                         coupons: CouponService = Depends(get_coupon_service)):
    """Check a coupon against a cart without using it up"""
    evaluation = await coupons.evaluate(body.code, body.cart_items, user.user_id if user else None)
    return {"success": True, "data": evaluation}

@router.post("/apply")
async def apply_coupon(body: ApplyCouponRequest,
                       user: TokenClaims = Depends(get_current_user),
                       coupons: CouponService = Depends(get_coupon_service)):
    evaluation = await coupons.apply_coupon(body.code, body.cart_items, user.user_id, order_id=body.order_id)
    if not evaluation.valid:
        return JSONResponse(
            status_code=400,
            content={"success": False, "code": evaluation.reason.value, "message": "Coupon cannot be applied"}
        )
    return {"success": True, "data": evaluation}

@router.post("", status_code=201)
async def create_coupon(body: CouponDraft, admin: TokenClaims = Depends(require_admin),
                        coupons: CouponService = Depends(get_coupon_service)):
    draft = body.model_copy(update={"created_by": admin.user_id})
    return {"success": True, "data": await coupons.create_coupon(draft)}

@router.get("", dependencies=[Depends(require_admin)])
async def list_coupons(code: Optional[str] = None,
                       status: Optional[Literal["active", "inactive"]] = None,
                       coupons: CouponService = Depends(get_coupon_service)):
    return {"success": True, "data": await coupons.list_coupons(code=code, status=status)}

@router.get("/reports", dependencies=[Depends(require_admin)])
async def usage_report(coupons: CouponService = Depends(get_coupon_service)):
    """Times used and total discount per coupon"""
    return {"success": True, "data": await coupons.usage_report()}

@router.patch("/{coupon_id}", dependencies=[Depends(require_admin)])
async def update_coupon(coupon_id: int, body: CouponUpdateRequest,
                        coupons: CouponService = Depends(get_coupon_service)):
    coupon = await coupons.update_coupon(coupon_id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": coupon}

@router.patch("/{coupon_id}/toggle", dependencies=[Depends(require_admin)])
async def toggle_coupon(coupon_id: int, coupons: CouponService = Depends(get_coupon_service)):
    return {"success": True, "data": await coupons.toggle_coupon(coupon_id)}

@router.delete("/{coupon_id}", dependencies=[Depends(require_admin)])
async def delete_coupon(coupon_id: int, coupons: CouponService = Depends(get_coupon_service)):
    await coupons.delete_coupon(coupon_id)
    return {"success": True, "message": "Coupon deleted"}
