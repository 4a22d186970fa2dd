from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from shopapi.core.security import admin_required, get_current_user
from shopapi.deps import get_order_service
from shopapi.models.order import OrderStatus
from shopapi.schemas.order import (
    CreateOrderRequest,
    OrderActionResponse,
    OrderListResponse,
    OrderResponse,
    UpdateOrderRequest,
)
from shopapi.schemas.user import User as UserSchema
from shopapi.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    request: CreateOrderRequest,
    current_user: UserSchema = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """주문 생성 (use_point > 0 이면 포인트 차감 포함)"""
    return order_service.create_order(current_user.id, request)


@router.get("", response_model=OrderListResponse)
def get_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = Query(None),
    current_user: UserSchema = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    return order_service.get_orders(current_user.id, page=page, limit=limit, status=status)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return order_service.get_order_detail(order_id, current_user.id)


@router.patch("/{order_id}", response_model=OrderResponse)
def update_order(
    request: UpdateOrderRequest,
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """주문 배송 정보 수정 (PROCESSING 상태만)"""
    return order_service.update_order(order_id, current_user.id, request)


@router.patch("/{order_id}/cancel",response_model=OrderActionResponse)
def cancel_order(
    order_id: int = Path(..., gt=0),
    current_user: UserSchema = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
) -> OrderActionResponse:
    """주문 취소 (PROCESSING 상태만) - 적립 포인트 회수 포함"""
    return order_service.cancel_order(order_id, current_user.id)


@router.post("/{order_id}/payment-confirmation", response_model=OrderActionResponse)
def confirm_payment(
    order_id: int = Path(..., gt=0),
    admin: UserSchema = Depends(admin_required),
    order_service: OrderService = Depends(get_order_service),
) -> OrderActionResponse:
    """결제 확정 (결제 연동/관리자 전용) - 포인트 적립 트리거"""
    return order_service.confirm_payment(order_id)
