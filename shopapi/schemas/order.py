from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shopapi.models.order import OrderStatus, PaymentStatus


class OrderItemCreate(BaseModel):
    product_id: int = Field(..., gt=0, description="상품 ID")
    quantity: int = Field(..., ge=1, description="수량")


class CreateOrderRequest(BaseModel):
    """주문 생성 요청"""

    recipient_name: str = Field(..., min_length=1, max_length=100, description="수령인 이름")
    recipient_phone: str = Field(..., min_length=1, max_length=30, description="수령인 연락처")
    address: str = Field(..., min_length=1, max_length=255, description="배송지 주소")
    items: List[OrderItemCreate] = Field(..., min_length=1, description="주문할 상품 목록")
    use_point: int = Field(0, ge=0, description="사용할 포인트 (0 이상)")


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    price: int


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    price: int
    status: PaymentStatus
    created_at: Optional[datetime] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    store_id: int
    recipient_name: str
    recipient_phone: str
    address: str
    subtotal: int
    total_quantity: int
    use_point: int
    total_price: int
    status: OrderStatus
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = Field(default_factory=list)
    payment: Optional[PaymentResponse] = None


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class OrderListResponse(BaseModel):
    data: List[OrderResponse]
    meta: PaginationMeta


class OrderActionResponse(BaseModel):
    order_id: int
    status: OrderStatus
    message: str


class UpdateOrderRequest(BaseModel):
    """주문 배송 정보 수정 요청 (상품/사용 포인트는 수정 불가)"""

    model_config = ConfigDict(extra="forbid")

    recipient_name: Optional[str] = Field(None, min_length=1, max_length=100)
    recipient_phone: Optional[str] = Field(None, min_length=1, max_length=30)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
