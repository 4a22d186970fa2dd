import logging
import math
from typing import Optional

from sqlalchemy.orm import Session

from shopapi.core.exceptions import (
    BaseAPIException,
    ForbiddenOrderAccessError,
    InsufficientPointsError,
    InvalidOrderStateError,
    InvalidProductError,
    OrderNotFoundError,
    SettlementFailureError,
    UserNotFoundError,
    ValidationError,
)
from shopapi.database.session import transaction
from shopapi.models.order import OrderStatus, PaymentStatus
from shopapi.repositories.order_repository import OrderRepository
from shopapi.schemas.order import (
    CreateOrderRequest,
    OrderActionResponse,
    OrderListResponse,
    OrderResponse,
    PaginationMeta,
    UpdateOrderRequest,
)
from shopapi.services.point_service import PointService

logger = logging.getLogger(__name__)


class OrderService:
    """주문 생성/취소/결제 확정 - 상태 전이마다 포인트 정산을 같은 트랜잭션에서 실행"""

    def __init__(self, db: Session, point_service: PointService):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.point_service = point_service

    def create_order(self, user_id: int, request: CreateOrderRequest) -> OrderResponse:
        """주문 생성

        검증(사용자, 보유 포인트, 상품, 단일 스토어)은 쓰기 전에 수행하고
        주문/주문상품/결제/포인트 사용은 하나의 트랜잭션으로 처리합니다.

        Raises:
            UserNotFoundError, InsufficientPointsError, InvalidProductError,
            SettlementFailureError
        """
        user = self.order_repo.find_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        use_point = request.use_point
        if use_point > user.points:
            logger.warning(
                f"User {user_id} requested {use_point} points but holds {user.points}"
            )
            raise InsufficientPointsError(
                message="Requested points exceed the current balance",
                details={"use_point": use_point, "balance": user.points},
            )

        requested_ids = [item.product_id for item in request.items]
        products = {p.id: p for p in self.order_repo.find_products(requested_ids)}
        missing = [pid for pid in requested_ids if pid not in products]
        if missing:
            raise InvalidProductError(details={"missing_product_ids": missing})

        store_ids = {p.store_id for p in products.values()}
        if len(store_ids) > 1:
            raise InvalidProductError(
                message="Products from different stores cannot be ordered together",
                details={"store_ids": sorted(store_ids)},
            )
        store_id = store_ids.pop()

        priced_items = [
            (item.product_id, item.quantity, products[item.product_id].price)
            for item in request.items
        ]
        total_quantity = sum(quantity for _, quantity, _ in priced_items)
        total_price = sum(quantity * price for _, quantity, price in priced_items)

        try:
            with transaction(self.db) as tx:
                order = self.order_repo.create_order(
                    tx,
                    user_id=user_id,
                    store_id=store_id,
                    recipient_name=request.recipient_name,
                    recipient_phone=request.recipient_phone,
                    address=request.address,
                    subtotal=total_price,
                    total_quantity=total_quantity,
                    use_point=use_point,
                    total_price=total_price,
                )
                self.order_repo.create_items(tx, order.id, priced_items)
                self.order_repo.create_payment(tx, order.id, total_price)

                if use_point > 0:
                    self.point_service.spend_on_order_placement(
                        user_id, order.id, use_point, tx=tx
                    )
                order_id = order.id
        except BaseAPIException as e:
            logger.warning(f"Order creation rejected for user {user_id}: {e}")
            raise
        except Exception as e:
            logger.error(f"Order creation failed for user {user_id}: {e}", exc_info=True)
            raise SettlementFailureError("Order creation failed") from e

        logger.info(
            f"Created order {order_id} for user {user_id}: total={total_price}, use_point={use_point}"
        )
        return self.order_repo.get_order(order_id)

    def update_order(
        self, order_id: int, user_id: int, request: UpdateOrderRequest
    ) -> OrderResponse:
        """주문 배송 정보 수정 (PROCESSING 상태만)

        수령인/연락처/주소만 변경할 수 있고 전달되지 않은 항목은 유지합니다.
        상품과 사용 포인트는 수정 대상이 아닙니다.

        Raises:
            OrderNotFoundError, ForbiddenOrderAccessError, InvalidOrderStateError,
            ValidationError, SettlementFailureError
        """
        order = self._get_owned_order(order_id, user_id)
        if order.status != OrderStatus.PROCESSING:
            raise InvalidOrderStateError(
                message="Only PROCESSING orders can be updated",
                details={"order_id": order_id, "status": order.status.value},
            )

        fields = request.model_dump(exclude_none=True)
        if not fields:
            raise ValidationError("No updatable fields were provided")

        try:
            with transaction(self.db) as tx:
                if not self.order_repo.update_delivery_info(tx, order_id, **fields):
                    raise InvalidOrderStateError(
                        message="Order is no longer PROCESSING",
                        details={"order_id": order_id},
                    )
        except BaseAPIException as e:
            logger.warning(f"Order {order_id} update rejected: {e}")
            raise
        except Exception as e:
            logger.error(f"Order {order_id} update failed: {e}", exc_info=True)
            raise SettlementFailureError("Order update failed") from e

        logger.info(f"Updated order {order_id} delivery info: {sorted(fields)}")
        return self.order_repo.get_order(order_id)

    def cancel_order(self, order_id: int, user_id: int) -> OrderActionResponse:
        """주문 취소 (PROCESSING 에서만) - 상태 변경과 적립 회수는 함께 커밋되거나 함께 롤백

        Raises:
            OrderNotFoundError, ForbiddenOrderAccessError, InvalidOrderStateError,
            InsufficientPointsForRevertError, SettlementFailureError
        """
        order = self._get_owned_order(order_id, user_id)
        if order.status != OrderStatus.PROCESSING:
            raise InvalidOrderStateError(
                message="Only PROCESSING orders can be canceled",
                details={"order_id": order_id, "status": order.status.value},
            )

        try:
            with transaction(self.db) as tx:
                if not self.order_repo.update_status(
                    tx, order_id, OrderStatus.CANCELED, expected=OrderStatus.PROCESSING
                ):
                    # 검증 이후 다른 요청이 먼저 상태를 바꿈
                    raise InvalidOrderStateError(
                        message="Order is no longer PROCESSING",
                        details={"order_id": order_id},
                    )
                # 결제는 환불 처리하지만 사용 포인트(SPEND_ORDER)는 환급하지 않음 (운영 정책)
                self.order_repo.update_payment_status(tx, order_id, PaymentStatus.REFUNDED)
                self.point_service.revert_on_cancellation(order_id, tx=tx)
        except BaseAPIException as e:
            logger.warning(f"Order {order_id} cancellation rejected: {e}")
            raise
        except Exception as e:
            logger.error(f"Order {order_id} cancellation failed: {e}", exc_info=True)
            raise SettlementFailureError("Order cancellation failed") from e

        logger.info(f"Canceled order {order_id} and reverted earned points")
        return OrderActionResponse(
            order_id=order_id, status=OrderStatus.CANCELED, message="Order canceled"
        )

    def confirm_payment(self, order_id: int) -> OrderActionResponse:
        """결제 확정 (PROCESSING → COMPLETED_PAYMENT) 후 적립

        이미 COMPLETED_PAYMENT 인 주문에 대한 재호출은 적립만 멱등하게 재실행합니다.

        Raises:
            OrderNotFoundError, InvalidOrderStateError, SettlementFailureError
        """
        order = self.order_repo.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.status == OrderStatus.CANCELED:
            raise InvalidOrderStateError(
                message="Canceled orders cannot be paid",
                details={"order_id": order_id, "status": order.status.value},
            )

        try:
            with transaction(self.db) as tx:
                if order.status == OrderStatus.PROCESSING:
                    if not self.order_repo.update_status(
                        tx,
                        order_id,
                        OrderStatus.COMPLETED_PAYMENT,
                        expected=OrderStatus.PROCESSING,
                    ):
                        raise InvalidOrderStateError(
                            message="Order is no longer PROCESSING",
                            details={"order_id": order_id},
                        )
                    self.order_repo.update_payment_status(
                        tx, order_id, PaymentStatus.COMPLETED
                    )
                self.point_service.accrue_on_payment(order_id, tx=tx)
        except BaseAPIException as e:
            logger.warning(f"Payment confirmation for order {order_id} rejected: {e}")
            raise
        except Exception as e:
            logger.error(f"Payment confirmation for order {order_id} failed: {e}", exc_info=True)
            raise SettlementFailureError("Payment confirmation failed") from e

        logger.info(f"Payment confirmed for order {order_id}")
        return OrderActionResponse(
            order_id=order_id,
            status=OrderStatus.COMPLETED_PAYMENT,
            message="Payment confirmed",
        )

    def get_order_detail(self, order_id: int, user_id: int) -> OrderResponse:
        return self._get_owned_order(order_id, user_id)

    def get_orders(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None,
    ) -> OrderListResponse:
        if self.order_repo.find_user(user_id) is None:
            raise UserNotFoundError(user_id)

        orders, total = self.order_repo.find_orders_by_user(user_id, page, limit, status)
        return OrderListResponse(
            data=orders,
            meta=PaginationMeta(
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit) if limit else 0,
            ),
        )

    def _get_owned_order(self, order_id: int, user_id: int) -> OrderResponse:
        order = self.order_repo.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.user_id != user_id:
            logger.warning(f"User {user_id} tried to access order {order_id}")
            raise ForbiddenOrderAccessError(details={"order_id": order_id})
        return order
