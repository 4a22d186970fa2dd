from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select

from shopapi.core.exceptions import (
    ForbiddenOrderAccessError,
    InsufficientPointsError,
    InvalidOrderStateError,
    InvalidProductError,
    OrderNotFoundError,
    SettlementFailureError,
    UserNotFoundError,
    ValidationError,
)
from shopapi.models import (
    Order,
    OrderStatus,
    PaymentStatus,
    PointReason,
    PointTransaction,
    Product,
    Store,
    User,
)
from shopapi.schemas.order import CreateOrderRequest, OrderItemCreate, UpdateOrderRequest


def order_request(products, use_point: int = 0) -> CreateOrderRequest:
    return CreateOrderRequest(
        recipient_name="Kim",
        recipient_phone="010-1234-5678",
        address="Seoul, Gangnam-gu",
        items=[
            OrderItemCreate(product_id=products[0].id, quantity=2),
            OrderItemCreate(product_id=products[1].id, quantity=1),
        ],
        use_point=use_point,
    )


def order_count(db) -> int:
    return db.execute(select(func.count(Order.id))).scalar_one()


def ledger_rows(db, user_id):
    return list(
        db.execute(
            select(PointTransaction).where(PointTransaction.user_id == user_id)
        ).scalars()
    )


class TestCreateOrder:
    """주문 생성 테스트"""

    def test_create_order_without_points(self, db, order_service, products, make_user):
        user = make_user(points=0)

        order = order_service.create_order(user.id, order_request(products))

        assert order.user_id == user.id
        assert order.store_id == products[0].store_id
        assert order.total_quantity == 3
        assert order.subtotal == 70_000
        assert order.total_price == 70_000
        assert order.status == OrderStatus.PROCESSING
        assert [(i.product_id, i.quantity, i.price) for i in order.items] == [
            (products[0].id, 2, 10_000),
            (products[1].id, 1, 50_000),
        ]
        assert order.payment.status == PaymentStatus.PENDING
        assert ledger_rows(db, user.id) == []

    def test_create_order_spends_points(self, db, order_service, products, make_user):
        user = make_user(points=1_000)

        order = order_service.create_order(user.id, order_request(products, use_point=400))

        assert order.use_point == 400
        assert db.get(User, user.id).points == 600
        rows = ledger_rows(db, user.id)
        assert [(r.order_id, r.delta, r.reason) for r in rows] == [
            (order.id, -400, PointReason.SPEND_ORDER.value)
        ]

    def test_unknown_user(self, db, order_service, products):
        with pytest.raises(UserNotFoundError):
            order_service.create_order(9_999, order_request(products))

        assert order_count(db) == 0

    def test_use_point_exceeds_balance(self, db, order_service, products, make_user):
        user = make_user(points=100)

        with pytest.raises(InsufficientPointsError):
            order_service.create_order(user.id, order_request(products, use_point=101))

        assert order_count(db) == 0

    def test_unknown_product(self, db, order_service, products, make_user):
        user = make_user(points=0)
        request = CreateOrderRequest(
            recipient_name="Kim",
            recipient_phone="010-1234-5678",
            address="Seoul",
            items=[OrderItemCreate(product_id=9_999, quantity=1)],
        )

        with pytest.raises(InvalidProductError):
            order_service.create_order(user.id, request)

        assert order_count(db) == 0

    def test_products_from_several_stores(self, db, order_service, products, make_user):
        other_store = Store(name="Other Store")
        db.add(other_store)
        db.flush()
        other_product = Product(store_id=other_store.id, name="Hat", price=5_000)
        db.add(other_product)
        db.commit()
        user = make_user(points=0)

        with pytest.raises(InvalidProductError):
            order_service.create_order(user.id, order_request([products[0], other_product]))

        assert order_count(db) == 0

    def test_spend_failure_rolls_back_order(self, db, order_service, products, make_user):
        user = make_user(points=1_000)

        with patch.object(
            order_service.point_service,
            "spend_on_order_placement",
            side_effect=InsufficientPointsError(),
        ):
            with pytest.raises(InsufficientPointsError):
                order_service.create_order(user.id, order_request(products, use_point=500))

        assert order_count(db) == 0
        assert db.get(User, user.id).points == 1_000

    def test_unexpected_failure_becomes_settlement_failure(
        self, db, order_service, products, make_user
    ):
        user = make_user(points=1_000)

        with patch.object(
            order_service.point_service,
            "spend_on_order_placement",
            side_effect=RuntimeError("connection reset"),
        ):
            with pytest.raises(SettlementFailureError):
                order_service.create_order(user.id, order_request(products, use_point=500))

        assert order_count(db) == 0


class TestUpdateOrder:
    """주문 배송 정보 수정 테스트"""

    def test_update_delivery_info(self, db, order_service, products, make_user):
        user = make_user(points=1_000)
        order = order_service.create_order(user.id, order_request(products, use_point=300))

        updated = order_service.update_order(
            order.id,
            user.id,
            UpdateOrderRequest(recipient_name="Lee", address="Busan, Haeundae-gu"),
        )

        assert updated.recipient_name == "Lee"
        assert updated.address == "Busan, Haeundae-gu"
        assert updated.recipient_phone == "010-1234-5678"
        assert updated.use_point == 300
        assert updated.total_price == 70_000
        assert updated.status == OrderStatus.PROCESSING
        assert db.get(User, user.id).points == 700

    def test_use_point_is_not_updatable(self):
        with pytest.raises(PydanticValidationError):
            UpdateOrderRequest(address="Busan", use_point=0)

    def test_update_without_fields(self, order_service, products, make_user):
        user = make_user(points=0)
        order = order_service.create_order(user.id, order_request(products))

        with pytest.raises(ValidationError):
            order_service.update_order(order.id, user.id, UpdateOrderRequest())

    def test_update_missing_order(self, order_service, make_user):
        user = make_user(points=0)

        with pytest.raises(OrderNotFoundError):
            order_service.update_order(9_999, user.id, UpdateOrderRequest(address="Busan"))

    def test_update_by_other_user(self, order_service, products, make_user):
        owner = make_user(points=0)
        stranger = make_user(points=0)
        order = order_service.create_order(owner.id, order_request(products))

        with pytest.raises(ForbiddenOrderAccessError):
            order_service.update_order(
                order.id, stranger.id, UpdateOrderRequest(address="Busan")
            )

        assert order_service.get_order_detail(order.id, owner.id).address == "Seoul, Gangnam-gu"

    def test_update_canceled_order_rejected(self, order_service, products, make_user):
        user = make_user(points=0)
        order = order_service.create_order(user.id, order_request(products))
        order_service.cancel_order(order.id, user.id)

        with pytest.raises(InvalidOrderStateError):
            order_service.update_order(order.id, user.id, UpdateOrderRequest(address="Busan"))

    def test_update_loses_race_with_payment(self, order_service, products, make_user):
        user = make_user(points=0)
        order = order_service.create_order(user.id, order_request(products))

        # 조회 시점에는 PROCESSING 이지만 쓰기 직전에 결제가 확정된 경우
        with patch.object(
            order_service.order_repo, "update_delivery_info", return_value=False
        ):
            with pytest.raises(InvalidOrderStateError):
                order_service.update_order(
                    order.id, user.id, UpdateOrderRequest(address="Busan")
                )


class TestCancelOrder:
    """주문 취소 테스트"""

    def test_spend_then_cancel_keeps_spend(self, db, order_service, products, make_user):
        user = make_user(points=1_000)
        order = order_service.create_order(user.id, order_request(products, use_point=500))

        result = order_service.cancel_order(order.id, user.id)

        assert result.status == OrderStatus.CANCELED
        assert db.get(User, user.id).points == 500
        rows = ledger_rows(db, user.id)
        assert [(r.reason, r.delta) for r in rows] == [(PointReason.SPEND_ORDER.value, -500)]

        detail = order_service.get_order_detail(order.id, user.id)
        assert detail.status == OrderStatus.CANCELED
        assert detail.payment.status == PaymentStatus.REFUNDED

    def test_cancel_by_other_user(self, order_service, products, make_user):
        owner = make_user(points=0)
        stranger = make_user(points=0)
        order = order_service.create_order(owner.id, order_request(products))

        with pytest.raises(ForbiddenOrderAccessError):
            order_service.cancel_order(order.id, stranger.id)

    def test_cancel_missing_order(self, order_service, make_user):
        user = make_user(points=0)

        with pytest.raises(OrderNotFoundError):
            order_service.cancel_order(9_999, user.id)

    def test_cancel_twice(self, order_service, products, make_user):
        user = make_user(points=0)
        order = order_service.create_order(user.id, order_request(products))
        order_service.cancel_order(order.id, user.id)

        with pytest.raises(InvalidOrderStateError):
            order_service.cancel_order(order.id, user.id)

    def test_cancel_paid_order_rejected(self, order_service, products, make_user):
        user = make_user(points=0)
        order = order_service.create_order(user.id, order_request(products))
        order_service.confirm_payment(order.id)

        with pytest.raises(InvalidOrderStateError):
            order_service.cancel_order(order.id, user.id)


class TestConfirmPayment:
    """결제 확정 테스트"""

    def test_confirm_payment_accrues_points(self, db, order_service, products, make_user):
        user = make_user(points=0)
        order = order_service.create_order(user.id, order_request(products))

        result = order_service.confirm_payment(order.id)

        assert result.status == OrderStatus.COMPLETED_PAYMENT
        assert db.get(User, user.id).points == 700
        detail = order_service.get_order_detail(order.id, user.id)
        assert detail.status == OrderStatus.COMPLETED_PAYMENT
        assert detail.payment.status == PaymentStatus.COMPLETED

    def test_confirm_payment_retry_is_idempotent(
        self, db, order_service, products, make_user
    ):
        user = make_user(points=0)
        order = order_service.create_order(user.id, order_request(products))

        order_service.confirm_payment(order.id)
        order_service.confirm_payment(order.id)

        assert db.get(User, user.id).points == 700
        assert len(ledger_rows(db, user.id)) == 1

    def test_confirm_canceled_order(self, order_service, products, make_user):
        user = make_user(points=0)
        order = order_service.create_order(user.id, order_request(products))
        order_service.cancel_order(order.id, user.id)

        with pytest.raises(InvalidOrderStateError):
            order_service.confirm_payment(order.id)

    def test_confirm_missing_order(self, order_service):
        with pytest.raises(OrderNotFoundError):
            order_service.confirm_payment(9_999)


class TestOrderQueries:
    def test_get_orders_paginates_newest_first(self, order_service, products, make_user):
        user = make_user(points=0)
        created = [
            order_service.create_order(user.id, order_request(products)) for _ in range(3)
        ]

        result = order_service.get_orders(user.id, page=1, limit=2)

        assert [o.id for o in result.data] == [created[2].id, created[1].id]
        assert result.meta.total == 3
        assert result.meta.total_pages == 2

    def test_get_orders_filters_by_status(self, order_service, products, make_user):
        user = make_user(points=0)
        first = order_service.create_order(user.id, order_request(products))
        order_service.create_order(user.id, order_request(products))
        order_service.cancel_order(first.id, user.id)

        result = order_service.get_orders(user.id, status=OrderStatus.CANCELED)

        assert [o.id for o in result.data] == [first.id]
        assert result.meta.total == 1

    def test_get_order_detail_forbidden(self, order_service, products, make_user):
        owner = make_user(points=0)
        stranger = make_user(points=0)
        order = order_service.create_order(owner.id, order_request(products))

        with pytest.raises(ForbiddenOrderAccessError):
            order_service.get_order_detail(order.id, stranger.id)
