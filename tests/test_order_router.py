import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock

from shopapi.core.exceptions import (
    ForbiddenOrderAccessError,
    InsufficientPointsForRevertError,
    InvalidOrderStateError,
    InvalidProductError,
)
from shopapi.core.security import admin_required, get_current_user
from shopapi.deps import get_order_service
from shopapi.main import create_app
from shopapi.models.order import OrderStatus, PaymentStatus
from shopapi.schemas.order import (
    OrderActionResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    PaginationMeta,
    PaymentResponse,
    UpdateOrderRequest,
)
from shopapi.schemas.user import User as UserSchema


@pytest.fixture
def mock_user():
    return UserSchema(id=1, email="test@example.com", nickname="tester", grade_level="GREEN")


@pytest.fixture
def mock_order_service():
    return Mock()


@pytest.fixture
def client(mock_user, mock_order_service):
    app = create_app()
    app.dependency_overrides[get_current_user] = lambda: mock_user
    app.dependency_overrides[admin_required] = lambda: mock_user
    app.dependency_overrides[get_order_service] = lambda: mock_order_service
    return TestClient(app)


@pytest.fixture
def sample_order():
    return OrderResponse(
        id=10,
        user_id=1,
        store_id=3,
        recipient_name="Kim",
        recipient_phone="010-1234-5678",
        address="Seoul",
        subtotal=70_000,
        total_quantity=3,
        use_point=500,
        total_price=70_000,
        status=OrderStatus.PROCESSING,
        items=[OrderItemResponse(id=1, product_id=5, quantity=3, price=70_000 // 3)],
        payment=PaymentResponse(id=1, price=70_000, status=PaymentStatus.PENDING),
    )


ORDER_BODY = {
    "recipient_name": "Kim",
    "recipient_phone": "010-1234-5678",
    "address": "Seoul",
    "items": [{"product_id": 5, "quantity": 3}],
    "use_point": 500,
}


class TestOrderRoutes:
    """주문 라우터 테스트"""

    def test_create_order(self, client, mock_order_service, sample_order):
        # Given
        mock_order_service.create_order.return_value = sample_order

        # When
        response = client.post("/api/v1/orders", json=ORDER_BODY)

        # Then
        assert response.status_code == 201
        data = response.json()
        assert data["id"] == 10
        assert data["status"] == "PROCESSING"
        assert data["payment"]["status"] == "PENDING"
        user_id, request = mock_order_service.create_order.call_args.args
        assert user_id == 1
        assert request.use_point == 500

    def test_create_order_negative_points(self, client, mock_order_service):
        body = dict(ORDER_BODY, use_point=-1)

        response = client.post("/api/v1/orders", json=body)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_001"
        mock_order_service.create_order.assert_not_called()

    def test_create_order_empty_items(self, client):
        body = dict(ORDER_BODY, items=[])

        response = client.post("/api/v1/orders", json=body)

        assert response.status_code == 422

    def test_create_order_invalid_product(self, client, mock_order_service):
        # Given
        mock_order_service.create_order.side_effect = InvalidProductError()

        # When
        response = client.post("/api/v1/orders", json=ORDER_BODY)

        # Then
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PRODUCT"

    def test_get_orders(self, client, mock_order_service, sample_order):
        # Given
        mock_order_service.get_orders.return_value = OrderListResponse(
            data=[sample_order],
            meta=PaginationMeta(total=1, page=1, limit=10, total_pages=1),
        )

        # When
        response = client.get("/api/v1/orders?status=PROCESSING")

        # Then
        assert response.status_code == 200
        assert response.json()["meta"]["total"] == 1
        mock_order_service.get_orders.assert_called_once_with(
            1, page=1, limit=10, status=OrderStatus.PROCESSING
        )

    def test_get_order_detail_forbidden(self, client, mock_order_service):
        # Given
        mock_order_service.get_order_detail.side_effect = ForbiddenOrderAccessError()

        # When
        response = client.get("/api/v1/orders/10")

        # Then
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ORDER_FORBIDDEN"

    def test_cancel_order(self, client, mock_order_service):
        # Given
        mock_order_service.cancel_order.return_value = OrderActionResponse(
            order_id=10, status=OrderStatus.CANCELED, message="Order canceled"
        )

        # When
        response = client.patch("/api/v1/orders/10/cancel")

        # Then
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELED"
        mock_order_service.cancel_order.assert_called_once_with(10, 1)

    def test_cancel_order_invalid_state(self, client, mock_order_service):
        mock_order_service.cancel_order.side_effect = InvalidOrderStateError()

        response = client.patch("/api/v1/orders/10/cancel")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_ORDER_STATE"

    def test_cancel_order_revert_conflict(self, client, mock_order_service):
        mock_order_service.cancel_order.side_effect = InsufficientPointsForRevertError()

        response = client.patch("/api/v1/orders/10/cancel")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INSUFFICIENT_POINTS_FOR_REVERT"

    def test_confirm_payment(self, client, mock_order_service):
        # Given
        mock_order_service.confirm_payment.return_value = OrderActionResponse(
            order_id=10, status=OrderStatus.COMPLETED_PAYMENT, message="Payment confirmed"
        )

        # When
        response = client.post("/api/v1/orders/10/payment-confirmation")

        # Then
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED_PAYMENT"
        mock_order_service.confirm_payment.assert_called_once_with(10)

    def test_update_order(self, client, mock_order_service, sample_order):
        # Given
        mock_order_service.update_order.return_value = sample_order.model_copy(
            update={"recipient_name": "Lee", "address": "Busan"}
        )

        # When
        response = client.patch(
            "/api/v1/orders/10", json={"recipient_name": "Lee", "address": "Busan"}
        )

        # Then
        assert response.status_code == 200
        data = response.json()
        assert data["recipient_name"] == "Lee"
        assert data["address"] == "Busan"
        assert data["use_point"] == 500
        mock_order_service.update_order.assert_called_once_with(
            10, 1, UpdateOrderRequest(recipient_name="Lee", address="Busan")
        )

    def test_update_order_rejects_use_point(self, client, mock_order_service):
        response = client.patch("/api/v1/orders/10", json={"use_point": 0})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_001"
        mock_order_service.update_order.assert_not_called()

    def test_update_order_invalid_state(self, client, mock_order_service):
        mock_order_service.update_order.side_effect = InvalidOrderStateError()

        response = client.patch("/api/v1/orders/10", json={"address": "Busan"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_ORDER_STATE"
