from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.util import identity_key

from shopapi.models.order import Order, OrderItem, OrderStatus, Payment, PaymentStatus
from shopapi.models.product import Product
from shopapi.models.user import User
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.order import OrderResponse


class OrderRepository(BaseRepository[Order, OrderResponse]):
    """주문/주문상품/결제 레코드 접근"""

    def __init__(self, db: Session):
        super().__init__(Order, OrderResponse, db)

    def find_user(self, user_id: int, tx: Optional[Session] = None) -> Optional[User]:
        return self._session(tx).get(User, user_id)

    def find_products(
        self, product_ids: Iterable[int], tx: Optional[Session] = None
    ) -> List[Product]:
        ids = list(set(product_ids))
        if not ids:
            return []
        return list(
            self._session(tx).execute(select(Product).where(Product.id.in_(ids))).scalars()
        )

    def find_order_model(self, order_id: int, tx: Optional[Session] = None) -> Optional[Order]:
        return self._session(tx).execute(
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.payment))
            .where(Order.id == order_id)
        ).scalar_one_or_none()

    def get_order(self, order_id: int, tx: Optional[Session] = None) -> Optional[OrderResponse]:
        return self._to_schema(self.find_order_model(order_id, tx))

    def create_order(
        self,
        tx: Session,
        *,
        user_id: int,
        store_id: int,
        recipient_name: str,
        recipient_phone: str,
        address: str,
        subtotal: int,
        total_quantity: int,
        use_point: int,
        total_price: int,
    ) -> Order:
        order = Order(
            user_id=user_id,
            store_id=store_id,
            recipient_name=recipient_name,
            recipient_phone=recipient_phone,
            address=address,
            subtotal=subtotal,
            total_quantity=total_quantity,
            use_point=use_point,
            total_price=total_price,
            status=OrderStatus.PROCESSING.value,
        )
        tx.add(order)
        tx.flush()
        return order

    def create_items(
        self, tx: Session, order_id: int, items: Iterable[Tuple[int, int, int]]
    ) -> None:
        """items: (product_id, quantity, price)"""
        tx.add_all(
            [
                OrderItem(order_id=order_id, product_id=product_id, quantity=quantity, price=price)
                for product_id, quantity, price in items
            ]
        )
        tx.flush()

    def create_payment(self, tx: Session, order_id: int, price: int) -> Payment:
        payment = Payment(order_id=order_id, price=price, status=PaymentStatus.PENDING.value)
        tx.add(payment)
        tx.flush()
        return payment

    def update_status(
        self,
        tx: Session,
        order_id: int,
        status: OrderStatus,
        expected: Optional[OrderStatus] = None,
    ) -> bool:
        """주문 상태 변경 (expected 지정 시 현재 상태가 일치할 때만)"""
        stmt = update(Order).where(Order.id == order_id)
        if expected is not None:
            stmt = stmt.where(Order.status == expected.value)
        result = tx.execute(
            stmt.values(status=status.value).execution_options(synchronize_session=False)
        )
        cached = tx.identity_map.get(identity_key(Order, order_id))
        if cached is not None:
            tx.expire(cached, ["status"])
        return result.rowcount == 1

    def update_delivery_info(self, tx: Session, order_id: int, **fields: str) -> bool:
        """배송 정보 변경 (PROCESSING 주문만)"""
        result = tx.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PROCESSING.value)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        cached = tx.identity_map.get(identity_key(Order, order_id))
        if cached is not None:
            tx.expire(cached, list(fields))
        return result.rowcount == 1

    def update_payment_status(self, tx: Session, order_id: int, status: PaymentStatus) -> None:
        tx.execute(
            update(Payment)
            .where(Payment.order_id == order_id)
            .values(status=status.value)
            .execution_options(synchronize_session="evaluate")
        )

    def find_orders_by_user(
        self,
        user_id: int,
        page: int,
        limit: int,
        status: Optional[OrderStatus] = None,
        tx: Optional[Session] = None,
    ) -> Tuple[List[OrderResponse], int]:
        session = self._session(tx)
        filters = {"user_id": user_id}
        if status is not None:
            filters["status"] = status.value

        stmt = (
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.payment))
            .where(Order.user_id == user_id)
            .order_by(Order.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        if status is not None:
            stmt = stmt.where(Order.status == status.value)

        orders = [self._to_schema(o) for o in session.execute(stmt).scalars()]
        return orders, self.count(filters, tx=session)
