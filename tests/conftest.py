import os

# 테스트는 PostgreSQL 없이 SQLite 로 실행
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopapi.core.grades import GradeResolver
from shopapi.database.connection import enable_sqlite_savepoints
from shopapi.models import Base, Order, OrderStatus, Payment, Product, Store, User
from shopapi.services.order_service import OrderService
from shopapi.services.point_service import PointService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def grade_resolver():
    return GradeResolver()


@pytest.fixture
def point_service(db, grade_resolver):
    return PointService(db, grade_resolver)


@pytest.fixture
def order_service(db, point_service):
    return OrderService(db, point_service)


@pytest.fixture
def store(db):
    store = Store(name="Test Store")
    db.add(store)
    db.commit()
    return store


@pytest.fixture
def products(db, store):
    items = [
        Product(store_id=store.id, name="Shirt", price=10_000),
        Product(store_id=store.id, name="Jacket", price=50_000),
    ]
    db.add_all(items)
    db.commit()
    return items


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(points: int = 0, **kwargs) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            nickname=f"user{counter['n']}",
            points=points,
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_order(db, store):
    """상태를 직접 지정한 주문 생성 (상품 없이 정산 테스트용)"""

    def _make_order(
        user_id: int,
        total_price: int,
        status: OrderStatus = OrderStatus.PROCESSING,
    ) -> Order:
        order = Order(
            user_id=user_id,
            store_id=store.id,
            recipient_name="Kim",
            recipient_phone="010-0000-0000",
            address="Seoul",
            subtotal=total_price,
            total_quantity=1,
            use_point=0,
            total_price=total_price,
            status=status.value,
        )
        db.add(order)
        db.flush()
        db.add(Payment(order_id=order.id, price=total_price))
        db.commit()
        return order

    return _make_order


@pytest.fixture
def set_order_status(db):
    def _set_order_status(order_id: int, status: OrderStatus) -> None:
        db.get(Order, order_id).status = status.value
        db.commit()

    return _set_order_status
